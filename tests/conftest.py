# tests/conftest.py

import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch


# ─────────────────────────────────────────
# FIXTURES — DONNÉES RÉALISTES
# Des lignes qui ressemblent à ce que renvoie
# vraiment Supabase pour un whitelabel.
# Mois de référence : mars 2025.
# ─────────────────────────────────────────

@pytest.fixture
def whitelabel_id():
    return "wl-test-uuid-123"


@pytest.fixture
def now():
    # Jeudi 20 mars 2025, 15h UTC → semaine depuis le lundi 17
    return datetime(2025, 3, 20, 15, 0, 0)


@pytest.fixture
def sample_stages():
    """Pipeline par défaut, 6 stages."""
    base = {"pipeline_id": "pipe_001", "counts_as_meeting": False, "counts_as_sale": False}
    return [
        {**base, "id": "st_1", "name": "Novo Lead", "order_position": 1},
        {**base, "id": "st_2", "name": "Contato Feito", "order_position": 2},
        {**base, "id": "st_3", "name": "Reunião Agendada", "order_position": 3,
         "counts_as_meeting": True},
        {**base, "id": "st_4", "name": "Negociação", "order_position": 4,
         "counts_as_meeting": True},
        {**base, "id": "st_5", "name": "Venda Fechada", "order_position": 5,
         "counts_as_sale": True},
        {**base, "id": "st_6", "name": "Perdido", "order_position": 6},
    ]


@pytest.fixture
def sample_pipelines(sample_stages):
    return [
        {
            "id": "pipe_001",
            "name": "Inbound",
            "is_default": True,
            "pipeline_stages": sample_stages,
        },
    ]


@pytest.fixture
def sample_employees(whitelabel_id):
    return [
        {"id": "emp_sdr_1", "whitelabel_id": whitelabel_id,
         "name": "Ana Souza", "role": "SDR", "status": "active"},
        {"id": "emp_sdr_2", "whitelabel_id": whitelabel_id,
         "name": "Bruno Lima", "role": "SDR", "status": "active"},
        {"id": "emp_closer_1", "whitelabel_id": whitelabel_id,
         "name": "Carla Dias", "role": "Closer", "status": "active"},
        # Inactive, hors de tous les calculs
        {"id": "emp_closer_old", "whitelabel_id": whitelabel_id,
         "name": "Eva Prado", "role": "Closer", "status": "inactive"},
    ]


@pytest.fixture
def sample_contacts(whitelabel_id):
    """
    SDR 1 : 2 réunions (c1, c2), 1 convertie (c2)
    SDR 2 : 1 réunion (c5, contact legacy), c4 perdu ne compte pas
    """
    base = {"whitelabel_id": whitelabel_id, "pipeline_id": "pipe_001",
            "closer_id": None, "deal_value": None, "deal_duration": None,
            "sale_date": None, "created_at": "2025-02-01T09:00:00Z"}
    return [
        {**base, "id": "c1", "stage_id": "st_3", "funnel_stage": "meeting",
         "sdr_id": "emp_sdr_1", "meeting_date": "2025-03-18T10:00:00Z"},
        {**base, "id": "c2", "stage_id": "st_5", "funnel_stage": "won",
         "sdr_id": "emp_sdr_1", "closer_id": "emp_closer_1",
         "meeting_date": "2025-03-05T14:00:00Z", "sale_date": "2025-03-10T16:00:00Z",
         "deal_value": 12000, "deal_duration": 12},
        {**base, "id": "c3", "stage_id": "st_2", "funnel_stage": "contacted",
         "sdr_id": "emp_sdr_2", "meeting_date": None},
        {**base, "id": "c4", "stage_id": "st_6", "funnel_stage": "lost",
         "sdr_id": "emp_sdr_2", "meeting_date": "2025-03-20T09:00:00Z"},
        # Contact legacy, jamais migré vers un pipeline
        {**base, "id": "c5", "pipeline_id": None, "stage_id": None,
         "funnel_stage": "meeting", "sdr_id": "emp_sdr_2",
         "meeting_date": "2025-03-20T11:00:00Z"},
        {**base, "id": "c6", "stage_id": "st_1", "funnel_stage": "new_lead",
         "sdr_id": None, "meeting_date": None},
    ]


@pytest.fixture
def sample_deals(whitelabel_id):
    """
    Mars 2025, closer 1 : d1 (12000 / 12 mois) et d2 (6000 / 6 mois)
    → TCV 18000, MRR 1000 + 1000 = 2000
    """
    base = {"whitelabel_id": whitelabel_id, "sdr_id": None}
    return [
        {**base, "id": "d1", "value": 12000, "duration": 12, "status": "won",
         "contact_id": "c2", "closer_id": "emp_closer_1",
         "sale_date": "2025-03-10T16:00:00Z"},
        {**base, "id": "d2", "value": 6000, "duration": 6, "status": "won",
         "contact_id": None, "closer_id": "emp_closer_1",
         "sale_date": "2025-03-19T14:00:00Z"},
        {**base, "id": "d3", "value": 5000, "duration": 12, "status": "lost",
         "contact_id": None, "closer_id": "emp_closer_1", "sale_date": None},
        # Février, sans durée → exclu en MRR
        {**base, "id": "d4", "value": 3000, "duration": 0, "status": "won",
         "contact_id": None, "closer_id": "emp_closer_1",
         "sale_date": "2025-02-15T10:00:00Z"},
        {**base, "id": "d5", "value": 8000, "duration": 12, "status": "open",
         "contact_id": None, "closer_id": None, "sale_date": None},
    ]


@pytest.fixture
def sample_whitelabel(whitelabel_id):
    return {
        "id": whitelabel_id,
        "name": "Test Whitelabel",
        "api_key": "test-api-key",
        "business_model": "TCV",
        "meta_ads_spend": 3000,
    }


# ─────────────────────────────────────────
# FIXTURES — MODÈLES
# ─────────────────────────────────────────

@pytest.fixture
def stages(sample_stages):
    from services.rows import stage_from_row
    return [stage_from_row(r) for r in sample_stages]


@pytest.fixture
def contacts(sample_contacts):
    from services.rows import contact_from_row
    return [contact_from_row(r) for r in sample_contacts]


@pytest.fixture
def deals(sample_deals):
    from services.rows import deal_from_row
    return [deal_from_row(r) for r in sample_deals]


@pytest.fixture
def employees(sample_employees):
    from services.rows import employee_from_row
    return [employee_from_row(r) for r in sample_employees]


@pytest.fixture
def pipeline(sample_pipelines):
    from services.rows import pipeline_from_row
    return pipeline_from_row(sample_pipelines[0])


# ─────────────────────────────────────────
# FIXTURE — MOCK SUPABASE
# ─────────────────────────────────────────

@pytest.fixture
def table_data(sample_deals, sample_contacts, sample_pipelines,
               sample_employees, sample_whitelabel):
    """Données par table. Un test peut les modifier avant l'appel."""
    return {
        "deals": sample_deals,
        "contacts": sample_contacts,
        "pipelines": sample_pipelines,
        "employees": sample_employees,
        "whitelabels": [sample_whitelabel],
        "commissions_settings": [],
    }


@pytest.fixture
def mock_supabase(table_data):
    """
    Mock Supabase complet.
    Toutes les requêtes retournent des données de test.
    On ne touche jamais la vraie base pendant les tests.
    """
    with patch("services.database.get_client") as mock_get_client:
        mock_client = MagicMock()
        mock_get_client.return_value = mock_client

        def table_mock(table_name):
            table = MagicMock()

            # Chaîne de méthodes fluide
            query = MagicMock()
            query.select.return_value = query
            query.eq.return_value = query
            query.lte.return_value = query
            query.gte.return_value = query
            query.order.return_value = query
            query.limit.return_value = query

            # Execute retourne les données correspondant à la table
            query.execute.return_value = MagicMock(
                data=table_data.get(table_name, [])
            )

            table.select.return_value = query
            return table

        mock_client.table.side_effect = table_mock
        yield mock_client
