# tests/test_growth.py

"""
Ce qu'on teste :
→ Le taux de croissance mois sur mois
→ Les séries mensuelles (revenu, clients, MRR étalé)
→ LTV / CAC selon le business model
→ Les indicateurs de la page principale
"""

import pytest
from datetime import datetime
from unittest.mock import patch

from models import BusinessModel, Deal, DealStatus


class TestGrowthRate:

    def test_list_series(self):
        from metrics.growth import growth_rate

        assert growth_rate([100, 150, 0, 50]) == [None, 50.0, -100.0, None]

    def test_dict_series_sorted_by_month(self):
        from metrics.growth import growth_rate

        result = growth_rate({"2025-02": 100, "2025-01": 50})
        assert result == {"2025-01": None, "2025-02": 100.0}

    def test_growth_series_tcv(self, deals):
        """Février : d4 (3000). Mars : d1 + d2 (18000) → +500 %."""
        from metrics.growth import growth_series

        series = growth_series(deals, BusinessModel.TCV)

        assert [s["month"] for s in series] == ["2025-02", "2025-03"]
        assert series[0]["growth_rate"] is None
        assert series[1]["revenue"] == 18000
        assert series[1]["customer_count"] == 2
        assert series[1]["growth_rate"] == 500.0

    def test_growth_series_mrr_after_empty_month(self, deals):
        """d4 n'a pas de durée : février vaut 0, donc pas de taux en mars."""
        from metrics.growth import growth_series

        series = growth_series(deals, BusinessModel.MRR)

        assert series[0]["revenue"] == 0
        assert series[1]["revenue"] == 2000
        assert series[1]["growth_rate"] is None
        assert series[1]["business_model"] == "MRR"


class TestEvolution:

    def test_customer_evolution(self, deals):
        from metrics.growth import customer_evolution

        assert customer_evolution(deals) == [
            {"month": "2025-02", "new_customers": 1, "total_customers": 1},
            {"month": "2025-03", "new_customers": 2, "total_customers": 3},
        ]

    def test_mrr_spread_over_duration(self, deals):
        """d1 : 1000 × 12 mois, d2 : 1000 × 6 mois, tous deux depuis mars."""
        from metrics.growth import mrr_evolution

        evolution = {e["month"]: e for e in mrr_evolution(deals)}

        assert len(evolution) == 12
        assert evolution["2025-03"]["value"] == 2000
        assert evolution["2025-03"]["new_deals"] == 2
        assert evolution["2025-09"]["value"] == 1000
        assert evolution["2026-02"]["value"] == 1000
        assert "2026-03" not in evolution

    def test_absurd_duration_is_capped(self):
        """Une durée de 10^9 mois ne doit pas bloquer la requête."""
        from metrics.growth import MAX_CONTRACT_MONTHS, mrr_evolution

        deal = Deal(
            id="d", value=12000, duration_months=10**9,
            status=DealStatus.WON, sale_date=datetime(2025, 3, 1),
        )

        evolution = mrr_evolution([deal])

        assert len(evolution) == MAX_CONTRACT_MONTHS
        assert evolution[-1]["month"] == "2035-02"


class TestLtvCac:

    def test_tcv(self, deals):
        """LTV = moyenne (12000, 6000, 3000) ; 3 clients pour 3000 de pub."""
        from metrics.growth import ltv_cac

        result = ltv_cac(deals, 3000, None, BusinessModel.TCV)

        assert result.ltv == 7000
        assert result.cac == 1000
        assert result.ratio == 7.0
        assert result.label == "healthy"
        assert result.avg_monthly_value is None

    def test_tcv_goes_through_normalize(self, deals):
        from metrics.growth import ltv_cac
        from metrics.revenue import normalize

        with patch("metrics.growth.normalize", wraps=normalize) as mock_normalize:
            result = ltv_cac(deals, 3000, None, BusinessModel.TCV)

        assert mock_normalize.call_count == 3
        assert result.ltv == 7000

    def test_mrr(self, deals):
        """Mensualité moyenne 1000 × durée moyenne 9 mois."""
        from metrics.growth import ltv_cac

        result = ltv_cac(deals, 3000, None, BusinessModel.MRR)

        assert result.ltv == 9000
        assert result.avg_lifetime_months == 9.0
        assert result.ratio == 9.0

    def test_no_spend_means_no_ratio(self, deals):
        from metrics.growth import ltv_cac

        result = ltv_cac(deals, 0, None, BusinessModel.TCV)

        assert result.cac == 0
        assert result.ratio is None
        assert result.label is None

    @pytest.mark.parametrize("ratio, label", [
        (3.0, "healthy"),
        (2.9, "marginal"),
        (0.5, "unsustainable"),
        (None, None),
    ])
    def test_labels(self, ratio, label):
        from metrics.growth import classify_ltv_cac
        assert classify_ltv_cac(ratio) == label


class TestMainPage:

    def test_main_page_metrics(self, deals, contacts):
        """
        Ventes 21000, ticket 7000 (3 clients),
        1 contact client (c2) → CAC 3000, ROAS 7.
        """
        from metrics.growth import main_page_metrics

        result = main_page_metrics(
            deals, contacts, 3000, BusinessModel.TCV, previous={"cac": 2000}
        )

        assert result["total_sales"]["value"] == 21000
        assert result["average_ticket"]["value"] == pytest.approx(7000)
        assert result["cac"]["value"] == 3000
        assert result["roas"]["value"] == pytest.approx(7.0)

        # CAC en hausse → mauvaise nouvelle
        assert result["cac"]["trend"]["value"] == 50.0
        assert result["cac"]["trend"]["is_positive"] is False
