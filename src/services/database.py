# services/database.py

import os
from typing import Optional
from supabase import create_client, Client
import logging

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONNEXION
# ─────────────────────────────────────────

def get_client() -> Client:
    url = os.environ["SUPABASE_URL"]
    key = os.environ["SUPABASE_SERVICE_KEY"]
    return create_client(url, key)


# ─────────────────────────────────────────
# LECTURE
# Lecture seule : le moteur ne persiste rien.
# ─────────────────────────────────────────

def get(
    table: str,
    whitelabel_id: str,
    filters: Optional[dict] = None,
    date_range: Optional[tuple[str, Optional[str], Optional[str]]] = None,
) -> list:
    """
    Récupère les lignes d'un whitelabel.
    filters    : conditions d'égalité supplémentaires
                 ex: {"status": "won", "closer_id": "abc"}
    date_range : (colonne, depuis, jusqu'à), bornes ISO optionnelles
                 ex: ("sale_date", "2025-01-01", None)
    """
    client = get_client()

    query = client.table(table).select("*").eq("whitelabel_id", whitelabel_id)

    if filters:
        for key, value in filters.items():
            query = query.eq(key, value)

    if date_range:
        column, start, end = date_range
        if start:
            query = query.gte(column, start)
        if end:
            query = query.lte(column, end)

    result = query.execute()
    return result.data or []


def get_one(table: str, whitelabel_id: str, record_id: str) -> Optional[dict]:
    client = get_client()

    result = (
        client.table(table)
        .select("*")
        .eq("whitelabel_id", whitelabel_id)
        .eq("id", record_id)
        .limit(1)
        .execute()
    )

    return result.data[0] if result.data else None


def get_whitelabel(whitelabel_id: str) -> Optional[dict]:
    """Le whitelabel lui-même n'a pas de colonne whitelabel_id."""
    client = get_client()

    result = (
        client.table("whitelabels")
        .select("*")
        .eq("id", whitelabel_id)
        .limit(1)
        .execute()
    )

    return result.data[0] if result.data else None


def get_pipelines(whitelabel_id: str) -> list:
    """Pipelines avec leurs stages imbriqués (pipeline_stages)."""
    client = get_client()

    result = (
        client.table("pipelines")
        .select("id, name, is_default, pipeline_stages (*)")
        .eq("whitelabel_id", whitelabel_id)
        .order("created_at")
        .execute()
    )

    return result.data or []
