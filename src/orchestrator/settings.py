# orchestrator/settings.py

import logging
from dataclasses import fields
from typing import Optional

from models import BusinessModel, CommissionSettings
from services.database import get, get_whitelabel
from services.rows import to_float

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# CONFIG PAR DÉFAUT
# Si le whitelabel n'a pas de ligne commissions_settings,
# ou si une colonne est vide, on utilise ces valeurs.
# Clés = colonnes de la table.
# ─────────────────────────────────────────

DEFAULT_COMMISSION_SETTINGS = {
    "checkpoint_1_percent": 50,
    "checkpoint_2_percent": 75,
    "checkpoint_3_percent": 100,
    "checkpoint_1_commission_percent": 50,
    "checkpoint_2_commission_percent": 75,
    "checkpoint_3_commission_percent": 100,
    "sdr_meeting_commission": 50,
    "sdr_meetings_target": 20,
    "sdr_bonus_closed_meeting": 100,
    "closer_commission_percent": 10,
    "closer_sales_target": 10000,
    "closer_fixed_commission": 0,
    "closer_per_sale_commission": 0,
}

_FIELD_NAMES = {f.name for f in fields(CommissionSettings)}


def _field_name(column: str) -> str:
    # checkpoint_1_percent → checkpoint1_percent
    return column.replace("checkpoint_", "checkpoint", 1)


def settings_from_row(row: Optional[dict]) -> CommissionSettings:
    """
    Fusionne une ligne stockée avec les defaults.
    Les valeurs stockées non nulles gagnent.
    """
    stored = {k: v for k, v in (row or {}).items() if v is not None}
    merged = {**DEFAULT_COMMISSION_SETTINGS, **stored}

    values = {}
    for column in DEFAULT_COMMISSION_SETTINGS:
        name = _field_name(column)
        if name in _FIELD_NAMES:
            values[name] = to_float(merged[column])

    return CommissionSettings(**values)


# ─────────────────────────────────────────
# LECTURE
# La couche de config répond toujours.
# ─────────────────────────────────────────

def get_commission_settings(whitelabel_id: str) -> CommissionSettings:
    try:
        records = get("commissions_settings", whitelabel_id)
    except Exception as e:
        logger.error(f"Erreur get_commission_settings {whitelabel_id} : {e}")
        return settings_from_row(None)

    if not records:
        logger.info(
            f"[settings] Pas de commissions_settings pour {whitelabel_id} "
            f"— defaults utilisés"
        )
        return settings_from_row(None)

    if len(records) > 1:
        logger.error(
            f"[settings] {len(records)} lignes commissions_settings pour "
            f"{whitelabel_id} : {[r.get('id') for r in records]} — "
            f"la première est utilisée"
        )

    return settings_from_row(records[0])


def get_business_model(whitelabel_id: str) -> BusinessModel:
    try:
        whitelabel = get_whitelabel(whitelabel_id) or {}
    except Exception as e:
        logger.error(f"Erreur get_business_model {whitelabel_id} : {e}")
        whitelabel = {}

    return BusinessModel.parse(whitelabel.get("business_model"))


def get_ad_spend(whitelabel_id: str) -> float:
    try:
        whitelabel = get_whitelabel(whitelabel_id) or {}
    except Exception as e:
        logger.error(f"Erreur get_ad_spend {whitelabel_id} : {e}")
        return 0.0

    return to_float(whitelabel.get("meta_ads_spend"))
