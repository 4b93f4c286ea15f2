# orchestrator/dashboard.py

import logging
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Optional

from metrics.commission import compute_team_commissions, month_bounds
from metrics.display import (
    checkpoint_label,
    format_currency,
    format_percent,
    format_roas,
)
from metrics.funnel import funnel, pipeline_breakdown
from metrics.growth import (
    customer_evolution,
    growth_series,
    ltv_cac,
    main_page_metrics,
    mrr_evolution,
)
from metrics.pacing import pace_meetings, pace_sales
from metrics.rankings import closer_ranking, sdr_ranking
from models import BusinessModel
from orchestrator.settings import (
    get_ad_spend,
    get_business_model,
    get_commission_settings,
)
from services import database
from services.rows import (
    contact_from_row,
    deal_from_row,
    employee_from_row,
    load_many,
    pipeline_from_row,
)

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# SNAPSHOT
# Tout est lu une fois par requête, puis passé
# au moteur qui ne fait que calculer.
# ─────────────────────────────────────────

def load_snapshot(
    whitelabel_id: str,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> dict:
    date_range = ("sale_date", from_date, to_date) if (from_date or to_date) else None

    # Seuls les deals gagnés alimentent le moteur
    deals = load_many(
        database.get(
            "deals", whitelabel_id,
            filters={"status": "won"}, date_range=date_range,
        ),
        deal_from_row,
    )
    contacts = load_many(database.get("contacts", whitelabel_id), contact_from_row)
    pipelines = load_many(database.get_pipelines(whitelabel_id), pipeline_from_row)
    employees = load_many(database.get("employees", whitelabel_id), employee_from_row)

    stages = [s for p in pipelines for s in p.stages]

    logger.info(
        f"[dashboard] Snapshot {whitelabel_id} — {len(deals)} deals, "
        f"{len(contacts)} contacts, {len(pipelines)} pipelines, "
        f"{len(employees)} employés"
    )

    return {
        "deals": deals,
        "contacts": contacts,
        "pipelines": pipelines,
        "stages": stages,
        "employees": employees,
    }


# ─────────────────────────────────────────
# VUES
# ─────────────────────────────────────────

def build_commissions(whitelabel_id: str, month: int, year: int) -> dict:
    settings = get_commission_settings(whitelabel_id)
    model = get_business_model(whitelabel_id)
    snapshot = load_snapshot(whitelabel_id)
    period = month_bounds(month, year)

    team = compute_team_commissions(
        snapshot["employees"],
        snapshot["deals"],
        snapshot["contacts"],
        snapshot["stages"],
        settings,
        model,
        period,
    )

    return serialize({
        "period_month": month,
        "period_year": year,
        "business_model": model,
        "summary": {
            **serialize(team["summary"]),
            "total_commissions_display": format_currency(
                team["summary"].total_commissions
            ),
        },
        "sdr": [_commission_card(b) for b in team["sdr"]],
        "closer": [_commission_card(b) for b in team["closer"]],
        "rankings": {
            "sdr": sdr_ranking(
                snapshot["employees"], snapshot["contacts"],
                snapshot["stages"], settings, period,
            ),
            "closer": closer_ranking(
                snapshot["employees"], snapshot["deals"],
                model, settings, period,
                contacts=snapshot["contacts"],
            ),
        },
    })


def build_goals(
    whitelabel_id: str,
    now: Optional[datetime] = None,
    employee_id: Optional[str] = None,
) -> dict:
    now = now or datetime.utcnow()
    settings = get_commission_settings(whitelabel_id)
    model = get_business_model(whitelabel_id)
    snapshot = load_snapshot(whitelabel_id)

    employee = None
    if employee_id:
        row = database.get_one("employees", whitelabel_id, employee_id)
        if row is None:
            logger.warning(f"[dashboard] Employé {employee_id} introuvable")
        else:
            employee = employee_from_row(row)

    return serialize({
        "employee": employee,
        "meetings": pace_meetings(
            snapshot["contacts"], snapshot["stages"], now, settings,
            sdr_id=employee_id,
        ),
        "sales": pace_sales(
            snapshot["deals"], model, now, settings,
            closer_id=employee_id,
            contacts_by_id={c.id: c for c in snapshot["contacts"]},
        ),
        "business_model": model,
    })


def build_funnel(whitelabel_id: str) -> dict:
    snapshot = load_snapshot(whitelabel_id)

    pipelines = [
        {
            "pipeline_id": p.id,
            "name": p.name,
            "metrics": funnel(p, p.stages, snapshot["contacts"]),
        }
        for p in snapshot["pipelines"]
    ]

    return serialize({
        "pipelines": pipelines,
        "breakdown": pipeline_breakdown(
            snapshot["pipelines"], snapshot["contacts"], snapshot["stages"]
        ),
    })


def build_growth(
    whitelabel_id: str,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
) -> dict:
    model = get_business_model(whitelabel_id)
    ad_spend = get_ad_spend(whitelabel_id)
    snapshot = load_snapshot(whitelabel_id, from_date, to_date)
    deals = snapshot["deals"]

    result = {
        "business_model": model,
        "growth": growth_series(deals, model),
        "customer_evolution": customer_evolution(deals),
        "ltv_cac": ltv_cac(deals, ad_spend, None, model),
        "main_page": _with_display(
            main_page_metrics(deals, snapshot["contacts"], ad_spend, model)
        ),
    }

    if model == BusinessModel.MRR:
        result["mrr_evolution"] = mrr_evolution(deals)

    return serialize(result)


# ─────────────────────────────────────────
# AFFICHAGE
# Valeurs formatées à côté des valeurs brutes
# ─────────────────────────────────────────

def _commission_card(breakdown) -> dict:
    card = serialize(breakdown)
    card["checkpoint_label"] = checkpoint_label(breakdown.checkpoint_tier)
    card["total_commission_display"] = format_currency(breakdown.total_commission)
    card["achievement_display"] = format_percent(breakdown.target_achievement_percent)
    return card


def _with_display(main_page: dict) -> dict:
    formatters = {
        "total_sales": format_currency,
        "average_ticket": format_currency,
        "cac": format_currency,
        "roas": format_roas,
    }
    for key, card in main_page.items():
        card["display"] = formatters[key](card["value"])
        card["trend"]["display"] = format_percent(card["trend"]["value"])
    return main_page


# ─────────────────────────────────────────
# UTILITAIRE INTERNE
# ─────────────────────────────────────────

def serialize(obj):
    """
    Dataclasses → dicts compatibles JSON.
    Gère les datetime → str et les Enum → valeur string.
    """
    if hasattr(obj, "__dataclass_fields__"):
        obj = asdict(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [serialize(i) for i in obj]
    return obj
