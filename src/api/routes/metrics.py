# api/routes/metrics.py

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Depends
from pydantic import BaseModel

from api.dependencies import verify_api_key

router = APIRouter()
logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# MODÈLES DE REQUÊTE
# ─────────────────────────────────────────

class SimulateCommissionRequest(BaseModel):
    role: str                           # "sdr" | "closer"
    meetings_held: int = 0
    meetings_converted: int = 0
    sales_count: int = 0
    normalized_revenue: float = 0.0
    active_in_role: int = 1
    days_elapsed: Optional[int] = None  # renseigné → projection fin de mois


# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────


@router.get("/commissions")
def get_commissions(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000),
    whitelabel_id: str = Depends(verify_api_key),
) -> dict:
    from orchestrator.dashboard import build_commissions

    now = datetime.utcnow()
    try:
        return build_commissions(whitelabel_id, month or now.month, year or now.year)
    except Exception as e:
        logger.error(f"Erreur get_commissions {whitelabel_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/goals")
def get_goals(
    employee_id: Optional[str] = Query(None),
    whitelabel_id: str = Depends(verify_api_key),
) -> dict:
    from orchestrator.dashboard import build_goals

    try:
        return build_goals(whitelabel_id, employee_id=employee_id)
    except Exception as e:
        logger.error(f"Erreur get_goals {whitelabel_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/funnel")
def get_funnel(whitelabel_id: str = Depends(verify_api_key)) -> dict:
    from orchestrator.dashboard import build_funnel

    try:
        return build_funnel(whitelabel_id)
    except Exception as e:
        logger.error(f"Erreur get_funnel {whitelabel_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/growth")
def get_growth(
    from_date: Optional[str] = Query(None, alias="fromDate"),
    to_date: Optional[str] = Query(None, alias="toDate"),
    whitelabel_id: str = Depends(verify_api_key),
) -> dict:
    from orchestrator.dashboard import build_growth

    try:
        return build_growth(whitelabel_id, from_date, to_date)
    except Exception as e:
        logger.error(f"Erreur get_growth {whitelabel_id} : {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/commissions/simulate")
def simulate_commission(
    body: SimulateCommissionRequest,
    whitelabel_id: str = Depends(verify_api_key),
) -> dict:
    """Calcul direct à partir de chiffres saisis, sans lire les deals."""
    from metrics.commission import (
        compute_commission,
        next_checkpoint,
        project_commission,
        resolve_role,
    )
    from models import Role, RoleMetrics
    from orchestrator.dashboard import serialize
    from orchestrator.settings import get_commission_settings

    role = resolve_role(body.role)
    if role is None:
        raise HTTPException(
            status_code=400,
            detail=f"Rôle inconnu ou composite : {body.role} (sdr ou closer attendu)",
        )

    settings = get_commission_settings(whitelabel_id)
    metrics = RoleMetrics(
        employee_id="simulation",
        role=role,
        meetings_held=body.meetings_held,
        meetings_converted=body.meetings_converted,
        sales_count=body.sales_count,
        normalized_revenue=body.normalized_revenue,
    )

    breakdown = compute_commission(role, metrics, settings, body.active_in_role)
    result = {
        "commission": serialize(breakdown),
        "next_checkpoint": next_checkpoint(
            breakdown.target_achievement_percent, settings
        ),
    }

    if body.days_elapsed:
        achieved = body.meetings_held if role == Role.SDR else body.normalized_revenue
        result["projected_commission"] = project_commission(
            achieved, body.days_elapsed, role, settings,
            active_in_role=body.active_in_role,
        )

    return result
