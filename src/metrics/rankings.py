# metrics/rankings.py

from datetime import datetime
from typing import Iterable, Optional

from models import (
    BusinessModel,
    CommissionSettings,
    Contact,
    Deal,
    Employee,
    PipelineStage,
    Role,
)
from metrics.commission import (
    active_by_role,
    closer_metrics,
    individual_target,
    sdr_metrics,
)
from metrics.funnel import index_stages
from metrics.pacing import percentage, meetings_target, sales_target


def sdr_ranking(
    employees: Iterable[Employee],
    contacts: Iterable[Contact],
    stages: Iterable[PipelineStage],
    settings: Optional[CommissionSettings] = None,
    period: Optional[tuple[datetime, datetime]] = None,
    limit: int = 10,
) -> list[dict]:
    """Réunions tenues d'abord, conversions ensuite."""
    contacts = list(contacts)
    stages_by_id = index_stages(stages)
    sdrs = active_by_role(employees)[Role.SDR]
    target = round(individual_target(meetings_target(settings), len(sdrs)), 2)

    ranking = []
    for employee in sdrs:
        metrics = sdr_metrics(employee.id, contacts, stages_by_id, period)
        ranking.append({
            "id": employee.id,
            "name": employee.name,
            "meetings_held": metrics.meetings_held,
            "meetings_converted": metrics.meetings_converted,
            "goal_target": target,
            "goal_percentage": percentage(metrics.meetings_held, target),
        })

    ranking.sort(
        key=lambda r: (r["meetings_held"], r["meetings_converted"]),
        reverse=True,
    )
    return ranking[:limit]


def closer_ranking(
    employees: Iterable[Employee],
    deals: Iterable[Deal],
    business_model: BusinessModel,
    settings: Optional[CommissionSettings] = None,
    period: Optional[tuple[datetime, datetime]] = None,
    limit: int = 10,
    contacts: Optional[Iterable[Contact]] = None,
) -> list[dict]:
    """Nombre de deals gagnés d'abord, revenu normalisé ensuite."""
    deals = list(deals)
    contacts_by_id = {c.id: c for c in contacts or []}
    closers = active_by_role(employees)[Role.CLOSER]
    target = round(individual_target(sales_target(settings), len(closers)), 2)

    ranking = []
    for employee in closers:
        metrics = closer_metrics(
            employee.id, deals, business_model, period, contacts_by_id
        )
        ranking.append({
            "id": employee.id,
            "name": employee.name,
            "closed_deals_count": metrics.sales_count,
            "total_revenue": round(metrics.normalized_revenue, 2),
            "goal_target": target,
            "goal_percentage": percentage(metrics.normalized_revenue, target),
        })

    ranking.sort(
        key=lambda r: (r["closed_deals_count"], r["total_revenue"]),
        reverse=True,
    )
    return ranking[:limit]
