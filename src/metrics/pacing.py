# metrics/pacing.py

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from models import (
    BusinessModel,
    CommissionSettings,
    Contact,
    Deal,
    GoalData,
    GoalProgress,
    PipelineStage,
)
from metrics.funnel import counts_as_meeting, index_stages, resolve_stage
from metrics.revenue import deal_closer_id, normalize

logger = logging.getLogger(__name__)


# Nombre moyen de semaines par mois, identique pour tous les mois
WEEKS_PER_MONTH = 4.33

DEFAULT_MEETINGS_TARGET = 20
DEFAULT_SALES_TARGET = 10000


# ─────────────────────────────────────────
# BORNES DE PÉRIODE (UTC)
# ─────────────────────────────────────────

def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_in_month(now: datetime) -> int:
    return calendar.monthrange(now.year, now.month)[1]


def period_starts(now: datetime) -> dict[str, datetime]:
    """
    daily   : 00:00 UTC du jour
    weekly  : lundi 00:00 UTC (un dimanche remonte de 6 jours)
    monthly : le 1er à 00:00 UTC
    La borne haute est `now` pour les trois.
    """
    now = to_naive_utc(now)
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return {
        "daily": start_of_day,
        "weekly": start_of_day - timedelta(days=now.weekday()),
        "monthly": start_of_day.replace(day=1),
    }


def in_period(value: Optional[datetime], start: datetime, end: datetime) -> bool:
    value = to_naive_utc(value)
    if value is None:
        return False
    return start <= value <= end


# ─────────────────────────────────────────
# METAS
# ─────────────────────────────────────────

def daily_target(monthly_target: float, now: datetime) -> float:
    return round(monthly_target / days_in_month(now), 2)


def weekly_target(monthly_target: float) -> float:
    return round(monthly_target / WEEKS_PER_MONTH, 2)


def percentage(current: float, target: float) -> float:
    if not target:
        return 0.0
    return round(current / target * 100, 2)


def pace(
    monthly_target: float,
    rows: Iterable[tuple[Optional[datetime], float]],
    now: datetime,
) -> GoalData:
    """
    Progression jour / semaine / mois vers une meta mensuelle.

    rows : couples (date, valeur) déjà mesurés — 1 par réunion,
    revenu normalisé par vente. Une ligne sans date ne compte pas.
    """
    now = to_naive_utc(now)
    monthly_target = float(monthly_target or 0)
    starts = period_starts(now)
    rows = list(rows)

    totals = {
        period: sum(
            float(value or 0) for when, value in rows
            if in_period(when, start, now)
        )
        for period, start in starts.items()
    }

    targets = {
        "daily": daily_target(monthly_target, now),
        "weekly": weekly_target(monthly_target),
        "monthly": monthly_target,
    }

    progress = {
        period: GoalProgress(
            current=round(totals[period], 2),
            target=targets[period],
            percentage=percentage(totals[period], targets[period]),
        )
        for period in starts
    }

    return GoalData(**progress)


# ─────────────────────────────────────────
# RÉUNIONS ET VENTES
# ─────────────────────────────────────────

def meetings_target(settings: Optional[CommissionSettings]) -> float:
    if settings is None or not settings.sdr_meetings_target:
        logger.info("[pacing] Pas de meta réunions configurée — défaut utilisé")
        return DEFAULT_MEETINGS_TARGET
    return settings.sdr_meetings_target


def sales_target(settings: Optional[CommissionSettings]) -> float:
    if settings is None or not settings.closer_sales_target:
        logger.info("[pacing] Pas de meta ventes configurée — défaut utilisé")
        return DEFAULT_SALES_TARGET
    return settings.closer_sales_target


def pace_meetings(
    contacts: Iterable[Contact],
    stages: Iterable[PipelineStage],
    now: datetime,
    settings: Optional[CommissionSettings] = None,
    sdr_id: Optional[str] = None,
) -> GoalData:
    """
    Réunions = contacts avec meeting_date et un stage qui compte
    comme réunion. Un contact compte une seule fois, même s'il
    est aussi une vente.
    """
    stages_by_id = index_stages(stages)
    seen: set[str] = set()
    rows = []

    for contact in contacts:
        if sdr_id and contact.sdr_id != sdr_id:
            continue
        if contact.id in seen or not contact.meeting_date:
            continue
        if not counts_as_meeting(contact, resolve_stage(contact, stages_by_id)):
            continue
        seen.add(contact.id)
        rows.append((contact.meeting_date, 1))

    return pace(meetings_target(settings), rows, now)


def pace_sales(
    deals: Iterable[Deal],
    business_model: BusinessModel,
    now: datetime,
    settings: Optional[CommissionSettings] = None,
    closer_id: Optional[str] = None,
    contacts_by_id: Optional[dict[str, Contact]] = None,
) -> GoalData:
    """Même attribution que les commissions : le closer du contact prime."""
    rows = [
        (deal.sale_date, normalize(deal, business_model))
        for deal in deals
        if deal.is_won
        and (not closer_id or deal_closer_id(deal, contacts_by_id) == closer_id)
    ]
    return pace(sales_target(settings), rows, now)
