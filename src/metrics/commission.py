# metrics/commission.py

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from models import (
    BusinessModel,
    CommissionBreakdown,
    CommissionSettings,
    CommissionSummary,
    Contact,
    Deal,
    Employee,
    PipelineStage,
    Role,
    RoleMetrics,
    RoleTags,
)
from metrics.funnel import counts_as_meeting, counts_as_sale, index_stages, resolve_stage
from metrics.pacing import in_period, meetings_target, sales_target
from metrics.revenue import deal_closer_id, normalize, safe_amount, total_revenue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Checkpoint:
    tier: int
    threshold_percent: float
    commission_percent: float


# ─────────────────────────────────────────
# RÔLES
# ─────────────────────────────────────────

def classify_role(role: Optional[str]) -> RoleTags:
    """
    "SDR", "Closer", "SDR/Closer"... → tags de capacité.
    "sales" est l'ancien nom du rôle closer.
    """
    text = (role or "").strip().lower()
    return RoleTags(
        is_sdr="sdr" in text,
        is_closer="closer" in text or text == "sales",
    )


def resolve_role(role) -> Optional[Role]:
    """
    Un seul rôle de calcul à partir du texte libre.
    Rôle composite ("SDR/Closer") ou inconnu → None : l'appelant
    doit préciser le rôle calculé.
    """
    if isinstance(role, Role):
        return role
    roles = classify_role(str(role or "")).roles
    if len(roles) == 1:
        return roles[0]
    return None


# ─────────────────────────────────────────
# CHECKPOINTS
# Évalués par seuil croissant. Additifs : franchir
# le checkpoint 3 paie aussi les checkpoints 1 et 2.
# ─────────────────────────────────────────

def checkpoints(settings: CommissionSettings) -> list[Checkpoint]:
    items = [
        Checkpoint(1, float(settings.checkpoint1_percent or 0),
                   float(settings.checkpoint1_commission_percent or 0)),
        Checkpoint(2, float(settings.checkpoint2_percent or 0),
                   float(settings.checkpoint2_commission_percent or 0)),
        Checkpoint(3, float(settings.checkpoint3_percent or 0),
                   float(settings.checkpoint3_commission_percent or 0)),
    ]
    return sorted(items, key=lambda c: (c.threshold_percent, c.tier))


def checkpoint_bonus(
    achievement_percent: float,
    individual_target: float,
    settings: CommissionSettings,
) -> tuple[float, list[int]]:
    bonus = 0.0
    reached = []

    for checkpoint in checkpoints(settings):
        if achievement_percent >= checkpoint.threshold_percent:
            bonus += individual_target * checkpoint.commission_percent / 100
            reached.append(checkpoint.tier)

    return bonus, reached


def checkpoint_tier(achievement_percent: float, settings: CommissionSettings) -> int:
    """Palier le plus haut atteint (0 à 3), pour l'affichage."""
    _, reached = checkpoint_bonus(achievement_percent, 0.0, settings)
    return max(reached) if reached else 0


def next_checkpoint(
    achievement_percent: float, settings: CommissionSettings
) -> Optional[dict]:
    for checkpoint in checkpoints(settings):
        if achievement_percent < checkpoint.threshold_percent:
            return {
                "next_tier": checkpoint.tier,
                "next_threshold": checkpoint.threshold_percent,
                "percentage_needed": checkpoint.threshold_percent - achievement_percent,
            }
    return None


# ─────────────────────────────────────────
# CALCUL PAR EMPLOYÉ
# ─────────────────────────────────────────

def individual_target(monthly_target: float, active_in_role: int) -> float:
    """La meta mensuelle est partagée entre les actifs du rôle."""
    monthly_target = safe_amount(monthly_target)
    if active_in_role <= 0:
        logger.warning(
            "[commission] Aucun employé actif dans le rôle — meta complète utilisée"
        )
        return monthly_target
    return monthly_target / active_in_role


def achievement_percent(current: float, target: float) -> float:
    if target <= 0:
        return 0.0
    return current / target * 100


def compute_commission(
    role,
    metrics: RoleMetrics,
    settings: Optional[CommissionSettings] = None,
    active_in_role: int = 1,
) -> CommissionBreakdown:
    """
    SDR    : réunions × commission par réunion
             + bonus par réunion convertie en vente
    Closer : fixe + ventes × commission par vente
             + revenu normalisé × % de commission

    Puis bonus de checkpoints sur la meta individuelle.
    """
    settings = settings or CommissionSettings()
    role = resolve_role(role) or resolve_role(metrics.role)

    if role is None:
        logger.warning(
            f"[commission] Rôle ambigu ou inconnu pour {metrics.employee_id} "
            f"— commission à 0"
        )
        return CommissionBreakdown(
            employee_id=metrics.employee_id,
            role=None,
            individual_target=0.0,
            target_achievement_percent=0.0,
            base_commission=0.0,
            checkpoint_bonus=0.0,
            total_commission=0.0,
            metrics=metrics,
        )

    if role == Role.SDR:
        monthly_target = meetings_target(settings)
        current = float(max(0, metrics.meetings_held or 0))
        converted = max(0, metrics.meetings_converted or 0)
        base = (
            current * safe_amount(settings.sdr_meeting_commission)
            + converted * safe_amount(settings.sdr_bonus_closed_meeting)
        )
    else:
        monthly_target = sales_target(settings)
        current = safe_amount(metrics.normalized_revenue)
        sales_count = max(0, metrics.sales_count or 0)
        base = (
            safe_amount(settings.closer_fixed_commission)
            + sales_count * safe_amount(settings.closer_per_sale_commission)
            + current * safe_amount(settings.closer_commission_percent) / 100
        )

    target = individual_target(monthly_target, active_in_role)
    achievement = achievement_percent(current, target)
    bonus, reached = checkpoint_bonus(achievement, target, settings)

    return CommissionBreakdown(
        employee_id=metrics.employee_id,
        role=role,
        individual_target=target,
        target_achievement_percent=achievement,
        base_commission=base,
        checkpoint_bonus=bonus,
        total_commission=base + bonus,
        checkpoint_tier=max(reached) if reached else 0,
        checkpoints_reached=reached,
        metrics=metrics,
    )


def project_commission(
    achieved: float,
    days_elapsed: int,
    role,
    settings: Optional[CommissionSettings] = None,
    days_in_month: int = 30,
    active_in_role: int = 1,
) -> float:
    """
    Projette le réalisé sur le mois.
    Côté SDR on ne projette pas de conversions.
    """
    role = resolve_role(role)
    if role is None:
        logger.warning("[commission] Projection impossible sans rôle unique")
        return 0.0

    achieved = safe_amount(achieved)

    if days_elapsed and days_elapsed > 0:
        projected = achieved / days_elapsed * days_in_month
    else:
        projected = achieved

    if role == Role.SDR:
        metrics = RoleMetrics(
            employee_id="", role=role, meetings_held=int(round(projected))
        )
    else:
        metrics = RoleMetrics(
            employee_id="", role=role, normalized_revenue=projected
        )

    return compute_commission(role, metrics, settings, active_in_role).total_commission


# ─────────────────────────────────────────
# COLLECTE DES MÉTRIQUES SUR LA PÉRIODE
# ─────────────────────────────────────────

def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    last_day = calendar.monthrange(year, month)[1]
    return (
        datetime(year, month, 1),
        datetime(year, month, last_day, 23, 59, 59, 999999),
    )


def _within(value: Optional[datetime], period) -> bool:
    if period is None:
        return True
    start, end = period
    return in_period(value, start, end)


def sdr_metrics(
    employee_id: str,
    contacts: Iterable[Contact],
    stages: Iterable[PipelineStage],
    period: Optional[tuple[datetime, datetime]] = None,
) -> RoleMetrics:
    stages_by_id = stages if isinstance(stages, dict) else index_stages(stages)
    seen: set[str] = set()
    held = 0
    converted = 0

    for contact in contacts:
        if contact.sdr_id != employee_id or contact.id in seen:
            continue
        if period is not None and not _within(contact.meeting_date, period):
            continue

        stage = resolve_stage(contact, stages_by_id)
        if not counts_as_meeting(contact, stage):
            continue

        seen.add(contact.id)
        held += 1
        if counts_as_sale(contact, stage):
            converted += 1

    return RoleMetrics(
        employee_id=employee_id,
        role=Role.SDR,
        meetings_held=held,
        meetings_converted=converted,
    )


def closer_metrics(
    employee_id: str,
    deals: Iterable[Deal],
    business_model: BusinessModel,
    period: Optional[tuple[datetime, datetime]] = None,
    contacts_by_id: Optional[dict[str, Contact]] = None,
) -> RoleMetrics:
    contacts_by_id = contacts_by_id or {}
    own = [
        d for d in deals
        if d.is_won
        and deal_closer_id(d, contacts_by_id) == employee_id
        and _within(d.sale_date, period)
    ]

    return RoleMetrics(
        employee_id=employee_id,
        role=Role.CLOSER,
        sales_count=len(own),
        normalized_revenue=sum(normalize(d, business_model) for d in own),
    )


# ─────────────────────────────────────────
# ÉQUIPE COMPLÈTE
# ─────────────────────────────────────────

def active_by_role(employees: Iterable[Employee]) -> dict[Role, list[Employee]]:
    grouped: dict[Role, list[Employee]] = {Role.SDR: [], Role.CLOSER: []}
    for employee in employees:
        if not employee.is_active:
            continue
        for role in classify_role(employee.role).roles:
            grouped[role].append(employee)
    return grouped


def compute_team_commissions(
    employees: Iterable[Employee],
    deals: Iterable[Deal],
    contacts: Iterable[Contact],
    stages: Iterable[PipelineStage],
    settings: Optional[CommissionSettings],
    business_model: BusinessModel,
    period: Optional[tuple[datetime, datetime]] = None,
) -> dict:
    """
    Commission de chaque employé actif, par rôle.
    Un "SDR/Closer" apparaît dans les deux listes.
    """
    settings = settings or CommissionSettings()
    deals = list(deals)
    contacts = list(contacts)
    stages_by_id = index_stages(stages)
    contacts_by_id = {c.id: c for c in contacts}

    grouped = active_by_role(employees)
    sdr_count = len(grouped[Role.SDR])
    closer_count = len(grouped[Role.CLOSER])

    sdr_results = [
        compute_commission(
            Role.SDR,
            sdr_metrics(e.id, contacts, stages_by_id, period),
            settings,
            sdr_count,
        )
        for e in grouped[Role.SDR]
    ]

    closer_results = [
        compute_commission(
            Role.CLOSER,
            closer_metrics(e.id, deals, business_model, period, contacts_by_id),
            settings,
            closer_count,
        )
        for e in grouped[Role.CLOSER]
    ]

    # Total des ventes compté une fois par deal, même si SDR et closer le partagent
    period_won = [d for d in deals if d.is_won and _within(d.sale_date, period)]

    sdr_total = sum(r.total_commission for r in sdr_results)
    closer_total = sum(r.total_commission for r in closer_results)

    summary = CommissionSummary(
        total_commissions=sdr_total + closer_total,
        sdr_commissions=sdr_total,
        closer_commissions=closer_total,
        sdr_count=sdr_count,
        closer_count=closer_count,
        total_sales=total_revenue(period_won, business_model),
        total_deals=len(period_won),
    )

    logger.info(
        f"[commission] {sdr_count} SDR, {closer_count} closers — "
        f"total {summary.total_commissions:.2f}"
    )

    return {
        "sdr": sdr_results,
        "closer": closer_results,
        "summary": summary,
    }
