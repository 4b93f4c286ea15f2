# metrics/growth.py

import logging
import statistics
from typing import Iterable, Mapping, Optional, Sequence, Union

from models import BusinessModel, Contact, Deal, LtvCac
from metrics.pacing import to_naive_utc
from metrics.revenue import (
    average_ticket,
    contributing_deals,
    normalize,
    safe_amount,
    safe_duration,
    total_revenue,
    won_deals,
)

logger = logging.getLogger(__name__)


HEALTHY_RATIO = 3.0
MARGINAL_RATIO = 1.0

# Au-delà, la durée est tronquée dans l'évolution MRR
MAX_CONTRACT_MONTHS = 120


# ─────────────────────────────────────────
# CROISSANCE MENSUELLE
# ─────────────────────────────────────────

def _month_key(deal: Deal) -> Optional[str]:
    sale_date = to_naive_utc(deal.sale_date)
    return sale_date.strftime("%Y-%m") if sale_date else None


def _rate(current: float, previous: Optional[float]) -> Optional[float]:
    if not previous or previous <= 0:
        return None
    return round((current - previous) / previous * 100, 2)


def growth_rate(
    monthly_series: Union[Sequence[float], Mapping[str, float]]
) -> Union[list, dict]:
    """
    (revenu[n] - revenu[n-1]) / revenu[n-1] × 100.
    None pour le premier mois et quand le mois précédent est à 0.

    Une liste donne une liste alignée ; un dict {"YYYY-MM": revenu}
    donne un dict trié par mois.
    """
    if isinstance(monthly_series, Mapping):
        months = sorted(monthly_series)
        rates = growth_rate([monthly_series[m] for m in months])
        return dict(zip(months, rates))

    rates = []
    previous = None
    for value in monthly_series:
        value = float(value or 0)
        rates.append(_rate(value, previous))
        previous = value
    return rates


def monthly_revenue(
    deals: Iterable[Deal], business_model: BusinessModel
) -> dict[str, float]:
    revenue: dict[str, float] = {}
    for deal in won_deals(deals):
        month = _month_key(deal)
        if month is None:
            continue
        revenue[month] = revenue.get(month, 0.0) + normalize(deal, business_model)
    return dict(sorted(revenue.items()))


def growth_series(
    deals: Iterable[Deal], business_model: BusinessModel
) -> list[dict]:
    deals = list(deals)
    revenue = monthly_revenue(deals, business_model)

    counts: dict[str, int] = {}
    for deal in won_deals(deals):
        month = _month_key(deal)
        if month is not None:
            counts[month] = counts.get(month, 0) + 1

    rates = growth_rate(revenue)
    model = BusinessModel.parse(business_model)

    return [
        {
            "month": month,
            "revenue": round(value, 2),
            "customer_count": counts.get(month, 0),
            "growth_rate": rates[month],
            "business_model": model.value,
        }
        for month, value in revenue.items()
    ]


def customer_evolution(deals: Iterable[Deal]) -> list[dict]:
    """Nouveaux clients par mois (premier deal gagné) et cumul."""
    first_month: dict[str, str] = {}

    for deal in sorted(
        (d for d in won_deals(deals) if d.sale_date),
        key=lambda d: to_naive_utc(d.sale_date),
    ):
        customer = deal.contact_id or deal.id
        if customer not in first_month:
            first_month[customer] = _month_key(deal)

    new_by_month: dict[str, int] = {}
    for month in first_month.values():
        new_by_month[month] = new_by_month.get(month, 0) + 1

    evolution = []
    running = 0
    for month in sorted(new_by_month):
        running += new_by_month[month]
        evolution.append({
            "month": month,
            "new_customers": new_by_month[month],
            "total_customers": running,
        })
    return evolution


def mrr_evolution(deals: Iterable[Deal]) -> list[dict]:
    """
    Revenu récurrent par mois calendaire : chaque deal gagné
    ajoute sa mensualité sur toute sa durée.
    """
    monthly: dict[str, dict] = {}

    for deal in contributing_deals(deals, BusinessModel.MRR):
        sale_date = to_naive_utc(deal.sale_date)
        if sale_date is None:
            continue

        monthly_value = normalize(deal, BusinessModel.MRR)
        year, month = sale_date.year, sale_date.month

        duration = safe_duration(deal.duration_months)
        if duration > MAX_CONTRACT_MONTHS:
            logger.warning(
                f"[growth] Deal {deal.id} : durée {duration} mois tronquée "
                f"à {MAX_CONTRACT_MONTHS}"
            )
            duration = MAX_CONTRACT_MONTHS

        for i in range(duration):
            key = f"{year + (month - 1 + i) // 12:04d}-{(month - 1 + i) % 12 + 1:02d}"
            if key not in monthly:
                monthly[key] = {"mrr": 0.0, "new_deals": 0}
            monthly[key]["mrr"] += monthly_value
            if i == 0:
                monthly[key]["new_deals"] += 1

    return [
        {
            "month": key,
            "value": round(monthly[key]["mrr"], 2),
            "new_deals": monthly[key]["new_deals"],
        }
        for key in sorted(monthly)
    ]


# ─────────────────────────────────────────
# LTV / CAC
# ─────────────────────────────────────────

def classify_ltv_cac(ratio: Optional[float]) -> Optional[str]:
    """Libellé d'affichage uniquement."""
    if ratio is None:
        return None
    if ratio >= HEALTHY_RATIO:
        return "healthy"
    if ratio >= MARGINAL_RATIO:
        return "marginal"
    return "unsustainable"


def _customers_of(deals: Iterable[Deal]) -> int:
    return len({d.contact_id or d.id for d in won_deals(deals)})


def ltv_cac(
    deals: Iterable[Deal],
    ad_spend: float,
    customers: Optional[int],
    business_model: BusinessModel,
) -> LtvCac:
    """
    MRR : LTV = mensualité moyenne × durée de vie moyenne (mois)
    TCV : LTV = valeur moyenne d'un deal, pas de récurrence
    CAC = dépense pub / clients acquis sur la période
    """
    deals = list(deals)
    model = BusinessModel.parse(business_model)
    avg_monthly = None
    avg_lifetime = None

    if model == BusinessModel.MRR:
        counted = contributing_deals(deals, model)
        if counted:
            avg_monthly = statistics.mean(normalize(d, model) for d in counted)
            avg_lifetime = statistics.mean(
                safe_duration(d.duration_months) for d in counted
            )
        else:
            avg_monthly = 0.0
            avg_lifetime = 0.0
        ltv = avg_monthly * avg_lifetime
    else:
        counted = won_deals(deals)
        ltv = (
            statistics.mean(normalize(d, model) for d in counted)
            if counted else 0.0
        )

    if customers is None:
        customers = _customers_of(deals)

    spend = safe_amount(ad_spend)
    cac = spend / customers if customers and customers > 0 else 0.0
    ratio = round(ltv / cac, 2) if cac > 0 else None

    return LtvCac(
        ltv=round(ltv, 2),
        cac=round(cac, 2),
        ratio=ratio,
        label=classify_ltv_cac(ratio),
        total_customers=customers or 0,
        business_model=model,
        avg_monthly_value=round(avg_monthly, 2) if avg_monthly is not None else None,
        avg_lifetime_months=round(avg_lifetime, 1) if avg_lifetime is not None else None,
    )


# ─────────────────────────────────────────
# PAGE PRINCIPALE
# ─────────────────────────────────────────

def trend(current: float, previous: Optional[float]) -> dict:
    if not previous:
        return {"value": 0.0, "is_positive": True}
    change = (current - previous) / previous * 100
    return {
        "value": abs(round(change, 1)),
        "is_positive": change >= 0,
    }


def main_page_metrics(
    deals: Iterable[Deal],
    contacts: Iterable[Contact],
    ad_spend: float,
    business_model: BusinessModel,
    previous: Optional[dict] = None,
) -> dict:
    """
    Ventes totales, ticket moyen, CAC et ROAS de la période,
    avec la tendance vs la période précédente.
    Pour le CAC, une baisse est une bonne nouvelle.
    """
    deals = list(deals)
    spend = safe_amount(ad_spend)

    sales = total_revenue(deals, business_model)
    ticket = average_ticket(deals, business_model)

    won_contact_ids = {d.contact_id for d in won_deals(deals) if d.contact_id}
    new_customers = sum(1 for c in contacts if c.id in won_contact_ids)
    cac = spend / new_customers if new_customers > 0 else 0.0
    roas = sales / spend if spend > 0 else 0.0

    previous = previous or {}
    cac_trend = trend(cac, previous.get("cac"))
    if previous.get("cac"):
        cac_trend["is_positive"] = cac <= previous["cac"]

    return {
        "total_sales": {"value": sales, "trend": trend(sales, previous.get("total_sales"))},
        "average_ticket": {"value": ticket, "trend": trend(ticket, previous.get("average_ticket"))},
        "cac": {"value": cac, "trend": cac_trend},
        "roas": {"value": roas, "trend": trend(roas, previous.get("roas"))},
    }
