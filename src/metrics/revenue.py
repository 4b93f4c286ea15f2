# metrics/revenue.py

import logging
import math
from typing import Iterable, Optional

from models import BusinessModel, Contact, Deal

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────
# NORMALISATION
# Seul chemin de calcul du revenu d'un deal.
# Tout composant qui agrège des valeurs passe par ici.
# ─────────────────────────────────────────

def safe_amount(value) -> float:
    """Montant négatif, absent ou illisible → 0."""
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(amount) or amount < 0:
        return 0.0
    return amount


def safe_duration(value) -> int:
    try:
        duration = int(float(value or 0))
    except (TypeError, ValueError):
        return 0
    return max(0, duration)


def normalize(deal: Deal, business_model: BusinessModel) -> float:
    """
    TCV : la valeur du deal, inchangée.
    MRR : valeur / durée en mois. Durée nulle → 0,
          le deal ne contribue à aucune somme MRR.
    """
    value = safe_amount(deal.value)

    if BusinessModel.parse(business_model) == BusinessModel.MRR:
        duration = safe_duration(deal.duration_months)
        if duration <= 0:
            return 0.0
        return value / duration

    return value


def contributes(deal: Deal, business_model: BusinessModel) -> bool:
    """Un deal sans durée ne compte pas en MRR, ni dans les sommes ni dans les moyennes."""
    if BusinessModel.parse(business_model) == BusinessModel.MRR:
        return safe_duration(deal.duration_months) > 0
    return True


def won_deals(deals: Iterable[Deal]) -> list[Deal]:
    return [d for d in deals if d.is_won]


def contributing_deals(
    deals: Iterable[Deal], business_model: BusinessModel
) -> list[Deal]:
    return [d for d in won_deals(deals) if contributes(d, business_model)]


def total_revenue(deals: Iterable[Deal], business_model: BusinessModel) -> float:
    """Somme du revenu normalisé des deals gagnés."""
    return sum(normalize(d, business_model) for d in won_deals(deals))


def average_ticket(deals: Iterable[Deal], business_model: BusinessModel) -> float:
    """
    Ticket moyen = revenu total / clients uniques.
    Un client = un contact_id distinct parmi les deals qui contribuent.
    """
    counted = contributing_deals(deals, business_model)
    customers = {d.contact_id or d.id for d in counted}

    if not customers:
        return 0.0

    return total_revenue(counted, business_model) / len(customers)


def deal_closer_id(
    deal: Deal, contacts_by_id: Optional[dict[str, Contact]] = None
) -> Optional[str]:
    """Le closer du contact prime sur celui du deal."""
    contact = (contacts_by_id or {}).get(deal.contact_id or "")
    if contact is not None and contact.closer_id:
        return contact.closer_id
    return deal.closer_id
