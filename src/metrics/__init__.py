"""
Moteur de commissions et de métriques de revenu.

Fonctions pures sur des snapshots déjà filtrés par whitelabel :
- revenue    : normalisation TCV / MRR
- pacing     : metas jour / semaine / mois
- commission : paliers (checkpoints) SDR et Closer
- funnel     : conversion par stage
- growth     : croissance mensuelle, LTV / CAC
"""

from .revenue import normalize, total_revenue
from .pacing import pace, pace_meetings, pace_sales
from .commission import compute_commission, compute_team_commissions
from .funnel import funnel, derive_legacy_label
from .growth import growth_rate, ltv_cac

__all__ = [
    "normalize",
    "total_revenue",
    "pace",
    "pace_meetings",
    "pace_sales",
    "compute_commission",
    "compute_team_commissions",
    "funnel",
    "derive_legacy_label",
    "growth_rate",
    "ltv_cac",
]
