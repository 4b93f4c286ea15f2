# models.py

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from enum import Enum


# ─────────────────────────────────────────
# ENUMS
# ─────────────────────────────────────────

class UnknownBusinessModelError(ValueError):
    pass


class BusinessModel(str, Enum):
    TCV = "TCV"        # valeur totale du contrat, comptée une fois
    MRR = "MRR"        # valeur / durée en mois

    @classmethod
    def parse(cls, value, strict: bool = False) -> "BusinessModel":
        """
        Lit le business_model du whitelabel.
        Valeur absente ou inconnue → TCV (comme le produit),
        sauf en mode strict.
        """
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().upper()
        try:
            return cls(raw)
        except ValueError:
            if strict:
                raise UnknownBusinessModelError(
                    f"business_model inconnu : {value!r}"
                )
            return cls.TCV


class DealStatus(str, Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"


class FunnelStage(str, Enum):
    """Labels historiques de contacts.funnel_stage."""
    NEW_LEAD = "new_lead"
    CONTACTED = "contacted"
    MEETING = "meeting"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"
    DISQUALIFIED = "disqualified"


class Role(str, Enum):
    SDR = "sdr"
    CLOSER = "closer"


# ─────────────────────────────────────────
# CORE MODELS
# Snapshots fournis par la couche CRUD,
# déjà filtrés sur un whitelabel.
# ─────────────────────────────────────────

@dataclass
class Deal:
    id: str
    whitelabel_id: str = ""

    # Valeur
    value: float = 0.0
    duration_months: int = 0           # utile seulement en MRR

    status: DealStatus = DealStatus.OPEN

    # Ownership
    contact_id: Optional[str] = None
    sdr_id: Optional[str] = None
    closer_id: Optional[str] = None

    sale_date: Optional[datetime] = None

    @property
    def is_won(self) -> bool:
        return self.status == DealStatus.WON


@dataclass
class Contact:
    id: str
    whitelabel_id: str = ""

    # Pipeline
    pipeline_id: Optional[str] = None
    stage_id: Optional[str] = None
    funnel_stage: str = ""             # label legacy, dérivé de stage_id

    # Ownership
    sdr_id: Optional[str] = None
    closer_id: Optional[str] = None

    # Copiés sur le contact quand il atteint un stage de vente
    deal_value: float = 0.0
    deal_duration: int = 0

    meeting_date: Optional[datetime] = None
    sale_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass
class PipelineStage:
    id: str
    pipeline_id: str = ""
    name: str = ""
    order_position: int = 0
    counts_as_meeting: bool = False
    counts_as_sale: bool = False


@dataclass
class Pipeline:
    id: str
    name: str = ""
    is_default: bool = False
    stages: list[PipelineStage] = field(default_factory=list)


@dataclass
class Employee:
    id: str
    name: str = ""
    role: str = ""                     # texte libre : "SDR", "Closer", "SDR/Closer"
    status: str = "active"

    @property
    def is_active(self) -> bool:
        return (self.status or "active").lower() == "active"


@dataclass(frozen=True)
class CommissionSettings:
    # Checkpoints (% de la meta) → % de commission sur la meta individuelle
    checkpoint1_percent: float = 50.0
    checkpoint2_percent: float = 75.0
    checkpoint3_percent: float = 100.0
    checkpoint1_commission_percent: float = 50.0
    checkpoint2_commission_percent: float = 75.0
    checkpoint3_commission_percent: float = 100.0

    # SDR
    sdr_meeting_commission: float = 50.0
    sdr_meetings_target: float = 20.0
    sdr_bonus_closed_meeting: float = 100.0

    # Closer
    closer_commission_percent: float = 10.0
    closer_sales_target: float = 10000.0
    closer_fixed_commission: float = 0.0
    closer_per_sale_commission: float = 0.0


@dataclass(frozen=True)
class RoleTags:
    is_sdr: bool = False
    is_closer: bool = False

    @property
    def roles(self) -> list[Role]:
        roles = []
        if self.is_sdr:
            roles.append(Role.SDR)
        if self.is_closer:
            roles.append(Role.CLOSER)
        return roles


# ─────────────────────────────────────────
# RÉSULTATS DU MOTEUR
# Pas d'identité persistée.
# ─────────────────────────────────────────

@dataclass
class GoalProgress:
    current: float
    target: float
    percentage: float


@dataclass
class GoalData:
    daily: GoalProgress
    weekly: GoalProgress
    monthly: GoalProgress


@dataclass
class RoleMetrics:
    """Ce qu'un employé a produit sur la période, pour un rôle."""
    employee_id: str
    role: Role
    meetings_held: int = 0
    meetings_converted: int = 0
    sales_count: int = 0
    normalized_revenue: float = 0.0


@dataclass
class CommissionBreakdown:
    employee_id: str
    role: Optional[Role]                # None si le rôle est ambigu
    individual_target: float
    target_achievement_percent: float
    base_commission: float
    checkpoint_bonus: float
    total_commission: float
    checkpoint_tier: int = 0
    checkpoints_reached: list[int] = field(default_factory=list)
    metrics: Optional[RoleMetrics] = None


@dataclass
class CommissionSummary:
    total_commissions: float = 0.0
    sdr_commissions: float = 0.0
    closer_commissions: float = 0.0
    sdr_count: int = 0
    closer_count: int = 0
    total_sales: float = 0.0
    total_deals: int = 0


@dataclass
class StageConversion:
    stage_id: str
    stage_name: str
    order_position: int
    count: int
    conversion_from_previous: Optional[float] = None
    counts_as_meeting: bool = False
    counts_as_sale: bool = False


@dataclass
class FunnelMetrics:
    pipeline_id: str
    total_contacts: int
    total_meetings: int
    total_sales: int
    meeting_rate: float
    final_conversion: float
    meetings_per_sale: float
    per_stage: list[StageConversion] = field(default_factory=list)


@dataclass
class LtvCac:
    ltv: float
    cac: float
    ratio: Optional[float]
    label: Optional[str]
    total_customers: int = 0
    business_model: BusinessModel = BusinessModel.TCV
    avg_monthly_value: Optional[float] = None
    avg_lifetime_months: Optional[float] = None
