# metrics/funnel.py

import logging
from typing import Iterable, Optional

from models import (
    Contact,
    FunnelMetrics,
    FunnelStage,
    Pipeline,
    PipelineStage,
    StageConversion,
)

logger = logging.getLogger(__name__)


# Labels legacy qui valent réunion / vente pour les contacts pas encore migrés
LEGACY_MEETING_LABELS = {"meeting", "reuniao", "won"}
LEGACY_SALE_LABELS = {"won"}

NEGATIVE_STAGE_KEYWORDS = (
    "perdido", "lost",
    "desqualificado", "disqualified",
    "cancelado", "cancelled",
)


# ─────────────────────────────────────────
# PRÉDICATS
# Les flags du stage font foi. Le label funnel_stage
# n'est lu que si le contact n'a pas de stage résolu.
# ─────────────────────────────────────────

def index_stages(stages: Iterable[PipelineStage]) -> dict[str, PipelineStage]:
    return {s.id: s for s in stages}


def resolve_stage(
    contact: Contact, stages_by_id: dict[str, PipelineStage]
) -> Optional[PipelineStage]:
    if not contact.stage_id:
        return None
    return stages_by_id.get(contact.stage_id)


def _legacy_label(contact: Contact) -> str:
    return (contact.funnel_stage or "").strip().lower()


def counts_as_meeting(contact: Contact, stage: Optional[PipelineStage]) -> bool:
    """Toute vente est aussi une réunion ; l'inverse n'est pas vrai."""
    if stage is not None:
        return bool(stage.counts_as_meeting or stage.counts_as_sale)
    return _legacy_label(contact) in LEGACY_MEETING_LABELS


def counts_as_sale(contact: Contact, stage: Optional[PipelineStage]) -> bool:
    if stage is not None:
        return bool(stage.counts_as_sale)
    return _legacy_label(contact) in LEGACY_SALE_LABELS


def derive_legacy_label(stage: Optional[PipelineStage]) -> FunnelStage:
    """
    Label funnel_stage à écrire en même temps que stage_id.

    Priorité :
    1. flag vente → won
    2. flag réunion → meeting
    3. mots-clés du nom (pt / en)
    4. position dans le pipeline
    """
    if stage is None:
        return FunnelStage.NEW_LEAD

    if stage.counts_as_sale:
        return FunnelStage.WON

    if stage.counts_as_meeting:
        return FunnelStage.MEETING

    name = (stage.name or "").lower()

    if any(kw in name for kw in ("novo", "new", "lead")):
        return FunnelStage.NEW_LEAD
    if any(kw in name for kw in ("contato", "contacted", "qualificação")):
        return FunnelStage.CONTACTED
    if any(kw in name for kw in ("reunião", "meeting", "demo")):
        return FunnelStage.MEETING
    if any(kw in name for kw in ("negociação", "negotiation", "proposta", "proposal")):
        return FunnelStage.NEGOTIATION
    if any(kw in name for kw in ("perdido", "lost")):
        return FunnelStage.LOST
    if any(kw in name for kw in ("desqualificado", "disqualified")):
        return FunnelStage.DISQUALIFIED

    position = stage.order_position
    if position is not None:
        if position <= 0:
            return FunnelStage.NEW_LEAD
        if position == 1:
            return FunnelStage.CONTACTED
        if position == 2:
            return FunnelStage.MEETING
        if position == 3:
            return FunnelStage.NEGOTIATION
        return FunnelStage.WON

    return FunnelStage.CONTACTED


def is_negative_final_stage(stage: PipelineStage) -> bool:
    name = (stage.name or "").lower()
    return any(kw in name for kw in NEGATIVE_STAGE_KEYWORDS)


def contact_in_stage(contact: Contact, stage: PipelineStage) -> bool:
    """
    stage_id d'abord. Sans stage_id, on place le contact
    d'après son label legacy, la position et le nom du stage.
    """
    if contact.stage_id:
        return contact.stage_id == stage.id

    label = _legacy_label(contact)
    if not label:
        return False

    name = (stage.name or "").lower()
    position = stage.order_position

    if label == "new_lead":
        return position == 1 or any(kw in name for kw in ("novo", "new", "lead"))

    if label == "contacted":
        return position == 2 or any(kw in name for kw in ("contato", "contacted", "contact"))

    if label in ("meeting", "reuniao"):
        return (
            position == 3
            or stage.counts_as_meeting
            or any(kw in name for kw in ("reunião", "reuniao", "meeting", "agendada"))
        )

    if label in ("negotiation", "negociacao"):
        return position == 4 or any(
            kw in name for kw in ("negociação", "negociacao", "negotiation")
        )

    if label in ("won", "closed"):
        return stage.counts_as_sale or any(
            kw in name for kw in ("ganho", "won", "fechado", "venda")
        )

    if label in ("lost", "perdido"):
        return any(kw in name for kw in ("perdido", "lost"))

    if label in ("disqualified", "desqualificado"):
        return any(kw in name for kw in ("desqualificado", "disqualified"))

    return False


# ─────────────────────────────────────────
# FUNNEL PAR PIPELINE
# ─────────────────────────────────────────

def pipeline_contacts(pipeline: Pipeline, contacts: Iterable[Contact]) -> list[Contact]:
    """
    Contacts du pipeline. Les contacts legacy sans pipeline_id
    vont dans le pipeline par défaut s'ils ont un funnel_stage.
    """
    result = []
    for contact in contacts:
        if contact.pipeline_id == pipeline.id:
            result.append(contact)
        elif not contact.pipeline_id and pipeline.is_default and contact.funnel_stage:
            result.append(contact)
    return result


def _rate(part: float, total: float) -> float:
    return part / total * 100 if total > 0 else 0.0


def stage_counts(
    stages: list[PipelineStage], contacts: list[Contact]
) -> list[int]:
    """
    Funnel cumulatif : un stage intermédiaire compte ses contacts
    et ceux des stages suivants (hors issues négatives).
    Les stages finaux (vente, perdu...) ne comptent que les leurs.
    """
    counts = []
    for stage in stages:
        final = stage.counts_as_sale or is_negative_final_stage(stage)

        if final:
            eligible = [stage]
        else:
            eligible = [
                s for s in stages
                if s.order_position >= stage.order_position
                and not is_negative_final_stage(s)
            ]

        counts.append(sum(
            1 for c in contacts
            if any(contact_in_stage(c, s) for s in eligible)
        ))
    return counts


def funnel(
    pipeline: Pipeline,
    stages: Optional[Iterable[PipelineStage]],
    contacts: Iterable[Contact],
) -> FunnelMetrics:
    if stages is None:
        stages = pipeline.stages

    ordered = sorted(
        (s for s in stages if not s.pipeline_id or s.pipeline_id == pipeline.id),
        key=lambda s: s.order_position,
    )
    stages_by_id = index_stages(ordered)
    members = pipeline_contacts(pipeline, contacts)

    total = len(members)
    meetings = 0
    sales = 0

    for contact in members:
        stage = resolve_stage(contact, stages_by_id)
        if counts_as_meeting(contact, stage):
            meetings += 1
        if counts_as_sale(contact, stage):
            sales += 1

    meetings_per_sale = meetings / sales if sales > 0 else 0.0

    counts = stage_counts(ordered, members)
    per_stage = []

    for i, stage in enumerate(ordered):
        conversion = None
        if i > 0 and counts[i - 1] > 0:
            conversion = round(counts[i] / counts[i - 1] * 100, 1)

        per_stage.append(StageConversion(
            stage_id=stage.id,
            stage_name=stage.name,
            order_position=stage.order_position,
            count=counts[i],
            conversion_from_previous=conversion,
            counts_as_meeting=bool(stage.counts_as_meeting),
            counts_as_sale=bool(stage.counts_as_sale),
        ))

    logger.debug(
        f"[funnel] pipeline {pipeline.id} — {total} contacts, "
        f"{meetings} réunions, {sales} ventes"
    )

    return FunnelMetrics(
        pipeline_id=pipeline.id,
        total_contacts=total,
        total_meetings=meetings,
        total_sales=sales,
        meeting_rate=round(_rate(meetings, total), 1),
        final_conversion=round(_rate(sales, total), 1),
        meetings_per_sale=round(meetings_per_sale, 1),
        per_stage=per_stage,
    )


def pipeline_breakdown(
    pipelines: Iterable[Pipeline],
    contacts: Iterable[Contact],
    stages: Iterable[PipelineStage],
) -> list[dict]:
    """Leads et conversions par pipeline, avec la part du total."""
    contacts = list(contacts)
    stages_by_id = index_stages(stages)
    names = {p.id: p.name for p in pipelines}

    by_pipeline: dict[str, dict] = {}

    for contact in contacts:
        key = contact.pipeline_id or "sem-pipeline"
        if key not in by_pipeline:
            by_pipeline[key] = {
                "pipeline": names.get(key, "Sem Pipeline"),
                "total_leads": 0,
                "converted_leads": 0,
            }
        by_pipeline[key]["total_leads"] += 1

        if counts_as_sale(contact, resolve_stage(contact, stages_by_id)):
            by_pipeline[key]["converted_leads"] += 1

    total_leads = len(contacts)
    result = []

    for item in by_pipeline.values():
        result.append({
            **item,
            "conversion_rate": round(
                _rate(item["converted_leads"], item["total_leads"]), 1
            ),
            "percentage_of_total": round(
                _rate(item["total_leads"], total_leads), 1
            ),
        })

    return result
