# services/rows.py

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, TypeVar

from models import (
    Contact,
    Deal,
    DealStatus,
    Employee,
    Pipeline,
    PipelineStage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ─────────────────────────────────────────
# COERCITION
# Valeur illisible → 0 ou None, jamais d'exception.
# ─────────────────────────────────────────

def parse_date(value) -> Optional[datetime]:
    """
    Gère :
    → datetime natif Python
    → ISO 8601 avec ou sans timezone
    → Timestamps millisecondes / secondes
    → Strings "YYYY-MM-DD"

    Retourne toujours du UTC naive.
    """
    if not value:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    try:
        s = str(value).strip()

        if s.isdigit() and len(s) == 13:
            return datetime.fromtimestamp(int(s) / 1000, tz=timezone.utc).replace(tzinfo=None)

        if s.isdigit() and len(s) == 10:
            return datetime.fromtimestamp(int(s), tz=timezone.utc).replace(tzinfo=None)

        s = s.replace("Z", "+00:00")

        if "T" in s or " " in s:
            dt = datetime.fromisoformat(s)
            if dt.tzinfo is not None:
                dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
            return dt

        if len(s) >= 10:
            return datetime.strptime(s[:10], "%Y-%m-%d")

        return None

    except (ValueError, TypeError, OSError):
        return None


def to_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def to_int(value) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError):
        return 0


def to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "t", "yes")
    return bool(value)


def _optional_str(value) -> Optional[str]:
    return str(value) if value else None


# ─────────────────────────────────────────
# LIGNES → MODÈLES
# ─────────────────────────────────────────

def deal_from_row(row: dict) -> Deal:
    raw_status = (row.get("status") or "open").lower()
    try:
        status = DealStatus(raw_status)
    except ValueError:
        status = DealStatus.OPEN

    return Deal(
        id=str(row["id"]),
        whitelabel_id=str(row.get("whitelabel_id") or ""),
        value=to_float(row.get("value")),
        duration_months=to_int(row.get("duration")),
        status=status,
        contact_id=_optional_str(row.get("contact_id")),
        sdr_id=_optional_str(row.get("sdr_id")),
        closer_id=_optional_str(row.get("closer_id") or row.get("assigned_to")),
        sale_date=parse_date(row.get("sale_date")),
    )


def contact_from_row(row: dict) -> Contact:
    return Contact(
        id=str(row["id"]),
        whitelabel_id=str(row.get("whitelabel_id") or ""),
        pipeline_id=_optional_str(row.get("pipeline_id")),
        stage_id=_optional_str(row.get("stage_id")),
        funnel_stage=row.get("funnel_stage") or "",
        sdr_id=_optional_str(row.get("sdr_id")),
        closer_id=_optional_str(row.get("closer_id")),
        deal_value=to_float(row.get("deal_value")),
        deal_duration=to_int(row.get("deal_duration")),
        meeting_date=parse_date(row.get("meeting_date")),
        sale_date=parse_date(row.get("sale_date")),
        created_at=parse_date(row.get("created_at")),
    )


def stage_from_row(row: dict, pipeline_id: str = "") -> PipelineStage:
    return PipelineStage(
        id=str(row["id"]),
        pipeline_id=str(row.get("pipeline_id") or pipeline_id),
        name=row.get("name") or "",
        order_position=to_int(row.get("order_position")),
        counts_as_meeting=to_bool(row.get("counts_as_meeting")),
        counts_as_sale=to_bool(row.get("counts_as_sale")),
    )


def pipeline_from_row(row: dict) -> Pipeline:
    pipeline_id = str(row["id"])
    stages = load_many(
        row.get("pipeline_stages") or [],
        lambda r: stage_from_row(r, pipeline_id),
    )
    return Pipeline(
        id=pipeline_id,
        name=row.get("name") or "",
        is_default=to_bool(row.get("is_default")),
        stages=stages,
    )


def employee_from_row(row: dict) -> Employee:
    return Employee(
        id=str(row["id"]),
        name=row.get("name") or "",
        role=row.get("role") or "",
        status=row.get("status") or "active",
    )


def load_many(rows: Iterable[dict], parser: Callable[[dict], T]) -> list[T]:
    """Parse chaque ligne ; une ligne illisible est ignorée et loggée."""
    items = []
    for row in rows or []:
        try:
            items.append(parser(row))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"[rows] Ligne ignorée ({parser.__name__}) : {e}")
    return items
