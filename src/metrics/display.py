# metrics/display.py

import math


CHECKPOINT_LABELS = {
    1: "Checkpoint 1",
    2: "Checkpoint 2",
    3: "Checkpoint 3",
}


def _finite(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def format_currency(value, symbol: str = "R$") -> str:
    """1234.5 → "R$ 1.234,50" (format pt-BR)."""
    number = _finite(value)
    sign = "-" if number < 0 else ""
    text = f"{abs(number):,.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {text}"


def format_percent(value, decimals: int = 1) -> str:
    return f"{_finite(value):.{decimals}f}%"


def format_roas(value) -> str:
    return f"{_finite(value):.2f}x"


def checkpoint_label(tier: int) -> str:
    return CHECKPOINT_LABELS.get(tier, "Sem Checkpoint")
