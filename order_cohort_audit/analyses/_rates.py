"""Shared rounding helpers for rates and money values."""

from decimal import Decimal, ROUND_HALF_UP

RATE_PRECISION = Decimal("0.0001")  # fractions, e.g. 0.8333
MONEY_PRECISION = Decimal("0.01")


def safe_rate(numerator: float, denominator: float) -> float:
    """``numerator / denominator`` rounded to four places, 0 when undefined."""
    if not denominator:
        return 0.0
    value = Decimal(str(numerator)) / Decimal(str(denominator))
    return float(value.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP))


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP))


def format_percentage(rate: float) -> str:
    """Render a fraction as the legacy ``"83.33%"`` display string.

    >>> format_percentage(0.8333)
    '83.33%'
    """
    pct = (Decimal(str(rate)) * 100).quantize(MONEY_PRECISION, rounding=ROUND_HALF_UP)
    return f"{pct}%"
