"""
IoT SVG Kernel — Value Formatting

format_value() is exposed to render scripts as ctx.api.format_value.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any


def is_numeric(value: Any) -> bool:
    """True for numbers and numeric strings ("12.5"); False for booleans."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return value == value  # NaN is not numeric
    if isinstance(value, str) and value.strip():
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def format_value(
    value: Any,
    dec: int | None = None,
    units: str | None = None,
    show_zero_decimals: bool = False,
) -> str | None:
    """
    Format a numeric value for display.

    dec rounds to that many decimals (half up). Without show_zero_decimals,
    trailing zeros are dropped ("12.50" → "12.5"). Units are appended after a
    space. Non-numeric values are returned unchanged; None stays None.

    Examples:
      format_value(12.345, 2)                 → "12.35"
      format_value(12.5, 2)                   → "12.5"
      format_value(12.5, 2, "°C", True)       → "12.50 °C"
    """
    if value is None or not is_numeric(value):
        return value

    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return value

    if dec is not None:
        number = number.quantize(Decimal(1).scaleb(-dec), rounding=ROUND_HALF_UP)
    if show_zero_decimals and dec is not None:
        formatted = f"{number:f}"
    else:
        formatted = _strip_zeros(number)
    if units:
        formatted = f"{formatted} {units}"
    return formatted


def _strip_zeros(number: Decimal) -> str:
    text = f"{number:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text
