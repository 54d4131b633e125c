"""Conversions between stored minor units and provider major units.

Everything stored by the service is an integer number of kopiykas. LiqPay
expects and reports amounts in hryvnias, so every value crossing that
boundary goes through these helpers. Checkbox works in kopiykas and needs
no conversion.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

MINOR_UNITS_PER_MAJOR = 100
_CENT = Decimal("0.01")


def minor_to_major(amount: int) -> str:
    """Render an amount in minor units as a major-unit decimal string.

    Args:
        amount: Amount in minor units (e.g. 12345).

    Returns:
        str: Amount with exactly two decimal places (e.g. "123.45").

    Raises:
        TypeError: If amount is not an integer.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"Amount must be an integer number of minor units, got {type(amount).__name__}")
    major = Decimal(amount) / MINOR_UNITS_PER_MAJOR
    return str(major.quantize(_CENT))


def major_to_minor(value: Any) -> int:
    """Convert a provider major-unit amount back to minor units.

    Floats are converted through their string form so that 123.45 does not
    turn into 12344.

    Args:
        value: Amount as str, int, float or Decimal (e.g. "123.45" or 123.45).

    Returns:
        int: Amount in minor units (e.g. 12345).

    Raises:
        ValueError: If the value is not a number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        major = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not major.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    minor = (major * MINOR_UNITS_PER_MAJOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)
