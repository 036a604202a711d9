from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from core.exceptions import InvalidAmount

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Coerce an int, str or Decimal amount to a two-place Decimal; floats are rejected."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Amounts must be given as Decimal, int or str, not {type(value).__name__}.")
    try:
        amount = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise InvalidAmount(f"Invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def stay_total(nightly_rate, nights: int) -> Decimal:
    return to_decimal(nightly_rate) * nights


def to_minor_units(amount) -> int:
    """Convert a currency amount to integer cents, rounding half-up to the nearest cent."""
    return int(to_decimal(amount) * 100)


def format_amount(amount) -> str:
    return f"{to_decimal(amount):.2f}"
