"""Fixed-point helpers for converting between display decimals and minor units."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

AmountLike = Decimal | str | int | float


class MoneyParseError(ValueError):
    """Raised when a value cannot be interpreted as a monetary amount."""


def as_decimal(value: AmountLike) -> Decimal:
    """
    Coerce a display amount to Decimal.

    Floats are routed through ``str`` so ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise MoneyParseError(f"Not a monetary amount: {value!r}")
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as e:
            raise MoneyParseError(f"Not a monetary amount: {value!r}") from e

    if not result.is_finite():
        raise MoneyParseError(f"Not a monetary amount: {value!r}")
    return result


def round_half_up(value: Decimal) -> int:
    """
    Round to the nearest integer, halves away from zero.

    Raises:
        MoneyParseError: If the value has more integer digits than the
            decimal context can hold
    """
    try:
        return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation as e:
        raise MoneyParseError(f"Amount out of range: {value}") from e


def apply_rate(minor: int, rate: Decimal) -> int:
    """Multiply non-negative minor units by a rate, rounding half-up exactly."""
    numerator, denominator = rate.as_integer_ratio()
    return (2 * minor * numerator + denominator) // (2 * denominator)


def to_minor_units(amount: AmountLike, decimal_places: int = 2) -> int:
    """Convert a display amount (e.g. ``"10.005"``) to integer minor units."""
    return round_half_up(as_decimal(amount).scaleb(decimal_places))


def from_minor_units(minor: int, decimal_places: int = 2) -> Decimal:
    """Convert integer minor units back to a Decimal with fixed precision."""
    exponent = Decimal(1).scaleb(-decimal_places)
    return Decimal(minor).scaleb(-decimal_places).quantize(exponent)
