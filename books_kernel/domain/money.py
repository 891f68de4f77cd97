"""
Money rounding utility.

Every monetary computation in the core rounds through ``round2``:
quantize to two decimal places with ROUND_HALF_UP.  Rounding happens at
each intermediate step (line amount, raw tax, tax half, totals), never
once at the end, so stored figures reproduce exactly.

``round_to_whole`` is the whole-unit (rupee) rounding used for an
automatic round-off adjustment; it rounds half to even.
"""

from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, InvalidOperation

from books_kernel.exceptions import ValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")
DEFAULT_ROUNDING_TOLERANCE = Decimal("0.01")

MoneyLike = Decimal | int | str | float


def to_decimal(value: MoneyLike, field: str = "amount") -> Decimal:
    """
    Convert a value to Decimal without binary-float artifacts.

    Floats go through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        ValidationError: value is not numeric, NaN or infinite.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got bool", field=field, value=value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(
                f"{field} is not a valid number: {value!r}", field=field, value=value
            ) from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be finite, got {value!r}", field=field, value=value)
    return result


def round2(value: MoneyLike) -> Decimal:
    """Round to two decimal places, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_to_whole(amount: MoneyLike) -> tuple[Decimal, Decimal]:
    """
    Round to the whole currency unit with banker's rounding.

    Returns:
        (rounded, round_off) where ``round_off = rounded - amount`` rounded
        to two places.  ``amount + round_off == rounded``.
    """
    value = round2(amount)
    rounded = value.quantize(Decimal("1"), rounding=ROUND_HALF_EVEN)
    return rounded.quantize(CENT), round2(rounded - value)


def is_settled(balance_due: MoneyLike) -> bool:
    """True when nothing remains to be paid."""
    return round2(balance_due) <= ZERO


def sum_money(values) -> Decimal:
    """Sum an iterable of amounts and round the result."""
    total = ZERO
    for value in values:
        total += to_decimal(value)
    return round2(total)


def to_money(value: MoneyLike, field: str = "amount") -> Decimal:
    """
    Convert a caller-supplied amount to a two-place Decimal.

    Raises:
        ValidationError: the value is not numeric or carries sub-cent
            precision; amounts are never silently rounded.
    """
    result = to_decimal(value, field)
    rounded = result.quantize(CENT, rounding=ROUND_HALF_UP)
    if result != rounded:
        raise ValidationError(
            f"{field} has more than two decimal places: {value!r}",
            field=field,
            value=value,
        )
    return rounded
