"""Integer arithmetic utilities for cents-based ledger amounts.

All authoritative amounts and balances are int (cents). Decimal is only used
at the boundary, when converting to or from major units for display/input.
Rounding happens only where a fractional split must produce integer shares.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from src.lc_common.errors import InvalidAmountError

_CENT = Decimal("0.01")


def validate_cents(
    value: object, *, allow_zero: bool = True, allow_negative: bool = False
) -> int:
    """Return value unchanged if it is an acceptable integer cent amount."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"Amount must be an integer number of cents, got {value!r}")
    if value < 0 and not allow_negative:
        raise InvalidAmountError(f"Amount must not be negative, got {value}")
    if value == 0 and not allow_zero:
        raise InvalidAmountError("Amount must be greater than zero")
    return value


def from_major(value: Decimal | str | int | float) -> int:
    """Convert a major-unit value to cents: Decimal('29.99') -> 2999.

    Values carrying fractions of a cent are rejected rather than rounded.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidAmountError(f"Invalid amount: {value!r}") from exc
    if not dec.is_finite():
        raise InvalidAmountError(f"Amount must be finite, got {value!r}")
    cents = dec * 100
    if cents != cents.to_integral_value():
        raise InvalidAmountError(f"Amount has sub-cent precision: {value!r}")
    return int(cents)


def to_major(cents: int) -> Decimal:
    """Convert cents to a 2dp Decimal: 2999 -> Decimal('29.99')."""
    validate_cents(cents, allow_negative=True)
    return (Decimal(cents) / 100).quantize(_CENT, rounding=ROUND_HALF_UP)


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def prorate(amount: int, numerator: int, denominator: int) -> int:
    """amount * numerator / denominator, rounded half up to the nearest cent.

    Integer-only: (2ab + c) // 2c for non-negative operands.
    """
    if denominator <= 0:
        raise InvalidAmountError(f"Denominator must be positive, got {denominator}")
    validate_cents(amount)
    validate_cents(numerator)
    return (2 * amount * numerator + denominator) // (2 * denominator)


def split_proportional(total: int, weights: list[int], residual_index: int) -> list[int]:
    """Split total across weights, rounding each share independently.

    Any cent left over (or overdrawn) by rounding is assigned to
    weights[residual_index] so that sum(result) == total exactly.
    """
    validate_cents(total)
    if not weights:
        raise InvalidAmountError("Cannot split across zero weights")
    weight_sum = sum(validate_cents(w) for w in weights)
    if weight_sum == 0:
        raise InvalidAmountError("Cannot split across weights summing to zero")
    shares = [prorate(total, w, weight_sum) for w in weights]
    shares[residual_index] += total - sum(shares)
    return shares


def split_cumulative(
    amount: int, weights: list[int], allocated: list[int], residual_index: int
) -> list[int]:
    """Split one installment of a running total across weights.

    allocated[i] is what earlier installments already charged to weights[i].
    Each share is the growth of the proportional split of the running total,
    so the installments of a fully consumed total add up to the weights
    exactly instead of drifting by a cent per installment. Shares never go
    negative and never push a weight past its own amount.

    Raises InvalidAmountError if amount exceeds the unallocated headroom.
    """
    validate_cents(amount)
    if len(allocated) != len(weights):
        raise InvalidAmountError("allocated must have one value per weight")
    headroom = [max(validate_cents(w) - validate_cents(a), 0) for w, a in zip(weights, allocated)]
    if amount > sum(headroom):
        raise InvalidAmountError(
            f"Cannot allocate {amount} cents; only {sum(headroom)} cents remain unallocated"
        )

    target = split_proportional(sum(allocated) + amount, weights, residual_index)
    shares = [min(max(t - a, 0), h) for t, a, h in zip(target, allocated, headroom)]

    # Clamping can leave the installment short or over; settle on the
    # residual index first, then on the legs with the most room.
    order = [residual_index] + sorted(
        (i for i in range(len(weights)) if i != residual_index),
        key=lambda i: headroom[i] - shares[i],
        reverse=True,
    )
    diff = amount - sum(shares)
    for i in order:
        if diff > 0:
            step = min(diff, headroom[i] - shares[i])
        elif diff < 0:
            step = -min(-diff, shares[i])
        else:
            break
        shares[i] += step
        diff -= step
    return shares


def split_by_percent(gross: int, percent: int | float | Decimal) -> tuple[int, int]:
    """Split gross into (share, remainder) where share = gross * percent / 100.

    share is rounded half up; remainder absorbs the rounding residual.
    2999 at 80% -> (2399, 600).
    """
    validate_cents(gross)
    pct = Decimal(str(percent))
    if not pct.is_finite() or not (0 <= pct <= 100):
        raise InvalidAmountError(f"Percent must be between 0 and 100, got {percent}")
    share = int((Decimal(gross) * pct / 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return share, gross - share
