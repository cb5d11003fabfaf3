"""Refund split: how much of a refund is charged to the creator vs the platform."""

from dataclasses import dataclass

from src.lc_common.cents import split_cumulative, validate_cents
from src.lc_common.enums import RefundFrom
from src.lc_common.errors import InvalidAmountError, InvalidInputError

_CREATOR = 0
_PLATFORM = 1


@dataclass(frozen=True)
class RefundBreakdown:
    from_creator: int
    from_platform: int

    @property
    def total(self) -> int:
        return self.from_creator + self.from_platform


def compute_refund_split(
    refund_amount: int,
    creator_amount: int,
    platform_amount: int,
    refund_from: str,
    already_from_creator: int = 0,
    already_from_platform: int = 0,
) -> RefundBreakdown:
    """Split refund_amount against the original sale's creator/platform shares.

    already_from_creator / already_from_platform are what earlier refunds and
    reversals of the same sale took back from each side.

    both:          proportional to the original shares over the cumulative
                   refunded total, the residual cent goes to the platform.
                   Once the sale is fully refunded each side has given back
                   exactly its original share.
    platform_only: charged to the platform up to what is left of its share;
                   any excess falls to the creator.
    creator_only:  mirror image of platform_only.
    """
    validate_cents(refund_amount, allow_zero=False)
    validate_cents(creator_amount)
    validate_cents(platform_amount)
    creator_left = max(creator_amount - validate_cents(already_from_creator), 0)
    platform_left = max(platform_amount - validate_cents(already_from_platform), 0)
    if refund_amount > creator_left + platform_left:
        raise InvalidAmountError(
            f"Refund of {refund_amount} cents exceeds the {creator_left + platform_left} cents "
            f"left of the original sale of {creator_amount + platform_amount} cents"
        )

    if refund_from == RefundFrom.BOTH.value:
        shares = split_cumulative(
            refund_amount,
            [creator_amount, platform_amount],
            [already_from_creator, already_from_platform],
            _PLATFORM,
        )
        return RefundBreakdown(shares[_CREATOR], shares[_PLATFORM])
    if refund_from == RefundFrom.PLATFORM_ONLY.value:
        from_platform = min(refund_amount, platform_left)
        return RefundBreakdown(refund_amount - from_platform, from_platform)
    if refund_from == RefundFrom.CREATOR_ONLY.value:
        from_creator = min(refund_amount, creator_left)
        return RefundBreakdown(from_creator, refund_amount - from_creator)
    raise InvalidInputError(f"refund_from must be one of both, platform_only, creator_only; got {refund_from!r}")
