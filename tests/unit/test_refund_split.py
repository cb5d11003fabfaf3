"""Tests for lc_refund.domain.split — creator/platform refund allocation."""

import pytest

from src.lc_common.errors import InvalidAmountError, InvalidInputError
from src.lc_refund.domain.split import RefundBreakdown, compute_refund_split


class TestBoth:
    def test_full_refund_matches_original(self) -> None:
        assert compute_refund_split(2999, 2399, 600, "both") == RefundBreakdown(2399, 600)

    def test_partial_is_proportional(self) -> None:
        # 1000 * 2399/2999 = 799.93 -> 800; platform absorbs the residual
        split = compute_refund_split(1000, 2399, 600, "both")
        assert split == RefundBreakdown(800, 200)
        assert split.total == 1000

    def test_residual_cent_to_platform(self) -> None:
        # 1 over 1:1 rounds to 1 + 1; the platform gives back the extra cent
        assert compute_refund_split(1, 1, 1, "both") == RefundBreakdown(1, 0)

    def test_successive_partials_settle_each_side(self) -> None:
        # 2:1 sale refunded one cent at a time
        first = compute_refund_split(1, 2, 1, "both")
        second = compute_refund_split(1, 2, 1, "both", first.from_creator, first.from_platform)
        third = compute_refund_split(
            1,
            2,
            1,
            "both",
            first.from_creator + second.from_creator,
            first.from_platform + second.from_platform,
        )
        assert [first, second, third] == [
            RefundBreakdown(1, 0),
            RefundBreakdown(0, 1),
            RefundBreakdown(1, 0),
        ]

    def test_rest_after_one_sided_refund(self) -> None:
        assert compute_refund_split(2499, 2399, 600, "both", 0, 500) == RefundBreakdown(2399, 100)

    def test_creator_only_sale(self) -> None:
        assert compute_refund_split(500, 1000, 0, "both") == RefundBreakdown(500, 0)


class TestOneSided:
    def test_platform_only_within_share(self) -> None:
        assert compute_refund_split(500, 2399, 600, "platform_only") == RefundBreakdown(0, 500)

    def test_platform_only_excess_falls_to_creator(self) -> None:
        assert compute_refund_split(1000, 2399, 600, "platform_only") == RefundBreakdown(400, 600)

    def test_platform_only_uses_what_is_left_of_its_share(self) -> None:
        assert compute_refund_split(500, 2399, 600, "platform_only", 0, 400) == RefundBreakdown(300, 200)

    def test_creator_only_within_share(self) -> None:
        assert compute_refund_split(2000, 2399, 600, "creator_only") == RefundBreakdown(2000, 0)

    def test_creator_only_excess_falls_to_platform(self) -> None:
        assert compute_refund_split(2999, 2399, 600, "creator_only") == RefundBreakdown(2399, 600)


class TestValidation:
    def test_exceeds_original_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="exceeds"):
            compute_refund_split(3000, 2399, 600, "both")

    def test_exceeds_what_is_left_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="exceeds"):
            compute_refund_split(1000, 2399, 600, "both", 2000, 0)

    def test_zero_raises(self) -> None:
        with pytest.raises(InvalidAmountError):
            compute_refund_split(0, 2399, 600, "both")

    def test_unknown_mode_raises(self) -> None:
        with pytest.raises(InvalidInputError, match="refund_from"):
            compute_refund_split(100, 2399, 600, "creator_first")
