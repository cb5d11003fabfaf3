"""Tests for lc_policy rules, decision resolution and budget periods."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from src.lc_common.errors import InvalidInputError, PolicyEvaluationError
from src.lc_policy.domain.instruments import instrument_fingerprint
from src.lc_policy.domain.models import Instrument, Policy, ProposedTransaction, Violation
from src.lc_policy.domain.periods import normalize_period, period_start
from src.lc_policy.domain.resolution import resolve_decision
from src.lc_policy.rules import budget_cap, projection_guard, require_instrument
from src.lc_policy.rules.registry import get_rule, validate_policy_config

NOW = datetime(2026, 3, 18, 15, 30, tzinfo=UTC)  # a Wednesday


@dataclass
class StubLookups:
    instruments: dict[str, Instrument] = field(default_factory=dict)
    spent: int = 0
    cash: int = 0
    pending: int = 0
    calls: list[tuple] = field(default_factory=list)

    async def get_instrument(self, instrument_id: str) -> Instrument | None:
        return self.instruments.get(instrument_id)

    async def sum_expense_debits(self, since: datetime, category: str | None) -> int:
        self.calls.append((since, category))
        return self.spent

    async def get_cash_balance(self) -> int:
        return self.cash

    async def sum_pending_obligations(self) -> int:
        return self.pending


def _policy(policy_type: str, config: dict, severity: str = "hard") -> Policy:
    return Policy(
        id="pol-1",
        ledger_id="led-1",
        policy_type=policy_type,
        config=config,
        severity=severity,
        priority=10,
    )


def _instrument(status: str = "active") -> Instrument:
    return Instrument(
        id="inst-1",
        ledger_id="led-1",
        external_ref="PO-1",
        amount=500_000,
        currency="USD",
        cadence="one_time",
        counterparty_name="Acme",
        fingerprint="f",
        status=status,
    )


class TestRequireInstrument:
    async def test_below_threshold_passes(self) -> None:
        policy = _policy("require_instrument", {"threshold_amount": 100_000})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=100_000), StubLookups(), NOW
        )
        assert result is None

    async def test_above_threshold_without_instrument(self) -> None:
        policy = _policy("require_instrument", {"threshold_amount": 100_000})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=100_001), StubLookups(), NOW
        )
        assert result is not None
        assert result.severity == "hard"
        assert "$1,000.01" in result.reason
        assert "$1,000.00" in result.reason

    async def test_default_threshold(self) -> None:
        policy = _policy("require_instrument", {})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=150_000), StubLookups(), NOW
        )
        assert result is not None

    async def test_valid_instrument_passes(self) -> None:
        policy = _policy("require_instrument", {})
        lookups = StubLookups(instruments={"inst-1": _instrument()})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=500_000, authorizing_instrument_id="inst-1"), lookups, NOW
        )
        assert result is None

    async def test_missing_instrument_always_checked(self) -> None:
        policy = _policy("require_instrument", {})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=100, authorizing_instrument_id="gone"), StubLookups(), NOW
        )
        assert result is not None
        assert result.reason == "Authorizing instrument not found"

    async def test_invalidated_instrument(self) -> None:
        policy = _policy("require_instrument", {})
        lookups = StubLookups(instruments={"inst-1": _instrument("invalidated")})
        result = await require_instrument.evaluate(
            policy, ProposedTransaction(amount=500_000, authorizing_instrument_id="inst-1"), lookups, NOW
        )
        assert result is not None
        assert "invalidated" in result.reason

    async def test_bad_config_is_evaluation_error(self) -> None:
        policy = _policy("require_instrument", {"threshold_amount": "lots"})
        with pytest.raises(PolicyEvaluationError):
            await require_instrument.evaluate(policy, ProposedTransaction(amount=1), StubLookups(), NOW)


class TestBudgetCap:
    async def test_within_cap(self) -> None:
        policy = _policy("budget_cap", {"cap_amount": 100_000})
        result = await budget_cap.evaluate(
            policy, ProposedTransaction(amount=40_000), StubLookups(spent=60_000), NOW
        )
        assert result is None

    async def test_exceeding_cap(self) -> None:
        policy = _policy("budget_cap", {"cap_amount": 100_000, "category": "software"}, "soft")
        lookups = StubLookups(spent=90_000)
        result = await budget_cap.evaluate(
            policy, ProposedTransaction(amount=20_000, category="software"), lookups, NOW
        )
        assert result is not None
        assert result.severity == "soft"
        assert result.reason == (
            'Monthly budget cap of $1,000.00 would be exceeded by $100.00 for category "software"'
        )
        since, category = lookups.calls[0]
        assert since == datetime(2026, 3, 1, tzinfo=UTC)
        assert category == "software"

    async def test_other_category_skipped(self) -> None:
        policy = _policy("budget_cap", {"cap_amount": 0, "category": "software"})
        lookups = StubLookups(spent=10**9)
        result = await budget_cap.evaluate(
            policy, ProposedTransaction(amount=1, category="travel"), lookups, NOW
        )
        assert result is None
        assert lookups.calls == []

    async def test_missing_cap_is_evaluation_error(self) -> None:
        with pytest.raises(PolicyEvaluationError):
            await budget_cap.evaluate(
                _policy("budget_cap", {}), ProposedTransaction(amount=1), StubLookups(), NOW
            )

    def test_validate_config_normalizes(self) -> None:
        cfg = budget_cap.validate_config({"cap_amount": 5, "period": "fortnightly"})
        assert cfg == {"cap_amount": 5, "period": "monthly", "category": None, "timezone": "UTC"}

    def test_validate_config_bad_timezone(self) -> None:
        with pytest.raises(InvalidInputError, match="timezone"):
            budget_cap.validate_config({"cap_amount": 5, "timezone": "Mars/Olympus"})


class TestProjectionGuard:
    def test_projected_coverage(self) -> None:
        assert projection_guard.projected_coverage(10_000, 2_000, 8_000) == 1.0
        assert projection_guard.projected_coverage(10_000, 2_000, 0) == 1.0

    async def test_sufficient_coverage(self) -> None:
        policy = _policy("projection_guard", {"min_coverage_ratio": 0.5})
        lookups = StubLookups(cash=100_000, pending=100_000)
        result = await projection_guard.evaluate(policy, ProposedTransaction(amount=50_000), lookups, NOW)
        assert result is None

    async def test_insufficient_coverage(self) -> None:
        policy = _policy("projection_guard", {"min_coverage_ratio": 0.5})
        lookups = StubLookups(cash=100_000, pending=100_000)
        result = await projection_guard.evaluate(policy, ProposedTransaction(amount=60_000), lookups, NOW)
        assert result is not None
        assert result.reason.startswith("Transaction would reduce coverage ratio to 40% (minimum: 50%)")
        assert "Cash after: $400.00" in result.reason
        assert "Pending obligations: $1,000.00" in result.reason

    async def test_nothing_pending_never_violates(self) -> None:
        policy = _policy("projection_guard", {})
        lookups = StubLookups(cash=0, pending=0)
        result = await projection_guard.evaluate(policy, ProposedTransaction(amount=60_000), lookups, NOW)
        assert result is None


class TestRegistry:
    def test_known_types(self) -> None:
        for policy_type in ("require_instrument", "budget_cap", "projection_guard"):
            assert get_rule(policy_type) is not None

    def test_unknown_type_is_none(self) -> None:
        assert get_rule("velocity_limit") is None

    def test_validate_unknown_type_raises(self) -> None:
        with pytest.raises(InvalidInputError, match="unknown policy type"):
            validate_policy_config("velocity_limit", {})


class TestResolveDecision:
    def _v(self, severity: str) -> Violation:
        return Violation("p", "budget_cap", severity, "r")

    def test_no_violations_allowed(self) -> None:
        assert resolve_decision([]) == "allowed"

    def test_soft_only_warns(self) -> None:
        assert resolve_decision([self._v("soft"), self._v("soft")]) == "warn"

    def test_any_hard_blocks(self) -> None:
        assert resolve_decision([self._v("soft"), self._v("hard")]) == "blocked"


class TestPeriods:
    def test_monthly(self) -> None:
        assert period_start("monthly", NOW, "UTC") == datetime(2026, 3, 1, tzinfo=UTC)

    def test_weekly_starts_sunday(self) -> None:
        assert period_start("weekly", NOW, "UTC") == datetime(2026, 3, 15, tzinfo=UTC)

    def test_weekly_on_sunday_is_same_day(self) -> None:
        sunday = datetime(2026, 3, 15, 9, 0, tzinfo=UTC)
        assert period_start("weekly", sunday, "UTC") == datetime(2026, 3, 15, tzinfo=UTC)

    def test_quarterly(self) -> None:
        assert period_start("quarterly", NOW, "UTC") == datetime(2026, 1, 1, tzinfo=UTC)
        aug = datetime(2026, 8, 20, tzinfo=UTC)
        assert period_start("quarterly", aug, "UTC") == datetime(2026, 7, 1, tzinfo=UTC)

    def test_annual(self) -> None:
        assert period_start("annual", NOW, "UTC") == datetime(2026, 1, 1, tzinfo=UTC)

    def test_timezone_anchor(self) -> None:
        # 2026-03-01 03:00 UTC is still February in New York (EST, UTC-5)
        early = datetime(2026, 3, 1, 3, 0, tzinfo=UTC)
        assert period_start("monthly", early, "America/New_York") == datetime(2026, 2, 1, 5, 0, tzinfo=UTC)

    def test_unknown_period_is_monthly(self) -> None:
        assert normalize_period("fortnightly") == "monthly"
        assert normalize_period(None) == "monthly"


class TestInstrumentFingerprint:
    def test_normalizes_counterparty_and_currency(self) -> None:
        a = instrument_fingerprint("PO-1", 500, "usd", "monthly", " Acme Corp ")
        b = instrument_fingerprint("PO-1", 500, "USD", "MONTHLY", "acme corp")
        assert a == b
        assert len(a) == 64

    def test_terms_change_fingerprint(self) -> None:
        a = instrument_fingerprint("PO-1", 500, "USD", "monthly", "Acme")
        b = instrument_fingerprint("PO-1", 501, "USD", "monthly", "Acme")
        assert a != b
