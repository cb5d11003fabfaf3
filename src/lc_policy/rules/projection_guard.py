"""projection_guard: cash left after the proposed transaction must cover
at least min_coverage_ratio of all pending shadow-ledger obligations.
"""

from datetime import datetime
from typing import Any

from src.lc_common.cents import cents_to_display
from src.lc_common.errors import InvalidInputError, PolicyEvaluationError
from src.lc_policy.domain.models import Policy, ProposedTransaction, Violation
from src.lc_policy.domain.repository import PolicyLookups

DEFAULT_MIN_COVERAGE_RATIO = 0.5


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    ratio = config.get("min_coverage_ratio", DEFAULT_MIN_COVERAGE_RATIO)
    if isinstance(ratio, bool) or not isinstance(ratio, (int, float)) or ratio < 0:
        raise InvalidInputError("min_coverage_ratio must be a non-negative number")
    return {"min_coverage_ratio": float(ratio)}


def projected_coverage(cash_balance: int, amount: int, pending_total: int) -> float:
    """(cash - amount) / pending, or 1.0 when nothing is pending."""
    if pending_total <= 0:
        return 1.0
    return (cash_balance - amount) / pending_total


async def evaluate(
    policy: Policy,
    proposed: ProposedTransaction,
    lookups: PolicyLookups,
    now: datetime,
) -> Violation | None:
    try:
        min_ratio = validate_config(policy.config)["min_coverage_ratio"]
    except InvalidInputError as exc:
        raise PolicyEvaluationError(policy.id, exc.message) from exc

    cash = await lookups.get_cash_balance()
    pending = await lookups.sum_pending_obligations()
    coverage = projected_coverage(cash, proposed.amount, pending)
    if coverage >= min_ratio:
        return None

    return Violation(
        policy.id,
        policy.policy_type,
        policy.severity,
        f"Transaction would reduce coverage ratio to {round(coverage * 100)}% "
        f"(minimum: {round(min_ratio * 100)}%). "
        f"Cash after: {cents_to_display(cash - proposed.amount)}, "
        f"Pending obligations: {cents_to_display(pending)}",
    )
