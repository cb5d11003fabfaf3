"""require_instrument: large transactions need a valid authorizing instrument.

A supplied instrument is always checked, whatever the amount.
"""

from datetime import datetime
from typing import Any

from src.lc_common.cents import cents_to_display
from src.lc_common.enums import InstrumentStatus
from src.lc_common.errors import InvalidInputError, PolicyEvaluationError
from src.lc_policy.domain.models import Policy, ProposedTransaction, Violation
from src.lc_policy.domain.repository import PolicyLookups

DEFAULT_THRESHOLD_AMOUNT = 100_000  # $1,000.00


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    threshold = config.get("threshold_amount", DEFAULT_THRESHOLD_AMOUNT)
    if isinstance(threshold, bool) or not isinstance(threshold, int) or threshold < 0:
        raise InvalidInputError("threshold_amount must be a non-negative integer (cents)")
    return {"threshold_amount": threshold}


async def evaluate(
    policy: Policy,
    proposed: ProposedTransaction,
    lookups: PolicyLookups,
    now: datetime,
) -> Violation | None:
    try:
        threshold = validate_config(policy.config)["threshold_amount"]
    except InvalidInputError as exc:
        raise PolicyEvaluationError(policy.id, exc.message) from exc

    def violation(reason: str) -> Violation:
        return Violation(policy.id, policy.policy_type, policy.severity, reason)

    if proposed.authorizing_instrument_id is None:
        if proposed.amount > threshold:
            return violation(
                f"Transaction of {cents_to_display(proposed.amount)} exceeds threshold of "
                f"{cents_to_display(threshold)} and requires an authorizing instrument"
            )
        return None

    instrument = await lookups.get_instrument(proposed.authorizing_instrument_id)
    if instrument is None:
        return violation("Authorizing instrument not found")
    if instrument.status == InstrumentStatus.INVALIDATED.value:
        return violation("Authorizing instrument has been invalidated")
    return None
