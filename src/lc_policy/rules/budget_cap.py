"""budget_cap: expense spending in the current period plus the proposed
amount must not exceed cap_amount.

config: {cap_amount: int cents, period?: weekly|monthly|quarterly|annual,
         category?: str, timezone?: IANA name}
"""

from datetime import datetime
from typing import Any

from config.settings import settings
from src.lc_common.cents import cents_to_display
from src.lc_common.errors import InvalidInputError, PolicyEvaluationError
from src.lc_policy.domain.models import Policy, ProposedTransaction, Violation
from src.lc_policy.domain.periods import normalize_period, period_start, resolve_timezone
from src.lc_policy.domain.repository import PolicyLookups


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    cap = config.get("cap_amount")
    if isinstance(cap, bool) or not isinstance(cap, int) or cap < 0:
        raise InvalidInputError("cap_amount is required (non-negative integer cents)")
    category = config.get("category") or None
    if category is not None and not isinstance(category, str):
        raise InvalidInputError("category must be a string")
    tz_name = config.get("timezone") or settings.BUDGET_DEFAULT_TIMEZONE
    resolve_timezone(tz_name)
    return {
        "cap_amount": cap,
        "period": normalize_period(config.get("period")),
        "category": category,
        "timezone": tz_name,
    }


async def evaluate(
    policy: Policy,
    proposed: ProposedTransaction,
    lookups: PolicyLookups,
    now: datetime,
) -> Violation | None:
    try:
        cfg = validate_config(policy.config)
    except InvalidInputError as exc:
        raise PolicyEvaluationError(policy.id, exc.message) from exc

    category = cfg["category"]
    if category and proposed.category and proposed.category != category:
        return None

    since = period_start(cfg["period"], now, cfg["timezone"])
    spent = await lookups.sum_expense_debits(since, category)
    projected = spent + proposed.amount
    if projected <= cfg["cap_amount"]:
        return None

    overage = projected - cfg["cap_amount"]
    scope = f' for category "{category}"' if category else ""
    return Violation(
        policy.id,
        policy.policy_type,
        policy.severity,
        f"{cfg['period'].capitalize()} budget cap of {cents_to_display(cfg['cap_amount'])} "
        f"would be exceeded by {cents_to_display(overage)}{scope}",
    )
