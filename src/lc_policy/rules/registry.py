"""Policy type -> rule. Types missing here are skipped by the engine."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.lc_common.enums import PolicyType
from src.lc_common.errors import InvalidInputError
from src.lc_policy.domain.models import Policy, ProposedTransaction, Violation
from src.lc_policy.domain.repository import PolicyLookups
from src.lc_policy.rules import budget_cap, projection_guard, require_instrument

Evaluator = Callable[
    [Policy, ProposedTransaction, PolicyLookups, datetime], Awaitable[Violation | None]
]


@dataclass(frozen=True)
class PolicyRule:
    evaluate: Evaluator
    validate_config: Callable[[dict[str, Any]], dict[str, Any]]


POLICY_RULES: dict[str, PolicyRule] = {
    PolicyType.REQUIRE_INSTRUMENT.value: PolicyRule(
        require_instrument.evaluate, require_instrument.validate_config
    ),
    PolicyType.BUDGET_CAP.value: PolicyRule(budget_cap.evaluate, budget_cap.validate_config),
    PolicyType.PROJECTION_GUARD.value: PolicyRule(
        projection_guard.evaluate, projection_guard.validate_config
    ),
}


def get_rule(policy_type: str) -> PolicyRule | None:
    return POLICY_RULES.get(policy_type)


def validate_policy_config(policy_type: str, config: dict[str, Any]) -> dict[str, Any]:
    rule = get_rule(policy_type)
    if rule is None:
        raise InvalidInputError(f"unknown policy type {policy_type!r}")
    return rule.validate_config(config)
