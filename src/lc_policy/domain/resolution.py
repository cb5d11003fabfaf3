"""Decision resolution: strict two-tier override."""

from src.lc_common.enums import Decision, Severity
from src.lc_policy.domain.models import Violation


def resolve_decision(violations: list[Violation]) -> str:
    """Any hard violation blocks; otherwise any soft violation warns; else allowed."""
    if any(v.severity == Severity.HARD.value for v in violations):
        return Decision.BLOCKED.value
    if any(v.severity == Severity.SOFT.value for v in violations):
        return Decision.WARN.value
    return Decision.ALLOWED.value
