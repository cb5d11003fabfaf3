"""Pure breach-risk arithmetic over the shadow ledger. No I/O."""

from src.lc_shadow.domain.models import BreachRisk, ObligationsSummary, ProjectedObligation


def breach_risk(cash_balance: int, pending_total: int) -> BreachRisk:
    """at_risk = cash < pending; shortfall = max(0, pending - cash).

    coverage_ratio = max(cash, 0) / pending, so that growing obligations can
    never raise the ratio even when cash is negative.
    """
    shortfall = max(0, pending_total - cash_balance)
    if pending_total <= 0:
        coverage = None
    else:
        coverage = max(cash_balance, 0) / pending_total
    return BreachRisk(
        at_risk=cash_balance < pending_total,
        shortfall=shortfall,
        coverage_ratio=coverage,
    )


def summarize(items: list[ProjectedObligation]) -> ObligationsSummary:
    return ObligationsSummary(
        pending_total=sum(i.amount for i in items),
        pending_count=len(items),
        items=items,
    )
