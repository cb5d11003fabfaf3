"""Domain models for lc_shadow — projected (ghost) obligations and risk."""

from dataclasses import dataclass, field
from datetime import date


@dataclass
class ProjectedObligation:
    id: str
    ledger_id: str
    expected_date: date
    amount: int                     # cents
    currency: str
    status: str                     # ProjectionStatus value
    counterparty: str | None = None
    authorizing_instrument_id: str | None = None


@dataclass
class ObligationsSummary:
    pending_total: int = 0
    pending_count: int = 0
    items: list[ProjectedObligation] = field(default_factory=list)


@dataclass(frozen=True)
class BreachRisk:
    at_risk: bool
    shortfall: int
    coverage_ratio: float | None    # None when nothing is pending (fully covered)


@dataclass
class CashPosition:
    cash_balance: int
    horizon_date: date
    obligations: ObligationsSummary
    risk: BreachRisk
    degraded: bool = False
