"""Domain models for lc_policy — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any


@dataclass
class Policy:
    id: str
    ledger_id: str
    policy_type: str        # PolicyType value; unknown types are tolerated and skipped
    config: dict[str, Any]
    severity: str           # Severity value
    priority: int
    is_active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class ProposedTransaction:
    amount: int                                 # cents, > 0
    currency: str = "USD"
    counterparty_name: str | None = None
    authorizing_instrument_id: str | None = None
    expected_date: date | None = None
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["expected_date"] = self.expected_date.isoformat() if self.expected_date else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProposedTransaction":
        expected = data.get("expected_date")
        return cls(
            amount=int(data["amount"]),
            currency=data.get("currency") or "USD",
            counterparty_name=data.get("counterparty_name"),
            authorizing_instrument_id=data.get("authorizing_instrument_id"),
            expected_date=date.fromisoformat(expected) if expected else None,
            category=data.get("category"),
        )


@dataclass(frozen=True)
class Violation:
    policy_id: str
    policy_type: str
    severity: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class NewDecision:
    ledger_id: str
    idempotency_key: str
    proposed: ProposedTransaction
    decision: str
    violations: list[Violation]
    expires_at: datetime


@dataclass
class AuthorizationDecision:
    id: str
    ledger_id: str
    idempotency_key: str
    proposed: ProposedTransaction
    decision: str           # Decision value
    violated_policies: list[Violation]
    expires_at: datetime
    created_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass
class PreflightResult:
    decision: AuthorizationDecision
    cached: bool
    message: str | None = None


@dataclass
class Instrument:
    id: str
    ledger_id: str
    external_ref: str
    amount: int
    currency: str
    cadence: str
    counterparty_name: str
    fingerprint: str
    status: str             # InstrumentStatus value
    created_at: datetime | None = None
    invalidated_at: datetime | None = None


@dataclass
class NewInstrument:
    ledger_id: str
    external_ref: str
    amount: int
    currency: str
    cadence: str
    counterparty_name: str
    fingerprint: str


@dataclass
class InstrumentInvalidation:
    instrument: Instrument
    cancelled_projections: int = 0
