"""Pydantic schemas for lc_policy API."""

import uuid
from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, Field

from src.lc_common.cents import cents_to_display
from src.lc_policy.domain.models import (
    AuthorizationDecision,
    Instrument,
    InstrumentInvalidation,
    Policy,
    PreflightResult,
    ProposedTransaction,
)

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PreflightRequest(BaseModel):
    idempotency_key: str = Field(..., min_length=1, max_length=255)
    amount_cents: int = Field(..., gt=0, le=100_000_000_000)
    currency: str = Field("USD", min_length=3, max_length=3)
    counterparty_name: str | None = Field(None, max_length=200)
    authorizing_instrument_id: uuid.UUID | None = None
    expected_date: date | None = None
    category: str | None = Field(None, max_length=255)

    def to_proposed(self) -> ProposedTransaction:
        return ProposedTransaction(
            amount=self.amount_cents,
            currency=self.currency.upper(),
            counterparty_name=self.counterparty_name,
            authorizing_instrument_id=(
                str(self.authorizing_instrument_id) if self.authorizing_instrument_id else None
            ),
            expected_date=self.expected_date,
            category=self.category,
        )


class CreatePolicyRequest(BaseModel):
    policy_type: str = Field(..., min_length=1, max_length=64)
    config: dict[str, Any] = Field(default_factory=dict)
    severity: Literal["hard", "soft"] = "hard"
    priority: int = Field(100, ge=0)


class RegisterInstrumentRequest(BaseModel):
    external_ref: str = Field(..., min_length=1, max_length=255)
    amount_cents: int = Field(..., gt=0)
    currency: str = Field("USD", min_length=3, max_length=3)
    cadence: str = "one_time"
    counterparty_name: str = Field(..., min_length=1, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ViolationOut(BaseModel):
    policy_id: str
    policy_type: str
    severity: str
    reason: str


class DecisionOut(BaseModel):
    id: str
    decision: str
    violated_policies: list[ViolationOut]
    expires_at: str
    created_at: str

    @classmethod
    def from_domain(cls, decision: AuthorizationDecision) -> "DecisionOut":
        return cls(
            id=decision.id,
            decision=decision.decision,
            violated_policies=[ViolationOut(**v.to_dict()) for v in decision.violated_policies],
            expires_at=decision.expires_at.isoformat(),
            created_at=decision.created_at.isoformat() if decision.created_at else "",
        )


class PreflightResponse(BaseModel):
    cached: bool
    decision: DecisionOut
    message: str | None = None

    @classmethod
    def from_result(cls, result: PreflightResult) -> "PreflightResponse":
        return cls(
            cached=result.cached,
            decision=DecisionOut.from_domain(result.decision),
            message=result.message,
        )


class DecisionValidityResponse(BaseModel):
    decision_id: str
    valid: bool


class PolicyOut(BaseModel):
    id: str
    policy_type: str
    config: dict[str, Any]
    severity: str
    priority: int
    is_active: bool

    @classmethod
    def from_domain(cls, policy: Policy) -> "PolicyOut":
        return cls(
            id=policy.id,
            policy_type=policy.policy_type,
            config=policy.config,
            severity=policy.severity,
            priority=policy.priority,
            is_active=policy.is_active,
        )


class PolicyListResponse(BaseModel):
    policies: list[PolicyOut]


class InstrumentOut(BaseModel):
    id: str
    external_ref: str
    amount_cents: int
    amount_display: str
    currency: str
    cadence: str
    counterparty_name: str
    fingerprint: str
    status: str

    @classmethod
    def from_domain(cls, instrument: Instrument) -> "InstrumentOut":
        return cls(
            id=instrument.id,
            external_ref=instrument.external_ref,
            amount_cents=instrument.amount,
            amount_display=cents_to_display(instrument.amount),
            currency=instrument.currency,
            cadence=instrument.cadence,
            counterparty_name=instrument.counterparty_name,
            fingerprint=instrument.fingerprint,
            status=instrument.status,
        )


class InvalidateInstrumentResponse(BaseModel):
    instrument: InstrumentOut
    cancelled_projections: int

    @classmethod
    def from_domain(cls, result: InstrumentInvalidation) -> "InvalidateInstrumentResponse":
        return cls(
            instrument=InstrumentOut.from_domain(result.instrument),
            cancelled_projections=result.cancelled_projections,
        )
