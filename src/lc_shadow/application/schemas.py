"""Pydantic schemas for lc_shadow API."""

from pydantic import BaseModel

from src.lc_common.cents import cents_to_display
from src.lc_shadow.domain.models import CashPosition, ObligationsSummary


class ObligationItem(BaseModel):
    id: str
    expected_date: str
    amount_cents: int
    currency: str
    counterparty: str | None
    authorizing_instrument_id: str | None


class ObligationsResponse(BaseModel):
    pending_total_cents: int
    pending_total_display: str
    pending_count: int
    items: list[ObligationItem]

    @classmethod
    def from_summary(cls, summary: ObligationsSummary) -> "ObligationsResponse":
        return cls(
            pending_total_cents=summary.pending_total,
            pending_total_display=cents_to_display(summary.pending_total),
            pending_count=summary.pending_count,
            items=[
                ObligationItem(
                    id=i.id,
                    expected_date=i.expected_date.isoformat(),
                    amount_cents=i.amount,
                    currency=i.currency,
                    counterparty=i.counterparty,
                    authorizing_instrument_id=i.authorizing_instrument_id,
                )
                for i in summary.items
            ],
        )


class BreachRiskOut(BaseModel):
    at_risk: bool
    shortfall_cents: int
    coverage_ratio: float | None


class CashPositionResponse(BaseModel):
    cash_balance_cents: int
    cash_balance_display: str
    horizon_date: str
    obligations: ObligationsResponse
    breach_risk: BreachRiskOut
    degraded: bool

    @classmethod
    def from_position(cls, position: CashPosition) -> "CashPositionResponse":
        return cls(
            cash_balance_cents=position.cash_balance,
            cash_balance_display=cents_to_display(position.cash_balance),
            horizon_date=position.horizon_date.isoformat(),
            obligations=ObligationsResponse.from_summary(position.obligations),
            breach_risk=BreachRiskOut(
                at_risk=position.risk.at_risk,
                shortfall_cents=position.risk.shortfall,
                coverage_ratio=position.risk.coverage_ratio,
            ),
            degraded=position.degraded,
        )
