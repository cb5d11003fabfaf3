"""PolicyAdminService — policy and authorizing-instrument management.

Instruments are immutable once registered: to change terms, invalidate and
register a new one. Invalidation cancels the instrument's pending
shadow-ledger projections in the same commit.
"""

import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from src.lc_common.cents import validate_cents
from src.lc_common.context import LedgerContext
from src.lc_common.enums import InstrumentCadence, Severity
from src.lc_common.errors import (
    DuplicateInstrumentError,
    DuplicatePolicyError,
    InstrumentNotFoundError,
    InternalError,
    InvalidInputError,
    PolicyNotFoundError,
    StorageError,
)
from src.lc_policy.domain.instruments import instrument_fingerprint
from src.lc_policy.domain.models import (
    Instrument,
    InstrumentInvalidation,
    NewInstrument,
    Policy,
)
from src.lc_policy.domain.repository import PolicyRepositoryProtocol
from src.lc_policy.infrastructure.persistence import PolicyRepository
from src.lc_policy.rules.registry import validate_policy_config

logger = logging.getLogger(__name__)

_SEVERITIES = frozenset(s.value for s in Severity)
_CADENCES = frozenset(c.value for c in InstrumentCadence)
MAX_COUNTERPARTY_LENGTH = 200


class PolicyAdminService:
    def __init__(self, repo: PolicyRepositoryProtocol | None = None) -> None:
        self._repo: PolicyRepositoryProtocol = repo or PolicyRepository()

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    async def create_policy(
        self,
        ctx: LedgerContext,
        policy_type: str,
        config: dict[str, Any],
        severity: str,
        priority: int,
    ) -> Policy:
        if severity not in _SEVERITIES:
            raise InvalidInputError(f"severity must be hard or soft, got {severity!r}")
        if isinstance(priority, bool) or not isinstance(priority, int) or priority < 0:
            raise InvalidInputError("priority must be a non-negative integer")
        normalized = validate_policy_config(policy_type, config)

        db = ctx.db
        try:
            policy = await self._repo.insert_policy(
                db, ctx.ledger_id, policy_type, normalized, severity, priority
            )
            if policy is None:
                raise DuplicatePolicyError(policy_type, priority)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError("Could not create policy") from exc
        except Exception:
            await db.rollback()
            raise
        logger.info("Policy %s (%s, %s) created for ledger %s", policy.id, policy_type, severity, ctx.ledger_id)
        return policy

    async def list_policies(self, ctx: LedgerContext, include_inactive: bool = False) -> list[Policy]:
        return await self._repo.list_policies(ctx.db, ctx.ledger_id, active_only=not include_inactive)

    async def deactivate_policy(self, ctx: LedgerContext, policy_id: str) -> Policy:
        db = ctx.db
        try:
            policy = await self._repo.deactivate_policy(db, ctx.ledger_id, policy_id)
            if policy is None:
                raise PolicyNotFoundError(policy_id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError("Could not deactivate policy") from exc
        except Exception:
            await db.rollback()
            raise
        return policy

    # ------------------------------------------------------------------
    # Instruments
    # ------------------------------------------------------------------

    async def register_instrument(
        self,
        ctx: LedgerContext,
        external_ref: str,
        amount: int,
        counterparty_name: str,
        currency: str = "USD",
        cadence: str = InstrumentCadence.ONE_TIME.value,
    ) -> Instrument:
        if not external_ref or not external_ref.strip():
            raise InvalidInputError("external_ref is required")
        validate_cents(amount, allow_zero=False)
        counterparty = (counterparty_name or "").strip()
        if not counterparty or len(counterparty) > MAX_COUNTERPARTY_LENGTH:
            raise InvalidInputError(
                f"counterparty_name is required (max {MAX_COUNTERPARTY_LENGTH} characters)"
            )
        if len(currency) != 3 or not currency.isalpha():
            raise InvalidInputError("currency must be a 3-letter ISO code")
        cadence = cadence.lower()
        if cadence not in _CADENCES:
            raise InvalidInputError(f"cadence must be one of {', '.join(sorted(_CADENCES))}")

        new = NewInstrument(
            ledger_id=ctx.ledger_id,
            external_ref=external_ref,
            amount=amount,
            currency=currency.upper(),
            cadence=cadence,
            counterparty_name=counterparty,
            fingerprint=instrument_fingerprint(external_ref, amount, currency, cadence, counterparty),
        )

        db = ctx.db
        try:
            instrument = await self._repo.insert_instrument(db, new)
            if instrument is None:
                existing = await self._repo.find_instrument_conflict(
                    db, ctx.ledger_id, new.fingerprint, new.external_ref
                )
                if existing is None:
                    raise InternalError("Instrument insert conflicted but no row was found")
                raise DuplicateInstrumentError(existing.id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError("Could not register instrument") from exc
        except Exception:
            await db.rollback()
            raise
        return instrument

    async def invalidate_instrument(
        self, ctx: LedgerContext, instrument_id: str
    ) -> InstrumentInvalidation:
        db = ctx.db
        try:
            instrument = await self._repo.invalidate_instrument(db, ctx.ledger_id, instrument_id)
            if instrument is None:
                current = await self._repo.get_instrument(db, ctx.ledger_id, instrument_id)
                if current is None:
                    raise InstrumentNotFoundError(instrument_id)
                # Already invalidated: idempotent no-op
                await db.commit()
                return InstrumentInvalidation(current)
            cancelled = await self._repo.cancel_pending_projections(db, ctx.ledger_id, instrument_id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise StorageError("Could not invalidate instrument") from exc
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Instrument %s invalidated, %d pending projections cancelled", instrument_id, cancelled
        )
        return InstrumentInvalidation(instrument, cancelled)
