"""PreflightService — advisory allow / warn / block decisions before posting.

Flow per request (one database transaction):

  Idempotency check -> Load policies -> Evaluate (priority order)
  -> Resolve -> Persist (fixed TTL) -> security event if blocked

Policy evaluation fails open: a rule raising PolicyEvaluationError or a
SQLAlchemyError is logged and counted as "no violation". Persisting the
decision does NOT fail open; a storage failure there is a StorageError.

This service never touches balances, reservations or transfers.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from config.settings import settings
from src.lc_common.cents import validate_cents
from src.lc_common.context import LedgerContext
from src.lc_common.datetime_utils import utc_now
from src.lc_common.enums import Decision
from src.lc_common.errors import (
    InternalError,
    InvalidInputError,
    PolicyEvaluationError,
    StorageError,
)
from src.lc_common.outbox import EventOutbox, LedgerEvent, RedisEventOutbox
from src.lc_ledger.domain.repository import LedgerRepositoryProtocol
from src.lc_ledger.domain.validation import validate_reference_id
from src.lc_ledger.infrastructure.persistence import LedgerRepository
from src.lc_policy.domain.models import (
    NewDecision,
    Policy,
    PreflightResult,
    ProposedTransaction,
    Violation,
)
from src.lc_policy.domain.repository import PolicyLookups, PolicyRepositoryProtocol
from src.lc_policy.domain.resolution import resolve_decision
from src.lc_policy.infrastructure.lookups import SavepointPolicyLookups
from src.lc_policy.infrastructure.persistence import PolicyRepository
from src.lc_policy.rules.registry import get_rule
from src.lc_shadow.domain.repository import ShadowRepositoryProtocol
from src.lc_shadow.infrastructure.persistence import ShadowRepository

logger = logging.getLogger(__name__)

NO_POLICIES_MESSAGE = "No authorization policies configured - allowed by default"
_VALID_DECISIONS = frozenset({Decision.ALLOWED.value, Decision.WARN.value})


class PreflightService:
    def __init__(
        self,
        repo: PolicyRepositoryProtocol | None = None,
        ledger_repo: LedgerRepositoryProtocol | None = None,
        shadow_repo: ShadowRepositoryProtocol | None = None,
        outbox: EventOutbox | None = None,
        lookups_factory: Callable[[LedgerContext], PolicyLookups] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repo: PolicyRepositoryProtocol = repo or PolicyRepository()
        self._ledger_repo: LedgerRepositoryProtocol = ledger_repo or LedgerRepository()
        self._shadow_repo: ShadowRepositoryProtocol = shadow_repo or ShadowRepository()
        self._outbox: EventOutbox = outbox or RedisEventOutbox()
        self._lookups_factory = lookups_factory or self._savepoint_lookups
        self._clock = clock

    def _savepoint_lookups(self, ctx: LedgerContext) -> PolicyLookups:
        return SavepointPolicyLookups(ctx, self._repo, self._ledger_repo, self._shadow_repo)

    async def preflight(
        self, ctx: LedgerContext, idempotency_key: str, proposed: ProposedTransaction
    ) -> PreflightResult:
        validate_reference_id(idempotency_key, "idempotency_key")
        validate_cents(proposed.amount, allow_zero=False)

        db = ctx.db
        now = self._clock()
        try:
            existing = await self._repo.get_decision(db, ctx.ledger_id, idempotency_key)
            if existing is not None:
                if not existing.is_expired(now):
                    await db.commit()
                    return PreflightResult(existing, cached=True)
                await self._repo.delete_decision(db, existing.id)

            policies = await self._repo.list_policies(db, ctx.ledger_id, active_only=True)
            message = None
            if policies:
                violations = await self._evaluate(ctx, policies, proposed, now)
            else:
                violations = []
                message = NO_POLICIES_MESSAGE
            outcome = resolve_decision(violations)

            decision = await self._repo.insert_decision(
                db,
                NewDecision(
                    ledger_id=ctx.ledger_id,
                    idempotency_key=idempotency_key,
                    proposed=proposed,
                    decision=outcome,
                    violations=violations,
                    expires_at=now + timedelta(minutes=settings.PREFLIGHT_DECISION_TTL_MINUTES),
                ),
            )
            if decision is None:
                # A concurrent identical request persisted first; its decision wins
                winner = await self._repo.get_decision(db, ctx.ledger_id, idempotency_key)
                if winner is None:
                    raise InternalError(f"Decision {idempotency_key} conflicted but no row was found")
                await db.commit()
                return PreflightResult(winner, cached=True)

            if outcome == Decision.BLOCKED.value:
                await self._repo.record_security_event(
                    db,
                    ctx.ledger_id,
                    "authorization_blocked",
                    "medium",
                    {
                        "decision_id": decision.id,
                        "violations": [v.to_dict() for v in violations],
                        "proposed_amount": proposed.amount,
                    },
                )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.error("Preflight %s failed to persist: %s", idempotency_key, exc)
            raise StorageError("Could not persist authorization decision") from exc
        except Exception:
            await db.rollback()
            raise

        if outcome == Decision.BLOCKED.value:
            await self._outbox.notify_best_effort(
                LedgerEvent(
                    ledger_id=ctx.ledger_id,
                    event_type="authorization.blocked",
                    payload={
                        "decision_id": decision.id,
                        "violation_count": len(violations),
                        "proposed_amount_cents": proposed.amount,
                    },
                )
            )
        return PreflightResult(decision, cached=False, message=message)

    async def _evaluate(
        self,
        ctx: LedgerContext,
        policies: list[Policy],
        proposed: ProposedTransaction,
        now: datetime,
    ) -> list[Violation]:
        lookups = self._lookups_factory(ctx)
        violations: list[Violation] = []
        for policy in sorted(policies, key=lambda p: p.priority):
            rule = get_rule(policy.policy_type)
            if rule is None:
                logger.warning(
                    "Unknown policy type %r (policy %s) skipped", policy.policy_type, policy.id
                )
                continue
            try:
                violation = await rule.evaluate(policy, proposed, lookups, now)
            except (PolicyEvaluationError, SQLAlchemyError) as exc:
                logger.warning(
                    "Policy %s (%s) could not be evaluated, treating as no violation: %s",
                    policy.id,
                    policy.policy_type,
                    exc,
                )
                continue
            if violation is not None:
                violations.append(violation)
        return violations

    async def is_decision_valid(self, ctx: LedgerContext, decision_id: str) -> bool:
        """True when the decision exists, has not expired and is allowed or warn."""
        if not decision_id:
            raise InvalidInputError("decision_id is required")
        decision = await self._repo.get_decision_by_id(ctx.db, ctx.ledger_id, decision_id)
        if decision is None:
            return False
        return decision.decision in _VALID_DECISIONS and not decision.is_expired(self._clock())
