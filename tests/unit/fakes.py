"""In-memory stand-ins for the PostgreSQL-backed repositories.

FakeSession mimics the parts of AsyncSession the services use: commit,
rollback and begin_nested. Rollback restores every attached store to its
state at the last commit, and commit re-checks that every transaction's
debits equal its credits, like the deferred trigger does.
"""

import copy
import uuid
from datetime import UTC, date, datetime
from typing import Any

from src.lc_common.enums import EntryType, TransactionStatus
from src.lc_ledger.domain.models import (
    Account,
    AccountRef,
    Entry,
    NewTransaction,
    Transaction,
)
from src.lc_policy.domain.models import (
    AuthorizationDecision,
    Instrument,
    NewDecision,
    NewInstrument,
    Policy,
)
from src.lc_shadow.domain.models import ProjectedObligation


class _Store:
    """Base for fakes whose state is snapshotted by FakeSession."""

    def __init__(self) -> None:
        self.fail_on: dict[str, Exception] = {}

    def _maybe_fail(self, name: str) -> None:
        exc = self.fail_on.get(name)
        if exc is not None:
            raise exc

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy({k: v for k, v in vars(self).items() if k != "fail_on"})

    def restore(self, state: dict[str, Any]) -> None:
        for key, value in copy.deepcopy(state).items():
            setattr(self, key, value)

    def check_commit(self) -> None:
        pass


class FakeSession:
    def __init__(self, *stores: _Store) -> None:
        self._stores = stores
        self.commits = 0
        self.rollbacks = 0
        self._committed = [s.snapshot() for s in stores]

    async def commit(self) -> None:
        for store in self._stores:
            store.check_commit()
        self.commits += 1
        self._committed = [s.snapshot() for s in self._stores]

    async def rollback(self) -> None:
        self.rollbacks += 1
        for store, state in zip(self._stores, self._committed):
            store.restore(state)

    def begin_nested(self) -> "_Savepoint":
        return _Savepoint(self._stores)


class _Savepoint:
    def __init__(self, stores: tuple[_Store, ...]) -> None:
        self._stores = stores
        self._saved: list[dict[str, Any]] = []

    async def __aenter__(self) -> "_Savepoint":
        self._saved = [s.snapshot() for s in self._stores]
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:  # type: ignore[no-untyped-def]
        if exc_type is not None:
            for store, state in zip(self._stores, self._saved):
                store.restore(state)
        return False


class InMemoryLedgerRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.accounts: dict[str, Account] = {}
        self.transactions: dict[str, Transaction] = {}
        self.entries: list[Entry] = []
        self._next_entry_id = 1
        self.clock_override: datetime | None = None

    # --- helpers for assertions ---

    def balance_of(self, ledger_id: str, account_type: str, entity_id: str = "") -> int:
        for a in self.accounts.values():
            if (a.ledger_id, a.account_type, a.entity_id) == (ledger_id, account_type, entity_id):
                return a.balance
        return 0

    def legs(self, transaction_id: str) -> set[tuple[str, str, str, int]]:
        """(entry_type, account_type, entity_id, amount) for each leg."""
        return {
            (e.entry_type, e.account_type, e.entity_id, e.amount)
            for e in self.entries
            if e.transaction_id == transaction_id
        }

    def transactions_of_type(self, transaction_type: str) -> list[Transaction]:
        return [t for t in self.transactions.values() if t.transaction_type == transaction_type]

    def check_commit(self) -> None:
        sums: dict[str, list[int]] = {}
        for e in self.entries:
            side = sums.setdefault(e.transaction_id, [0, 0])
            side[0 if e.entry_type == EntryType.DEBIT.value else 1] += e.amount
        for tx_id, (debits, credits) in sums.items():
            if debits != credits:
                raise AssertionError(f"unbalanced transaction {tx_id}: {debits} != {credits}")

    # --- LedgerRepositoryProtocol ---

    async def ensure_account(self, db, ledger_id: str, ref: AccountRef, normal_side: str) -> Account:  # type: ignore[no-untyped-def]
        self._maybe_fail("ensure_account")
        for a in self.accounts.values():
            if (a.ledger_id, a.account_type, a.entity_id) == (ledger_id, ref.account_type, ref.entity_id):
                return a
        account = Account(
            id=str(uuid.uuid4()),
            ledger_id=ledger_id,
            account_type=ref.account_type,
            entity_id=ref.entity_id,
            name=ref.account_type,
            normal_side=normal_side,
            balance=0,
        )
        self.accounts[account.id] = account
        return account

    async def insert_transaction(self, db, tx: NewTransaction) -> str | None:  # type: ignore[no-untyped-def]
        self._maybe_fail("insert_transaction")
        for t in self.transactions.values():
            if t.ledger_id == tx.ledger_id and t.reference_id == tx.reference_id:
                return None
        tx_id = str(uuid.uuid4())
        self.transactions[tx_id] = Transaction(
            id=tx_id,
            ledger_id=tx.ledger_id,
            transaction_type=tx.transaction_type,
            reference_id=tx.reference_id,
            amount=tx.amount,
            currency=tx.currency,
            status=tx.status,
            description=tx.description,
            reverses=tx.reverses,
            metadata=tx.metadata,
            created_at=self.clock_override or datetime.now(UTC),
        )
        return tx_id

    async def get_transaction(self, db, ledger_id: str, transaction_id: str) -> Transaction | None:  # type: ignore[no-untyped-def]
        tx = self.transactions.get(transaction_id)
        return tx if tx is not None and tx.ledger_id == ledger_id else None

    async def get_transaction_by_reference(self, db, ledger_id: str, reference_id: str) -> Transaction | None:  # type: ignore[no-untyped-def]
        for t in self.transactions.values():
            if t.ledger_id == ledger_id and t.reference_id == reference_id:
                return t
        return None

    async def lock_transaction(self, db, ledger_id: str, transaction_id: str) -> Transaction | None:  # type: ignore[no-untyped-def]
        return await self.get_transaction(db, ledger_id, transaction_id)

    async def lock_transaction_by_reference(  # type: ignore[no-untyped-def]
        self, db, ledger_id: str, reference_id: str, transaction_type: str
    ) -> Transaction | None:
        tx = await self.get_transaction_by_reference(db, ledger_id, reference_id)
        return tx if tx is not None and tx.transaction_type == transaction_type else None

    async def insert_entries(self, db, transaction_id: str, entries: list[tuple[str, str, int]]) -> None:  # type: ignore[no-untyped-def]
        self._maybe_fail("insert_entries")
        for account_id, entry_type, amount in entries:
            account = self.accounts[account_id]
            self.entries.append(
                Entry(
                    id=self._next_entry_id,
                    transaction_id=transaction_id,
                    account_id=account_id,
                    entry_type=entry_type,
                    amount=amount,
                    account_type=account.account_type,
                    entity_id=account.entity_id,
                )
            )
            self._next_entry_id += 1

    async def apply_balance_deltas(self, db, deltas: dict[str, int]) -> None:  # type: ignore[no-untyped-def]
        self._maybe_fail("apply_balance_deltas")
        for account_id, delta in deltas.items():
            self.accounts[account_id].balance += delta

    async def list_entries(self, db, transaction_id: str) -> list[Entry]:  # type: ignore[no-untyped-def]
        return [e for e in self.entries if e.transaction_id == transaction_id]

    async def sum_reversed_amount(self, db, ledger_id: str, original_transaction_id: str) -> int:  # type: ignore[no-untyped-def]
        return sum(
            t.amount
            for t in self.transactions.values()
            if t.ledger_id == ledger_id
            and t.reverses == original_transaction_id
            and t.transaction_type in ("refund", "reversal")
            and t.status in ("completed", "reversed")
        )

    async def sum_reversal_legs(self, db, ledger_id: str, original_transaction_id: str) -> dict[tuple[str, str, str], int]:  # type: ignore[no-untyped-def]
        legs: dict[tuple[str, str, str], int] = {}
        for e in self.entries:
            tx = self.transactions[e.transaction_id]
            if (
                tx.ledger_id == ledger_id
                and tx.reverses == original_transaction_id
                and tx.transaction_type in ("refund", "reversal")
                and tx.status in ("completed", "reversed")
            ):
                key = (e.entry_type, e.account_type, e.entity_id)
                legs[key] = legs.get(key, 0) + e.amount
        return legs

    async def mark_reversed(self, db, transaction_id: str, reversed_by: str) -> bool:  # type: ignore[no-untyped-def]
        self._maybe_fail("mark_reversed")
        tx = self.transactions[transaction_id]
        if tx.status != TransactionStatus.COMPLETED.value:
            return False
        tx.status = TransactionStatus.REVERSED.value
        tx.reversed_by = reversed_by
        return True

    async def mark_voided(self, db, transaction_id: str) -> bool:  # type: ignore[no-untyped-def]
        tx = self.transactions[transaction_id]
        if tx.status != TransactionStatus.DRAFT.value:
            return False
        tx.status = TransactionStatus.VOIDED.value
        return True

    async def list_accounts(self, db, ledger_id: str) -> list[Account]:  # type: ignore[no-untyped-def]
        return [a for a in self.accounts.values() if a.ledger_id == ledger_id]

    async def get_cash_balance(self, db, ledger_id: str) -> int:  # type: ignore[no-untyped-def]
        self._maybe_fail("get_cash_balance")
        return sum(
            a.balance for a in self.accounts.values()
            if a.ledger_id == ledger_id and a.account_type == "cash"
        )

    async def sum_expense_debits(  # type: ignore[no-untyped-def]
        self, db, ledger_id: str, since: datetime, category: str | None
    ) -> int:
        self._maybe_fail("sum_expense_debits")
        total = 0
        for e in self.entries:
            tx = self.transactions[e.transaction_id]
            if (
                tx.ledger_id == ledger_id
                and tx.status == "completed"
                and tx.created_at is not None
                and tx.created_at >= since
                and e.account_type == "expense"
                and e.entry_type == "debit"
                and (category is None or e.entity_id == category)
            ):
                total += e.amount
        return total


class InMemoryShadowRepository(_Store):
    def __init__(self, obligations: list[ProjectedObligation] | None = None) -> None:
        super().__init__()
        self.obligations: list[ProjectedObligation] = list(obligations or [])

    def add(
        self,
        ledger_id: str,
        amount: int,
        expected_date: date,
        status: str = "pending",
        counterparty: str | None = None,
    ) -> ProjectedObligation:
        item = ProjectedObligation(
            id=str(uuid.uuid4()),
            ledger_id=ledger_id,
            expected_date=expected_date,
            amount=amount,
            currency="USD",
            status=status,
            counterparty=counterparty,
        )
        self.obligations.append(item)
        return item

    async def list_pending_obligations(self, db, ledger_id: str, horizon: date) -> list[ProjectedObligation]:  # type: ignore[no-untyped-def]
        self._maybe_fail("list_pending_obligations")
        return sorted(
            (
                o for o in self.obligations
                if o.ledger_id == ledger_id and o.status == "pending" and o.expected_date <= horizon
            ),
            key=lambda o: o.expected_date,
        )

    async def sum_pending_obligations(self, db, ledger_id: str, horizon: date | None = None) -> int:  # type: ignore[no-untyped-def]
        self._maybe_fail("sum_pending_obligations")
        return sum(
            o.amount for o in self.obligations
            if o.ledger_id == ledger_id
            and o.status == "pending"
            and (horizon is None or o.expected_date <= horizon)
        )


class InMemoryPolicyRepository(_Store):
    def __init__(self) -> None:
        super().__init__()
        self.decisions: dict[str, AuthorizationDecision] = {}
        self.policies: dict[str, Policy] = {}
        self.instruments: dict[str, Instrument] = {}
        self.security_events: list[dict[str, Any]] = []
        self.cancelled_projections: list[str] = []
        self.projections_per_instrument: dict[str, int] = {}
        # Simulates a concurrent request committing its decision first
        self.race_winner: AuthorizationDecision | None = None

    def add_policy(
        self,
        ledger_id: str,
        policy_type: str,
        config: dict[str, Any],
        severity: str = "hard",
        priority: int = 100,
        is_active: bool = True,
    ) -> Policy:
        policy = Policy(
            id=str(uuid.uuid4()),
            ledger_id=ledger_id,
            policy_type=policy_type,
            config=config,
            severity=severity,
            priority=priority,
            is_active=is_active,
        )
        self.policies[policy.id] = policy
        return policy

    # --- decisions ---

    async def get_decision(self, db, ledger_id: str, idempotency_key: str) -> AuthorizationDecision | None:  # type: ignore[no-untyped-def]
        for d in self.decisions.values():
            if d.ledger_id == ledger_id and d.idempotency_key == idempotency_key:
                return d
        return None

    async def get_decision_by_id(self, db, ledger_id: str, decision_id: str) -> AuthorizationDecision | None:  # type: ignore[no-untyped-def]
        d = self.decisions.get(decision_id)
        return d if d is not None and d.ledger_id == ledger_id else None

    async def delete_decision(self, db, decision_id: str) -> None:  # type: ignore[no-untyped-def]
        self.decisions.pop(decision_id, None)

    async def insert_decision(self, db, decision: NewDecision) -> AuthorizationDecision | None:  # type: ignore[no-untyped-def]
        self._maybe_fail("insert_decision")
        if self.race_winner is not None:
            self.decisions[self.race_winner.id] = self.race_winner
            self.race_winner = None
        if await self.get_decision(db, decision.ledger_id, decision.idempotency_key) is not None:
            return None
        row = AuthorizationDecision(
            id=str(uuid.uuid4()),
            ledger_id=decision.ledger_id,
            idempotency_key=decision.idempotency_key,
            proposed=decision.proposed,
            decision=decision.decision,
            violated_policies=list(decision.violations),
            expires_at=decision.expires_at,
            created_at=datetime.now(UTC),
        )
        self.decisions[row.id] = row
        return row

    # --- policies ---

    async def list_policies(self, db, ledger_id: str, active_only: bool = True) -> list[Policy]:  # type: ignore[no-untyped-def]
        self._maybe_fail("list_policies")
        return sorted(
            (
                p for p in self.policies.values()
                if p.ledger_id == ledger_id and (p.is_active or not active_only)
            ),
            key=lambda p: p.priority,
        )

    async def insert_policy(  # type: ignore[no-untyped-def]
        self, db, ledger_id: str, policy_type: str, config: dict[str, Any], severity: str, priority: int
    ) -> Policy | None:
        for p in self.policies.values():
            if (p.ledger_id, p.policy_type, p.priority, p.is_active) == (ledger_id, policy_type, priority, True):
                return None
        return self.add_policy(ledger_id, policy_type, config, severity, priority)

    async def deactivate_policy(self, db, ledger_id: str, policy_id: str) -> Policy | None:  # type: ignore[no-untyped-def]
        policy = self.policies.get(policy_id)
        if policy is None or policy.ledger_id != ledger_id:
            return None
        policy.is_active = False
        return policy

    # --- instruments ---

    async def get_instrument(self, db, ledger_id: str, instrument_id: str) -> Instrument | None:  # type: ignore[no-untyped-def]
        self._maybe_fail("get_instrument")
        inst = self.instruments.get(instrument_id)
        return inst if inst is not None and inst.ledger_id == ledger_id else None

    async def find_instrument_conflict(  # type: ignore[no-untyped-def]
        self, db, ledger_id: str, fingerprint: str, external_ref: str
    ) -> Instrument | None:
        for inst in self.instruments.values():
            if inst.ledger_id == ledger_id and (
                inst.fingerprint == fingerprint or inst.external_ref == external_ref
            ):
                return inst
        return None

    async def insert_instrument(self, db, instrument: NewInstrument) -> Instrument | None:  # type: ignore[no-untyped-def]
        if await self.find_instrument_conflict(
            db, instrument.ledger_id, instrument.fingerprint, instrument.external_ref
        ):
            return None
        row = Instrument(
            id=str(uuid.uuid4()),
            ledger_id=instrument.ledger_id,
            external_ref=instrument.external_ref,
            amount=instrument.amount,
            currency=instrument.currency,
            cadence=instrument.cadence,
            counterparty_name=instrument.counterparty_name,
            fingerprint=instrument.fingerprint,
            status="active",
        )
        self.instruments[row.id] = row
        return row

    async def invalidate_instrument(self, db, ledger_id: str, instrument_id: str) -> Instrument | None:  # type: ignore[no-untyped-def]
        inst = await self.get_instrument(db, ledger_id, instrument_id)
        if inst is None or inst.status != "active":
            return None
        inst.status = "invalidated"
        inst.invalidated_at = datetime.now(UTC)
        return inst

    async def cancel_pending_projections(self, db, ledger_id: str, instrument_id: str) -> int:  # type: ignore[no-untyped-def]
        self.cancelled_projections.append(instrument_id)
        return self.projections_per_instrument.pop(instrument_id, 0)

    # --- security events ---

    async def record_security_event(  # type: ignore[no-untyped-def]
        self, db, ledger_id: str, event_type: str, severity: str, details: dict[str, Any]
    ) -> None:
        self.security_events.append(
            {"ledger_id": ledger_id, "event_type": event_type, "severity": severity, "details": details}
        )
