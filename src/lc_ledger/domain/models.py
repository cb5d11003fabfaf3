"""Domain models for lc_ledger — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from src.lc_common.enums import TransactionStatus
from src.lc_ledger.domain.metadata import TransactionMetadata


@dataclass
class Account:
    id: str
    ledger_id: str
    account_type: str
    entity_id: str           # '' when the account is not entity-scoped
    name: str
    normal_side: str         # NormalSide value
    balance: int             # cents, signed in the normal direction (cached)
    is_active: bool = True
    created_at: datetime | None = None


@dataclass(frozen=True)
class AccountRef:
    """Identity of an account inside a ledger: (account_type, entity_id)."""

    account_type: str
    entity_id: str = ""


@dataclass(frozen=True)
class EntryDraft:
    account: AccountRef
    entry_type: str          # EntryType value
    amount: int              # cents, >= 0


@dataclass
class Entry:
    id: int
    transaction_id: str
    account_id: str
    entry_type: str
    amount: int
    account_type: str = ""
    entity_id: str = ""

    @property
    def account_ref(self) -> AccountRef:
        return AccountRef(self.account_type, self.entity_id)


@dataclass
class Transaction:
    id: str
    ledger_id: str
    transaction_type: str
    reference_id: str
    amount: int              # cents, sum of debit legs
    currency: str
    status: str
    description: str | None = None
    reverses: str | None = None
    reversed_by: str | None = None
    metadata: TransactionMetadata | None = None
    created_at: datetime | None = None


@dataclass
class NewTransaction:
    ledger_id: str
    reference_id: str
    transaction_type: str
    amount: int
    currency: str
    status: str
    metadata: TransactionMetadata
    description: str | None = None
    reverses: str | None = None


@dataclass
class PostingRequest:
    reference_id: str
    transaction_type: str
    entries: list[EntryDraft]
    metadata: TransactionMetadata
    description: str | None = None
    currency: str | None = None
    status: str = TransactionStatus.COMPLETED.value
    reverses: str | None = None


@dataclass
class PostingResult:
    transaction_id: str
    status: Literal["created", "duplicate"]
    amount: int

    @property
    def is_duplicate(self) -> bool:
        return self.status == "duplicate"


@dataclass
class SaleResult:
    posting: PostingResult
    creator_amount: int
    platform_amount: int
    creator_percent: float


@dataclass
class ReversalResult:
    original_transaction_id: str
    void_type: Literal["void", "reversing_entry"]
    reversal_transaction_id: str | None = None
    reversed_amount: int = 0
    is_full_reversal: bool = False
    status: Literal["created", "duplicate"] = "created"
    entries: list[EntryDraft] = field(default_factory=list)
