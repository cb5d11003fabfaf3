"""Pre-I/O validation for postings. Nothing here touches the store."""

from src.lc_common.cents import validate_cents
from src.lc_common.enums import EntryType, TransactionStatus, TransactionType
from src.lc_common.errors import InvalidInputError, UnbalancedEntriesError
from src.lc_ledger.domain.accounts import normal_side_for
from src.lc_ledger.domain.models import PostingRequest

MAX_REFERENCE_ID_LENGTH = 255
MIN_LEGS = 2

_TRANSACTION_TYPES = frozenset(t.value for t in TransactionType)
_POSTABLE_STATUSES = frozenset({TransactionStatus.COMPLETED.value, TransactionStatus.DRAFT.value})
_ENTRY_TYPES = frozenset(t.value for t in EntryType)


def validate_reference_id(reference_id: str, field_name: str = "reference_id") -> str:
    if not isinstance(reference_id, str) or not reference_id.strip():
        raise InvalidInputError(f"{field_name} is required")
    if len(reference_id) > MAX_REFERENCE_ID_LENGTH:
        raise InvalidInputError(
            f"{field_name} must be at most {MAX_REFERENCE_ID_LENGTH} characters"
        )
    return reference_id


def sum_sides(request: PostingRequest) -> tuple[int, int]:
    debits = sum(e.amount for e in request.entries if e.entry_type == EntryType.DEBIT.value)
    credits = sum(e.amount for e in request.entries if e.entry_type == EntryType.CREDIT.value)
    return debits, credits


def validate_posting(request: PostingRequest) -> int:
    """Validate a posting request. Returns the transaction amount (sum of debits).

    Rejects: bad reference, unknown transaction type/status, < 2 legs,
    non-integer or negative leg amounts, unknown account types, debits != credits,
    zero-value transactions.
    """
    validate_reference_id(request.reference_id)
    if request.transaction_type not in _TRANSACTION_TYPES:
        raise InvalidInputError(f"unknown transaction type {request.transaction_type!r}")
    if request.status not in _POSTABLE_STATUSES:
        raise InvalidInputError(f"cannot post a transaction with status {request.status!r}")
    if len(request.entries) < MIN_LEGS:
        raise InvalidInputError(f"a transaction needs at least {MIN_LEGS} entries")

    for entry in request.entries:
        if entry.entry_type not in _ENTRY_TYPES:
            raise InvalidInputError(f"entry_type must be debit or credit, got {entry.entry_type!r}")
        validate_cents(entry.amount)
        normal_side_for(entry.account.account_type)

    debits, credits = sum_sides(request)
    if debits != credits:
        raise UnbalancedEntriesError(debits, credits)
    if debits == 0:
        raise InvalidInputError("transaction amount must be greater than zero")
    return debits
