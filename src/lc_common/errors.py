"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Request / ledger context
  2xxx: Posting
  3xxx: Refund / reversal
  4xxx: Authorization / policy
  9xxx: System
"""

from typing import Any


class AppError(Exception):
    """Base application error.

    `data` carries structured context for the caller (existing transaction id,
    remaining refundable amount, ...) and is returned in the response envelope.
    """

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.data = data
        super().__init__(message)


# --- 1xxx: Request / ledger context ---

class InvalidInputError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid input: {detail}", 400)


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1002, detail, 400)


class LedgerNotFoundError(AppError):
    def __init__(self, ledger_id: str) -> None:
        super().__init__(1003, f"Ledger not found: {ledger_id}", 404)


# --- 2xxx: Posting ---

class UnbalancedEntriesError(AppError):
    def __init__(self, debits: int, credits: int) -> None:
        super().__init__(
            2001,
            f"Entries do not balance: debits {debits} cents != credits {credits} cents",
            422,
            {"debits_cents": debits, "credits_cents": credits},
        )


class UnknownAccountTypeError(AppError):
    def __init__(self, account_type: str) -> None:
        super().__init__(2002, f"Unknown account type: {account_type}", 422)


class TransactionNotFoundError(AppError):
    def __init__(self, ref: str) -> None:
        super().__init__(2003, f"Transaction not found: {ref}", 404)


# --- 3xxx: Refund / reversal ---

class AlreadyFullyRefundedError(AppError):
    def __init__(self, original_transaction_id: str, reversed_by: str | None) -> None:
        super().__init__(
            3001,
            "Sale already fully refunded",
            409,
            {
                "original_transaction_id": original_transaction_id,
                "transaction_id": reversed_by,
                "idempotent": True,
            },
        )


class ExceedsRefundableError(AppError):
    def __init__(self, requested: int, remaining: int) -> None:
        super().__init__(
            3002,
            f"Refund of {requested} cents exceeds remaining refundable {remaining} cents",
            409,
            {"requested_cents": requested, "remaining_refundable_cents": remaining},
        )


class DuplicateRefundError(AppError):
    def __init__(self, transaction_id: str, reference_id: str) -> None:
        super().__init__(
            3003,
            f"Duplicate refund reference: {reference_id}",
            409,
            {"transaction_id": transaction_id, "idempotent": True},
        )


class AlreadyReversedError(AppError):
    def __init__(self, transaction_id: str, status: str, reversed_by: str | None) -> None:
        super().__init__(
            3004,
            f"Transaction {transaction_id} already {status}",
            409,
            {"transaction_id": transaction_id, "reversal_id": reversed_by},
        )


class ProcessorRefundError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(3005, f"Payment processor refund failed: {detail}", 502)


class LedgerInconsistencyError(AppError):
    """Processor refund succeeded but the ledger write did not.

    Requires manual reconciliation; never retried automatically.
    """

    def __init__(self, processor_refund_id: str, reference_id: str) -> None:
        super().__init__(
            3006,
            "Processor refund executed but ledger posting failed; manual reconciliation required",
            500,
            {"processor_refund_id": processor_refund_id, "reference_id": reference_id},
        )


# --- 4xxx: Authorization / policy ---

class PolicyEvaluationError(AppError):
    """A single policy could not be evaluated. Logged, treated as no violation."""

    def __init__(self, policy_id: str, detail: str) -> None:
        super().__init__(4001, f"Policy {policy_id} evaluation failed: {detail}", 500)


class PolicyNotFoundError(AppError):
    def __init__(self, policy_id: str) -> None:
        super().__init__(4002, f"Policy not found: {policy_id}", 404)


class DuplicatePolicyError(AppError):
    def __init__(self, policy_type: str, priority: int) -> None:
        super().__init__(
            4003, f"A {policy_type} policy with priority {priority} already exists", 409
        )


class InstrumentNotFoundError(AppError):
    def __init__(self, instrument_id: str) -> None:
        super().__init__(4004, f"Authorizing instrument not found: {instrument_id}", 404)


class DuplicateInstrumentError(AppError):
    def __init__(self, existing_id: str) -> None:
        super().__init__(
            4005,
            "Duplicate instrument: identical terms already registered",
            409,
            {"existing_instrument_id": existing_id},
        )


# --- 9xxx: System ---

class StorageError(AppError):
    def __init__(self, detail: str = "Storage failure") -> None:
        super().__init__(9001, detail, 500)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
