"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class NormalSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class EntryType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class AccountType(str, Enum):
    # Debit-normal
    CASH = "cash"
    BANK = "bank"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    RESERVE = "reserve"
    TAX_RESERVE = "tax_reserve"
    REFUND_RESERVE = "refund_reserve"
    PREPAID_EXPENSE = "prepaid_expense"
    EXPENSE = "expense"
    PROCESSING_FEES = "processing_fees"
    # Credit-normal
    CREATOR_BALANCE = "creator_balance"
    CREATOR_POOL = "creator_pool"
    ACCOUNTS_PAYABLE = "accounts_payable"
    TAX_PAYABLE = "tax_payable"
    PLATFORM_REVENUE = "platform_revenue"
    REVENUE = "revenue"
    INCOME = "income"
    OWNER_EQUITY = "owner_equity"
    OPENING_BALANCE_EQUITY = "opening_balance_equity"


class TransactionType(str, Enum):
    SALE = "sale"
    EXPENSE = "expense"
    REFUND = "refund"
    PAYOUT = "payout"
    BILL = "bill"
    ADJUSTMENT = "adjustment"
    INCOME = "income"
    TRANSFER = "transfer"
    OPENING_BALANCE = "opening_balance"
    REVERSAL = "reversal"


class TransactionStatus(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    VOIDED = "voided"
    REVERSED = "reversed"


class RefundFrom(str, Enum):
    BOTH = "both"
    PLATFORM_ONLY = "platform_only"
    CREATOR_ONLY = "creator_only"


class PolicyType(str, Enum):
    REQUIRE_INSTRUMENT = "require_instrument"
    BUDGET_CAP = "budget_cap"
    PROJECTION_GUARD = "projection_guard"


class Severity(str, Enum):
    HARD = "hard"
    SOFT = "soft"


class Decision(str, Enum):
    ALLOWED = "allowed"
    WARN = "warn"
    BLOCKED = "blocked"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class InstrumentStatus(str, Enum):
    ACTIVE = "active"
    INVALIDATED = "invalidated"


class InstrumentCadence(str, Enum):
    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class ProjectionStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
