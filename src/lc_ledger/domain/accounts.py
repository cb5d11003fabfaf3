"""Chart of account types and their normal balance sides."""

from src.lc_common.enums import AccountType, EntryType, NormalSide
from src.lc_common.errors import UnknownAccountTypeError

_DEBIT_NORMAL: frozenset[AccountType] = frozenset({
    AccountType.CASH,
    AccountType.BANK,
    AccountType.ACCOUNTS_RECEIVABLE,
    AccountType.RESERVE,
    AccountType.TAX_RESERVE,
    AccountType.REFUND_RESERVE,
    AccountType.PREPAID_EXPENSE,
    AccountType.EXPENSE,
    AccountType.PROCESSING_FEES,
})

NORMAL_SIDES: dict[str, NormalSide] = {
    t.value: (NormalSide.DEBIT if t in _DEBIT_NORMAL else NormalSide.CREDIT)
    for t in AccountType
}

_DISPLAY_NAMES: dict[str, str] = {
    AccountType.CASH.value: "Cash",
    AccountType.PLATFORM_REVENUE.value: "Platform Revenue",
    AccountType.CREATOR_BALANCE.value: "Creator Balance",
    AccountType.EXPENSE.value: "Expense",
}


def normal_side_for(account_type: str) -> NormalSide:
    """Raise UnknownAccountTypeError for types outside the chart."""
    try:
        return NORMAL_SIDES[account_type]
    except KeyError:
        raise UnknownAccountTypeError(account_type) from None


def account_name(account_type: str, entity_id: str) -> str:
    base = _DISPLAY_NAMES.get(account_type, account_type.replace("_", " ").title())
    return f"{base} ({entity_id})" if entity_id else base


def balance_delta(normal_side: str, entry_type: str, amount: int) -> int:
    """Signed change to a cached balance kept in the account's normal direction."""
    same_side = (entry_type == EntryType.DEBIT.value) == (normal_side == NormalSide.DEBIT.value)
    return amount if same_side else -amount
