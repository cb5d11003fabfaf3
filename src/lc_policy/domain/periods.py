"""Budget period boundaries, anchored to calendar boundaries in a timezone.

weekly    -> most recent Sunday 00:00
monthly   -> 1st of the month 00:00
quarterly -> 1st of Jan/Apr/Jul/Oct 00:00
annual    -> Jan 1st 00:00
Unknown periods fall back to monthly.
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.lc_common.enums import BudgetPeriod
from src.lc_common.errors import InvalidInputError


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise InvalidInputError(f"unknown timezone {name!r}") from None


def normalize_period(period: str | None) -> str:
    valid = {p.value for p in BudgetPeriod}
    return period if period in valid else BudgetPeriod.MONTHLY.value


def period_start(period: str | None, now: datetime, tz_name: str) -> datetime:
    """Start of the period containing `now`, returned as an aware UTC datetime."""
    tz = resolve_timezone(tz_name)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)

    period = normalize_period(period)
    if period == BudgetPeriod.WEEKLY.value:
        # Python weekday(): Monday=0 ... Sunday=6
        start = midnight - timedelta(days=(midnight.weekday() + 1) % 7)
    elif period == BudgetPeriod.QUARTERLY.value:
        start = midnight.replace(month=((midnight.month - 1) // 3) * 3 + 1, day=1)
    elif period == BudgetPeriod.ANNUAL.value:
        start = midnight.replace(month=1, day=1)
    else:
        start = midnight.replace(day=1)
    return start.astimezone(timezone.utc)
