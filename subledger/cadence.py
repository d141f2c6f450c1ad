# subledger/cadence.py
# Calendar stepping for recurring obligations.
from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta

WEEKLY = "weekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
SEMI_ANNUAL = "semi-annual"
YEARLY = "yearly"
CUSTOM = "custom"

CADENCES = (WEEKLY, MONTHLY, YEARLY, CUSTOM)

# Benefits also renew quarterly and twice a year
BENEFIT_CADENCES = (WEEKLY, MONTHLY, QUARTERLY, SEMI_ANNUAL, YEARLY, CUSTOM)


def parse_cadence(value, allowed=CADENCES) -> str:
    """Normalize a stored cadence label; anything unrecognised is monthly."""
    s = str(value or "").strip().lower()
    return s if s in allowed else MONTHLY


def parse_benefit_cadence(value) -> str:
    return parse_cadence(value, BENEFIT_CADENCES)


def cadence_is_valid(cadence: str, interval_days: Optional[int] = None) -> bool:
    if cadence == CUSTOM:
        return bool(interval_days) and interval_days > 0
    return cadence in CADENCES


def next_occurrence(anchor: date, cadence: str, interval_days: Optional[int] = None) -> Optional[date]:
    """
    Date of the occurrence following ``anchor``.

    relativedelta clamps month/year steps to the last day of the target
    month, so Jan 31 -> Feb 28/29 and Feb 29 -> Feb 28 on non-leap years.
    Returns None for an unknown cadence, a non-positive custom interval, or
    when the next date would fall past ``date.max``.
    """
    if anchor is None or not cadence_is_valid(cadence, interval_days):
        return None
    try:
        if cadence == WEEKLY:
            return anchor + timedelta(days=7)
        if cadence == MONTHLY:
            return anchor + relativedelta(months=1)
        if cadence == YEARLY:
            return anchor + relativedelta(years=1)
        return anchor + timedelta(days=int(interval_days))
    except (OverflowError, ValueError):
        return None
