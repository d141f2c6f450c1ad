# subledger/benefits.py
# Renewal periods for benefits (card credits, memberships).
from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Optional, Tuple

from dateutil.relativedelta import relativedelta

from subledger.cadence import CUSTOM, MONTHLY, QUARTERLY, SEMI_ANNUAL, WEEKLY, YEARLY
from subledger.models import Benefit

_MONTHS_PER_PERIOD = {MONTHLY: 1, QUARTERLY: 3, SEMI_ANNUAL: 6, YEARLY: 12}


def _period_start(start: date, cadence: str, interval_days: Optional[int], k: int) -> date:
    # Always stepped from the original start so month-end and Feb 29 starts
    # come back once the calendar allows it.
    if cadence == WEEKLY:
        return start + timedelta(days=7 * k)
    if cadence == CUSTOM:
        return start + timedelta(days=interval_days * k)
    return start + relativedelta(months=_MONTHS_PER_PERIOD[cadence] * k)


def valid_period(
    start: date,
    cadence: str,
    interval_days: Optional[int] = None,
    ref: Optional[date] = None,
) -> Tuple[date, date]:
    """
    The (first day, last day) of the period containing ``ref``.

    Periods are aligned to ``start``, not to calendar months: a monthly
    benefit starting Jan 15 runs Jan 15 - Feb 14, Feb 15 - Mar 14, ...
    Before ``start`` the first period is returned. An unknown cadence or a
    custom cadence without a positive interval yields (ref, ref).
    """
    ref = ref or date.today()
    if cadence == CUSTOM and (not interval_days or interval_days <= 0):
        return ref, ref
    if cadence not in _MONTHS_PER_PERIOD and cadence not in (WEEKLY, CUSTOM):
        return ref, ref

    if ref < start:
        k = 0
    elif cadence in _MONTHS_PER_PERIOD:
        months = (ref.year - start.year) * 12 + (ref.month - start.month)
        k = months // _MONTHS_PER_PERIOD[cadence]
        if _period_start(start, cadence, interval_days, k) > ref:
            k -= 1
    else:
        span = 7 if cadence == WEEKLY else interval_days
        k = (ref - start).days // span

    first = _period_start(start, cadence, interval_days, k)
    try:
        last = _period_start(start, cadence, interval_days, k + 1) - timedelta(days=1)
    except (OverflowError, ValueError):
        last = date.max
    return first, last


def refresh_period(benefit: Benefit, today: Optional[date] = None) -> Tuple[Benefit, bool]:
    """
    Move a benefit onto the period containing ``today``. When the period
    changes, ``used`` is cleared. Returns (benefit, changed).
    """
    if not benefit.start_date:
        return benefit, False
    first, last = valid_period(benefit.start_date, benefit.cadence, benefit.interval_days, today)
    if (first, last) == (benefit.valid_period_start, benefit.valid_period_end):
        return benefit, False
    return replace(benefit, valid_period_start=first, valid_period_end=last, used=False), True
