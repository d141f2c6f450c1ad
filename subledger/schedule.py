# subledger/schedule.py
# Schedule validation and backfill enumeration for recurring obligations.
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Iterator, List, Optional

from subledger.cadence import cadence_is_valid, next_occurrence
from subledger.dates import parse_iso_date
from subledger.models import Obligation

# Hard cap on cadence steps for any single walk.
MAX_WALK_STEPS = 512

# --------- reason codes ---------
MISSING_START_DATE = "missing_start_date"
MISSING_TARGET = "missing_target"
AFTER_END_DATE = "after_end_date"
BEFORE_START = "before_start"
NOT_AFTER_LAST = "not_after_last"
OFF_SCHEDULE = "off_schedule"
INVALID_CADENCE = "invalid_cadence"
TOO_FAR_FUTURE = "too_far_future"
MISSING_ANCHOR = "missing_anchor"


@dataclass(frozen=True)
class ScheduleCheck:
    ok: bool
    reason: Optional[str] = None
    steps: int = 0

    def to_dict(self) -> dict:
        out = {"ok": self.ok}
        if self.reason:
            out["reason"] = self.reason
        return out


def _walk_to(anchor: date, target: date, obligation: Obligation) -> ScheduleCheck:
    cursor = anchor
    steps = 0
    while steps < MAX_WALK_STEPS:
        nxt = next_occurrence(cursor, obligation.cadence, obligation.interval_days)
        steps += 1
        if nxt is None:
            if not cadence_is_valid(obligation.cadence, obligation.interval_days):
                return ScheduleCheck(False, INVALID_CADENCE, steps)
            # ran past date.max without meeting the target
            return ScheduleCheck(False, OFF_SCHEDULE, steps)
        if nxt == target:
            return ScheduleCheck(True, None, steps)
        if nxt > target:
            return ScheduleCheck(False, OFF_SCHEDULE, steps)
        cursor = nxt
    return ScheduleCheck(False, TOO_FAR_FUTURE, steps)


def check_occurrence(obligation: Obligation, candidate: Any) -> ScheduleCheck:
    """
    Decide whether ``candidate`` is a legitimate occurrence of ``obligation``.

    The first failing check wins: start date, target, end date, start bound,
    then either a walk from ``start_date`` (nothing logged yet) or a walk
    from ``last_logged_date`` that requires the candidate to be strictly later.
    """
    start = obligation.start_date
    if not start:
        return ScheduleCheck(False, MISSING_START_DATE)
    target = parse_iso_date(candidate)
    if not target:
        return ScheduleCheck(False, MISSING_TARGET)
    if obligation.end_date and target > obligation.end_date:
        return ScheduleCheck(False, AFTER_END_DATE)
    if target < start:
        return ScheduleCheck(False, BEFORE_START)

    if not obligation.last_logged_date:
        if target == start:
            return ScheduleCheck(True)
        return _walk_to(start, target, obligation)

    anchor = obligation.last_logged_date
    if target <= anchor:
        return ScheduleCheck(False, NOT_AFTER_LAST)
    return _walk_to(anchor, target, obligation)


def iter_occurrences(obligation: Obligation, until: date) -> Iterator[date]:
    """Yield due occurrences after the anchor, up to min(until, end_date)."""
    start = obligation.start_date
    if not start or until is None:
        return
    horizon = until
    if obligation.end_date and obligation.end_date < horizon:
        horizon = obligation.end_date

    if obligation.last_logged_date:
        cursor = obligation.last_logged_date
    else:
        if start > horizon:
            return
        yield start
        cursor = start

    for _ in range(MAX_WALK_STEPS):
        nxt = next_occurrence(cursor, obligation.cadence, obligation.interval_days)
        if nxt is None or nxt > horizon:
            return
        yield nxt
        cursor = nxt


def occurrences_due(obligation: Obligation, until: date) -> List[date]:
    return list(iter_occurrences(obligation, until))


def next_due_date(obligation: Obligation) -> Optional[date]:
    if not obligation.start_date:
        return None
    if not obligation.last_logged_date:
        return obligation.start_date
    nxt = next_occurrence(obligation.last_logged_date, obligation.cadence, obligation.interval_days)
    if nxt and obligation.end_date and nxt > obligation.end_date:
        return None
    return nxt
