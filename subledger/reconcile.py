# subledger/reconcile.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from subledger.dates import parse_iso_date
from subledger.models import LedgerEntry, Obligation
from subledger.schedule import check_occurrence
from subledger.store import ObligationStore

logger = logging.getLogger(__name__)

# --------- error codes ---------
MISSING_ID = "missing_id"
INVALID_OCCURRENCE_DATE = "invalid_occurrence_date"
SUBSCRIPTION_NOT_FOUND = "subscription_not_found"
AFTER_END_DATE = "after_end_date"
SUBSCRIPTION_MISSING_START_DATE = "subscription_missing_start_date"
OFF_SCHEDULE = "off_schedule"
CATEGORY_NOT_FOUND = "category_not_found"


@dataclass(frozen=True)
class LogOutcome:
    ok: bool
    ledger_entry: Optional[LedgerEntry] = None
    obligation: Optional[Obligation] = None
    error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def failure(cls, error: str, reason: Optional[str] = None) -> "LogOutcome":
        return cls(ok=False, error=error, reason=reason)

    def to_response(self) -> Dict[str, Any]:
        if self.ok:
            return {
                "ledgerEntry": self.ledger_entry.to_dict(),
                "updatedObligation": self.obligation.to_dict(),
            }
        out: Dict[str, Any] = {"errorCode": self.error}
        if self.reason:
            out["reason"] = self.reason
        return out


def log_occurrence(store: ObligationStore, obligation_id: Any, occurrence_date: Any) -> LogOutcome:
    """
    Record one occurrence of an obligation in the ledger and advance its anchor.

    Validation failures come back as a failed ``LogOutcome``. Errors raised by
    the store while writing propagate as ``StoreError``; nothing is retried or
    rolled back, so a failed anchor update leaves the ledger entry in place.
    """
    obligation_id = str(obligation_id or "").strip()
    if not obligation_id:
        return LogOutcome.failure(MISSING_ID)
    when = parse_iso_date(occurrence_date)
    if when is None:
        return LogOutcome.failure(INVALID_OCCURRENCE_DATE)

    obligation = store.load_obligation(obligation_id)
    if obligation is None:
        return LogOutcome.failure(SUBSCRIPTION_NOT_FOUND)
    if obligation.end_date and when > obligation.end_date:
        return LogOutcome.failure(AFTER_END_DATE)
    if not obligation.start_date:
        return LogOutcome.failure(SUBSCRIPTION_MISSING_START_DATE)

    check = check_occurrence(obligation, when)
    if not check.ok:
        return LogOutcome.failure(OFF_SCHEDULE, check.reason)

    category = store.resolve_category(obligation.category_id)
    if category is None:
        return LogOutcome.failure(CATEGORY_NOT_FOUND)

    entry = LedgerEntry(
        id=store.next_ledger_id(),
        date=when,
        amount=obligation.amount,
        kind=category.kind,
        category=category.name,
        description=obligation.name,
        subscription_id=obligation.id,
        created_at=datetime.now().isoformat(timespec="seconds"),
    )
    store.append_ledger_entry(entry)
    try:
        updated = store.advance_anchor(obligation.id, when)
    except Exception:
        logger.error(
            "Ledger entry %s written but anchor of %s not advanced to %s",
            entry.id, obligation.id, when.isoformat(),
        )
        raise

    logger.info("Logged %s for %s on %s", entry.id, obligation.id, when.isoformat())
    return LogOutcome(ok=True, ledger_entry=entry, obligation=updated)
