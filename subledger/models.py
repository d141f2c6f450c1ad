# subledger/models.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional

from subledger.cadence import CUSTOM, parse_benefit_cadence, parse_cadence
from subledger.dates import parse_any_date, to_iso

CATEGORY_KINDS = ("income", "expense")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


@dataclass(frozen=True)
class Obligation:
    """A recurring subscription or benefit. ``last_logged_date`` is the anchor."""
    id: str
    name: str
    amount: float
    cadence: str
    category_id: str
    start_date: Optional[date]
    interval_days: Optional[int] = None
    last_logged_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "cadenceType": self.cadence,
            "cadenceIntervalDays": self.interval_days,
            "categoryId": self.category_id,
            "startDate": to_iso(self.start_date),
            "lastLoggedDate": to_iso(self.last_logged_date) or None,
            "endDate": to_iso(self.end_date) or None,
            "notes": self.notes,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    kind: str  # income | expense


@dataclass(frozen=True)
class LedgerEntry:
    date: date
    amount: float
    kind: str
    category: str
    description: str
    subscription_id: str
    id: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": to_iso(self.date),
            "amount": self.amount,
            "type": self.kind,
            "category": self.category,
            "description": self.description,
            "subscriptionId": self.subscription_id,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Benefit:
    """
    A card or membership perk that renews every period. ``used`` resets when
    the current period moves on.
    """
    id: str
    name: str
    amount: float
    cadence: str
    start_date: Optional[date]
    interval_days: Optional[int] = None
    valid_period_start: Optional[date] = None
    valid_period_end: Optional[date] = None
    used: bool = False
    credit_card: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "amount": self.amount,
            "cadenceType": self.cadence,
            "cadenceIntervalDays": self.interval_days,
            "startDate": to_iso(self.start_date),
            "validPeriodStart": to_iso(self.valid_period_start),
            "validPeriodEnd": to_iso(self.valid_period_end),
            "used": self.used,
            "creditCard": self.credit_card,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


# ---------- row normalization ----------
def field_getter(raw: Mapping[str, Any]):
    """Look a field up under its label, camelCase or snake_case spelling."""
    def get(*keys: str) -> Any:
        for k in keys:
            for variant in (k, k.lower(), k.upper(), k.replace(" ", "")):
                if variant in raw and raw[variant] not in (None, ""):
                    return raw[variant]
        return None
    return get


def to_number(value: Any) -> float:
    """Loose numeric parse; junk and non-finite values (NaN, Infinity) become 0.0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        num = float(value)
    elif not value:
        return 0.0
    else:
        try:
            num = float(_NON_NUMERIC.sub("", str(value)) or 0)
        except (OverflowError, ValueError):
            return 0.0
    return num if math.isfinite(num) else 0.0


def to_interval(value: Any) -> Optional[int]:
    """Positive whole number of days, else None."""
    days = int(to_number(value))
    return days if days > 0 else None


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "x", "✓")
    return False


def clean_str(value: Any) -> Optional[str]:
    s = str(value).strip() if value is not None else ""
    return s or None


def normalize_obligation(raw: Mapping[str, Any]) -> Obligation:
    get = field_getter(raw)
    cadence = parse_cadence(get("Cadence Type", "cadenceType", "cadence_type", "cadence"))
    interval = None
    if cadence == CUSTOM:
        interval = to_interval(get("Cadence Interval (Days)", "cadenceIntervalDays", "interval_days"))
    return Obligation(
        id=str(get("ID", "id") or "").strip(),
        name=str(get("Name", "name") or "").strip(),
        amount=to_number(get("Amount", "amount")),
        cadence=cadence,
        interval_days=interval,
        category_id=str(get("Category ID", "categoryId", "category_id") or "").strip(),
        start_date=parse_any_date(get("Start Date", "startDate", "start_date")),
        last_logged_date=parse_any_date(get("Last Logged Date", "lastLoggedDate", "last_logged_date")),
        end_date=parse_any_date(get("End Date", "endDate", "end_date")),
        notes=clean_str(get("Notes", "notes")),
        created_at=clean_str(get("Created At", "createdAt", "created_at")),
        updated_at=clean_str(get("Updated At", "updatedAt", "updated_at")),
    )


def normalize_benefit(raw: Mapping[str, Any]) -> Benefit:
    get = field_getter(raw)
    cadence = parse_benefit_cadence(get("Cadence Type", "cadenceType", "cadence_type", "cadence"))
    interval = None
    if cadence == CUSTOM:
        interval = to_interval(get("Cadence Interval (Days)", "cadenceIntervalDays", "interval_days"))
    return Benefit(
        id=str(get("ID", "id") or "").strip(),
        name=str(get("Name", "name") or "").strip(),
        amount=to_number(get("Amount", "amount")),
        cadence=cadence,
        interval_days=interval,
        start_date=parse_any_date(get("Start Date", "startDate", "start_date")),
        valid_period_start=parse_any_date(get("Valid Period Start", "validPeriodStart", "valid_period_start")),
        valid_period_end=parse_any_date(get("Valid Period End", "validPeriodEnd", "valid_period_end")),
        used=to_bool(get("Used", "used")),
        credit_card=clean_str(get("Credit Card", "creditCard", "credit_card")),
        created_at=clean_str(get("Created At", "createdAt", "created_at")),
        updated_at=clean_str(get("Updated At", "updatedAt", "updated_at")),
    )


def normalize_category(raw: Mapping[str, Any]) -> Optional[Category]:
    """Categories without an id or with a kind other than income/expense are dropped."""
    get = field_getter(raw)
    cid = str(get("ID", "id") or "").strip()
    kind = str(get("Type", "type", "kind") or "").strip().lower()
    if not cid or kind not in CATEGORY_KINDS:
        return None
    return Category(id=cid, name=str(get("Name", "name") or "").strip(), kind=kind)
