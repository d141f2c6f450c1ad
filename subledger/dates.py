# subledger/dates.py
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Optional

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Spreadsheet day 0 (Lotus 1-2-3 leap-year bug included)
_SERIAL_EPOCH = date(1899, 12, 30)


def parse_iso_date(value: Any) -> Optional[date]:
    """Strict YYYY-MM-DD parser used for caller input. Returns None when invalid."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not ISO_DATE_RE.match(s):
        return None
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_any_date(value: Any) -> Optional[date]:
    """
    Lenient parser for stored rows. Accepts date/datetime objects,
    'YYYY-MM-DD', 'MM/DD/YYYY', 'MM/DD/YY', ISO datetimes and spreadsheet
    serial day numbers. Returns None if nothing matches.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _SERIAL_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            return None
    d = parse_iso_date(value)
    if d:
        return d
    s = str(value).strip()
    for fmt in ("%m/%d/%Y", "%Y-%m-%d", "%m/%d/%y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def to_iso(d: Optional[date]) -> str:
    return d.isoformat() if d else ""
