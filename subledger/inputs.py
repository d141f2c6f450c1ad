# subledger/inputs.py
# Validation of create/update payloads for obligations and benefits.
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from subledger.cadence import CUSTOM, parse_benefit_cadence, parse_cadence
from subledger.dates import parse_iso_date
from subledger.models import Benefit, Obligation, clean_str, to_bool, to_interval, to_number


def _opt_date(body: Mapping[str, Any], key: str) -> Tuple[Optional[Any], bool]:
    """(parsed date or None, valid?) for an optional date field."""
    raw = body.get(key)
    if raw is None or str(raw).strip() == "":
        return None, True
    d = parse_iso_date(raw)
    return d, d is not None


def _check_ranges(start, last, end) -> Optional[str]:
    if start and end and end < start:
        return "end_before_start"
    if last and start and last < start:
        return "last_logged_out_of_range"
    if last and end and last > end:
        return "last_logged_out_of_range"
    return None


def _cadence_patch(body: Mapping[str, Any], parse) -> Tuple[Dict[str, Any], Optional[str]]:
    if "cadenceType" not in body:
        if "cadenceIntervalDays" not in body:
            return {}, None
        # interval alone keeps the stored cadence
        interval = to_interval(body.get("cadenceIntervalDays"))
        if interval is None:
            return {}, "invalid_custom_interval"
        return {"interval_days": interval}, None
    cadence = parse(body.get("cadenceType"))
    if cadence != CUSTOM:
        return {"cadence": cadence, "interval_days": None}, None
    interval = to_interval(body.get("cadenceIntervalDays"))
    if interval is None:
        return {}, "invalid_custom_interval"
    return {"cadence": cadence, "interval_days": interval}, None


def validate_create_input(body: Mapping[str, Any]) -> Tuple[Optional[Obligation], Optional[str]]:
    """Returns (obligation, None) or (None, error_code)."""
    oid = str(body.get("id") or "").strip()
    name = str(body.get("name") or "").strip()
    amount = to_number(body.get("amount"))
    cadence = parse_cadence(body.get("cadenceType"))
    category_id = str(body.get("categoryId") or "").strip()

    if not oid:
        return None, "missing_id"
    if not name:
        return None, "missing_name"
    if not category_id:
        return None, "missing_category"
    if not str(body.get("startDate") or "").strip():
        return None, "missing_start_date"
    if amount <= 0:
        return None, "invalid_amount"
    interval = to_interval(body.get("cadenceIntervalDays")) if cadence == CUSTOM else None
    if cadence == CUSTOM and interval is None:
        return None, "invalid_custom_interval"

    start = parse_iso_date(body.get("startDate"))
    last, last_ok = _opt_date(body, "lastLoggedDate")
    end, end_ok = _opt_date(body, "endDate")
    if start is None or not last_ok or not end_ok:
        return None, "invalid_date"
    err = _check_ranges(start, last, end)
    if err:
        return None, err

    stamp = datetime.now().isoformat(timespec="seconds")
    return Obligation(
        id=oid,
        name=name,
        amount=amount,
        cadence=cadence,
        interval_days=interval,
        category_id=category_id,
        start_date=start,
        last_logged_date=last,
        end_date=end,
        notes=clean_str(body.get("notes")),
        created_at=stamp,
        updated_at=stamp,
    ), None


def validate_update_input(body: Mapping[str, Any]) -> Tuple[Optional[str], Dict[str, Any], Optional[str]]:
    """
    Build a field patch from a partial payload.
    Returns (id, patch, None) on success or (None, {}, error_code).
    """
    oid = str(body.get("id") or body.get("ID") or "").strip()
    if not oid:
        return None, {}, "missing_id"

    patch: Dict[str, Any] = {}
    if "name" in body:
        patch["name"] = str(body.get("name") or "").strip()
    if "amount" in body:
        amount = to_number(body.get("amount"))
        if amount <= 0:
            return None, {}, "invalid_amount"
        patch["amount"] = amount
    if "categoryId" in body:
        patch["category_id"] = str(body.get("categoryId") or "").strip()
    if "notes" in body:
        patch["notes"] = clean_str(body.get("notes"))

    for key, field_name in (("startDate", "start_date"), ("lastLoggedDate", "last_logged_date"), ("endDate", "end_date")):
        if key in body:
            d, ok = _opt_date(body, key)
            if not ok:
                return None, {}, "invalid_date"
            if field_name == "start_date" and d is None:
                return None, {}, "missing_start_date"
            patch[field_name] = d

    cadence_patch, err = _cadence_patch(body, parse_cadence)
    if err:
        return None, {}, err
    patch.update(cadence_patch)
    return oid, patch, None


def check_patched(obligation: Obligation) -> Optional[str]:
    """Date-range invariants on an obligation after a patch is applied."""
    return _check_ranges(obligation.start_date, obligation.last_logged_date, obligation.end_date)


# ------------------ benefits ------------------

def validate_benefit_create_input(body: Mapping[str, Any]) -> Tuple[Optional[Benefit], Optional[str]]:
    """Returns (benefit, None) or (None, error_code). The valid period is filled in by the caller."""
    bid = str(body.get("id") or "").strip()
    name = str(body.get("name") or "").strip()
    amount = to_number(body.get("amount"))
    cadence = parse_benefit_cadence(body.get("cadenceType"))

    if not bid:
        return None, "missing_id"
    if not name:
        return None, "missing_name"
    if not str(body.get("startDate") or "").strip():
        return None, "missing_start_date"
    if amount <= 0:
        return None, "invalid_amount"
    interval = to_interval(body.get("cadenceIntervalDays")) if cadence == CUSTOM else None
    if cadence == CUSTOM and interval is None:
        return None, "invalid_custom_interval"
    start = parse_iso_date(body.get("startDate"))
    if start is None:
        return None, "invalid_date"

    stamp = datetime.now().isoformat(timespec="seconds")
    return Benefit(
        id=bid,
        name=name,
        amount=amount,
        cadence=cadence,
        interval_days=interval,
        start_date=start,
        credit_card=clean_str(body.get("creditCard")),
        created_at=stamp,
        updated_at=stamp,
    ), None


def validate_benefit_update_input(body: Mapping[str, Any]) -> Tuple[Optional[str], Dict[str, Any], Optional[str]]:
    bid = str(body.get("id") or body.get("ID") or "").strip()
    if not bid:
        return None, {}, "missing_id"

    patch: Dict[str, Any] = {}
    if "name" in body:
        patch["name"] = str(body.get("name") or "").strip()
    if "amount" in body:
        amount = to_number(body.get("amount"))
        if amount <= 0:
            return None, {}, "invalid_amount"
        patch["amount"] = amount
    if "used" in body:
        patch["used"] = to_bool(body.get("used"))
    if "creditCard" in body:
        patch["credit_card"] = clean_str(body.get("creditCard"))

    for key, field_name in (
        ("startDate", "start_date"),
        ("validPeriodStart", "valid_period_start"),
        ("validPeriodEnd", "valid_period_end"),
    ):
        if key in body:
            d, ok = _opt_date(body, key)
            if not ok:
                return None, {}, "invalid_date"
            if field_name == "start_date" and d is None:
                return None, {}, "missing_start_date"
            patch[field_name] = d

    cadence_patch, err = _cadence_patch(body, parse_benefit_cadence)
    if err:
        return None, {}, err
    patch.update(cadence_patch)
    return bid, patch, None
