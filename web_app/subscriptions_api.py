# web_app/subscriptions_api.py
from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from subledger.dates import parse_iso_date, to_iso
from subledger.inputs import check_patched, validate_create_input, validate_update_input
from subledger.reconcile import SUBSCRIPTION_NOT_FOUND, log_occurrence
from subledger.schedule import check_occurrence, next_due_date, occurrences_due
from subledger.store import ConflictError, NotFoundError, ObligationStore, StoreError

bp = Blueprint("subscriptions_api", __name__, url_prefix="/api/subscriptions")


def _store() -> ObligationStore:
    return current_app.config["STORE"]


def _body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


# ------------------ Routes ------------------

@bp.get("")
def list_subscriptions():
    try:
        rows = _store().list_obligations()
    except StoreError as e:
        current_app.logger.exception("Failed to read subscriptions: %s", e)
        return jsonify({"error": "read_failed"}), 500
    rows = [o for o in rows if o.id and o.name and o.category_id]
    return jsonify([o.to_dict() for o in rows])


@bp.post("")
def create_subscription():
    obligation, err = validate_create_input(_body())
    if err:
        return jsonify({"error": err}), 400
    try:
        created = _store().create_obligation(obligation)
    except ConflictError:
        return jsonify({"error": "duplicate_id"}), 409
    except StoreError as e:
        current_app.logger.exception("Failed to create subscription: %s", e)
        return jsonify({"error": "create_failed"}), 500
    return jsonify(created.to_dict()), 201


@bp.route("", methods=["PUT", "PATCH"])
def update_subscription():
    oid, patch, err = validate_update_input(_body())
    if err:
        return jsonify({"error": err}), 400
    store = _store()
    try:
        current = store.load_obligation(oid)
        if current is None:
            return jsonify({"error": "not_found"}), 404
        range_err = check_patched(replace(current, **patch))
        if range_err:
            return jsonify({"error": range_err}), 400
        updated = store.update_obligation(oid, patch)
    except NotFoundError:
        return jsonify({"error": "not_found"}), 404
    except StoreError as e:
        current_app.logger.exception("Failed to update subscription: %s", e)
        return jsonify({"error": "update_failed"}), 500
    return jsonify(updated.to_dict())


@bp.post("/log")
def log_subscription_occurrence():
    """
    Body: {subscriptionId, occurrenceDate: YYYY-MM-DD}
    200 {ledgerEntry, updatedObligation} | 4xx {errorCode, reason?}
    """
    payload = _body()
    sub_id = payload.get("subscriptionId")
    occurred = payload.get("occurrenceDate")
    try:
        outcome = log_occurrence(_store(), sub_id, occurred)
    except StoreError as e:
        current_app.logger.exception("POST /api/subscriptions/log failed: %s", e)
        return jsonify({"errorCode": "log_failed"}), 500

    if not outcome.ok:
        current_app.logger.info(
            "Rejected log for %s on %s: %s %s", sub_id, occurred, outcome.error, outcome.reason or ""
        )
        status = 404 if outcome.error == SUBSCRIPTION_NOT_FOUND else 400
        return jsonify(outcome.to_response()), status
    return jsonify(outcome.to_response())


@bp.get("/<sub_id>/due")
def subscription_due(sub_id: str):
    """Occurrences not yet logged, up to ?until= (default today)."""
    raw_until = (request.args.get("until") or "").strip()
    until = parse_iso_date(raw_until) if raw_until else date.today()
    if until is None:
        return jsonify({"error": "invalid_date"}), 400
    try:
        obligation = _store().load_obligation(sub_id)
    except StoreError as e:
        current_app.logger.exception("Failed to load subscription %s: %s", sub_id, e)
        return jsonify({"error": "read_failed"}), 500
    if obligation is None:
        return jsonify({"error": SUBSCRIPTION_NOT_FOUND}), 404
    return jsonify({
        "subscriptionId": obligation.id,
        "until": to_iso(until),
        "nextDueDate": to_iso(next_due_date(obligation)) or None,
        "occurrences": [to_iso(d) for d in occurrences_due(obligation, until)],
    })


@bp.get("/<sub_id>/check")
def subscription_check(sub_id: str):
    try:
        obligation = _store().load_obligation(sub_id)
    except StoreError as e:
        current_app.logger.exception("Failed to load subscription %s: %s", sub_id, e)
        return jsonify({"error": "read_failed"}), 500
    if obligation is None:
        return jsonify({"error": SUBSCRIPTION_NOT_FOUND}), 404
    return jsonify(check_occurrence(obligation, request.args.get("date")).to_dict())
