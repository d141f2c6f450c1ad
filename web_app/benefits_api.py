# web_app/benefits_api.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict

from flask import Blueprint, current_app, jsonify, request

from subledger.benefits import refresh_period
from subledger.inputs import validate_benefit_create_input, validate_benefit_update_input
from subledger.store import ConflictError, NotFoundError, ObligationStore, StoreError

bp = Blueprint("benefits_api", __name__, url_prefix="/api/benefits")

# Patching any of these moves the benefit onto a new period
SCHEDULE_FIELDS = ("start_date", "cadence", "interval_days")


def _store() -> ObligationStore:
    return current_app.config["STORE"]


def _body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _persist_period(store: ObligationStore, benefit):
    return store.update_benefit(benefit.id, {
        "valid_period_start": benefit.valid_period_start,
        "valid_period_end": benefit.valid_period_end,
        "used": benefit.used,
    })


# ------------------ Routes ------------------

@bp.get("")
def list_benefits():
    """Lists benefits, rolling any stale period forward to today's and clearing ``used``."""
    store = _store()
    try:
        rows = store.list_benefits()
    except StoreError as e:
        current_app.logger.exception("Failed to read benefits: %s", e)
        return jsonify({"error": "read_failed"}), 500

    today = date.today()
    out = []
    for b in rows:
        if not (b.id and b.name):
            continue
        b, changed = refresh_period(b, today)
        if changed:
            try:
                _persist_period(store, b)
            except StoreError as e:
                # still answer with the refreshed period; the next read retries the write
                current_app.logger.warning("Could not save refreshed period for %s: %s", b.id, e)
        out.append(b)
    return jsonify([b.to_dict() for b in out])


@bp.post("")
def create_benefit():
    benefit, err = validate_benefit_create_input(_body())
    if err:
        return jsonify({"error": err}), 400
    benefit, _ = refresh_period(benefit, date.today())
    try:
        created = _store().create_benefit(benefit)
    except ConflictError:
        return jsonify({"error": "duplicate_id"}), 409
    except StoreError as e:
        current_app.logger.exception("Failed to create benefit: %s", e)
        return jsonify({"error": "create_failed"}), 500
    return jsonify(created.to_dict()), 201


@bp.route("", methods=["PUT", "PATCH"])
def update_benefit():
    bid, patch, err = validate_benefit_update_input(_body())
    if err:
        return jsonify({"error": err}), 400
    store = _store()
    try:
        updated = store.update_benefit(bid, patch)
        if any(f in patch for f in SCHEDULE_FIELDS):
            updated, changed = refresh_period(updated, date.today())
            if changed:
                updated = _persist_period(store, updated)
    except NotFoundError:
        return jsonify({"error": "not_found"}), 404
    except StoreError as e:
        current_app.logger.exception("Failed to update benefit: %s", e)
        return jsonify({"error": "update_failed"}), 500
    return jsonify(updated.to_dict())


@bp.delete("")
def delete_benefit():
    bid = (request.args.get("id") or "").strip()
    if not bid:
        return jsonify({"error": "missing_id"}), 400
    try:
        _store().delete_benefit(bid)
    except NotFoundError:
        return jsonify({"error": "not_found"}), 404
    except StoreError as e:
        current_app.logger.exception("Failed to delete benefit %s: %s", bid, e)
        return jsonify({"error": "delete_failed"}), 500
    return jsonify({"ok": True, "id": bid})
