import json
from datetime import date

from subledger.models import Benefit
from subledger.store import MemoryStore, StoreError
from web_app.app import create_app


def test_healthz(client):
    assert client.get("/healthz").get_json() == {"ok": True}


def test_log_occurrence_endpoint(client):
    res = client.post("/api/subscriptions/log", json={"subscriptionId": "sub-1", "occurrenceDate": "2024-01-31"})
    assert res.status_code == 200
    body = res.get_json()
    assert body["ledgerEntry"]["id"] == "spend-1"
    assert body["ledgerEntry"]["type"] == "expense"
    assert body["updatedObligation"]["lastLoggedDate"] == "2024-01-31"

    again = client.post("/api/subscriptions/log", json={"subscriptionId": "sub-1", "occurrenceDate": "2024-01-31"})
    assert again.status_code == 400
    assert again.get_json() == {"errorCode": "off_schedule", "reason": "not_after_last"}


def test_log_occurrence_errors(client):
    res = client.post("/api/subscriptions/log", json={"subscriptionId": "nope", "occurrenceDate": "2024-01-31"})
    assert res.status_code == 404
    assert res.get_json() == {"errorCode": "subscription_not_found"}

    res = client.post("/api/subscriptions/log", json={"subscriptionId": "sub-1", "occurrenceDate": "31/01/2024"})
    assert res.status_code == 400
    assert res.get_json()["errorCode"] == "invalid_occurrence_date"

    res = client.post("/api/subscriptions/log", data="not json")
    assert res.get_json()["errorCode"] == "missing_id"


class _Broken(MemoryStore):
    def append_ledger_entry(self, entry):
        raise StoreError("disk full")


def test_store_failure_is_500(categories, make_obligation):
    app = create_app(store=_Broken([make_obligation()], categories), access_token="")
    res = app.test_client().post(
        "/api/subscriptions/log", json={"subscriptionId": "sub-1", "occurrenceDate": "2024-01-31"}
    )
    assert res.status_code == 500
    assert res.get_json() == {"errorCode": "log_failed"}


def test_due_and_check(client):
    res = client.get("/api/subscriptions/sub-1/due?until=2024-04-30")
    assert res.get_json() == {
        "subscriptionId": "sub-1",
        "until": "2024-04-30",
        "nextDueDate": "2024-01-31",
        "occurrences": ["2024-01-31", "2024-02-29", "2024-03-29", "2024-04-29"],
    }
    assert client.get("/api/subscriptions/sub-1/due?until=someday").status_code == 400
    assert client.get("/api/subscriptions/nope/due").status_code == 404

    assert client.get("/api/subscriptions/sub-1/check?date=2024-03-29").get_json() == {"ok": True}
    assert client.get("/api/subscriptions/sub-1/check?date=2024-03-31").get_json() == {
        "ok": False,
        "reason": "off_schedule",
    }


def test_list_create_update(client):
    assert [s["id"] for s in client.get("/api/subscriptions").get_json()] == ["sub-1"]

    new = {
        "id": "sub-2",
        "name": "Gym",
        "amount": 40,
        "cadenceType": "custom",
        "cadenceIntervalDays": 14,
        "categoryId": "c-subs",
        "startDate": "2024-02-01",
    }
    res = client.post("/api/subscriptions", json=new)
    assert res.status_code == 201
    assert res.get_json()["cadenceIntervalDays"] == 14
    assert client.post("/api/subscriptions", json=new).status_code == 409
    assert client.post("/api/subscriptions", json={**new, "amount": 0}).get_json() == {"error": "invalid_amount"}

    res = client.patch("/api/subscriptions", json={"id": "sub-2", "name": "Climbing"})
    assert res.get_json()["name"] == "Climbing"
    assert client.put("/api/subscriptions", json={"id": "zzz", "name": "x"}).status_code == 404
    res = client.patch("/api/subscriptions", json={"id": "sub-2", "endDate": "2024-01-01"})
    assert res.status_code == 400
    assert res.get_json() == {"error": "end_before_start"}


def test_token_gate(store):
    c = create_app(store=store, access_token="s3cret").test_client()
    assert c.get("/api/subscriptions").status_code == 401
    assert c.get("/api/subscriptions", headers={"Authorization": "Bearer s3cret"}).status_code == 200
    assert c.get("/healthz").status_code == 200


def _subscription_body(**kw):
    body = {
        "id": "sub-9",
        "name": "Cloud backup",
        "amount": 5,
        "cadenceType": "monthly",
        "categoryId": "c-subs",
        "startDate": "2024-02-01",
    }
    body.update(kw)
    return body


def test_create_with_non_finite_numbers(client):
    # json.dumps writes Infinity/NaN literals, which Flask's parser accepts
    res = client.post(
        "/api/subscriptions",
        data=json.dumps(_subscription_body(cadenceIntervalDays=float("inf"))),
        content_type="application/json",
    )
    assert res.status_code == 201
    assert res.get_json()["cadenceIntervalDays"] is None

    res = client.post(
        "/api/subscriptions",
        data=json.dumps(_subscription_body(id="sub-10", amount=float("nan"))),
        content_type="application/json",
    )
    assert res.status_code == 400
    assert res.get_json() == {"error": "invalid_amount"}

    res = client.post(
        "/api/subscriptions",
        data=json.dumps(_subscription_body(id="sub-11", cadenceType="custom", cadenceIntervalDays=float("inf"))),
        content_type="application/json",
    )
    assert res.get_json() == {"error": "invalid_custom_interval"}


def test_log_near_last_representable_date(categories, make_obligation):
    st = MemoryStore([make_obligation(start_date=date(9999, 12, 1))], categories)
    c = create_app(store=st, access_token="").test_client()
    res = c.post("/api/subscriptions/log", json={"subscriptionId": "sub-1", "occurrenceDate": "9999-12-31"})
    assert res.status_code == 400
    assert res.get_json() == {"errorCode": "off_schedule", "reason": "off_schedule"}


# ---------- benefits ----------

def test_benefits_list_refreshes_stale_period(categories):
    stale = Benefit(
        id="b1",
        name="Uber credit",
        amount=15.0,
        cadence="monthly",
        start_date=date(2020, 1, 1),
        valid_period_start=date(2020, 1, 1),
        valid_period_end=date(2020, 1, 31),
        used=True,
    )
    nameless = Benefit(id="b2", name="", amount=5.0, cadence="monthly", start_date=date(2020, 1, 1))
    st = MemoryStore(categories=categories, benefits=[stale, nameless])
    c = create_app(store=st, access_token="").test_client()

    rows = c.get("/api/benefits").get_json()
    assert [r["id"] for r in rows] == ["b1"]
    today = date.today().isoformat()
    assert rows[0]["used"] is False
    assert rows[0]["validPeriodStart"] <= today <= rows[0]["validPeriodEnd"]
    assert st.benefits["b1"].used is False
    assert st.benefits["b1"].valid_period_start.isoformat() == rows[0]["validPeriodStart"]


def test_benefits_create_update_delete(client, store):
    body = {"id": "b1", "name": "Dining credit", "amount": 10, "cadenceType": "quarterly", "startDate": "2024-01-15"}
    res = client.post("/api/benefits", json=body)
    assert res.status_code == 201
    created = res.get_json()
    assert created["validPeriodStart"] <= date.today().isoformat() <= created["validPeriodEnd"]
    assert created["used"] is False
    assert client.post("/api/benefits", json=body).status_code == 409
    assert client.post("/api/benefits", json={**body, "name": ""}).get_json() == {"error": "missing_name"}

    res = client.patch("/api/benefits", json={"id": "b1", "used": True})
    assert res.status_code == 200
    assert res.get_json()["used"] is True
    assert client.get("/api/benefits").get_json()[0]["used"] is True

    res = client.put("/api/benefits", json={"id": "b1", "cadenceType": "monthly"})
    assert res.get_json()["cadenceType"] == "monthly"
    assert res.get_json()["used"] is False
    assert client.put("/api/benefits", json={"id": "zzz", "used": True}).status_code == 404

    assert client.delete("/api/benefits").get_json() == {"error": "missing_id"}
    assert client.delete("/api/benefits?id=b1").get_json() == {"ok": True, "id": "b1"}
    assert client.delete("/api/benefits?id=b1").status_code == 404
    assert store.benefits == {}
