"""HTTP tests for the treatment, bookkeeping and report endpoints."""
from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from salonbooks.extensions import db
from salonbooks.models import BookkeepingEntry, Customer, TreatmentRecord


def _treatment_payload(salon, **overrides):
    payload = {
        "date": "2025-01-26T10:00:00",
        "customer": {"customer_id": salon["customer_id"]},
        "service_id": salon["facial_id"],
        "therapist_id": salon["therapist_id"],
        "price": 150000,
        "tip": 25000,
    }
    payload.update(overrides)
    return payload


def test_create_treatment_201(client, salon):
    response = client.post("/treatments", json=_treatment_payload(salon))
    data = response.get_json()

    assert response.status_code == 201
    assert data["message"] == "Treatment recorded"
    assert data["treatment"]["service_price"] == 150000
    assert data["treatment"]["tip_amount"] == 25000
    assert data["customer_loyalty"]["loyalty_visits"] == 1


def test_create_treatment_free_visit_message(client, salon):
    customer = db.session.get(Customer, salon["customer_id"])
    customer.loyalty_visits = 3
    db.session.commit()

    response = client.post("/treatments", json=_treatment_payload(salon))
    data = response.get_json()

    assert response.status_code == 201
    assert data["treatment"]["is_free_visit"] is True
    assert data["customer_loyalty"]["loyalty_visits"] == 0
    assert "Free treatment" in data["message"]


def test_create_treatment_walk_in_by_phone(client, salon):
    payload = _treatment_payload(salon, customer={"name": "Maya Sembiring", "phone": "081260004444"})

    response = client.post("/treatments", json=payload)

    assert response.status_code == 201
    assert Customer.query.filter_by(phone="081260004444").count() == 1


def test_create_treatment_rejects_unknown_field(client, salon):
    response = client.post("/treatments", json=_treatment_payload(salon, discount=10))
    data = response.get_json()

    assert response.status_code == 400
    assert data["error"] == "invalid_payload"
    assert any(detail["field"] == "discount" for detail in data["details"])


def test_create_treatment_requires_phone_for_new_customer(client, salon):
    response = client.post("/treatments", json=_treatment_payload(salon, customer={"name": "Rina"}))

    assert response.status_code == 400
    assert TreatmentRecord.query.count() == 0


def test_create_treatment_rejects_negative_tip(client, salon):
    response = client.post("/treatments", json=_treatment_payload(salon, tip=-1))

    assert response.status_code == 400


def test_create_treatment_unknown_service_404(client, salon):
    response = client.post("/treatments", json=_treatment_payload(salon, service_id=999))
    data = response.get_json()

    assert response.status_code == 404
    assert data["error"] == "not_found"
    assert "Service" in data["message"]


def test_create_treatment_billing_a_due_free_visit_409(client, salon):
    customer = db.session.get(Customer, salon["customer_id"])
    customer.loyalty_visits = 3
    db.session.commit()

    response = client.post("/treatments", json=_treatment_payload(salon, is_free_visit=False))

    assert response.status_code == 409
    assert response.get_json()["error"] == "invalid_state"
    assert TreatmentRecord.query.count() == 0


def test_customer_loyalty_endpoint(client, salon):
    client.post("/treatments", json=_treatment_payload(salon))

    response = client.get(f"/customers/{salon['customer_id']}/loyalty")

    assert response.status_code == 200
    assert response.get_json()["next_free_in"] == 2
    assert client.get("/customers/999/loyalty").status_code == 404


def test_therapist_earnings_daily_and_monthly(client, salon):
    client.post("/treatments", json=_treatment_payload(salon, price=200000))

    daily = client.get(f"/therapists/{salon['therapist_id']}/earnings?date=2025-01-26")
    monthly = client.get(f"/therapists/{salon['therapist_id']}/earnings?month=1&year=2025")

    assert daily.status_code == 200
    assert daily.get_json()["earnings"] == {
        "base_fee": 20000,
        "commission": 24000,
        "tips": 25000,
        "total": 69000,
        "treatment_count": 1,
    }
    assert monthly.get_json()["earnings"]["total"] == 69000
    assert client.get(f"/therapists/{salon['therapist_id']}/earnings").status_code == 400
    assert client.get("/therapists/999/earnings?date=2025-01-26").status_code == 404


def test_update_therapist_fees(client, salon):
    response = client.put(
        f"/therapists/{salon['therapist_id']}/fees", json={"commission_rate": 0.15}
    )

    assert response.status_code == 200
    assert response.get_json()["therapist"]["commission_rate"] == 0.15
    assert client.put(
        f"/therapists/{salon['therapist_id']}/fees", json={"commission_rate": 1.5}
    ).status_code == 400
    assert client.put(f"/therapists/{salon['therapist_id']}/fees", json={}).status_code == 400


def test_refresh_therapist_totals(client, salon):
    client.post("/treatments", json=_treatment_payload(salon))

    response = client.post(f"/therapists/{salon['therapist_id']}/refresh-totals")

    assert response.status_code == 200
    assert response.get_json()["therapist"]["total_treatments"] == 1


def test_daily_entry_ignores_supplied_derived_fields(client):
    response = client.post("/bookkeeping/daily", json={
        "date": "2025-01-25",
        "daily_revenue": 300000,
        "operational_cost": 100000,
        "therapist_fee": 45000,
        "total_expense": 1,
        "net_income": 999999999,
        "running_total": 5,
    })
    entry = response.get_json()["entry"]

    assert response.status_code == 200
    assert entry["total_expense"] == 145000
    assert entry["net_income"] == 155000
    assert entry["running_total"] == 155000


def test_daily_entry_backfill_over_http(client):
    client.post("/bookkeeping/daily", json={"date": "2025-01-25", "daily_revenue": 155000})
    client.post("/bookkeeping/daily", json={"date": "2025-01-27", "daily_revenue": 220000})
    client.post("/bookkeeping/daily", json={"date": "2025-01-26", "daily_revenue": 270000})

    response = client.get("/bookkeeping/daily?start=2025-01-01&end=2025-01-31")
    entries = response.get_json()["entries"]

    assert [e["running_total"] for e in entries] == [155000, 425000, 645000]


def test_daily_entry_validation(client):
    assert client.post("/bookkeeping/daily", json={"daily_revenue": 1}).status_code == 400
    assert client.post(
        "/bookkeeping/daily", json={"date": "2025-01-25", "daily_revenue": -5}
    ).status_code == 400
    assert client.post(
        "/bookkeeping/daily", json={"date": "2025-13-45", "daily_revenue": 5}
    ).status_code == 400
    assert client.get("/bookkeeping/daily?start=2025-02-01&end=2025-01-01").status_code == 400


def test_auto_entry_endpoint(client, salon):
    client.post("/treatments", json=_treatment_payload(salon))

    response = client.post("/bookkeeping/daily/auto", json={"date": "2025-01-26", "operational_cost": 10000})
    entry = response.get_json()["entry"]

    assert response.status_code == 200
    assert entry["daily_revenue"] == 150000
    assert entry["therapist_fee"] == 38000
    assert entry["net_income"] == 150000 - 48000


def test_delete_daily_entry_endpoint(client):
    client.post("/bookkeeping/daily", json={"date": "2025-01-25", "daily_revenue": 100})

    assert client.delete("/bookkeeping/daily/2025-01-25").status_code == 200
    assert client.delete("/bookkeeping/daily/2025-01-25").status_code == 404
    assert client.delete("/bookkeeping/daily/yesterday").status_code == 400
    assert BookkeepingEntry.query.count() == 0


def test_storage_failure_returns_500(client, monkeypatch, caplog):
    def _fail(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", _fail)
    with caplog.at_level(logging.ERROR):
        response = client.post("/bookkeeping/daily", json={"date": "2025-01-25", "daily_revenue": 100})
    monkeypatch.undo()

    assert response.status_code == 500
    assert response.get_json()["error"] == "database_error"
    assert BookkeepingEntry.query.count() == 0
    # Logged once, by the route.
    assert [record.getMessage() for record in caplog.records if record.levelno >= logging.ERROR] == [
        "Failed to store ledger entry"
    ]


def test_analytics_and_monthly_endpoints(client):
    client.post("/bookkeeping/daily", json={"date": "2025-02-01", "daily_revenue": 400000, "therapist_fee": 100000})

    analytics = client.get("/bookkeeping/analytics?start=2025-02-01&end=2025-02-28")
    monthly = client.get("/bookkeeping/monthly?month=2&year=2025")

    assert analytics.get_json()["total_net_income"] == 300000
    assert monthly.get_json()["monthly_totals"]["total_therapist_fee"] == 100000
    assert client.get("/bookkeeping/monthly?month=13&year=2025").status_code == 400


def test_close_and_delete_month(client, salon):
    client.post("/treatments", json=_treatment_payload(salon, date="2025-02-01T10:00:00"))

    closed = client.post("/bookkeeping/monthly/close", json={"month": 2, "year": 2025})
    client.post("/treatments", json=_treatment_payload(salon, date="2025-02-03T10:00:00", price=100000))
    report = client.get("/reports?period=monthly&date=2025-02-10")

    assert closed.status_code == 200
    assert closed.get_json()["summary"]["total_revenue"] == 150000
    assert report.get_json()["source"] == "monthly_summary"
    assert report.get_json()["revenue"] == 250000
    assert report.get_json()["treatments"] == 2

    assert client.delete("/bookkeeping/monthly?month=2&year=2025").status_code == 200
    assert client.delete("/bookkeeping/monthly?month=2&year=2025").status_code == 404


def test_therapist_list_and_performance(client, salon):
    client.post("/treatments", json=_treatment_payload(salon))
    client.get(f"/therapists/{salon['therapist_id']}/earnings?month=1&year=2025")

    listing = client.get("/therapists?date=2025-01-26")
    performance = client.get(f"/therapists/{salon['therapist_id']}/performance")

    assert listing.status_code == 200
    therapist = listing.get_json()["therapists"][0]
    assert therapist["today_treatment_count"] == 1
    assert therapist["monthly_stats"]["total_fees"] == 20000 + 18000
    assert performance.status_code == 200
    assert len(performance.get_json()["recent_treatments"]) == 1
    assert performance.get_json()["monthly_stats"][0]["month"] == 1
    assert client.get("/therapists?date=someday").status_code == 400
    assert client.get("/therapists/999/performance").status_code == 404


def test_report_endpoint(client, salon):
    client.post("/treatments", json=_treatment_payload(salon))

    response = client.get("/reports?period=weekly&date=2025-01-26")
    data = response.get_json()

    assert response.status_code == 200
    assert data["period"] == "week"
    assert data["start"] == "2025-01-20"
    assert data["revenue"] == 150000
    assert data["customers"] == 1
    assert client.get("/reports?period=fortnight").status_code == 400
