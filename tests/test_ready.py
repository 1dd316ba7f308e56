from sqlalchemy import update

from app.cashclose.db.models import PaymentMethod


def test_ready_reports_each_check(client):
    response = client.get("/ready")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ready"
    assert payload["checks"] == {"database": True, "closure_sequence": True, "cash_payment_method": True}
    assert payload["trace_id"]


def test_ready_fails_without_cash_payment_method(client, db_session):
    db_session.execute(update(PaymentMethod).values(is_cash=False))
    db_session.commit()

    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["code"] == "DB_UNAVAILABLE"
    assert response.json()["details"]["checks"]["cash_payment_method"] is False


def test_metrics_endpoint_exposes_closure_counters(client):
    response = client.get("/ops/metrics")
    assert response.status_code == 200
    assert "cash_closures_submitted" in response.text or "metrics_disabled" in response.text
