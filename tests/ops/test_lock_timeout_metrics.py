from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.cashclose.core.errors import setup_exception_handlers
from app.cashclose.core.metrics import metrics


def test_sqlite_busy_database_maps_to_lock_timeout():
    metrics.reset()
    app = FastAPI()
    setup_exception_handlers(app)

    @app.post("/cash-closures/{closure_id}/actions")
    def contended_review(closure_id: str):
        raise OperationalError("UPDATE cash_closures", {}, Exception("database is locked"))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/cash-closures/abc/actions")

    assert response.status_code == 409
    assert response.json()["code"] == "LOCK_TIMEOUT"

    content = metrics.render().content.decode("utf-8")
    if metrics.enabled:
        assert "lock_wait_timeout_total 1.0" in content
    else:
        assert "metrics_disabled" in content


def test_other_operational_errors_are_internal():
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/broken")
    def broken():
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/broken")

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
