from app.cashclose.core.error_catalog import ErrorCatalog
from tests.closure_helpers import auth_headers, balanced_submission, fetch_theoretical, local, seed_business_day


def _closure_for(client, db_session, cashier_id: str) -> dict:
    seed_business_day(db_session, cashier_id=cashier_id)
    headers = auth_headers(cashier_id, "CASHIER")
    response = balanced_submission(client, headers, fetch_theoretical(client, headers, cashier_id=cashier_id))
    assert response.status_code == 201, response.text
    return response.json()


def test_supervisor_lists_all_closures_newest_first(client, db_session):
    first = _closure_for(client, db_session, "cashier-1")
    second = _closure_for(client, db_session, "cashier-2")
    supervisor = auth_headers("sup-1", "SUPERVISOR")

    response = client.get("/cash-closures", headers=supervisor)

    assert response.status_code == 200
    payload = response.json()
    assert payload["total_items"] == 2
    assert payload["page"] == 1
    assert payload["total_pages"] == 1
    assert [item["id"] for item in payload["items"]] == [second["id"], first["id"]]


def test_pagination_and_status_filter(client, db_session):
    first = _closure_for(client, db_session, "cashier-1")
    _closure_for(client, db_session, "cashier-2")
    _closure_for(client, db_session, "cashier-3")
    supervisor = auth_headers("sup-1", "SUPERVISOR")
    client.post(f"/cash-closures/{first['id']}/actions", headers=supervisor, json={"action": "APPROVE"})

    page = client.get("/cash-closures", headers=supervisor, params={"page": 2, "page_size": 2})
    assert page.status_code == 200
    assert page.json()["total_items"] == 3
    assert page.json()["total_pages"] == 2
    assert len(page.json()["items"]) == 1

    approved = client.get("/cash-closures", headers=supervisor, params={"status": "approved"})
    assert [item["id"] for item in approved.json()["items"]] == [first["id"]]

    pending = client.get("/cash-closures", headers=supervisor, params={"status": "PENDING"})
    assert pending.json()["total_items"] == 2

    unknown = client.get("/cash-closures", headers=supervisor, params={"status": "LOST"})
    assert unknown.status_code == 422
    assert unknown.json()["code"] == ErrorCatalog.VALIDATION_ERROR.code


def test_date_and_scope_filters(client, db_session):
    _closure_for(client, db_session, "cashier-1")
    second = _closure_for(client, db_session, "cashier-2")
    supervisor = auth_headers("sup-1", "SUPERVISOR")

    by_scope = client.get("/cash-closures", headers=supervisor, params={"cashier_id": "cashier-2"})
    assert [item["id"] for item in by_scope.json()["items"]] == [second["id"]]

    in_range = client.get(
        "/cash-closures",
        headers=supervisor,
        params={"start_date": local(2026, 3, 10).isoformat(), "end_date": local(2026, 3, 11).isoformat()},
    )
    assert in_range.json()["total_items"] == 2

    before = client.get(
        "/cash-closures",
        headers=supervisor,
        params={"start_date": local(2026, 3, 11).isoformat()},
    )
    assert before.json()["total_items"] == 0


def test_cashier_only_sees_own_closures(client, db_session):
    own = _closure_for(client, db_session, "cashier-1")
    _closure_for(client, db_session, "cashier-2")
    cashier = auth_headers("cashier-1", "CASHIER")

    response = client.get("/cash-closures", headers=cashier)
    assert [item["id"] for item in response.json()["items"]] == [own["id"]]

    other = client.get("/cash-closures", headers=cashier, params={"cashier_id": "cashier-2"})
    assert other.status_code == 403
