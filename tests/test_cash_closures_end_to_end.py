from decimal import Decimal

from app.cashclose.core.error_catalog import ErrorCatalog
from tests.closure_helpers import (
    CARD,
    CASH,
    TRANSFER,
    auth_headers,
    fetch_theoretical,
    seed_business_day,
    submission_payload,
    submit_closure,
)


def _supervisor():
    return auth_headers("sup-1", "SUPERVISOR", full_name="Ana Supervisor")


def test_theoretical_totals_for_business_day(client, db_session):
    seed_business_day(db_session)

    theoretical = fetch_theoretical(client, _supervisor(), scope="STORE", cashier_id=None)

    assert theoretical["scope_type"] == "STORE"
    assert theoretical["cashier_id"] is None
    assert Decimal(theoretical["total_sales"]) == Decimal("1000.00")
    assert Decimal(theoretical["total_returns"]) == Decimal("50.00")
    assert Decimal(theoretical["net_total"]) == Decimal("950.00")
    assert theoretical["total_transactions"] == 10
    assert theoretical["total_customers"] == 5
    assert Decimal(theoretical["average_ticket"]) == Decimal("95.00")
    assert theoretical["has_transactions"] is True

    by_method = {row["payment_method_id"]: row for row in theoretical["breakdown"]}
    assert Decimal(by_method[CASH]["theoretical_amount"]) == Decimal("550.00")
    assert by_method[CASH]["theoretical_count"] == 6
    assert by_method[CASH]["is_cash"] is True
    assert Decimal(by_method[CARD]["theoretical_amount"]) == Decimal("400.00")
    assert Decimal(by_method[TRANSFER]["theoretical_amount"]) == Decimal("0.00")
    assert sum(Decimal(row["theoretical_amount"]) for row in theoretical["breakdown"]) == Decimal("950.00")


def test_small_shortfall_goes_straight_to_pending(client, db_session):
    seed_business_day(db_session)
    headers = _supervisor()
    theoretical = fetch_theoretical(client, headers, scope="STORE", cashier_id=None)

    response = submit_closure(
        client,
        headers,
        theoretical,
        payments=[{"payment_method_id": CARD, "actual_amount": "400.00", "actual_count": 4}],
        denominations=[
            {"face_value": "200", "quantity": 2},
            {"face_value": "100", "quantity": 1},
            {"face_value": "20", "quantity": 2},
        ],
        notes="  drawer short  ",
    )

    assert response.status_code == 201, response.text
    closure = response.json()
    assert closure["status"] == "PENDING"
    assert closure["closure_number"] == 1
    assert closure["scope_type"] == "STORE"
    assert closure["cashier_name"] == "Ana Supervisor"
    assert closure["notes"] == "drawer short"
    assert Decimal(closure["theoretical_total"]) == Decimal("950.00")
    assert Decimal(closure["actual_total"]) == Decimal("940.00")
    assert Decimal(closure["difference"]) == Decimal("-10.00")
    assert Decimal(closure["difference_percentage"]) == Decimal("-1.05")
    assert closure["is_significant"] is False
    assert closure["discrepancy_confirmed"] is False

    payments = {row["payment_method_id"]: row for row in closure["payment_breakdowns"]}
    assert Decimal(payments[CASH]["actual_amount"]) == Decimal("540.00")
    assert Decimal(payments[CASH]["difference"]) == Decimal("-10.00")
    assert Decimal(payments[CARD]["difference"]) == Decimal("0.00")
    assert payments[CARD]["actual_count"] == 4
    assert Decimal(payments[TRANSFER]["actual_amount"]) == Decimal("0.00")

    counted = {Decimal(row["face_value"]): row for row in closure["denominations"]}
    assert set(counted) == {Decimal("200"), Decimal("100"), Decimal("20")}
    assert Decimal(counted[Decimal("200")]["subtotal"]) == Decimal("400.00")


def test_large_shortfall_requires_confirmation(client, db_session):
    seed_business_day(db_session)
    headers = _supervisor()
    theoretical = fetch_theoretical(client, headers, scope="STORE", cashier_id=None)
    count = {
        "payments": [{"payment_method_id": CARD, "actual_amount": "400.00"}],
        "denominations": [{"face_value": "200", "quantity": 2}],
    }

    blocked = submit_closure(client, headers, theoretical, **count)
    assert blocked.status_code == 409
    payload = blocked.json()
    assert payload["code"] == ErrorCatalog.DISCREPANCY_CONFIRMATION_REQUIRED.code
    assert Decimal(payload["details"]["difference"]) == Decimal("-150.00")
    assert Decimal(payload["details"]["difference_percentage"]) == Decimal("-15.79")
    assert payload["details"]["is_significant"] is True

    listing = client.get("/cash-closures", headers=headers)
    assert listing.json()["total_items"] == 0

    confirmed = submit_closure(client, headers, theoretical, confirm_discrepancy=True, **count)
    assert confirmed.status_code == 201, confirmed.text
    closure = confirmed.json()
    assert closure["status"] == "PENDING"
    assert closure["is_significant"] is True
    assert closure["discrepancy_confirmed"] is True
    assert Decimal(closure["actual_total"]) == Decimal("800.00")


def test_preview_reports_confirmation_without_persisting(client, db_session):
    seed_business_day(db_session)
    headers = _supervisor()
    theoretical = fetch_theoretical(client, headers, scope="STORE", cashier_id=None)

    response = client.post(
        "/cash-closures/preview",
        headers=headers,
        json=submission_payload(
            theoretical,
            payments=[
                {"payment_method_id": CASH, "actual_amount": "400.00"},
                {"payment_method_id": CARD, "actual_amount": "400.00"},
            ],
        ),
    )

    assert response.status_code == 200, response.text
    preview = response.json()
    assert preview["requires_confirmation"] is True
    assert Decimal(preview["difference"]) == Decimal("-150.00")
    assert preview["cash_total"] is None
    assert client.get("/cash-closures", headers=headers).json()["total_items"] == 0


def test_zero_transaction_period_is_submittable(client):
    headers = auth_headers("cashier-1", "CASHIER")
    theoretical = fetch_theoretical(client, headers, day=11)

    assert theoretical["has_transactions"] is False
    assert Decimal(theoretical["net_total"]) == Decimal("0.00")
    assert Decimal(theoretical["average_ticket"]) == Decimal("0.00")
    assert len(theoretical["breakdown"]) == 3

    response = submit_closure(client, headers, theoretical)
    assert response.status_code == 201, response.text
    closure = response.json()
    assert Decimal(closure["difference_percentage"]) == Decimal("0.00")
    assert closure["is_significant"] is False
