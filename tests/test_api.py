from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from components.core.init_db import get_db
from components.core.security import create_access_token
from restapi.endpoints import auth
from restapi.endpoints.auth import get_current_user
from restapi.endpoints.installment import get_installment_service
from restapi.router import create_app
from tests.conftest import Office, make_installment, make_sale, make_user


async def no_db():
    yield None


@pytest.fixture
def office():
    start = date.today() + timedelta(days=5)
    rows = [make_installment(n, 1, n, start + timedelta(days=30 * (n - 1))) for n in (1, 2, 3)]
    return Office(sales=[make_sale(1)], installments=rows)


@pytest.fixture
def app(office):
    app = create_app()
    app.dependency_overrides[get_db] = no_db
    app.dependency_overrides[get_installment_service] = lambda: office.installment_service()
    app.dependency_overrides[get_current_user] = lambda: make_user()
    return app


@pytest.fixture
def test_client(app):
    return TestClient(app)


def test_health_check(test_client):
    response = test_client.get("/health_check/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_pay_installment(test_client, office):
    response = test_client.post("/installments/1/pay", json={"amount": 250})

    assert response.status_code == 200
    body = response.json()
    assert body["allocated"] == 250
    assert body["sale_status"] == "InstallmentsOngoing"
    assert [a["status"] for a in body["allocations"]] == ["Paid", "Paid", "Partial"]
    assert office.payments.payments[0].recorded_by == 1


def test_pay_installment_already_paid_is_conflict(test_client, office):
    office.installments.rows[1].amount_paid = 100
    office.installments.rows[1].status = "Paid"

    response = test_client.post("/installments/1/pay", json={"amount": 100})

    assert response.status_code == 409


def test_pay_unknown_installment(test_client):
    response = test_client.post("/installments/42/pay", json={"amount": 100})

    assert response.status_code == 404


def test_pay_requires_positive_amount(test_client):
    response = test_client.post("/installments/1/pay", json={"amount": -5})

    assert response.status_code == 400


def test_worker_without_permission_cannot_pay(app, test_client):
    app.dependency_overrides[get_current_user] = lambda: make_user(2, role="Worker")

    response = test_client.post("/installments/1/pay", json={"amount": 100})

    assert response.status_code == 403
    assert "record_payments" in response.json()["detail"]


def test_worker_with_permission_can_pay(app, test_client):
    app.dependency_overrides[get_current_user] = lambda: make_user(
        2, role="Worker", permissions={"record_payments": True}
    )

    response = test_client.post("/installments/1/pay", json={"amount": 100})

    assert response.status_code == 200


def test_list_installments(test_client):
    response = test_client.get("/installments/", params={"sale_id": 1})

    assert response.status_code == 200
    rows = response.json()
    assert [r["installment_number"] for r in rows] == [1, 2, 3]
    assert rows[0]["remaining_amount"] == 100
    assert rows[0]["is_overdue"] is False


def test_stack_without_scheduler(test_client):
    response = test_client.post("/installments/stack")

    assert response.status_code == 200
    assert response.json() == {"updated": 0}


def test_merge_needs_two_sales(test_client):
    response = test_client.post("/installments/merge", json={"sale_ids": [1]})

    assert response.status_code == 422


def test_disabled_account_is_refused(app, monkeypatch):
    class DisabledUsers:
        def __init__(self, session):
            pass

        async def get_by_id(self, user_id):
            return make_user(user_id, role="Worker", status="Inactive")

    monkeypatch.setattr(auth, "UserRepository", DisabledUsers)
    del app.dependency_overrides[get_current_user]
    token = create_access_token({"sub": "5"})

    response = TestClient(app).get("/installments/", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 403
    assert response.json() == {"detail": "Account disabled"}


def test_missing_token_is_unauthorized(app):
    del app.dependency_overrides[get_current_user]

    response = TestClient(app).get("/installments/")

    assert response.status_code == 401
