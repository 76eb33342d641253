from decimal import Decimal
import pytest
from fastapi.testclient import TestClient
from rentpay.api.deps import get_rent_backend
from rentpay.core.config import settings
from rentpay.main import app
from rentpay.services.static_backend import StaticDue, StaticRentBackend

PREFIX = "/api/pg-tenant/payments"


@pytest.fixture
def backend():
    store = StaticRentBackend([StaticDue("rent-03", settings.DEFAULT_TENANT_ID, Decimal("8500"), 3, 2025)])
    app.dependency_overrides[get_rent_backend] = lambda: store
    yield store
    app.dependency_overrides.clear()


@pytest.fixture
def client(backend):
    with TestClient(app) as c:
        yield c


def test_health(client):
    assert client.get(f"{settings.API_V1_STR}/health").json() == {"status": "ok"}


def test_next_due_uses_camel_case(client):
    response = client.get(f"{PREFIX}/next-due")
    assert response.status_code == 200
    body = response.json()
    assert body["paymentId"] == "rent-03"
    assert body["hasDue"] is True
    assert Decimal(str(body["totalAmount"])) == Decimal("8500")
    assert body["property"]["name"] == "Sunrise PG"


def test_create_order(client):
    response = client.post(f"{PREFIX}/rent-03/create-order")
    assert response.status_code == 200
    body = response.json()
    assert body["orderId"].startswith("order_")
    assert body["amountInPaise"] > 0
    assert body["razorpayKeyId"]


def test_create_order_for_paid_due_is_rejected(client, backend):
    backend.mark_paid("rent-03")
    response = client.post(f"{PREFIX}/rent-03/create-order")
    assert response.status_code == 400
    assert response.json()["detail"] == "This payment has already been completed"


def test_verify(client, backend):
    assert client.post(f"{PREFIX}/rent-03/verify").json() == {"verified": False, "status": "PENDING"}
    backend.mark_paid("rent-03")
    assert client.post(f"{PREFIX}/rent-03/verify").json() == {"verified": True, "status": "PAID"}


def test_verify_unknown_payment(client):
    assert client.post(f"{PREFIX}/missing/verify").status_code == 404


def test_auth_required_when_enabled(client, monkeypatch):
    monkeypatch.setattr(settings, "ENABLE_AUTH", True)
    assert client.get(f"{PREFIX}/next-due").status_code == 401
