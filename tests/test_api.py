"""HTTP tests for payment, prices, webhook and transaction endpoints."""

from __future__ import annotations

import importlib

import pytest
from fastapi.testclient import TestClient

import backend.api
from backend.errors import PaymentGatewayError, UnauthorizedError
from backend.factory import BackendServices
from backend.repositories.transactions_repository import InMemoryTransactionsRepository
from backend.repositories.users_repository import InMemoryUsersRepository
from backend.services.checkout import CheckoutService
from tests.fakes import FakePaymentGateway, transaction_row


_TOKENS = {"admin-token": "admin-1", "user-token": "user-1"}


@pytest.fixture
def services() -> BackendServices:
    users = InMemoryUsersRepository(
        {
            "admin-1": {"profileEmail": "root@example.com", "isAdmin": True},
            "user-1": {"profileName": "Ada", "profileEmail": "ada@example.com", "plan": "pro", "isAdmin": "true"},
        }
    )
    rows = [transaction_row(index) for index in range(12)] + [transaction_row(20, user_id="user-2")]
    gateway = FakePaymentGateway(
        prices={"price_pro": {"id": "price_pro", "unit_amount": 499, "active": True}},
        sessions={"cs_test_1": {"id": "cs_test_1", "payment_intent": {"id": "pi_1"}}},
    )
    return BackendServices(
        users_repository=users,
        transactions_repository=InMemoryTransactionsRepository(rows, users_repository=users),
        gateway=gateway,
        checkout_service=CheckoutService(gateway=gateway, base_url="https://limitter.app", webhook_secret="whsec"),
    )


@pytest.fixture
def client(monkeypatch, services: BackendServices) -> TestClient:
    def _verify(token: str) -> dict[str, object]:
        if token not in _TOKENS:
            raise UnauthorizedError("Unauthorized")
        return {"uid": _TOKENS[token], "email": f"{_TOKENS[token]}@example.com"}

    monkeypatch.setattr(backend.api, "get_backend_services", lambda: services)
    monkeypatch.setattr(backend.api, "get_user_from_bearer_token", _verify)
    return TestClient(backend.api.app, raise_server_exceptions=False)


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_create_payment_intent_returns_client_secret(client: TestClient, services: BackendServices) -> None:
    response = client.post("/api/create-payment-intent", json={"amount": 19.999, "paymentType": "plan", "plan": "pro"})

    assert response.status_code == 200
    assert response.json() == {"clientSecret": "pi_1_secret"}
    name, kwargs = services.gateway.calls[-1]
    assert name == "create_payment_intent"
    assert kwargs["quantity"] == 1
    assert kwargs["plan"] == "pro"


@pytest.mark.parametrize(
    "body",
    [
        {"paymentType": "plan"},
        {"amount": 0, "paymentType": "plan"},
        {"amount": 4.99},
        {"amount": 1.99, "paymentType": "overrides", "quantity": 0},
    ],
)
def test_create_payment_intent_rejects_bad_bodies(client: TestClient, body: dict[str, object]) -> None:
    response = client.post("/api/create-payment-intent", json=body)

    assert response.status_code == 400
    assert response.json()["error"].startswith("Invalid ")


def test_create_payment_intent_gateway_failure_is_500(client: TestClient, services: BackendServices) -> None:
    services.gateway.fail_with = PaymentGatewayError("Your card was declined.")

    response = client.post("/api/create-payment-intent", json={"amount": 4.99, "paymentType": "plan"})

    assert response.status_code == 500
    assert response.json() == {"error": "Your card was declined."}


def test_get_session(client: TestClient) -> None:
    ok = client.post("/api/get-session", json={"sessionId": "cs_test_1"})
    missing_id = client.post("/api/get-session", json={})
    unknown = client.post("/api/get-session", json={"sessionId": "cs_unknown"})

    assert ok.status_code == 200
    assert ok.json() == {"session": {"id": "cs_test_1", "payment_intent": {"id": "pi_1"}}}
    assert (missing_id.status_code, missing_id.json()) == (400, {"error": "Session ID is required"})
    assert (unknown.status_code, unknown.json()) == (500, {"error": "Failed to retrieve session"})


def test_create_checkout_session(client: TestClient, monkeypatch) -> None:
    monkeypatch.setenv("STRIPE_PRICE_ID_PRO", "price_pro")

    ok = client.post("/api/create-checkout-session", json={"paymentType": "plan", "plan": "pro", "userId": "user-1"})
    bad = client.post("/api/create-checkout-session", json={"paymentType": "plan", "plan": "pro"})

    assert ok.json() == {"sessionId": "cs_test_123"}
    assert (bad.status_code, bad.json()) == (400, {"error": "User ID is required"})


def test_get_prices(client: TestClient, monkeypatch) -> None:
    monkeypatch.setenv("STRIPE_PRICE_ID_PRO", "price_pro")
    monkeypatch.delenv("STRIPE_PRICE_ID_ELITE", raising=False)
    monkeypatch.delenv("STRIPE_PRICE_ID_OVERRIDE", raising=False)

    response = client.get("/api/get-prices")

    assert response.status_code == 200
    assert response.json() == {"prices": {"price_pro": 499}}


def test_plans_route_returns_catalog(client: TestClient) -> None:
    response = client.get("/api/plans")

    assert response.status_code == 200
    payload = response.json()
    assert [plan["id"] for plan in payload["plans"]] == ["free", "pro", "elite"]
    assert payload["overridePrice"] == 1.99


def test_webhook_reads_stripe_signature_header(client: TestClient) -> None:
    ok = client.post("/api/webhook", content=b"{}", headers={"stripe-signature": "valid"})
    unsigned = client.post("/api/webhook", content=b"{}")
    forged = client.post("/api/webhook", content=b"{}", headers={"stripe-signature": "forged"})

    assert ok.json() == {"received": True}
    assert (unsigned.status_code, unsigned.json()) == (400, {"error": "No Stripe signature found"})
    assert forged.status_code == 400


def test_my_transactions_are_scoped_to_the_caller(client: TestClient) -> None:
    response = client.get("/api/transactions", headers=_auth("user-token"))

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["transactions"]) == 12
    assert all(item["user_id"] == "user-1" for item in payload["transactions"])
    assert payload["rows"][0]["label"] == "Plan Purchase"
    assert payload["transactions"][0]["formattedAmount"] == "$4.99"


@pytest.mark.parametrize(
    ("headers", "status_code"),
    [({}, 401), ({"Authorization": "Token abc"}, 401), (_auth("stolen"), 401), (_auth("user-token"), 403)],
)
def test_admin_routes_require_an_admin_flag(client: TestClient, headers, status_code: int) -> None:
    response = client.get("/api/admin/transactions", headers=headers)

    assert response.status_code == status_code
    assert "error" in response.json()


def test_admin_list_pages_with_cursor(client: TestClient) -> None:
    first = client.get("/api/admin/transactions", headers=_auth("admin-token")).json()
    second = client.get(
        "/api/admin/transactions",
        params={"cursor": first["lastDoc"]},
        headers=_auth("admin-token"),
    ).json()

    assert len(first["transactions"]) == 10
    assert first["hasMore"] is True
    assert first["transactions"][0]["id"] == "txn_020"
    assert len(second["transactions"]) == 3
    assert second["hasMore"] is False


def test_admin_search(client: TestClient) -> None:
    found = client.get("/api/admin/transactions/search", params={"term": "user-2"}, headers=_auth("admin-token"))
    blank = client.get("/api/admin/transactions/search", params={"term": "  "}, headers=_auth("admin-token"))

    assert [item["id"] for item in found.json()["transactions"]] == ["txn_020"]
    assert (found.json()["lastDoc"], found.json()["hasMore"]) == (None, False)
    assert len(blank.json()["transactions"]) == 10
    assert blank.json()["hasMore"] is True


def test_admin_transaction_details(client: TestClient) -> None:
    ok = client.get("/api/admin/transactions/txn_003", headers=_auth("admin-token"))
    missing = client.get("/api/admin/transactions/txn_999", headers=_auth("admin-token"))

    assert ok.status_code == 200
    payload = ok.json()
    assert payload["transaction_id"] == "txn_003"
    assert payload["payment_method"] == "card"
    assert payload["user"] == {"name": "Ada", "email": "ada@example.com", "plan": "pro"}
    assert missing.status_code == 404


def test_unexpected_errors_are_json_500(client: TestClient, services: BackendServices) -> None:
    services.gateway.fail_with = RuntimeError("boom")

    response = client.post("/api/create-payment-intent", json={"amount": 4.99, "paymentType": "plan"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error"}


def test_cors_preflight_uses_ui_origin_in_prod(monkeypatch) -> None:
    ui_origin = "https://limitter.app"
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)
    monkeypatch.setenv("UI_ORIGIN", ui_origin)

    api = importlib.reload(backend.api)
    response = TestClient(api.app).options(
        "/api/get-prices",
        headers={"Origin": ui_origin, "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == ui_origin
