"""Tests for hosted checkout, price lookup and webhook handling."""

from __future__ import annotations

import pytest

from backend.errors import NotFoundError, PaymentGatewayError, ValidationError
from backend.services.checkout import CheckoutService
from tests.fakes import FakePaymentGateway


@pytest.fixture(autouse=True)
def _price_ids(monkeypatch) -> None:
    monkeypatch.setenv("STRIPE_PRICE_ID_PRO", "price_pro")
    monkeypatch.setenv("STRIPE_PRICE_ID_ELITE", "price_elite")
    monkeypatch.setenv("STRIPE_PRICE_ID_OVERRIDE", "price_override")


def _service(**gateway_kwargs) -> tuple[CheckoutService, FakePaymentGateway]:
    prices = {
        "price_pro": {"id": "price_pro", "unit_amount": 499, "active": True},
        "price_elite": {"id": "price_elite", "unit_amount": 1199, "active": True},
        "price_override": {"id": "price_override", "unit_amount": 199, "active": True},
    }
    gateway = FakePaymentGateway(prices=gateway_kwargs.pop("prices", prices), **gateway_kwargs)
    return CheckoutService(gateway=gateway, base_url="https://limitter.app", webhook_secret="whsec_test"), gateway


def test_plan_checkout_creates_subscription_session() -> None:
    service, gateway = _service()

    session_id = service.create_checkout_session(payment_type="plan", user_id="user-1", plan="elite")

    assert session_id == "cs_test_123"
    name, params = gateway.calls[-1]
    assert name == "create_checkout_session"
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_elite", "quantity": 1}]
    assert params["payment_method_types"] == ["card"]
    assert params["metadata"] == {"userId": "user-1", "paymentType": "plan", "plan": "elite"}
    assert params["success_url"] == "https://limitter.app/dashboard?payment=success&session_id={CHECKOUT_SESSION_ID}"
    assert params["cancel_url"] == "https://limitter.app/dashboard?payment=cancelled"


def test_override_checkout_creates_payment_session() -> None:
    service, gateway = _service()

    service.create_checkout_session(payment_type="overrides", user_id="user-1", quantity=5)

    _, params = gateway.calls[-1]
    assert params["mode"] == "payment"
    assert params["line_items"] == [{"price": "price_override", "quantity": 5}]
    assert params["metadata"] == {"userId": "user-1", "paymentType": "overrides", "quantity": "5"}


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"payment_type": "plan", "user_id": None, "plan": "pro"}, "User ID is required"),
        ({"payment_type": "plan", "user_id": "u", "plan": "platinum"}, "Invalid plan selected"),
        ({"payment_type": "plan", "user_id": "u", "plan": "free"}, "Plan price not configured"),
        ({"payment_type": "overrides", "user_id": "u", "quantity": 0}, "Invalid override quantity"),
        ({"payment_type": "overrides", "user_id": "u", "quantity": 101}, "Invalid override quantity"),
        ({"payment_type": "gift", "user_id": "u"}, "Invalid payment type"),
    ],
)
def test_checkout_validation_errors(kwargs, message: str) -> None:
    service, gateway = _service()

    with pytest.raises(ValidationError) as exc_info:
        service.create_checkout_session(**kwargs)

    assert exc_info.value.message == message
    assert not any(name == "create_checkout_session" for name, _ in gateway.calls)


def test_checkout_requires_base_url() -> None:
    service, _ = _service()
    service.base_url = None

    with pytest.raises(PaymentGatewayError) as exc_info:
        service.create_checkout_session(payment_type="plan", user_id="u", plan="pro")

    assert exc_info.value.message == "Server configuration error"


def test_inactive_or_unknown_prices_are_rejected(monkeypatch) -> None:
    service, _ = _service(prices={"price_pro": {"id": "price_pro", "unit_amount": 499, "active": False}})

    with pytest.raises(ValidationError, match="Selected plan is not available"):
        service.create_checkout_session(payment_type="plan", user_id="u", plan="pro")
    with pytest.raises(ValidationError, match="Invalid plan price"):
        service.create_checkout_session(payment_type="plan", user_id="u", plan="elite")
    with pytest.raises(ValidationError, match="Invalid override price"):
        service.create_checkout_session(payment_type="overrides", user_id="u", quantity=1)

    monkeypatch.delenv("STRIPE_PRICE_ID_OVERRIDE")
    with pytest.raises(ValidationError, match="Override price not configured"):
        service.create_checkout_session(payment_type="overrides", user_id="u", quantity=1)


def test_get_prices_maps_configured_ids_to_unit_amounts() -> None:
    service, _ = _service()

    assert service.get_prices() == {"price_pro": 499, "price_elite": 1199, "price_override": 199}


def test_get_prices_errors(monkeypatch) -> None:
    service, gateway = _service()
    del gateway.prices["price_elite"]

    with pytest.raises(NotFoundError, match="Some prices not available"):
        service.get_prices()

    gateway.prices.clear()
    with pytest.raises(NotFoundError, match="No active prices found"):
        service.get_prices()

    for name in ("STRIPE_PRICE_ID_PRO", "STRIPE_PRICE_ID_ELITE", "STRIPE_PRICE_ID_OVERRIDE"):
        monkeypatch.delenv(name)
    with pytest.raises(PaymentGatewayError, match="No prices configured"):
        service.get_prices()


def test_webhook_verifies_signature() -> None:
    service, gateway = _service()

    assert service.handle_webhook(payload=b"{}", signature="valid") == {"received": True}
    assert gateway.calls[-1][1]["secret"] == "whsec_test"

    with pytest.raises(ValidationError, match="No Stripe signature found"):
        service.handle_webhook(payload=b"{}", signature=None)
    with pytest.raises(ValidationError, match="Webhook signature verification failed"):
        service.handle_webhook(payload=b"{}", signature="forged")


def test_webhook_without_secret_is_a_configuration_error() -> None:
    service, _ = _service()
    service.webhook_secret = None

    with pytest.raises(PaymentGatewayError, match="Webhook secret is not configured"):
        service.handle_webhook(payload=b"{}", signature="valid")
