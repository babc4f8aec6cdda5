"""Stripe payment gateway adapter.

Every call is a single blocking round trip to Stripe. The secret key is
passed per request, so no module-level Stripe configuration is mutated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Protocol

import stripe

from backend.errors import PaymentGatewayError, ValidationError


logger = logging.getLogger(__name__)

CURRENCY = "usd"
CHECKOUT_SESSION_EXPANSIONS = (
    "payment_intent",
    "payment_intent.payment_method",
    "setup_intent",
    "setup_intent.payment_method",
)


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount to integer cents, rounding half up.

    Arithmetic runs on `Decimal` built from the textual value, so
    `19.999` becomes `2000` and `1.005` becomes `101`.
    """

    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be a positive number")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_plain(stripe_object: Any) -> dict[str, Any]:
    if isinstance(stripe_object, dict) and not hasattr(stripe_object, "to_dict"):
        return stripe_object
    return stripe_object.to_dict()


class PaymentGateway(Protocol):
    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        payment_type: str,
        quantity: int = 1,
        plan: str | None = None,
    ) -> str:
        """Create a USD payment intent and return its client secret."""

    def get_checkout_session(self, session_id: str | None) -> dict[str, Any]:
        """Return a checkout session with nested intents and payment methods expanded."""

    def retrieve_price(self, price_id: str) -> dict[str, Any]:
        """Return one Stripe price."""

    def list_active_prices(self) -> list[dict[str, Any]]:
        """Return every active Stripe price."""

    def create_checkout_session(self, **params: Any) -> dict[str, Any]:
        """Create a hosted checkout session."""

    def construct_webhook_event(self, *, payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        """Verify a webhook signature and return the parsed event."""


@dataclass(slots=True)
class StripePaymentGateway:
    """Concrete gateway over the `stripe` SDK."""

    secret_key: str

    def create_payment_intent(
        self,
        *,
        amount: Decimal,
        payment_type: str,
        quantity: int = 1,
        plan: str | None = None,
    ) -> str:
        amount_minor = to_minor_units(amount)
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        metadata: dict[str, str | int] = {"paymentType": payment_type, "quantity": quantity}
        if plan:
            metadata["plan"] = plan

        try:
            payment_intent = stripe.PaymentIntent.create(
                api_key=self.secret_key,
                amount=amount_minor,
                currency=CURRENCY,
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.exception("payment_intent_create_failed payment_type=%s", payment_type)
            raise PaymentGatewayError(exc.user_message or str(exc)) from exc

        logger.info(
            "payment_intent_created id=%s amount_minor=%s payment_type=%s",
            payment_intent.id,
            amount_minor,
            payment_type,
        )
        return payment_intent.client_secret

    def get_checkout_session(self, session_id: str | None) -> dict[str, Any]:
        if not isinstance(session_id, str) or not session_id.strip():
            raise ValidationError("Session ID is required")

        try:
            session = stripe.checkout.Session.retrieve(
                session_id.strip(),
                api_key=self.secret_key,
                expand=list(CHECKOUT_SESSION_EXPANSIONS),
            )
        except stripe.StripeError as exc:
            logger.exception("checkout_session_retrieve_failed session_id=%s", session_id)
            raise PaymentGatewayError("Failed to retrieve session") from exc

        return _to_plain(session)

    def retrieve_price(self, price_id: str) -> dict[str, Any]:
        try:
            price = stripe.Price.retrieve(price_id, api_key=self.secret_key)
        except stripe.StripeError as exc:
            logger.warning("price_retrieve_failed price_id=%s error=%s", price_id, exc)
            raise PaymentGatewayError("Invalid price") from exc
        return _to_plain(price)

    def list_active_prices(self) -> list[dict[str, Any]]:
        try:
            prices = stripe.Price.list(api_key=self.secret_key, active=True, limit=100)
            return [_to_plain(price) for price in prices.auto_paging_iter()]
        except stripe.StripeError as exc:
            logger.exception("price_list_failed")
            raise PaymentGatewayError("Failed to fetch prices") from exc

    def create_checkout_session(self, **params: Any) -> dict[str, Any]:
        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            logger.exception("checkout_session_create_failed mode=%s", params.get("mode"))
            raise PaymentGatewayError("Failed to create checkout session") from exc
        return _to_plain(session)

    def construct_webhook_event(self, *, payload: bytes, signature: str, secret: str) -> dict[str, Any]:
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning("webhook_signature_verification_failed error=%s", exc)
            raise ValidationError(f"Webhook signature verification failed: {exc}") from exc
        return _to_plain(event)
