"""Hosted checkout, price lookup and webhook verification over the payment gateway."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from backend.errors import NotFoundError, PaymentGatewayError, ValidationError
from backend.payments.gateway import PaymentGateway
from shared import plans


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CheckoutService:
    gateway: PaymentGateway
    base_url: str | None = None
    webhook_secret: str | None = None

    def _redirect_urls(self) -> dict[str, str]:
        if not self.base_url:
            logger.error("checkout_base_url_missing")
            raise PaymentGatewayError("Server configuration error")
        return {
            "success_url": f"{self.base_url}/dashboard?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.base_url}/dashboard?payment=cancelled",
        }

    def _ensure_active_price(self, price_id: str, *, unavailable_message: str, invalid_message: str) -> None:
        try:
            price = self.gateway.retrieve_price(price_id)
        except PaymentGatewayError as exc:
            raise ValidationError(invalid_message) from exc
        if not price.get("active"):
            raise ValidationError(unavailable_message)

    def create_checkout_session(
        self,
        *,
        payment_type: str | None,
        user_id: str | None,
        plan: str | None = None,
        quantity: int | None = None,
    ) -> str:
        """Create a subscription or override checkout session and return its id."""

        redirect_urls = self._redirect_urls()
        if not user_id:
            raise ValidationError("User ID is required")

        if payment_type == "plan":
            if not plan or not plans.is_valid_plan(plan):
                raise ValidationError("Invalid plan selected")
            price_id = plans.price_id_for(plan)
            if not price_id:
                raise ValidationError("Plan price not configured")
            self._ensure_active_price(
                price_id,
                unavailable_message="Selected plan is not available",
                invalid_message="Invalid plan price",
            )
            params: dict[str, Any] = {
                "mode": "subscription",
                "line_items": [{"price": price_id, "quantity": 1}],
                "metadata": {"userId": user_id, "paymentType": "plan", "plan": plan},
            }
        elif payment_type == "overrides":
            if quantity is None or not 1 <= quantity <= plans.MAX_OVERRIDES_PER_PURCHASE:
                raise ValidationError("Invalid override quantity")
            price_id = plans.price_id_for(plans.OVERRIDE_PRICE_KEY)
            if not price_id:
                logger.error("override_price_id_missing")
                raise ValidationError("Override price not configured")
            self._ensure_active_price(
                price_id,
                unavailable_message="Overrides are not available for purchase",
                invalid_message="Invalid override price",
            )
            params = {
                "mode": "payment",
                "line_items": [{"price": price_id, "quantity": quantity}],
                "metadata": {"userId": user_id, "paymentType": "overrides", "quantity": str(quantity)},
            }
        else:
            raise ValidationError("Invalid payment type")

        session = self.gateway.create_checkout_session(
            payment_method_types=["card"],
            **params,
            **redirect_urls,
        )
        logger.info(
            "checkout_session_created id=%s mode=%s user_id=%s",
            session.get("id"),
            params["mode"],
            user_id,
        )
        return str(session["id"])

    def get_prices(self) -> dict[str, int]:
        """Return unit amounts (minor units) keyed by every configured price id."""

        price_ids = plans.configured_price_ids()
        if not price_ids:
            logger.error("prices_not_configured")
            raise PaymentGatewayError("No prices configured")

        active_prices = [price for price in self.gateway.list_active_prices() if price.get("active")]
        if not active_prices:
            logger.error("prices_none_active")
            raise NotFoundError("No active prices found")

        price_map = {
            str(price["id"]): int(price["unit_amount"])
            for price in active_prices
            if price.get("id") in price_ids and price.get("unit_amount") is not None
        }
        missing = [price_id for price_id in price_ids if price_id not in price_map]
        if missing:
            logger.error("prices_missing price_ids=%s", missing)
            raise NotFoundError("Some prices not available")
        return price_map

    def handle_webhook(self, *, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify a Stripe webhook delivery and acknowledge it."""

        if not self.webhook_secret:
            raise PaymentGatewayError("Webhook secret is not configured")
        if not signature:
            raise ValidationError("No Stripe signature found")

        event = self.gateway.construct_webhook_event(
            payload=payload,
            signature=signature,
            secret=self.webhook_secret,
        )
        logger.info("webhook_received type=%s id=%s", event.get("type"), event.get("id"))
        return {"received": True}
