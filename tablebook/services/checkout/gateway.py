"""Stripe adapter for hosted checkout sessions and webhook verification.

The API key is passed per request so the adapter carries no module-level
client state and can be swapped for a test double.
"""

import json

import stripe
from pydantic import BaseModel

from tablebook.common.errors import PaymentGatewayError, SignatureError
from tablebook.common.logging import logger


class CheckoutSession(BaseModel):
    """The parts of a created session the booking flow needs."""

    id: str
    url: str


class StripeGateway:
    """Thin wrapper over the Stripe SDK calls the booking flows use."""

    def __init__(self, api_key: str, webhook_secret: str, tolerance_seconds: int = 300) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds

    def create_checkout_session(
        self,
        *,
        name: str,
        description: str | None,
        amount_minor: int,
        currency: str,
        customer_email: str | None,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create a one-line-item hosted payment page."""

        product_data = {"name": name}
        if description:
            product_data["description"] = description
        params = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": product_data,
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email
        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            logger.error("stripe_checkout_create_failed error=%s", exc)
            raise PaymentGatewayError("Payment provider unavailable, please try again.") from exc
        return CheckoutSession(id=session.id, url=session.url)

    def verify_event(self, payload: bytes, signature: str | None) -> dict:
        """Verify the signature over the raw body and return the decoded event.

        The signature covers the exact bytes received; the body must not be
        parsed and re-serialized before this call.
        """

        if not signature:
            raise SignatureError("missing stripe-signature header")
        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret, self.tolerance_seconds)
        except (UnicodeDecodeError, stripe.SignatureVerificationError) as exc:
            raise SignatureError(f"Webhook Error: {exc}") from exc
        try:
            event = json.loads(text)
        except ValueError as exc:
            raise SignatureError("Webhook Error: payload is not JSON") from exc
        if not isinstance(event, dict) or "id" not in event or "type" not in event:
            raise SignatureError("Webhook Error: payload is not an event")
        return event
