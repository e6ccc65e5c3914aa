import itertools
from dataclasses import dataclass
from decimal import Decimal

import stripe
from flask import current_app

from gearshare.errors import CollaboratorUnavailable

GATEWAY_EXTENSION_KEY = "gearshare.payment_gateway"


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    client_secret: str


def to_minor_units(amount) -> int:
    return int((Decimal(str(amount)) * 100).to_integral_value())


class PaymentGateway:
    """Narrow contract the engine uses to move money. Never sees card data."""

    def create_payment_intent(self, booking, amount) -> PaymentIntent:
        raise NotImplementedError

    def confirm(self, intent_id) -> bool:
        raise NotImplementedError

    def refund(self, intent_id, reason, amount=None) -> bool:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, api_key, currency="usd"):
        self.api_key = api_key
        self.currency = currency

    def create_payment_intent(self, booking, amount) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=self.currency,
                metadata={
                    "booking_request_id": str(booking.id),
                    "renter_id": str(booking.renter_id),
                    "owner_id": str(booking.owner_id),
                },
                idempotency_key=f"booking-{booking.id}-{to_minor_units(amount)}",
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            current_app.logger.error("Stripe intent creation failed for booking %s: %s", booking.id, exc)
            raise CollaboratorUnavailable("Payment provider is unavailable. Please try again.") from exc
        return PaymentIntent(intent_id=intent.id, client_secret=intent.client_secret)

    def confirm(self, intent_id) -> bool:
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            current_app.logger.warning("Stripe intent lookup failed for %s: %s", intent_id, exc)
            return False
        return intent.status == "succeeded"

    def refund(self, intent_id, reason, amount=None) -> bool:
        params = {
            "payment_intent": intent_id,
            "reason": "requested_by_customer",
            "metadata": {"reason": reason},
            "api_key": self.api_key,
        }
        if amount is not None:
            params["amount"] = to_minor_units(amount)
        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as exc:
            current_app.logger.error("Stripe refund failed for %s (%s): %s", intent_id, reason, exc)
            return False
        return refund.status in {"succeeded", "pending"}


class LocalGateway(PaymentGateway):
    """Development gateway: every intent succeeds, refunds are recorded in memory."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.intents = {}
        self.refunds = []

    def create_payment_intent(self, booking, amount) -> PaymentIntent:
        intent_id = f"pi_local_{booking.id}_{next(self._ids)}"
        self.intents[intent_id] = Decimal(str(amount))
        return PaymentIntent(intent_id=intent_id, client_secret=f"{intent_id}_secret")

    def confirm(self, intent_id) -> bool:
        return intent_id in self.intents

    def refund(self, intent_id, reason, amount=None) -> bool:
        self.refunds.append((intent_id, reason, amount))
        return True


def init_gateway(app):
    backend = (app.config.get("PAYMENT_GATEWAY") or "local").lower()
    if backend == "stripe":
        gateway = StripeGateway(app.config.get("STRIPE_SECRET_KEY"), app.config.get("PAYMENT_CURRENCY", "usd"))
    elif backend == "local":
        gateway = LocalGateway()
    else:
        raise RuntimeError(f"Unknown payment gateway {backend!r}")
    app.extensions[GATEWAY_EXTENSION_KEY] = gateway
    return gateway


def get_gateway() -> PaymentGateway:
    return current_app.extensions[GATEWAY_EXTENSION_KEY]
