import stripe
from flask import Blueprint, current_app, jsonify, request

from gearshare.errors import AppError, NotFoundError
from gearshare.extensions import limiter
from gearshare.services import PaymentService

api_payment_bp = Blueprint("api_payment", __name__)


def _read_event():
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if secret:
        try:
            event = stripe.Webhook.construct_event(
                request.get_data(), request.headers.get("Stripe-Signature", ""), secret
            )
        except (ValueError, stripe.SignatureVerificationError) as exc:
            current_app.logger.warning("Rejected payment webhook: %s", exc)
            raise AppError("Invalid webhook payload.", 400) from exc
        return event["type"], event["data"]["object"]["id"]

    if current_app.config.get("PAYMENT_GATEWAY") != "local":
        raise AppError("Webhook secret is not configured.", 503)
    payload = request.get_json(silent=True) or {}
    try:
        return payload["type"], payload["data"]["object"]["id"]
    except (KeyError, TypeError) as exc:
        raise AppError("Invalid webhook payload.", 400) from exc


@api_payment_bp.post("/webhook")
@limiter.exempt
def payment_webhook():
    event_type, intent_id = _read_event()
    try:
        payment = PaymentService.handle_gateway_event(event_type, intent_id)
    except NotFoundError:
        # Intents created outside this service; acknowledge so the gateway stops retrying.
        current_app.logger.warning("Webhook %s for unknown intent %s", event_type, intent_id)
        return jsonify({"received": True, "handled": False})
    return jsonify(
        {
            "received": True,
            "handled": payment is not None,
            "payment_status": payment.payment_status if payment else None,
        }
    )
