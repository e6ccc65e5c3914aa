from dataclasses import dataclass
from typing import Optional

from flask import current_app

from gearshare.errors import CollaboratorUnavailable, ConflictError, ForbiddenError, NotFoundError
from gearshare.extensions import db
from gearshare.models import BookingStatus, Payment
from gearshare.models.base import conditional_update
from gearshare.models.payment import (
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_PROCESSING,
    PAYMENT_SUCCEEDED,
)
from gearshare.polling import FAILED, NOT_YET_VISIBLE, poll
from gearshare.services.booking_service import BookingEvent, BookingService, next_status
from gearshare.services.escrow_service import EscrowService
from gearshare.services.payment_gateway import get_gateway

OPEN_PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PROCESSING)


@dataclass(frozen=True)
class PaymentConfirmation:
    state: str
    payment: Optional[Payment]

    @property
    def pending_reconciliation(self) -> bool:
        return self.state == NOT_YET_VISIBLE


class PaymentService:
    @staticmethod
    def get_by_intent(intent_id):
        return Payment.query.filter_by(intent_id=intent_id).first()

    @staticmethod
    def initialize_payment(booking, actor, guard=None, context=None):
        """Create (or reuse) the payment intent for a booking.

        One open intent per booking: a repeated call returns the pending one.
        ``guard`` blocks a concurrent initialization by the same caller.
        """
        if actor.id != booking.renter_id:
            raise ForbiddenError("Only the renter can pay for this booking.")
        next_status(booking.status, BookingEvent.PAYMENT_CAPTURED)
        if BookingService.succeeded_payment(booking) is not None:
            raise ConflictError("This booking has already been paid.")
        if context is not None:
            context.check("payment initialization")

        if guard is not None:
            guard.acquire()
        try:
            existing = (
                Payment.query.filter(Payment.booking_id == booking.id)
                .filter(Payment.payment_status.in_(OPEN_PAYMENT_STATUSES))
                .order_by(Payment.id.asc())
                .first()
            )
            if existing is not None:
                payment = existing
            else:
                intent = get_gateway().create_payment_intent(booking, booking.total_amount)
                payment = Payment(
                    booking_id=booking.id,
                    intent_id=intent.intent_id,
                    client_secret=intent.client_secret,
                    amount=booking.total_amount,
                    deposit_amount=booking.deposit_amount,
                    payment_status=PAYMENT_PENDING,
                )
                db.session.add(payment)
                db.session.commit()
        except Exception:
            db.session.rollback()
            if guard is not None:
                guard.fail()
            raise
        if guard is not None:
            guard.succeed()
        return payment

    @staticmethod
    def record_capture(intent_id, context=None):
        """Move a pending payment into escrow once the gateway reports success.

        Safe to call more than once per intent (webhook retries, polling).
        """
        payment = PaymentService.get_by_intent(intent_id)
        if payment is None:
            raise NotFoundError("Payment not found.")
        if payment.payment_status not in OPEN_PAYMENT_STATUSES:
            return payment

        if not conditional_update(
            Payment,
            payment.id,
            {"payment_status": payment.payment_status},
            {"payment_status": PAYMENT_PROCESSING},
        ):
            db.session.rollback()
            db.session.refresh(payment)
            return payment

        booking = payment.booking
        try:
            BookingService.record_payment_captured(booking, payment, context)
        except ConflictError:
            db.session.rollback()
            db.session.refresh(payment)
            current_app.logger.warning(
                "Payment %s captured for booking %s in status %s; refunding",
                payment.id,
                booking.id,
                booking.status.value,
            )
            EscrowService.hold(payment)
            EscrowService.refund_in_full(payment, "booking_not_payable", get_gateway())
            db.session.commit()
            return payment

        PaymentService.reconcile_duplicates(booking)
        return payment

    @staticmethod
    def mark_failed(intent_id):
        payment = PaymentService.get_by_intent(intent_id)
        if payment is None:
            raise NotFoundError("Payment not found.")
        conditional_update(
            Payment,
            payment.id,
            {"payment_status": PAYMENT_PENDING},
            {"payment_status": PAYMENT_FAILED},
        )
        db.session.commit()
        db.session.refresh(payment)
        return payment

    @staticmethod
    def _settled_payment(intent_id):
        db.session.expire_all()
        payment = PaymentService.get_by_intent(intent_id)
        if payment is not None and payment.payment_status in OPEN_PAYMENT_STATUSES:
            return None
        return payment

    @staticmethod
    def confirm_payment(booking, intent_id, attempts=None, interval=None, sleep=None):
        """Confirm with the gateway, then wait for the ledger to show the capture.

        The ledger row is written by the capture webhook and may lag behind the
        gateway. If it has not appeared after the bounded wait, the result is
        ``not_yet_visible`` and the caller proceeds with a warning.
        """
        payment = PaymentService.get_by_intent(intent_id)
        if payment is None or payment.booking_id != booking.id:
            raise NotFoundError("Payment not found.")

        if not get_gateway().confirm(intent_id):
            current_app.logger.warning("Gateway reported failure for intent %s (booking %s)", intent_id, booking.id)
            return PaymentConfirmation(state=FAILED, payment=PaymentService.mark_failed(intent_id))

        config = current_app.config
        poll_kwargs = {
            "attempts": attempts or config["PAYMENT_POLL_ATTEMPTS"],
            "interval": config["PAYMENT_POLL_INTERVAL"] if interval is None else interval,
            "is_failure": lambda row: row.payment_status != PAYMENT_SUCCEEDED,
        }
        if sleep is not None:
            poll_kwargs["sleep"] = sleep
        result = poll(lambda: PaymentService._settled_payment(intent_id), **poll_kwargs)

        if result.state == NOT_YET_VISIBLE:
            current_app.logger.warning(
                "Payment %s for booking %s confirmed by gateway but not yet recorded after %s attempts",
                intent_id,
                booking.id,
                result.attempts,
            )
            return PaymentConfirmation(state=NOT_YET_VISIBLE, payment=PaymentService.get_by_intent(intent_id))
        return PaymentConfirmation(state=result.state, payment=result.value)

    @staticmethod
    def reconcile_duplicates(booking):
        """Refund every succeeded payment after the first one for a booking."""
        succeeded = (
            Payment.query.filter_by(booking_id=booking.id, payment_status=PAYMENT_SUCCEEDED)
            .order_by(Payment.id.asc())
            .all()
        )
        refunded = 0
        for duplicate in succeeded[1:]:
            try:
                EscrowService.refund_in_full(duplicate, "duplicate_payment", get_gateway())
                db.session.commit()
                refunded += 1
            except CollaboratorUnavailable:
                db.session.rollback()
                current_app.logger.error(
                    "Duplicate payment %s for booking %s could not be refunded", duplicate.id, booking.id
                )
        return refunded

    @staticmethod
    def reconcile_pending(limit=50):
        """Ask the gateway about open intents and record the ones that succeeded."""
        pending = (
            Payment.query.filter(Payment.payment_status.in_(OPEN_PAYMENT_STATUSES))
            .order_by(Payment.id.asc())
            .limit(limit)
            .all()
        )
        summary = {"scanned": len(pending), "captured": 0}
        for payment in pending:
            if payment.booking.status not in (BookingStatus.PENDING, BookingStatus.APPROVED):
                continue
            if get_gateway().confirm(payment.intent_id):
                PaymentService.record_capture(payment.intent_id)
                summary["captured"] += 1
        return summary

    @staticmethod
    def handle_gateway_event(event_type, intent_id):
        if event_type == "payment_intent.succeeded":
            return PaymentService.record_capture(intent_id)
        if event_type == "payment_intent.payment_failed":
            return PaymentService.mark_failed(intent_id)
        return None

