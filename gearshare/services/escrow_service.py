import math
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from gearshare.errors import CollaboratorUnavailable, ConflictError
from gearshare.extensions import db
from gearshare.models import DamageClaim, Inspection, Payment
from gearshare.models.base import as_utc, conditional_update, utcnow
from gearshare.models.damage_claim import OPEN_CLAIM_STATUSES
from gearshare.models.inspection import INSPECTION_RETURN
from gearshare.models.payment import (
    DEPOSIT_CLAIMED,
    DEPOSIT_HELD,
    DEPOSIT_REFUNDED,
    DEPOSIT_RELEASED,
    DEPOSIT_RELEASING,
    ESCROW_DISPUTED,
    ESCROW_HELD,
    ESCROW_REFUNDED,
    ESCROW_RELEASED,
    PAYMENT_REFUNDED,
    PAYMENT_SUCCEEDED,
)
from gearshare.services.pricing_service import CENT


@dataclass(frozen=True)
class RefundQuote:
    refund_amount: Decimal
    refund_percentage: int
    days_until_start: int

    def as_dict(self):
        return {
            "refund_amount": str(self.refund_amount),
            "refund_percentage": self.refund_percentage,
            "days_until_start": self.days_until_start,
        }


def _as_datetime(value):
    if isinstance(value, datetime):
        return as_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


class RefundPolicy:
    FULL_REFUND_DAYS = 7
    PARTIAL_REFUND_DAYS = 3

    @staticmethod
    def days_until_start(start_date, cancellation_date) -> int:
        if type(start_date) is date and type(cancellation_date) is date:
            return (start_date - cancellation_date).days
        delta = _as_datetime(start_date) - _as_datetime(cancellation_date)
        return math.ceil(delta / timedelta(days=1))

    @staticmethod
    def percentage_for(days_until_start) -> int:
        if days_until_start >= RefundPolicy.FULL_REFUND_DAYS:
            return 100
        if days_until_start >= RefundPolicy.PARTIAL_REFUND_DAYS:
            return 50
        return 0

    @staticmethod
    def refund(total_amount, start_date, cancellation_date=None) -> RefundQuote:
        """7+ days before start refunds everything, 3-6 days half, otherwise nothing."""
        cancellation_date = cancellation_date or utcnow()
        days = RefundPolicy.days_until_start(start_date, cancellation_date)
        percentage = RefundPolicy.percentage_for(days)
        amount = (Decimal(str(total_amount)) * Decimal(percentage) / Decimal(100)).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        return RefundQuote(refund_amount=amount, refund_percentage=percentage, days_until_start=days)


def calculate_deposit_refund(deposit_amount, claimed_amount) -> Decimal:
    remaining = Decimal(str(deposit_amount or 0)) - Decimal(str(claimed_amount or 0))
    return max(Decimal("0.00"), remaining).quantize(CENT)


class EscrowService:
    """Ledger operations on a captured payment.

    Methods flush but do not commit; the enclosing service operation owns the
    transaction.
    """

    @staticmethod
    def hold(payment, now=None):
        now = now or utcnow()
        payment.payment_status = PAYMENT_SUCCEEDED
        payment.escrow_status = ESCROW_HELD
        payment.deposit_status = DEPOSIT_HELD if Decimal(str(payment.deposit_amount or 0)) > 0 else None
        payment.captured_at = now
        db.session.flush()
        return payment

    @staticmethod
    def _locked(payment):
        return Payment.query.filter(Payment.id == payment.id).with_for_update().one()

    @staticmethod
    def refund_cancellation(payment, quote: RefundQuote, reason, gateway, now=None):
        """Refund the quoted share of the rental plus the whole deposit.

        The gateway is called first; nothing is written unless it succeeds.
        """
        now = now or utcnow()
        payment = EscrowService._locked(payment)
        if payment.escrow_status != ESCROW_HELD:
            raise ConflictError("Escrow for this booking has already been settled.")

        deposit = Decimal(str(payment.deposit_amount or 0))
        refund_amount = (quote.refund_amount + deposit).quantize(CENT)
        if refund_amount > 0 and not gateway.refund(payment.intent_id, reason, refund_amount):
            current_app.logger.error(
                "Refund of %s failed for payment %s (booking %s)", refund_amount, payment.id, payment.booking_id
            )
            raise CollaboratorUnavailable("Refund could not be processed. The booking was not changed.")

        full_refund = refund_amount >= Decimal(str(payment.amount))
        payment.refund_amount = refund_amount
        payment.refunded_at = now
        payment.escrow_status = ESCROW_REFUNDED if full_refund else ESCROW_RELEASED
        if not full_refund:
            payment.released_at = now
        payment.payment_status = PAYMENT_REFUNDED if full_refund else PAYMENT_SUCCEEDED
        if deposit > 0:
            payment.deposit_status = DEPOSIT_REFUNDED
            payment.deposit_refund_amount = deposit
            payment.deposit_released_at = now
        db.session.flush()
        return payment

    @staticmethod
    def refund_in_full(payment, reason, gateway, now=None):
        now = now or utcnow()
        if not gateway.refund(payment.intent_id, reason, payment.amount):
            raise CollaboratorUnavailable("Refund could not be processed.")
        payment.payment_status = PAYMENT_REFUNDED
        payment.escrow_status = ESCROW_REFUNDED
        payment.refund_amount = payment.amount
        payment.refunded_at = now
        if payment.deposit_status == DEPOSIT_HELD:
            payment.deposit_status = DEPOSIT_REFUNDED
        db.session.flush()
        return payment

    @staticmethod
    def schedule_release(payment, claim_window_hours, now=None):
        now = now or utcnow()
        payment.release_due_at = now + timedelta(hours=claim_window_hours)
        db.session.flush()
        return payment.release_due_at

    @staticmethod
    def release(payment, now=None, from_status=ESCROW_HELD):
        """Release escrowed rental funds to the owner, at most once."""
        now = now or utcnow()
        released = conditional_update(
            Payment,
            payment.id,
            {"escrow_status": from_status},
            {"escrow_status": ESCROW_RELEASED, "released_at": now},
        )
        if not released:
            raise ConflictError("Escrow for this payment is not held.")
        db.session.refresh(payment)
        return payment

    @staticmethod
    def mark_disputed(payment):
        if not conditional_update(
            Payment, payment.id, {"escrow_status": ESCROW_HELD}, {"escrow_status": ESCROW_DISPUTED}
        ):
            raise ConflictError("Escrow for this payment is not held.")
        db.session.refresh(payment)
        return payment

    @staticmethod
    def release_deposit(payment, gateway, claimed_amount=0, now=None):
        """Return the unclaimed part of the deposit to the renter.

        The deposit row is moved held -> releasing before the gateway call so a
        concurrent sweep cannot refund it twice; a gateway failure moves it back.
        """
        now = now or utcnow()
        deposit = Decimal(str(payment.deposit_amount or 0))
        if deposit <= 0:
            return payment
        if not conditional_update(
            Payment, payment.id, {"deposit_status": DEPOSIT_HELD}, {"deposit_status": DEPOSIT_RELEASING}
        ):
            raise ConflictError("Deposit already processed.")

        refund_amount = calculate_deposit_refund(deposit, claimed_amount)
        if refund_amount > 0 and not gateway.refund(payment.intent_id, "deposit_release", refund_amount):
            conditional_update(
                Payment, payment.id, {"deposit_status": DEPOSIT_RELEASING}, {"deposit_status": DEPOSIT_HELD}
            )
            db.session.refresh(payment)
            raise CollaboratorUnavailable("Deposit release could not be processed.")

        conditional_update(
            Payment,
            payment.id,
            {"deposit_status": DEPOSIT_RELEASING},
            {
                "deposit_status": DEPOSIT_RELEASED if refund_amount > 0 else DEPOSIT_CLAIMED,
                "deposit_refund_amount": refund_amount,
                "deposit_released_at": now,
            },
        )
        db.session.refresh(payment)
        return payment

    @staticmethod
    def can_release_deposit(payment, return_inspection_completed, has_pending_claims):
        if not payment.deposit_amount or Decimal(str(payment.deposit_amount)) <= 0:
            return False, "No deposit to release"
        if payment.deposit_status != DEPOSIT_HELD:
            return False, "Deposit already processed"
        if not return_inspection_completed:
            return False, "Return inspection not completed"
        if has_pending_claims:
            return False, "Pending damage claims exist"
        return True, None

    @staticmethod
    def has_open_claims(booking_id):
        return (
            DamageClaim.query.filter(DamageClaim.booking_id == booking_id)
            .filter(DamageClaim.status.in_(OPEN_CLAIM_STATUSES))
            .count()
            > 0
        )

    @staticmethod
    def release_due(gateway, now=None, limit=50):
        """Release escrow and deposits whose claim window has passed.

        Each payment is committed on its own; one failure does not stop the sweep.
        """
        now = now or utcnow()
        candidates = (
            Payment.query.filter(Payment.escrow_status == ESCROW_HELD)
            .filter(Payment.payment_status == PAYMENT_SUCCEEDED)
            .filter(Payment.release_due_at.isnot(None))
            .filter(Payment.release_due_at <= now)
            .order_by(Payment.release_due_at.asc())
            .limit(limit)
            .all()
        )
        summary = {"scanned": len(candidates), "released": 0, "skipped": 0, "errors": []}
        for payment in candidates:
            if EscrowService.has_open_claims(payment.booking_id):
                summary["skipped"] += 1
                continue
            has_return = (
                Inspection.query.filter_by(booking_id=payment.booking_id, inspection_type=INSPECTION_RETURN).count()
                > 0
            )
            if not has_return:
                summary["skipped"] += 1
                continue
            try:
                if payment.deposit_status == DEPOSIT_HELD:
                    EscrowService.release_deposit(payment, gateway, now=now)
                EscrowService.release(payment, now=now)
                db.session.commit()
                summary["released"] += 1
            except (ConflictError, CollaboratorUnavailable) as exc:
                db.session.rollback()
                current_app.logger.warning(
                    "Release skipped for payment %s (booking %s): %s", payment.id, payment.booking_id, exc.message
                )
                summary["errors"].append({"payment_id": payment.id, "booking_id": payment.booking_id, "error": exc.message})
        return summary
