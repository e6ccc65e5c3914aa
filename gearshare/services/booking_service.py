import enum
from dataclasses import dataclass
from datetime import date
from typing import Optional

from flask import current_app

from gearshare.errors import CollaboratorUnavailable, ConflictError, ForbiddenError, NotFoundError, ValidationError
from gearshare.extensions import db
from gearshare.models import BookingRequest, BookingStatus, Equipment, Inspection, Payment, RentalEvent
from gearshare.models.base import conditional_update, utcnow
from gearshare.models.inspection import INSPECTION_PICKUP, INSPECTION_RETURN
from gearshare.models.payment import ESCROW_HELD, PAYMENT_SUCCEEDED
from gearshare.services.availability_service import AvailabilityService
from gearshare.services.condition_diff import ConditionDiff, ConditionReport
from gearshare.services.escrow_service import EscrowService, RefundPolicy, RefundQuote
from gearshare.services.notification_service import NotificationService
from gearshare.services.payment_gateway import get_gateway
from gearshare.services.platform_service import PlatformService
from gearshare.services.pricing_service import PricingService
from gearshare.services.trust_service import TrustService


class BookingEvent(enum.Enum):
    APPROVE = "approve"
    DECLINE = "decline"
    PAYMENT_CAPTURED = "payment_captured"
    PICKUP_RECORDED = "pickup_recorded"
    CANCEL = "cancel"
    COMPLETE = "complete"


BOOKING_TRANSITIONS = {
    (BookingStatus.PENDING, BookingEvent.APPROVE): BookingStatus.APPROVED,
    (BookingStatus.PENDING, BookingEvent.DECLINE): BookingStatus.DECLINED,
    (BookingStatus.PENDING, BookingEvent.PAYMENT_CAPTURED): BookingStatus.PENDING,
    (BookingStatus.APPROVED, BookingEvent.PAYMENT_CAPTURED): BookingStatus.APPROVED,
    (BookingStatus.APPROVED, BookingEvent.PICKUP_RECORDED): BookingStatus.ACTIVE,
    (BookingStatus.PENDING, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    (BookingStatus.APPROVED, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    # Only before pickup; checked in BookingService.cancel.
    (BookingStatus.ACTIVE, BookingEvent.CANCEL): BookingStatus.CANCELLED,
    # Only once the return inspection exists; checked in BookingService.complete.
    (BookingStatus.ACTIVE, BookingEvent.COMPLETE): BookingStatus.COMPLETED,
}

TIMESTAMP_COLUMNS = {
    BookingStatus.APPROVED: "approved_at",
    BookingStatus.DECLINED: "declined_at",
    BookingStatus.ACTIVE: "activated_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def validate_transition_table(table):
    for (source, event), target in table.items():
        if not isinstance(source, BookingStatus) or not isinstance(target, BookingStatus):
            raise TypeError(f"Transition {source!r} -> {target!r} must use BookingStatus members")
        if not isinstance(event, BookingEvent):
            raise TypeError(f"Transition event {event!r} must be a BookingEvent")
        if source.is_terminal:
            raise ValueError(f"Terminal status {source.value} cannot have outgoing transitions")
    unused = set(BookingEvent) - {event for _source, event in table}
    if unused:
        raise ValueError(f"Events without transitions: {sorted(event.value for event in unused)}")
    return table


validate_transition_table(BOOKING_TRANSITIONS)


def next_status(current: BookingStatus, event: BookingEvent) -> BookingStatus:
    try:
        return BOOKING_TRANSITIONS[(current, event)]
    except KeyError:
        raise ConflictError(f"Cannot {event.value.replace('_', ' ')} a booking that is {current.value}.") from None


@dataclass(frozen=True)
class CancellationResult:
    booking: BookingRequest
    refund: Optional[RefundQuote]


@dataclass(frozen=True)
class CompletionResult:
    booking: BookingRequest
    report: ConditionReport
    release_due_at: Optional[object]


class BookingService:
    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(BookingRequest, booking_id)
        if not booking:
            raise NotFoundError("Booking not found.")
        return booking

    @staticmethod
    def succeeded_payment(booking) -> Optional[Payment]:
        """The canonical captured payment: the oldest succeeded one."""
        return (
            Payment.query.filter_by(booking_id=booking.id, payment_status=PAYMENT_SUCCEEDED)
            .order_by(Payment.id.asc())
            .first()
        )

    @staticmethod
    def inspection(booking, inspection_type) -> Optional[Inspection]:
        return Inspection.query.filter_by(booking_id=booking.id, inspection_type=inspection_type).first()

    @staticmethod
    def _record_event(booking, event_type, actor_id=None, payload=None):
        db.session.add(
            RentalEvent(booking_id=booking.id, event_type=event_type, actor_id=actor_id, payload=payload or {})
        )

    @staticmethod
    def _require_owner(booking, actor):
        if actor.role != "admin" and actor.id != booking.owner_id:
            raise ForbiddenError("Only the equipment owner can do this.")

    @staticmethod
    def _require_party(booking, actor):
        if actor.role != "admin" and not booking.is_party(actor.id):
            raise ForbiddenError("Not authorized for this booking.")

    @staticmethod
    def _apply(booking, event, actor_id=None, context=None, extra=None, now=None):
        """Commit-free compare-and-swap of the booking status.

        Raises ``ConflictError`` when the stored status no longer matches what
        this caller read, i.e. a concurrent transition won.
        """
        if context is not None:
            context.check(f"booking {event.value}")
        expected = booking.status
        target = next_status(expected, event)
        now = now or utcnow()
        values = {"status": target, "updated_at": now}
        if target != expected and target in TIMESTAMP_COLUMNS:
            values[TIMESTAMP_COLUMNS[target]] = now
        values.update(extra or {})

        if not conditional_update(BookingRequest, booking.id, {"status": expected}, values):
            db.session.rollback()
            current_app.logger.warning(
                "Booking %s: %s from %s lost a concurrent update", booking.id, event.value, expected.value
            )
            raise ConflictError("This booking was updated by someone else. Refresh and try again.")

        BookingService._record_event(
            booking, event.value, actor_id, {"from": expected.value, "to": target.value}
        )
        db.session.flush()
        db.session.refresh(booking)
        return booking

    @staticmethod
    def create_booking(renter_id, equipment_id, start_date, end_date, insurance_type=None, message=None, context=None):
        if not isinstance(start_date, date) or not isinstance(end_date, date):
            raise ValidationError("Start and end dates are required.")
        if end_date <= start_date:
            raise ValidationError("End date must be after the start date.")

        # Row lock serializes concurrent requests for the same equipment.
        equipment = Equipment.query.filter(Equipment.id == equipment_id).with_for_update().first()
        if not equipment or not equipment.is_available:
            raise NotFoundError("Equipment not available.")
        if equipment.owner_id == renter_id:
            raise ValidationError("You cannot rent your own equipment.")

        conflicts = AvailabilityService.check_conflicts(equipment.id, start_date, end_date, context=context)
        if conflicts:
            db.session.rollback()
            raise ConflictError("; ".join(conflict.message for conflict in conflicts))

        calculation = PricingService.quote(equipment, start_date, end_date, insurance_type)
        booking = BookingRequest(
            equipment_id=equipment.id,
            renter_id=renter_id,
            owner_id=equipment.owner_id,
            status=BookingStatus.PENDING,
            start_date=start_date,
            end_date=end_date,
            daily_rate=calculation.daily_rate,
            subtotal=calculation.subtotal,
            service_fee=calculation.service_fee,
            insurance_type=(insurance_type or "none").strip().lower(),
            insurance_cost=calculation.insurance,
            deposit_amount=calculation.deposit,
            total_amount=calculation.total,
            message=(message or "").strip() or None,
        )
        db.session.add(booking)
        db.session.flush()
        BookingService._record_event(booking, "booking_requested", renter_id, calculation.as_dict())
        db.session.commit()

        NotificationService.notify_safely(
            equipment.owner_id,
            "New booking request",
            f"You received a booking request for {equipment.title}.",
            booking_id=booking.id,
            kind="booking_requested",
        )
        return booking

    @staticmethod
    def approve(booking, actor, context=None):
        BookingService._require_owner(booking, actor)
        BookingService._apply(booking, BookingEvent.APPROVE, actor.id, context)
        db.session.commit()
        NotificationService.notify_safely(
            booking.renter_id,
            "Booking approved",
            f"Your booking for {booking.equipment.title} was approved.",
            booking_id=booking.id,
            kind="booking_approved",
        )
        return booking

    @staticmethod
    def decline(booking, actor, reason=None, context=None):
        BookingService._require_owner(booking, actor)
        BookingService._apply(booking, BookingEvent.DECLINE, actor.id, context)
        db.session.commit()
        NotificationService.notify_safely(
            booking.renter_id,
            "Booking declined",
            reason or f"Your booking for {booking.equipment.title} was declined.",
            booking_id=booking.id,
            kind="booking_declined",
        )
        return booking

    @staticmethod
    def record_payment_captured(booking, payment, context=None):
        """Capture a payment into escrow; the booking status itself does not move."""
        BookingService._apply(booking, BookingEvent.PAYMENT_CAPTURED, booking.renter_id, context)
        EscrowService.hold(payment)
        db.session.commit()
        NotificationService.notify_safely(
            booking.owner_id,
            "Payment received",
            f"Payment for booking #{booking.id} is held in escrow.",
            booking_id=booking.id,
            kind="payment_captured",
        )
        return payment

    @staticmethod
    def activate(booking, actor_id=None, context=None):
        """Pickup inspection recorded; the caller commits."""
        return BookingService._apply(booking, BookingEvent.PICKUP_RECORDED, actor_id, context)

    @staticmethod
    def cancel(booking, actor, reason=None, context=None, now=None):
        """Cancel before handoff, refunding first when a payment was captured.

        A failed refund aborts the whole operation and the booking keeps its
        status.
        """
        BookingService._require_party(booking, actor)
        now = now or utcnow()
        next_status(booking.status, BookingEvent.CANCEL)
        if booking.status == BookingStatus.ACTIVE and BookingService.inspection(booking, INSPECTION_PICKUP):
            raise ConflictError("Equipment has already been picked up. Complete the return instead.")

        expected = booking.status
        locked = (
            BookingRequest.query.filter(BookingRequest.id == booking.id).with_for_update().populate_existing().one()
        )
        if locked.status != expected:
            raise ConflictError("This booking was updated by someone else. Refresh and try again.")

        quote = None
        payment = BookingService.succeeded_payment(booking)
        if payment is not None and payment.escrow_status == ESCROW_HELD:
            rental_amount = payment.amount - (payment.deposit_amount or 0)
            quote = RefundPolicy.refund(rental_amount, booking.start_date, now)
            try:
                EscrowService.refund_cancellation(
                    payment, quote, reason or f"booking_{booking.id}_cancelled", get_gateway(), now=now
                )
            except (CollaboratorUnavailable, ConflictError):
                db.session.rollback()
                current_app.logger.error("Booking %s: cancel aborted, refund failed", booking.id)
                raise

        BookingService._apply(booking, BookingEvent.CANCEL, actor.id, context, now=now)
        db.session.commit()

        counterpart = booking.owner_id if actor.id == booking.renter_id else booking.renter_id
        NotificationService.notify_safely(
            counterpart,
            "Booking cancelled",
            f"Booking #{booking.id} for {booking.equipment.title} was cancelled.",
            booking_id=booking.id,
            kind="booking_cancelled",
        )
        return CancellationResult(booking=booking, refund=quote)

    @staticmethod
    def complete(booking, actor, context=None, now=None):
        """Close the rental after the return inspection and settle the deposit path."""
        BookingService._require_owner(booking, actor)
        now = now or utcnow()
        next_status(booking.status, BookingEvent.COMPLETE)

        return_inspection = BookingService.inspection(booking, INSPECTION_RETURN)
        if return_inspection is None:
            raise ConflictError("Return inspection has not been recorded yet.")
        pickup_inspection = BookingService.inspection(booking, INSPECTION_PICKUP)
        report = ConditionDiff.diff(
            pickup_inspection.checklist if pickup_inspection else [],
            return_inspection.checklist,
        )

        BookingService._apply(
            booking,
            BookingEvent.COMPLETE,
            actor.id,
            context,
            extra={"claim_prompted": report.has_degraded},
            now=now,
        )
        BookingService._record_event(booking, "condition_compared", actor.id, report.as_dict())

        release_due_at = None
        payment = BookingService.succeeded_payment(booking)
        if payment is not None and not report.has_degraded:
            release_due_at = EscrowService.schedule_release(
                payment, PlatformService.claim_window_hours(booking.equipment), now=now
            )
        db.session.commit()
        TrustService.forget(booking.renter_id)
        TrustService.forget(booking.owner_id)

        if report.has_degraded:
            items = ", ".join(item.item for item in report.degraded_items)
            NotificationService.notify_safely(
                booking.owner_id,
                "Condition changed during rental",
                f"Return inspection shows degradation ({items}). You can file a damage claim.",
                booking_id=booking.id,
                kind="claim_prompt",
            )
        else:
            NotificationService.notify_safely(
                booking.renter_id,
                "Rental completed",
                f"Booking #{booking.id} is complete. Your deposit will be released after the claim window.",
                booking_id=booking.id,
                kind="rental_completed",
            )
        return CompletionResult(booking=booking, report=report, release_due_at=release_due_at)
