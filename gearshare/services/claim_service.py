from datetime import timedelta
from decimal import Decimal, InvalidOperation

from flask import current_app

from gearshare.errors import CollaboratorUnavailable, ConflictError, ForbiddenError, NotFoundError, ValidationError
from gearshare.extensions import db
from gearshare.models import BookingStatus, DamageClaim
from gearshare.models.base import as_utc, utcnow
from gearshare.models.damage_claim import CLAIM_DISPUTED, CLAIM_PENDING, CLAIM_RESOLVED, OPEN_CLAIM_STATUSES
from gearshare.models.inspection import INSPECTION_RETURN
from gearshare.models.payment import DEPOSIT_HELD, ESCROW_DISPUTED, ESCROW_HELD
from gearshare.services.booking_service import BookingService
from gearshare.services.escrow_service import EscrowService
from gearshare.services.notification_service import NotificationService
from gearshare.services.payment_gateway import get_gateway
from gearshare.services.platform_service import PlatformService
from gearshare.services.pricing_service import CENT


def _amount(value, label, allow_zero=False):
    try:
        amount = Decimal(str(value)).quantize(CENT)
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{label} must be a number.") from exc
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{label} must be greater than zero.")
    return amount


class ClaimService:
    @staticmethod
    def get_claim(claim_id):
        claim = db.session.get(DamageClaim, claim_id)
        if not claim:
            raise NotFoundError("Claim not found.")
        return claim

    @staticmethod
    def file_claim(booking, actor, description, estimated_cost, evidence=None, now=None):
        """Owner files a damage claim against a completed, returned rental.

        Claims are accepted only inside the claim window that follows the
        return inspection and while escrow and the deposit are still held.
        """
        if actor.id != booking.owner_id:
            raise ForbiddenError("Only the equipment owner can file a damage claim.")
        return_inspection = BookingService.inspection(booking, INSPECTION_RETURN)
        if return_inspection is None:
            raise ConflictError("A damage claim needs a return inspection.")
        if booking.status != BookingStatus.COMPLETED:
            raise ConflictError("Damage claims can only be filed for completed rentals.")

        now = now or utcnow()
        window = timedelta(hours=PlatformService.claim_window_hours(booking.equipment))
        if now > as_utc(return_inspection.inspected_at) + window:
            raise ConflictError("The claim window for this rental has closed.")
        payment = BookingService.succeeded_payment(booking)
        if payment is not None and (
            payment.escrow_status != ESCROW_HELD or payment.deposit_status not in (None, DEPOSIT_HELD)
        ):
            raise ConflictError("Escrow for this rental has already been settled.")

        description = (description or "").strip()
        if not description:
            raise ValidationError("Describe the damage.")
        cost = _amount(estimated_cost, "Estimated cost")

        open_claim = (
            DamageClaim.query.filter(DamageClaim.booking_id == booking.id)
            .filter(DamageClaim.status.in_(OPEN_CLAIM_STATUSES))
            .first()
        )
        if open_claim is not None:
            raise ConflictError("A claim is already open for this booking.")

        claim = DamageClaim(
            booking_id=booking.id,
            filed_by=actor.id,
            description=description,
            estimated_cost=cost,
            evidence=[str(url) for url in (evidence or [])],
            status=CLAIM_PENDING,
        )
        db.session.add(claim)
        db.session.flush()
        BookingService._record_event(
            booking, "claim_filed", actor.id, {"claim_id": claim.id, "estimated_cost": str(cost)}
        )
        db.session.commit()

        NotificationService.notify_safely(
            booking.renter_id,
            "Damage claim filed",
            f"The owner filed a damage claim of {cost} for booking #{booking.id}.",
            booking_id=booking.id,
            kind="claim_filed",
        )
        return claim

    @staticmethod
    def _settle(claim, final_amount, actor_id, now):
        booking = claim.booking
        payment = BookingService.succeeded_payment(booking)
        if payment is not None:
            try:
                EscrowService.release_deposit(payment, get_gateway(), claimed_amount=final_amount, now=now)
                if payment.escrow_status in (ESCROW_HELD, ESCROW_DISPUTED):
                    EscrowService.release(payment, now=now, from_status=payment.escrow_status)
            except (CollaboratorUnavailable, ConflictError):
                db.session.rollback()
                current_app.logger.error("Claim %s: settlement failed for booking %s", claim.id, booking.id)
                raise

        claim.status = CLAIM_RESOLVED
        claim.final_amount = final_amount
        claim.resolved_at = now
        BookingService._record_event(
            booking, "claim_resolved", actor_id, {"claim_id": claim.id, "final_amount": str(final_amount)}
        )
        db.session.commit()
        return claim

    @staticmethod
    def respond(claim, actor, accept, response=None, now=None):
        """Renter accepts (settles at the estimate) or disputes (freezes escrow)."""
        booking = claim.booking
        if actor.id != booking.renter_id:
            raise ForbiddenError("Only the renter can respond to this claim.")
        if claim.status != CLAIM_PENDING:
            raise ConflictError(f"Claim is already {claim.status}.")
        now = now or utcnow()
        claim.renter_response = (response or "").strip() or None

        if accept:
            ClaimService._settle(claim, Decimal(str(claim.estimated_cost)), actor.id, now)
            kind, title = "claim_accepted", "Damage claim accepted"
        else:
            payment = BookingService.succeeded_payment(booking)
            if payment is not None and payment.escrow_status == ESCROW_HELD:
                EscrowService.mark_disputed(payment)
            claim.status = CLAIM_DISPUTED
            BookingService._record_event(booking, "claim_disputed", actor.id, {"claim_id": claim.id})
            db.session.commit()
            kind, title = "claim_disputed", "Damage claim disputed"

        NotificationService.notify_safely(
            booking.owner_id,
            title,
            f"The renter responded to the claim on booking #{booking.id}.",
            booking_id=booking.id,
            kind=kind,
        )
        return claim

    @staticmethod
    def resolve(claim, actor, final_amount, now=None):
        if actor.role != "admin":
            raise ForbiddenError("Only an admin can resolve a claim.")
        if claim.status not in OPEN_CLAIM_STATUSES:
            raise ConflictError(f"Claim is already {claim.status}.")
        amount = _amount(final_amount, "Final amount", allow_zero=True)
        ClaimService._settle(claim, amount, actor.id, now or utcnow())

        booking = claim.booking
        for user_id in (booking.owner_id, booking.renter_id):
            NotificationService.notify_safely(
                user_id,
                "Damage claim resolved",
                f"The claim on booking #{booking.id} was resolved at {amount}.",
                booking_id=booking.id,
                kind="claim_resolved",
            )
        return claim

    @staticmethod
    def claims_for_booking(booking):
        return booking.claims.order_by(DamageClaim.id.asc()).all()
