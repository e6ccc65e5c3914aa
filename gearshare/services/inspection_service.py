from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from gearshare.errors import ConflictError, ValidationError
from gearshare.extensions import db
from gearshare.models import BookingStatus, Inspection
from gearshare.models.base import utcnow
from gearshare.models.inspection import INSPECTION_PICKUP, INSPECTION_RETURN, INSPECTION_TYPES
from gearshare.services.booking_service import BookingService
from gearshare.services.condition_diff import ConditionDiff, normalize_checklist
from gearshare.services.notification_service import NotificationService


class InspectionService:
    @staticmethod
    def _coordinate(value, label, limit):
        if value in (None, ""):
            return None
        try:
            coordinate = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid {label} value.") from exc
        if abs(coordinate) > limit:
            raise ValidationError(f"Invalid {label} value.")
        return coordinate

    @staticmethod
    def record_inspection(
        booking,
        actor,
        inspection_type,
        checklist,
        photos=None,
        notes=None,
        latitude=None,
        longitude=None,
        context=None,
        now=None,
    ):
        BookingService._require_party(booking, actor)
        inspection_type = (inspection_type or "").strip().lower()
        if inspection_type not in INSPECTION_TYPES:
            raise ValidationError("Inspection type must be pickup or return.")

        items = normalize_checklist(checklist)
        if not items:
            raise ValidationError("Checklist must contain at least one item.")

        if BookingService.inspection(booking, inspection_type) is not None:
            raise ConflictError(f"A {inspection_type} inspection already exists for this booking.")

        if inspection_type == INSPECTION_PICKUP and booking.status != BookingStatus.APPROVED:
            raise ConflictError("Pickup can only be recorded for an approved booking.")
        if inspection_type == INSPECTION_RETURN:
            if booking.status != BookingStatus.ACTIVE:
                raise ConflictError("Return can only be recorded for an active rental.")
            if BookingService.inspection(booking, INSPECTION_PICKUP) is None:
                raise ConflictError("Pickup inspection is missing for this booking.")

        inspection = Inspection(
            booking_id=booking.id,
            inspection_type=inspection_type,
            inspector_id=actor.id,
            checklist=items,
            photos=[str(url) for url in (photos or [])],
            notes=(notes or "").strip() or None,
            latitude=InspectionService._coordinate(latitude, "latitude", 90),
            longitude=InspectionService._coordinate(longitude, "longitude", 180),
            inspected_at=now or utcnow(),
        )
        db.session.add(inspection)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError(f"A {inspection_type} inspection already exists for this booking.") from exc

        if inspection_type == INSPECTION_PICKUP:
            BookingService.activate(booking, actor.id, context)
        else:
            BookingService._record_event(booking, "return_recorded", actor.id, ConditionDiff.summarize(items))
        db.session.commit()

        counterpart = booking.owner_id if actor.id == booking.renter_id else booking.renter_id
        NotificationService.notify_safely(
            counterpart,
            f"{inspection_type.title()} inspection recorded",
            f"The {inspection_type} inspection for booking #{booking.id} was submitted.",
            booking_id=booking.id,
            kind=f"{inspection_type}_recorded",
        )
        return inspection

    @staticmethod
    def condition_report(booking):
        pickup = BookingService.inspection(booking, INSPECTION_PICKUP)
        returned = BookingService.inspection(booking, INSPECTION_RETURN)
        if pickup is None or returned is None:
            raise ConflictError("Both pickup and return inspections are required for a condition report.")
        return ConditionDiff.diff(pickup.checklist, returned.checklist)
