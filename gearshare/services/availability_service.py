from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from gearshare.models import AvailabilitySlot, BookingRequest
from gearshare.models.booking import CALENDAR_HOLDING_STATUSES
from gearshare.services.pricing_service import rental_days

MINIMUM_DAYS = 1
MAXIMUM_DAYS = 30

MINIMUM_DAYS_CONFLICT = "minimum_days"
MAXIMUM_DAYS_CONFLICT = "maximum_days"
OVERLAP_CONFLICT = "overlap"
UNAVAILABLE_CONFLICT = "unavailable"


@dataclass(frozen=True)
class Conflict:
    type: str
    message: str
    conflicting_dates: Tuple = field(default_factory=tuple)

    def as_dict(self):
        payload = {"type": self.type, "message": self.message}
        if self.conflicting_dates:
            payload["conflicting_dates"] = [day.isoformat() for day in self.conflicting_dates]
        return payload


def find_conflicts(
    start_date,
    end_date,
    existing_bookings: Iterable = (),
    blocked_dates: Iterable = (),
    exclude_booking_id=None,
    maximum_days: int = MAXIMUM_DAYS,
):
    """Evaluate every availability rule for a proposed range.

    Rules do not short-circuit: a too-long range that also overlaps reports
    both conflicts. ``existing_bookings`` only needs ``id``, ``status``,
    ``start_date`` and ``end_date``.
    """
    conflicts = []
    days = rental_days(start_date, end_date)

    if days < MINIMUM_DAYS:
        conflicts.append(Conflict(MINIMUM_DAYS_CONFLICT, "Minimum rental period is 1 day"))
    if days > maximum_days:
        conflicts.append(Conflict(MAXIMUM_DAYS_CONFLICT, f"Maximum rental period is {maximum_days} days"))

    overlapping = [
        booking
        for booking in existing_bookings
        if booking.id != exclude_booking_id
        and booking.status in CALENDAR_HOLDING_STATUSES
        and start_date < booking.end_date
        and end_date > booking.start_date
    ]
    if overlapping:
        conflicts.append(
            Conflict(
                OVERLAP_CONFLICT,
                "Selected dates overlap with existing bookings",
                tuple(sorted(booking.start_date for booking in overlapping)),
            )
        )

    blocked = tuple(sorted(day for day in blocked_dates if start_date <= day < end_date))
    if blocked:
        conflicts.append(Conflict(UNAVAILABLE_CONFLICT, "Some selected dates are blocked by the owner", blocked))

    return conflicts


class AvailabilityService:
    @staticmethod
    def _holding_bookings(equipment_id, start_date, end_date, exclude_booking_id=None):
        query = (
            BookingRequest.query.filter(BookingRequest.equipment_id == equipment_id)
            .filter(BookingRequest.status.in_(list(CALENDAR_HOLDING_STATUSES)))
            .filter(BookingRequest.start_date < end_date, BookingRequest.end_date > start_date)
        )
        if exclude_booking_id is not None:
            query = query.filter(BookingRequest.id != exclude_booking_id)
        return query.all()

    @staticmethod
    def _blocked_dates(equipment_id, start_date, end_date):
        rows = (
            AvailabilitySlot.query.filter(AvailabilitySlot.equipment_id == equipment_id)
            .filter(AvailabilitySlot.is_blocked.is_(True))
            .filter(AvailabilitySlot.date >= start_date, AvailabilitySlot.date < end_date)
            .all()
        )
        return [row.date for row in rows]

    @staticmethod
    def check_conflicts(equipment_id, start_date, end_date, exclude_booking_id=None, context=None):
        """Return every conflict for the range; fails closed on store errors."""
        if context is not None:
            context.check("availability check")

        maximum_days = current_app.config.get("MAX_RENTAL_DAYS", MAXIMUM_DAYS)
        try:
            existing = AvailabilityService._holding_bookings(
                equipment_id, start_date, end_date, exclude_booking_id
            )
            blocked = AvailabilityService._blocked_dates(equipment_id, start_date, end_date)
        except SQLAlchemyError as exc:
            current_app.logger.error(
                "Availability query failed for equipment %s (%s to %s): %s",
                equipment_id,
                start_date,
                end_date,
                exc,
            )
            return [Conflict(UNAVAILABLE_CONFLICT, "Availability could not be verified. Please try again.")]

        return find_conflicts(
            start_date,
            end_date,
            existing,
            blocked,
            exclude_booking_id=exclude_booking_id,
            maximum_days=maximum_days,
        )

    @staticmethod
    def calendar(equipment_id, start_date, days=30) -> list:
        """Per-day availability for display, e.g. the next month of a listing."""
        end_date = start_date + timedelta(days=days)
        bookings = AvailabilityService._holding_bookings(equipment_id, start_date, end_date)
        slots = {
            slot.date: slot
            for slot in AvailabilitySlot.query.filter(AvailabilitySlot.equipment_id == equipment_id)
            .filter(AvailabilitySlot.date >= start_date, AvailabilitySlot.date < end_date)
            .all()
        }
        result = []
        for offset in range(days):
            day = start_date + timedelta(days=offset)
            slot: Optional[AvailabilitySlot] = slots.get(day)
            booked = any(booking.start_date <= day < booking.end_date for booking in bookings)
            result.append(
                {
                    "date": day.isoformat(),
                    "is_available": not booked and not (slot and slot.is_blocked),
                    "custom_rate": str(slot.custom_rate) if slot and slot.custom_rate is not None else None,
                }
            )
        return result
