from datetime import date, timedelta
from types import SimpleNamespace

from sqlalchemy.exc import OperationalError

from gearshare.context import RequestSequencer
from gearshare.extensions import db
from gearshare.models import AvailabilitySlot, BookingRequest, BookingStatus
from gearshare.services import BookingService
from gearshare.services.availability_service import (
    MAXIMUM_DAYS_CONFLICT,
    MINIMUM_DAYS_CONFLICT,
    OVERLAP_CONFLICT,
    UNAVAILABLE_CONFLICT,
    AvailabilityService,
    find_conflicts,
)

START = date(2026, 7, 1)


def _booking(booking_id, start_offset, days, status=BookingStatus.PENDING):
    start = START + timedelta(days=start_offset)
    return SimpleNamespace(id=booking_id, status=status, start_date=start, end_date=start + timedelta(days=days))


def _types(conflicts):
    return [conflict.type for conflict in conflicts]


def test_end_on_or_before_start_is_minimum_days():
    assert MINIMUM_DAYS_CONFLICT in _types(find_conflicts(START, START))
    assert MINIMUM_DAYS_CONFLICT in _types(find_conflicts(START, START - timedelta(days=2)))


def test_more_than_thirty_days_is_maximum_days():
    assert _types(find_conflicts(START, START + timedelta(days=30))) == []
    assert _types(find_conflicts(START, START + timedelta(days=31))) == [MAXIMUM_DAYS_CONFLICT]


def test_any_shared_day_overlaps():
    existing = [_booking(1, 3, 4)]

    assert _types(find_conflicts(START, START + timedelta(days=4), existing)) == [OVERLAP_CONFLICT]
    assert _types(find_conflicts(START + timedelta(days=6), START + timedelta(days=9), existing)) == [
        OVERLAP_CONFLICT
    ]


def test_back_to_back_ranges_do_not_overlap():
    existing = [_booking(1, 3, 4)]

    assert find_conflicts(START, START + timedelta(days=3), existing) == []
    assert find_conflicts(START + timedelta(days=7), START + timedelta(days=9), existing) == []


def test_excluded_and_released_bookings_do_not_conflict():
    existing = [
        _booking(1, 0, 5),
        _booking(2, 0, 5, BookingStatus.CANCELLED),
        _booking(3, 0, 5, BookingStatus.DECLINED),
        _booking(4, 0, 5, BookingStatus.COMPLETED),
    ]

    assert find_conflicts(START, START + timedelta(days=2), existing, exclude_booking_id=1) == []


def test_rules_are_not_short_circuited():
    existing = [_booking(1, 0, 2, BookingStatus.ACTIVE)]

    conflicts = find_conflicts(START, START + timedelta(days=40), existing, blocked_dates=[START + timedelta(days=20)])

    assert _types(conflicts) == [MAXIMUM_DAYS_CONFLICT, OVERLAP_CONFLICT, UNAVAILABLE_CONFLICT]


def test_check_conflicts_reads_bookings_and_blocked_slots(app, renter, equipment):
    BookingService.create_booking(renter.id, equipment.id, START, START + timedelta(days=3))
    db.session.add(AvailabilitySlot(equipment_id=equipment.id, date=START + timedelta(days=5), is_blocked=True))
    db.session.commit()

    conflicts = AvailabilityService.check_conflicts(equipment.id, START + timedelta(days=2), START + timedelta(days=6))

    assert _types(conflicts) == [OVERLAP_CONFLICT, UNAVAILABLE_CONFLICT]
    assert conflicts[1].as_dict()["conflicting_dates"] == [(START + timedelta(days=5)).isoformat()]


def test_check_conflicts_can_exclude_the_booking_being_edited(app, renter, equipment):
    booking = BookingService.create_booking(renter.id, equipment.id, START, START + timedelta(days=3))

    assert AvailabilityService.check_conflicts(equipment.id, START, START + timedelta(days=4)) != []
    assert AvailabilityService.check_conflicts(
        equipment.id, START, START + timedelta(days=4), exclude_booking_id=booking.id
    ) == []


class _BrokenQuery:
    def filter(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))


def test_store_failure_fails_closed(app, equipment, monkeypatch):
    monkeypatch.setattr(BookingRequest, "query", _BrokenQuery())

    conflicts = AvailabilityService.check_conflicts(equipment.id, START, START + timedelta(days=2))

    assert _types(conflicts) == [UNAVAILABLE_CONFLICT]


def test_late_success_does_not_overwrite_latest_failure(app, equipment, monkeypatch):
    sequencer = RequestSequencer()
    first = sequencer.issue()
    early_result = AvailabilityService.check_conflicts(equipment.id, START, START + timedelta(days=2), context=first)

    second = sequencer.issue()
    monkeypatch.setattr(BookingRequest, "query", _BrokenQuery())
    latest_result = AvailabilityService.check_conflicts(
        equipment.id, START, START + timedelta(days=3), context=second
    )

    assert sequencer.accept(second, latest_result)
    assert not sequencer.accept(first, early_result)
    assert _types(sequencer.result) == [UNAVAILABLE_CONFLICT]


def test_calendar_marks_booked_and_blocked_days(app, renter, equipment):
    BookingService.create_booking(renter.id, equipment.id, START + timedelta(days=1), START + timedelta(days=3))
    db.session.add(AvailabilitySlot(equipment_id=equipment.id, date=START + timedelta(days=4), is_blocked=True))
    db.session.commit()

    days = AvailabilityService.calendar(equipment.id, START, days=5)

    assert [day["is_available"] for day in days] == [True, False, False, True, False]
