from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gearshare.errors import ValidationError
from gearshare.models import AvailabilitySlot
from gearshare.extensions import db
from gearshare.services.pricing_service import PricingService, rental_days

START = date(2026, 6, 1)


def test_five_days_at_base_rate():
    calc = PricingService.calculate(100, START, START + timedelta(days=5))

    assert calc.days == 5
    assert calc.subtotal == Decimal("500.00")
    assert calc.service_fee == Decimal("25.00")
    assert calc.insurance == Decimal("0.00")
    assert calc.deposit == Decimal("0.00")
    assert calc.total == Decimal("525.00")


def test_custom_rate_replaces_base_rate_for_its_day():
    calc = PricingService.calculate(100, START, START + timedelta(days=5), custom_rates={START + timedelta(days=2): 150})

    assert calc.days == 5
    assert calc.subtotal == Decimal("550.00")
    assert calc.service_fee == Decimal("27.50")
    assert calc.total == Decimal("577.50")


def test_insurance_tiers_apply_to_subtotal():
    end = START + timedelta(days=2)
    assert PricingService.calculate(100, START, end, insurance_type="none").insurance == Decimal("0.00")
    assert PricingService.calculate(100, START, end, insurance_type="basic").insurance == Decimal("10.00")
    assert PricingService.calculate(100, START, end, insurance_type="premium").insurance == Decimal("20.00")


def test_deposit_is_added_but_not_fee_bearing():
    calc = PricingService.calculate(100, START, START + timedelta(days=1), insurance_type="basic", deposit_amount=40)

    assert calc.service_fee == Decimal("5.00")
    assert calc.deposit == Decimal("40.00")
    assert calc.total == Decimal("100.00") + Decimal("5.00") + Decimal("5.00") + Decimal("40.00")


def test_each_step_rounds_to_the_cent():
    calc = PricingService.calculate("33.33", START, START + timedelta(days=1), insurance_type="basic")

    # 33.33 * 0.05 = 1.6665 -> 1.67, for both the fee and basic insurance.
    assert calc.service_fee == Decimal("1.67")
    assert calc.insurance == Decimal("1.67")
    assert calc.total == Decimal("36.67")


def test_partial_days_round_up_for_datetimes():
    start = datetime(2026, 6, 1, 9, 0, tzinfo=timezone.utc)
    assert rental_days(start, start + timedelta(days=1, hours=2)) == 2
    assert rental_days(START, START + timedelta(days=3)) == 3


def test_iso_string_keys_are_accepted_for_overrides():
    calc = PricingService.calculate(100, START, START + timedelta(days=2), custom_rates={"2026-06-02": "80"})
    assert calc.subtotal == Decimal("180.00")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"daily_rate": 0},
        {"daily_rate": "abc"},
        {"daily_rate": 100, "insurance_type": "platinum"},
        {"daily_rate": 100, "deposit_amount": -5},
    ],
)
def test_invalid_inputs_are_rejected(kwargs):
    daily_rate = kwargs.pop("daily_rate")
    with pytest.raises(ValidationError):
        PricingService.calculate(daily_rate, START, START + timedelta(days=2), **kwargs)


def test_empty_range_is_rejected():
    with pytest.raises(ValidationError):
        PricingService.calculate(100, START, START)


def test_same_inputs_give_identical_output():
    first = PricingService.calculate(100, START, START + timedelta(days=4), {START: 120}, "premium", 25)
    second = PricingService.calculate(100, START, START + timedelta(days=4), {START: 120}, "premium", 25)

    assert first == second
    assert first.as_dict() == second.as_dict()


def test_fixed_deposit_wins_over_percentage(make_equipment, owner):
    both = make_equipment(owner, damage_deposit_amount=Decimal("75.00"), damage_deposit_percentage=50)
    percent_only = make_equipment(owner, daily_rate="80.00", damage_deposit_percentage=25)
    neither = make_equipment(owner)

    assert PricingService.resolve_deposit(both) == Decimal("75.00")
    assert PricingService.resolve_deposit(percent_only) == Decimal("20.00")
    assert PricingService.resolve_deposit(neither) == Decimal("0.00")


def test_quote_reads_custom_rates_from_slots(make_equipment, owner):
    equipment = make_equipment(owner)
    db.session.add(AvailabilitySlot(equipment_id=equipment.id, date=START + timedelta(days=1), custom_rate=Decimal("60")))
    db.session.commit()

    calc = PricingService.quote(equipment, START, START + timedelta(days=3))

    assert calc.subtotal == Decimal("260.00")
