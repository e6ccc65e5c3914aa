import math
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from gearshare.errors import ValidationError
from gearshare.models import AvailabilitySlot

CENT = Decimal("0.01")
SERVICE_FEE_RATE = Decimal("0.05")
INSURANCE_RATES = {
    "none": Decimal("0"),
    "basic": Decimal("0.05"),
    "premium": Decimal("0.10"),
}


def to_money(value) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValidationError("Amount must be a number.") from exc
    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def rental_days(start_date, end_date) -> int:
    if isinstance(start_date, datetime) or isinstance(end_date, datetime):
        return math.ceil((end_date - start_date) / timedelta(days=1))
    return (end_date - start_date).days


@dataclass(frozen=True)
class BookingCalculation:
    days: int
    daily_rate: Decimal
    subtotal: Decimal
    service_fee: Decimal
    insurance: Decimal
    deposit: Decimal
    total: Decimal

    def as_dict(self):
        return {key: (str(value) if isinstance(value, Decimal) else value) for key, value in asdict(self).items()}


class PricingService:
    @staticmethod
    def _rate_overrides(custom_rates):
        if not custom_rates:
            return {}
        if isinstance(custom_rates, dict):
            return {
                (date.fromisoformat(day) if isinstance(day, str) else day): to_money(rate)
                for day, rate in custom_rates.items()
                if rate is not None
            }
        return {
            slot.date: to_money(slot.custom_rate)
            for slot in custom_rates
            if getattr(slot, "custom_rate", None) is not None
        }

    @staticmethod
    def calculate(
        daily_rate,
        start_date,
        end_date,
        custom_rates=None,
        insurance_type=None,
        deposit_amount=None,
    ) -> BookingCalculation:
        """Itemize the price of renting for ``[start_date, end_date)``.

        ``custom_rates`` maps a calendar date to its override rate (or is an
        iterable of availability slots). Each derived amount is rounded to the
        cent before it feeds the next one.
        """
        rate = to_money(daily_rate)
        if rate <= 0:
            raise ValidationError("Daily rate must be positive.")

        days = rental_days(start_date, end_date)
        if days < 1:
            raise ValidationError("Minimum rental period is 1 day.")

        insurance_key = (insurance_type or "none").strip().lower()
        if insurance_key not in INSURANCE_RATES:
            raise ValidationError("Insurance type must be none, basic or premium.")

        deposit = to_money(deposit_amount or 0)
        if deposit < 0:
            raise ValidationError("Deposit cannot be negative.")

        overrides = PricingService._rate_overrides(custom_rates)
        first_day = start_date.date() if isinstance(start_date, datetime) else start_date
        subtotal = Decimal("0.00")
        for offset in range(days):
            subtotal += overrides.get(first_day + timedelta(days=offset), rate)
        subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)

        service_fee = (subtotal * SERVICE_FEE_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
        insurance = (subtotal * INSURANCE_RATES[insurance_key]).quantize(CENT, rounding=ROUND_HALF_UP)
        total = (subtotal + service_fee + insurance + deposit).quantize(CENT, rounding=ROUND_HALF_UP)

        return BookingCalculation(
            days=days,
            daily_rate=rate,
            subtotal=subtotal,
            service_fee=service_fee,
            insurance=insurance,
            deposit=deposit,
            total=total,
        )

    @staticmethod
    def resolve_deposit(equipment) -> Decimal:
        if equipment.damage_deposit_amount is not None:
            return to_money(equipment.damage_deposit_amount)
        if equipment.damage_deposit_percentage:
            percentage = Decimal(equipment.damage_deposit_percentage) / Decimal("100")
            return (Decimal(str(equipment.daily_rate)) * percentage).quantize(CENT, rounding=ROUND_HALF_UP)
        return Decimal("0.00")

    @staticmethod
    def custom_rates_for(equipment_id, start_date: date, end_date: date):
        slots = (
            AvailabilitySlot.query.filter(AvailabilitySlot.equipment_id == equipment_id)
            .filter(AvailabilitySlot.date >= start_date, AvailabilitySlot.date < end_date)
            .filter(AvailabilitySlot.custom_rate.isnot(None))
            .all()
        )
        return {slot.date: slot.custom_rate for slot in slots}

    @staticmethod
    def quote(equipment, start_date, end_date, insurance_type=None) -> BookingCalculation:
        return PricingService.calculate(
            equipment.daily_rate,
            start_date,
            end_date,
            custom_rates=PricingService.custom_rates_for(equipment.id, start_date, end_date),
            insurance_type=insurance_type,
            deposit_amount=PricingService.resolve_deposit(equipment),
        )
