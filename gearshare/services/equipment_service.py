from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import joinedload

from gearshare.errors import AppError
from gearshare.extensions import db
from gearshare.models import AvailabilitySlot, Equipment

CONDITIONS = {"new", "good", "fair", "worn"}


def _positive_decimal(value, label, required=True):
    if value in (None, ""):
        if required:
            raise AppError(f"{label} is required.", 400)
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise AppError(f"{label} must be a positive number.", 400) from exc
    if amount <= 0:
        raise AppError(f"{label} must be a positive number.", 400)
    return amount


def parse_date(value, label="date"):
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value or "").strip())
    except ValueError as exc:
        raise AppError(f"Invalid {label}; use YYYY-MM-DD.", 400) from exc


class EquipmentService:
    @staticmethod
    def create_equipment(owner_id, payload):
        title = (payload.get("title") or "").strip()
        if not title:
            raise AppError("Equipment title is required.", 400)
        condition = (payload.get("condition") or "good").strip().lower()
        if condition not in CONDITIONS:
            raise AppError("Invalid condition.", 400)

        percentage = payload.get("damage_deposit_percentage")
        if percentage not in (None, ""):
            try:
                percentage = int(percentage)
            except (TypeError, ValueError) as exc:
                raise AppError("Deposit percentage must be a whole number.", 400) from exc
            if not 0 <= percentage <= 100:
                raise AppError("Deposit percentage must be between 0 and 100.", 400)
        else:
            percentage = None

        claim_window = payload.get("claim_window_hours")
        if claim_window not in (None, ""):
            try:
                claim_window = int(claim_window)
            except (TypeError, ValueError) as exc:
                raise AppError("Claim window must be a whole number of hours.", 400) from exc
            if claim_window < 0:
                raise AppError("Claim window must be a whole number of hours.", 400)
        else:
            claim_window = None

        equipment = Equipment(
            owner_id=owner_id,
            title=title,
            description=(payload.get("description") or "").strip() or None,
            daily_rate=_positive_decimal(payload.get("daily_rate"), "Daily rate"),
            condition=condition,
            damage_deposit_amount=_positive_decimal(
                payload.get("damage_deposit_amount"), "Deposit amount", required=False
            ),
            damage_deposit_percentage=percentage,
            claim_window_hours=claim_window,
            is_available=bool(payload.get("is_available", True)),
        )
        db.session.add(equipment)
        db.session.commit()
        return equipment

    @staticmethod
    def get_equipment(equipment_id):
        equipment = db.session.get(Equipment, equipment_id)
        if not equipment:
            raise AppError("Equipment not found.", 404)
        return equipment

    @staticmethod
    def list_equipment(page=1, per_page=12, only_available=True):
        query = Equipment.query.options(joinedload(Equipment.owner)).order_by(Equipment.created_at.desc())
        if only_available:
            query = query.filter_by(is_available=True)
        return query.paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def toggle_availability(equipment_id, owner_id, is_available):
        equipment = Equipment.query.filter_by(id=equipment_id, owner_id=owner_id).first()
        if not equipment:
            raise AppError("Equipment not found.", 404)
        equipment.is_available = bool(is_available)
        db.session.commit()
        return equipment

    @staticmethod
    def set_slot(equipment_id, owner_id, day, is_blocked=False, custom_rate=None):
        """Block a day or override its rate. Clearing both removes the slot."""
        equipment = Equipment.query.filter_by(id=equipment_id, owner_id=owner_id).first()
        if not equipment:
            raise AppError("Equipment not found.", 404)
        day = parse_date(day)
        rate = _positive_decimal(custom_rate, "Custom rate", required=False)

        slot = AvailabilitySlot.query.filter_by(equipment_id=equipment.id, date=day).first()
        if not is_blocked and rate is None:
            if slot is not None:
                db.session.delete(slot)
                db.session.commit()
            return None
        if slot is None:
            slot = AvailabilitySlot(equipment_id=equipment.id, date=day)
            db.session.add(slot)
        slot.is_blocked = bool(is_blocked)
        slot.custom_rate = rate
        db.session.commit()
        return slot
