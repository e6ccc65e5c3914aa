from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from gearshare.decorators import operation_context, role_required
from gearshare.services import AvailabilityService, EquipmentService, PricingService
from gearshare.services.equipment_service import parse_date

api_equipment_bp = Blueprint("api_equipment", __name__)


def _equipment_dict(equipment):
    return {
        "id": equipment.id,
        "title": equipment.title,
        "description": equipment.description,
        "daily_rate": str(equipment.daily_rate),
        "condition": equipment.condition,
        "deposit": str(PricingService.resolve_deposit(equipment)),
        "owner_id": equipment.owner_id,
        "owner_name": equipment.owner.full_name,
        "is_available": equipment.is_available,
    }


@api_equipment_bp.get("")
def list_equipment():
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=12, type=int)
    paginated = EquipmentService.list_equipment(page=page, per_page=min(per_page, 50), only_available=True)
    return jsonify(
        {
            "items": [_equipment_dict(item) for item in paginated.items],
            "meta": {
                "page": paginated.page,
                "pages": paginated.pages,
                "total": paginated.total,
                "has_next": paginated.has_next,
                "has_prev": paginated.has_prev,
            },
        }
    )


@api_equipment_bp.post("")
@login_required
@role_required("owner")
def create_equipment():
    payload = request.get_json(silent=True) or {}
    equipment = EquipmentService.create_equipment(current_user.id, payload)
    return jsonify(_equipment_dict(equipment)), 201


@api_equipment_bp.get("/<int:equipment_id>")
def equipment_detail(equipment_id):
    return jsonify(_equipment_dict(EquipmentService.get_equipment(equipment_id)))


@api_equipment_bp.patch("/<int:equipment_id>/availability")
@login_required
@role_required("owner")
def toggle_availability(equipment_id):
    payload = request.get_json(silent=True) or {}
    equipment = EquipmentService.toggle_availability(
        equipment_id=equipment_id,
        owner_id=current_user.id,
        is_available=payload.get("is_available", True),
    )
    return jsonify({"id": equipment.id, "is_available": equipment.is_available})


@api_equipment_bp.put("/<int:equipment_id>/slots/<day>")
@login_required
@role_required("owner")
def set_slot(equipment_id, day):
    payload = request.get_json(silent=True) or {}
    slot = EquipmentService.set_slot(
        equipment_id,
        current_user.id,
        day,
        is_blocked=bool(payload.get("is_blocked", False)),
        custom_rate=payload.get("custom_rate"),
    )
    if slot is None:
        return jsonify({"date": day, "cleared": True})
    return jsonify(
        {
            "date": slot.date.isoformat(),
            "is_blocked": slot.is_blocked,
            "custom_rate": str(slot.custom_rate) if slot.custom_rate is not None else None,
        }
    )


@api_equipment_bp.get("/<int:equipment_id>/calendar")
def calendar(equipment_id):
    EquipmentService.get_equipment(equipment_id)
    start = parse_date(request.args.get("start") or date.today().isoformat(), "start")
    days = min(request.args.get("days", default=30, type=int), 90)
    return jsonify(AvailabilityService.calendar(equipment_id, start, days=days))


@api_equipment_bp.get("/<int:equipment_id>/conflicts")
def conflicts(equipment_id):
    EquipmentService.get_equipment(equipment_id)
    start = parse_date(request.args.get("start"), "start")
    end = parse_date(request.args.get("end"), "end")
    context = operation_context()
    found = AvailabilityService.check_conflicts(
        equipment_id,
        start,
        end,
        exclude_booking_id=request.args.get("exclude_booking_id", type=int),
        context=context,
    )
    return jsonify(
        {
            "request_id": context.request_id,
            "available": not found,
            "conflicts": [conflict.as_dict() for conflict in found],
        }
    )


@api_equipment_bp.get("/<int:equipment_id>/quote")
def quote(equipment_id):
    equipment = EquipmentService.get_equipment(equipment_id)
    start = parse_date(request.args.get("start"), "start")
    end = parse_date(request.args.get("end"), "end")
    calculation = PricingService.quote(equipment, start, end, request.args.get("insurance_type"))
    return jsonify(calculation.as_dict())
