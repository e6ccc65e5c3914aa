from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from gearshare.decorators import operation_context, role_required
from gearshare.models import BookingRequest
from gearshare.services import BookingService, InspectionService, PaymentService
from gearshare.services.equipment_service import parse_date

api_booking_bp = Blueprint("api_booking", __name__)


def booking_dict(booking):
    return {
        "id": booking.id,
        "status": booking.status.value,
        "status_label": booking.status.label,
        "equipment_id": booking.equipment_id,
        "renter_id": booking.renter_id,
        "owner_id": booking.owner_id,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
        "days": booking.days,
        "subtotal": str(booking.subtotal),
        "service_fee": str(booking.service_fee),
        "insurance_type": booking.insurance_type,
        "insurance_cost": str(booking.insurance_cost),
        "deposit_amount": str(booking.deposit_amount),
        "total_amount": str(booking.total_amount),
        "claim_prompted": booking.claim_prompted,
        "created_at": booking.created_at.isoformat(),
    }


def _party_booking(booking_id):
    booking = BookingService.get_booking(booking_id)
    BookingService._require_party(booking, current_user)
    return booking


@api_booking_bp.post("")
@login_required
@role_required("renter")
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.create_booking(
        renter_id=current_user.id,
        equipment_id=payload.get("equipment_id"),
        start_date=parse_date(payload.get("start_date"), "start date"),
        end_date=parse_date(payload.get("end_date"), "end date"),
        insurance_type=payload.get("insurance_type"),
        message=payload.get("message"),
        context=operation_context(),
    )
    return jsonify(booking_dict(booking)), 201


@api_booking_bp.get("/me")
@login_required
def my_bookings():
    column = BookingRequest.owner_id if current_user.role == "owner" else BookingRequest.renter_id
    rows = BookingRequest.query.filter(column == current_user.id).order_by(BookingRequest.created_at.desc()).all()
    return jsonify([booking_dict(b) for b in rows])


@api_booking_bp.get("/<int:booking_id>")
@login_required
def booking_detail(booking_id):
    booking = _party_booking(booking_id)
    data = booking_dict(booking)
    data["events"] = [
        {"type": event.event_type, "actor_id": event.actor_id, "at": event.created_at.isoformat()}
        for event in booking.events
    ]
    return jsonify(data)


@api_booking_bp.post("/<int:booking_id>/approve")
@login_required
def approve(booking_id):
    booking = BookingService.approve(BookingService.get_booking(booking_id), current_user, operation_context())
    return jsonify(booking_dict(booking))


@api_booking_bp.post("/<int:booking_id>/decline")
@login_required
def decline(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.decline(
        BookingService.get_booking(booking_id), current_user, payload.get("reason"), operation_context()
    )
    return jsonify(booking_dict(booking))


@api_booking_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel(booking_id):
    payload = request.get_json(silent=True) or {}
    result = BookingService.cancel(
        BookingService.get_booking(booking_id), current_user, payload.get("reason"), operation_context()
    )
    data = booking_dict(result.booking)
    data["refund"] = result.refund.as_dict() if result.refund else None
    return jsonify(data)


@api_booking_bp.post("/<int:booking_id>/payment")
@login_required
def initialize_payment(booking_id):
    booking = _party_booking(booking_id)
    payment = PaymentService.initialize_payment(booking, current_user, context=operation_context())
    return jsonify(
        {
            "payment_id": payment.id,
            "intent_id": payment.intent_id,
            "client_secret": payment.client_secret,
            "amount": str(payment.amount),
            "status": payment.payment_status,
        }
    ), 201


@api_booking_bp.post("/<int:booking_id>/payment/confirm")
@login_required
def confirm_payment(booking_id):
    booking = _party_booking(booking_id)
    payload = request.get_json(silent=True) or {}
    confirmation = PaymentService.confirm_payment(booking, payload.get("intent_id"))
    payment = confirmation.payment
    return jsonify(
        {
            "state": confirmation.state,
            "pending_reconciliation": confirmation.pending_reconciliation,
            "payment_status": payment.payment_status if payment else None,
            "escrow_status": payment.escrow_status if payment else None,
        }
    )


@api_booking_bp.post("/<int:booking_id>/inspections")
@login_required
def record_inspection(booking_id):
    booking = BookingService.get_booking(booking_id)
    payload = request.get_json(silent=True) or {}
    inspection = InspectionService.record_inspection(
        booking,
        current_user,
        payload.get("inspection_type"),
        payload.get("checklist"),
        photos=payload.get("photos"),
        notes=payload.get("notes"),
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        context=operation_context(),
    )
    return jsonify(
        {
            "id": inspection.id,
            "inspection_type": inspection.inspection_type,
            "checklist": inspection.checklist,
            "booking_status": booking.status.value,
        }
    ), 201


@api_booking_bp.post("/<int:booking_id>/complete")
@login_required
def complete(booking_id):
    result = BookingService.complete(BookingService.get_booking(booking_id), current_user, operation_context())
    data = booking_dict(result.booking)
    data["condition_report"] = result.report.as_dict()
    data["release_due_at"] = result.release_due_at.isoformat() if result.release_due_at else None
    return jsonify(data)


@api_booking_bp.get("/<int:booking_id>/condition-report")
@login_required
def condition_report(booking_id):
    booking = _party_booking(booking_id)
    return jsonify(InspectionService.condition_report(booking).as_dict())
