from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from gearshare.decorators import role_required
from gearshare.services import BookingService, ClaimService

api_claim_bp = Blueprint("api_claim", __name__)


def _claim_dict(claim):
    return {
        "id": claim.id,
        "booking_id": claim.booking_id,
        "status": claim.status,
        "description": claim.description,
        "estimated_cost": str(claim.estimated_cost),
        "final_amount": str(claim.final_amount) if claim.final_amount is not None else None,
        "renter_response": claim.renter_response,
        "evidence": claim.evidence,
    }


@api_claim_bp.post("")
@login_required
@role_required("owner")
def file_claim():
    payload = request.get_json(silent=True) or {}
    booking = BookingService.get_booking(payload.get("booking_id"))
    claim = ClaimService.file_claim(
        booking,
        current_user,
        payload.get("description"),
        payload.get("estimated_cost"),
        evidence=payload.get("evidence"),
    )
    return jsonify(_claim_dict(claim)), 201


@api_claim_bp.get("/booking/<int:booking_id>")
@login_required
def claims_for_booking(booking_id):
    booking = BookingService.get_booking(booking_id)
    BookingService._require_party(booking, current_user)
    return jsonify([_claim_dict(claim) for claim in ClaimService.claims_for_booking(booking)])


@api_claim_bp.post("/<int:claim_id>/respond")
@login_required
@role_required("renter")
def respond(claim_id):
    payload = request.get_json(silent=True) or {}
    claim = ClaimService.respond(
        ClaimService.get_claim(claim_id),
        current_user,
        accept=bool(payload.get("accept")),
        response=payload.get("response"),
    )
    return jsonify(_claim_dict(claim))


@api_claim_bp.post("/<int:claim_id>/resolve")
@login_required
@role_required("admin")
def resolve(claim_id):
    payload = request.get_json(silent=True) or {}
    claim = ClaimService.resolve(ClaimService.get_claim(claim_id), current_user, payload.get("final_amount"))
    return jsonify(_claim_dict(claim))
