from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from gearshare.decorators import role_required
from gearshare.errors import NotFoundError
from gearshare.extensions import db
from gearshare.models import User
from gearshare.services import TrustService

api_verification_bp = Blueprint("api_verification", __name__)


def _profile(user):
    score = TrustService.profile_score(user.id)
    data = score.as_dict()
    data.update(
        {
            "user_id": user.id,
            "identity_verified": user.identity_verified,
            "phone_verified": user.phone_verified,
            "email_verified": user.email_verified,
            "address_verified": user.address_verified,
            "verification_progress": TrustService.verification_progress(user),
            "meets_minimum": TrustService.meets_minimum_verification(user),
            "status_message": TrustService.verification_status_message(user),
        }
    )
    return data


@api_verification_bp.get("/me")
@login_required
def my_profile():
    return jsonify(_profile(current_user))


@api_verification_bp.get("/users/<int:user_id>")
@login_required
def user_profile(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.")
    return jsonify(_profile(user))


@api_verification_bp.patch("/users/<int:user_id>")
@login_required
@role_required("admin")
def update_flags(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.")
    payload = request.get_json(silent=True) or {}
    TrustService.set_verification(user, **payload)
    return jsonify(_profile(user))
