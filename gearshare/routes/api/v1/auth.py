from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from gearshare.extensions import limiter
from gearshare.services import AuthService

api_auth_bp = Blueprint("api_auth", __name__)


def _user_dict(user):
    return {"id": user.id, "email": user.email, "role": user.role, "full_name": user.full_name}


@api_auth_bp.post("/register")
@limiter.limit("15 per minute")
def api_register():
    payload = request.get_json(silent=True) or {}
    user = AuthService.register_user(
        full_name=payload.get("full_name", ""),
        email=payload.get("email", ""),
        password=payload.get("password", ""),
        role=payload.get("role", ""),
        phone=payload.get("phone", ""),
    )
    login_user(user)
    return jsonify(_user_dict(user)), 201


@api_auth_bp.post("/login")
@limiter.limit("30 per minute")
def api_login():
    payload = request.get_json(silent=True) or {}
    user = AuthService.authenticate_user(payload.get("email", ""), payload.get("password", ""))
    login_user(user)
    return jsonify(_user_dict(user))


@api_auth_bp.get("/me")
@login_required
def api_me():
    return jsonify(_user_dict(current_user))


@api_auth_bp.post("/logout")
@login_required
def api_logout():
    logout_user()
    return jsonify({"ok": True})
