from gearshare.errors import AppError
from gearshare.extensions import bcrypt, db
from gearshare.models import User
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
import re

SELF_SERVICE_ROLES = {"renter", "owner"}


class AuthService:
    @staticmethod
    def _normalize_phone(phone):
        digits = "".join(ch for ch in (phone or "") if ch.isdigit())
        if not digits:
            return ""
        if not re.fullmatch(r"\d{7,15}", digits):
            raise AppError("Phone number must have 7 to 15 digits.", 400)
        return digits

    @staticmethod
    def register_user(full_name, email, password, role, phone=None):
        if role not in SELF_SERVICE_ROLES:
            raise AppError("Invalid role.", 400)

        normalized_email = (email or "").strip().lower()
        normalized_phone = AuthService._normalize_phone(phone)
        if not (full_name or "").strip() or not normalized_email or not password:
            raise AppError("Name, email, and password are required.", 400)
        if len(password) < 8:
            raise AppError("Password must be at least 8 characters.", 400)

        existing = User.query.filter_by(email=normalized_email).first()
        if existing:
            raise AppError("Email already registered.", 409)

        user = User(
            full_name=full_name.strip(),
            email=normalized_email,
            phone=normalized_phone,
            role=role,
            password_hash=bcrypt.generate_password_hash(password).decode("utf-8"),
        )
        try:
            db.session.add(user)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise AppError("Email already registered.", 409) from exc
        return user

    @staticmethod
    def authenticate_user(email, password):
        user = User.query.filter_by(email=(email or "").strip().lower()).first()
        if not user:
            raise AppError("Invalid credentials.", 401)

        try:
            is_valid = bcrypt.check_password_hash(user.password_hash, password or "")
        except ValueError:
            is_valid = False

        if not is_valid:
            raise AppError("Invalid credentials.", 401)
        if not user.is_active_user:
            raise AppError("User account is inactive.", 403)
        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user
