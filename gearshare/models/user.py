from flask_login import UserMixin

from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin

USER_ROLES = ("renter", "owner", "admin")


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(20), nullable=False, default="")
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(24), nullable=False, index=True)
    is_active_user = db.Column(db.Boolean, nullable=False, default=True)
    last_login = db.Column(db.DateTime(timezone=True), nullable=True)

    identity_verified = db.Column(db.Boolean, nullable=False, default=False)
    phone_verified = db.Column(db.Boolean, nullable=False, default=False)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    address_verified = db.Column(db.Boolean, nullable=False, default=False)
    verified_at = db.Column(db.DateTime(timezone=True), nullable=True)
    average_response_time_hours = db.Column(db.Numeric(6, 2), nullable=True)

    equipment = db.relationship("Equipment", back_populates="owner", lazy="dynamic")
    rentals = db.relationship(
        "BookingRequest", back_populates="renter", lazy="dynamic", foreign_keys="BookingRequest.renter_id"
    )
    owner_bookings = db.relationship(
        "BookingRequest", back_populates="owner", lazy="dynamic", foreign_keys="BookingRequest.owner_id"
    )
    notifications = db.relationship("Notification", back_populates="user", lazy="dynamic")
