from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin


class Equipment(TimestampMixin, db.Model):
    __tablename__ = "equipment"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(140), nullable=False)
    description = db.Column(db.Text, nullable=True)
    daily_rate = db.Column(db.Numeric(10, 2), nullable=False)
    condition = db.Column(db.String(24), nullable=False, default="good")
    # Fixed amount wins over the percentage (of the daily rate) when both are set.
    damage_deposit_amount = db.Column(db.Numeric(10, 2), nullable=True)
    damage_deposit_percentage = db.Column(db.Integer, nullable=True)
    claim_window_hours = db.Column(db.Integer, nullable=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)

    owner = db.relationship("User", back_populates="equipment")
    bookings = db.relationship("BookingRequest", back_populates="equipment", lazy="dynamic")
    availability_slots = db.relationship(
        "AvailabilitySlot", back_populates="equipment", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.CheckConstraint("daily_rate > 0", name="ck_equipment_daily_rate_positive"),
        db.CheckConstraint(
            "damage_deposit_percentage IS NULL OR (damage_deposit_percentage >= 0 AND damage_deposit_percentage <= 100)",
            name="ck_equipment_deposit_percentage_range",
        ),
        db.Index("ix_equipment_owner_available", "owner_id", "is_available"),
    )
