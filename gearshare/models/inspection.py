from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin

INSPECTION_PICKUP = "pickup"
INSPECTION_RETURN = "return"
INSPECTION_TYPES = (INSPECTION_PICKUP, INSPECTION_RETURN)


class Inspection(TimestampMixin, db.Model):
    __tablename__ = "inspections"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        PKType, db.ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    inspection_type = db.Column(db.String(16), nullable=False)
    inspector_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    checklist = db.Column(db.JSON, nullable=False, default=list)
    photos = db.Column(db.JSON, nullable=False, default=list)
    notes = db.Column(db.Text, nullable=True)
    latitude = db.Column(db.Numeric(10, 7), nullable=True)
    longitude = db.Column(db.Numeric(10, 7), nullable=True)
    inspected_at = db.Column(db.DateTime(timezone=True), nullable=False)

    booking = db.relationship("BookingRequest", back_populates="inspections")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "inspection_type", name="uq_inspection_booking_type"),
        db.CheckConstraint("inspection_type IN ('pickup', 'return')", name="ck_inspection_type"),
    )
