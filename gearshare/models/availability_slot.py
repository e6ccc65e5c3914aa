from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin


class AvailabilitySlot(TimestampMixin, db.Model):
    __tablename__ = "availability_slots"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    equipment_id = db.Column(PKType, db.ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False)
    is_blocked = db.Column(db.Boolean, nullable=False, default=False)
    custom_rate = db.Column(db.Numeric(10, 2), nullable=True)

    equipment = db.relationship("Equipment", back_populates="availability_slots")

    __table_args__ = (
        db.UniqueConstraint("equipment_id", "date", name="uq_availability_equipment_date"),
        db.CheckConstraint("custom_rate IS NULL OR custom_rate > 0", name="ck_availability_custom_rate_positive"),
    )
