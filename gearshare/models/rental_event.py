from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin


class RentalEvent(TimestampMixin, db.Model):
    __tablename__ = "rental_events"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        PKType, db.ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type = db.Column(db.String(40), nullable=False, index=True)
    actor_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payload = db.Column(db.JSON, nullable=False, default=dict)

    booking = db.relationship("BookingRequest", back_populates="events")
