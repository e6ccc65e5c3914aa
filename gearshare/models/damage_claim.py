from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin

CLAIM_PENDING = "pending"
CLAIM_DISPUTED = "disputed"
CLAIM_RESOLVED = "resolved"
OPEN_CLAIM_STATUSES = (CLAIM_PENDING, CLAIM_DISPUTED)


class DamageClaim(TimestampMixin, db.Model):
    __tablename__ = "damage_claims"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        PKType, db.ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filed_by = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    description = db.Column(db.Text, nullable=False)
    estimated_cost = db.Column(db.Numeric(12, 2), nullable=False)
    evidence = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(db.String(16), nullable=False, default=CLAIM_PENDING, index=True)
    renter_response = db.Column(db.Text, nullable=True)
    final_amount = db.Column(db.Numeric(12, 2), nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    booking = db.relationship("BookingRequest", back_populates="claims")

    __table_args__ = (db.CheckConstraint("estimated_cost > 0", name="ck_claim_estimated_cost_positive"),)
