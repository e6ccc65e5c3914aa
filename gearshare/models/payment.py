from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin

PAYMENT_PENDING = "pending"
PAYMENT_PROCESSING = "processing"
PAYMENT_SUCCEEDED = "succeeded"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PROCESSING, PAYMENT_SUCCEEDED, PAYMENT_FAILED, PAYMENT_REFUNDED)

ESCROW_HELD = "held"
ESCROW_RELEASED = "released"
ESCROW_REFUNDED = "refunded"
ESCROW_DISPUTED = "disputed"
ESCROW_STATUSES = (ESCROW_HELD, ESCROW_RELEASED, ESCROW_REFUNDED, ESCROW_DISPUTED)

DEPOSIT_HELD = "held"
DEPOSIT_RELEASING = "releasing"
DEPOSIT_RELEASED = "released"
DEPOSIT_CLAIMED = "claimed"
DEPOSIT_REFUNDED = "refunded"


class Payment(TimestampMixin, db.Model):
    __tablename__ = "payments"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(
        PKType, db.ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    intent_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    client_secret = db.Column(db.String(255), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_status = db.Column(db.String(24), nullable=False, default=PAYMENT_PENDING, index=True)
    escrow_status = db.Column(db.String(24), nullable=True, index=True)
    deposit_status = db.Column(db.String(24), nullable=True, index=True)

    refund_amount = db.Column(db.Numeric(12, 2), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)
    captured_at = db.Column(db.DateTime(timezone=True), nullable=True)
    release_due_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deposit_released_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deposit_refund_amount = db.Column(db.Numeric(12, 2), nullable=True)

    booking = db.relationship("BookingRequest", back_populates="payments")

    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        db.Index("ix_payments_booking_status", "booking_id", "payment_status"),
    )

    @property
    def is_succeeded(self):
        return self.payment_status == PAYMENT_SUCCEEDED
