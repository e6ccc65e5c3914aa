import enum

from gearshare.extensions import db
from gearshare.models.base import PKType, TimestampMixin


class BookingStatus(enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    COMPLETED = "completed"
    DECLINED = "declined"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self):
        return self in TERMINAL_STATUSES

    @property
    def label(self):
        return {
            BookingStatus.PENDING: "Pending Approval",
            BookingStatus.APPROVED: "Approved",
            BookingStatus.ACTIVE: "Active",
            BookingStatus.COMPLETED: "Completed",
            BookingStatus.DECLINED: "Declined",
            BookingStatus.CANCELLED: "Cancelled",
        }[self]


TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.DECLINED, BookingStatus.CANCELLED})

# Statuses that hold the equipment calendar for overlap checks.
CALENDAR_HOLDING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.APPROVED, BookingStatus.ACTIVE})


class BookingRequest(TimestampMixin, db.Model):
    __tablename__ = "booking_requests"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    equipment_id = db.Column(PKType, db.ForeignKey("equipment.id", ondelete="CASCADE"), nullable=False, index=True)
    renter_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(
        db.Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=16,
            values_callable=lambda members: [member.value for member in members],
            validate_strings=True,
        ),
        nullable=False,
        default=BookingStatus.PENDING,
        index=True,
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    daily_rate = db.Column(db.Numeric(10, 2), nullable=False)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    service_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    insurance_type = db.Column(db.String(16), nullable=False, default="none")
    insurance_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    deposit_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    message = db.Column(db.Text, nullable=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=True)
    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    claim_prompted = db.Column(db.Boolean, nullable=False, default=False)

    equipment = db.relationship("Equipment", back_populates="bookings")
    renter = db.relationship("User", back_populates="rentals", foreign_keys=[renter_id])
    owner = db.relationship("User", back_populates="owner_bookings", foreign_keys=[owner_id])
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic", order_by="Payment.id")
    inspections = db.relationship("Inspection", back_populates="booking", lazy="dynamic")
    claims = db.relationship("DamageClaim", back_populates="booking", lazy="dynamic")
    events = db.relationship("RentalEvent", back_populates="booking", lazy="dynamic", order_by="RentalEvent.id")

    __table_args__ = (
        db.Index("ix_booking_requests_renter_status", "renter_id", "status"),
        db.Index("ix_booking_requests_equipment_dates", "equipment_id", "start_date", "end_date"),
        db.CheckConstraint("start_date < end_date", name="ck_booking_dates_ordered"),
        db.CheckConstraint("total_amount >= 0", name="ck_booking_total_non_negative"),
    )

    @property
    def days(self):
        return (self.end_date - self.start_date).days

    def is_party(self, user_id):
        return user_id in {self.renter_id, self.owner_id}
