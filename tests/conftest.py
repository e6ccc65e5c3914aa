import itertools
from datetime import date, timedelta
from decimal import Decimal

import pytest
from flask import g

from gearshare import create_app
from gearshare.config import TestingConfig
from gearshare.errors import CollaboratorUnavailable
from gearshare.extensions import bcrypt, db
from gearshare.models import Equipment, User
from gearshare.services import BookingService, PaymentService
from gearshare.services.payment_gateway import GATEWAY_EXTENSION_KEY, PaymentGateway, PaymentIntent

PASSWORD = "correct-horse-battery"
GOOD_CHECKLIST = [
    {"item": "Lens", "status": "good"},
    {"item": "Body", "status": "good"},
    {"item": "Battery", "status": "fair"},
]


class FakeGateway(PaymentGateway):
    """Records every call; failures are switched on per test."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.created = []
        self.refunds = []
        self.fail_create = False
        self.fail_refund = False
        self.confirm_result = True

    def create_payment_intent(self, booking, amount):
        if self.fail_create:
            raise CollaboratorUnavailable("Payment provider is unavailable. Please try again.")
        intent_id = f"pi_test_{next(self._ids)}"
        self.created.append((intent_id, booking.id, Decimal(str(amount))))
        return PaymentIntent(intent_id=intent_id, client_secret=f"{intent_id}_secret")

    def confirm(self, intent_id):
        return self.confirm_result

    def refund(self, intent_id, reason, amount=None):
        if self.fail_refund:
            return False
        self.refunds.append((intent_id, reason, amount))
        return True


@pytest.fixture
def app():
    app = create_app(TestingConfig)

    # Test requests reuse this app context, so drop the user Flask-Login cached on g.
    @app.before_request
    def forget_cached_user():
        g.pop("_login_user", None)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def gateway(app):
    fake = FakeGateway()
    app.extensions[GATEWAY_EXTENSION_KEY] = fake
    return fake


@pytest.fixture
def client(app, gateway):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def factory(role="renter", **fields):
        n = next(counter)
        user = User(
            full_name=fields.pop("full_name", f"{role.title()} {n}"),
            email=fields.pop("email", f"{role}{n}@example.com"),
            role=role,
            password_hash=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
            **fields,
        )
        db.session.add(user)
        db.session.commit()
        return user

    return factory


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def renter(make_user):
    return make_user("renter")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def make_equipment(app):
    def factory(owner, daily_rate="100.00", **fields):
        equipment = Equipment(
            owner_id=owner.id,
            title=fields.pop("title", "Mirrorless camera kit"),
            daily_rate=Decimal(daily_rate),
            **fields,
        )
        db.session.add(equipment)
        db.session.commit()
        return equipment

    return factory


@pytest.fixture
def equipment(make_equipment, owner):
    return make_equipment(owner, damage_deposit_amount=Decimal("50.00"))


@pytest.fixture
def start_date():
    return date.today() + timedelta(days=10)


@pytest.fixture
def paid_booking(app, gateway, owner, renter, equipment, start_date):
    """Approved booking with its payment captured into escrow."""
    booking = BookingService.create_booking(renter.id, equipment.id, start_date, start_date + timedelta(days=3))
    BookingService.approve(booking, owner)
    payment = PaymentService.initialize_payment(booking, renter)
    PaymentService.record_capture(payment.intent_id)
    return booking
