from datetime import timedelta

import pytest

from gearshare import create_app
from gearshare.config import TestingConfig
from gearshare.extensions import db
from gearshare.models import BookingRequest, BookingStatus, Payment
from gearshare.models.payment import ESCROW_RELEASED, PAYMENT_SUCCEEDED
from gearshare.services import InspectionService
from tests.conftest import GOOD_CHECKLIST, PASSWORD


@pytest.fixture
def login(app, gateway):
    def _login(user):
        client = app.test_client()
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        return client

    return _login


def test_register_and_me(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"full_name": "Dana Lee", "email": "Dana@Example.com", "password": "long-enough-1", "role": "owner"},
    )
    assert response.status_code == 201
    assert response.get_json()["email"] == "dana@example.com"

    assert client.get("/api/v1/auth/me").get_json()["role"] == "owner"


def test_admin_role_cannot_be_self_assigned(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"full_name": "Eve", "email": "eve@example.com", "password": "long-enough-1", "role": "admin"},
    )
    assert response.status_code == 400


def test_anonymous_requests_get_json_401(client):
    response = client.post("/api/v1/bookings", json={})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Unauthorized"}


def test_wrong_password_is_rejected(client, renter):
    response = client.post("/api/v1/auth/login", json={"email": renter.email, "password": "nope"})
    assert response.status_code == 401


def test_owner_lists_equipment_with_blocked_day(login, owner, start_date):
    client = login(owner)
    created = client.post(
        "/api/v1/equipment", json={"title": "Drone", "daily_rate": "80", "damage_deposit_percentage": 50}
    )
    assert created.status_code == 201
    equipment_id = created.get_json()["id"]
    assert created.get_json()["deposit"] == "40.00"

    blocked = start_date + timedelta(days=1)
    assert client.put(
        f"/api/v1/equipment/{equipment_id}/slots/{blocked.isoformat()}", json={"is_blocked": True}
    ).status_code == 200

    result = client.get(
        f"/api/v1/equipment/{equipment_id}/conflicts",
        query_string={"start": start_date.isoformat(), "end": (start_date + timedelta(days=3)).isoformat()},
        headers={"X-Request-Id": "7"},
    ).get_json()
    assert result["request_id"] == 7
    assert result["available"] is False
    assert [c["type"] for c in result["conflicts"]] == ["unavailable"]

    listing = client.get("/api/v1/equipment").get_json()
    assert listing["meta"]["total"] == 1


def test_renter_cannot_create_equipment(login, renter):
    response = login(renter).post("/api/v1/equipment", json={"title": "Tent", "daily_rate": "10"})
    assert response.status_code == 403


def test_quote_endpoint(client, equipment, start_date):
    response = client.get(
        f"/api/v1/equipment/{equipment.id}/quote",
        query_string={
            "start": start_date.isoformat(),
            "end": (start_date + timedelta(days=2)).isoformat(),
            "insurance_type": "premium",
        },
    )
    body = response.get_json()
    assert body["subtotal"] == "200.00"
    assert body["insurance"] == "20.00"
    assert body["total"] == "280.00"


def test_full_rental_over_http(app, login, owner, renter, equipment, start_date, gateway):
    renter_client = login(renter)
    owner_client = login(owner)

    created = renter_client.post(
        "/api/v1/bookings",
        json={
            "equipment_id": equipment.id,
            "start_date": start_date.isoformat(),
            "end_date": (start_date + timedelta(days=2)).isoformat(),
        },
    )
    assert created.status_code == 201
    booking_id = created.get_json()["id"]

    overlap = renter_client.post(
        "/api/v1/bookings",
        json={
            "equipment_id": equipment.id,
            "start_date": (start_date + timedelta(days=1)).isoformat(),
            "end_date": (start_date + timedelta(days=3)).isoformat(),
        },
    )
    assert overlap.status_code == 409

    assert renter_client.post(f"/api/v1/bookings/{booking_id}/approve").status_code == 403
    assert owner_client.post(f"/api/v1/bookings/{booking_id}/approve").get_json()["status"] == "approved"

    intent = renter_client.post(f"/api/v1/bookings/{booking_id}/payment").get_json()
    assert intent["client_secret"].startswith(intent["intent_id"])

    webhook = renter_client.post(
        "/api/v1/payments/webhook",
        json={"type": "payment_intent.succeeded", "data": {"object": {"id": intent["intent_id"]}}},
    )
    assert webhook.get_json()["payment_status"] == PAYMENT_SUCCEEDED

    confirmed = renter_client.post(
        f"/api/v1/bookings/{booking_id}/payment/confirm", json={"intent_id": intent["intent_id"]}
    ).get_json()
    assert confirmed["state"] == "confirmed"
    assert confirmed["escrow_status"] == "held"

    pickup = renter_client.post(
        f"/api/v1/bookings/{booking_id}/inspections", json={"inspection_type": "pickup", "checklist": GOOD_CHECKLIST}
    )
    assert pickup.get_json()["booking_status"] == "active"
    assert renter_client.post(f"/api/v1/bookings/{booking_id}/cancel").status_code == 409

    owner_client.post(
        f"/api/v1/bookings/{booking_id}/inspections", json={"inspection_type": "return", "checklist": GOOD_CHECKLIST}
    )
    completed = owner_client.post(f"/api/v1/bookings/{booking_id}/complete").get_json()
    assert completed["status"] == "completed"
    assert completed["condition_report"]["has_degraded"] is False
    assert completed["release_due_at"] is not None

    report = renter_client.get(f"/api/v1/bookings/{booking_id}/condition-report").get_json()
    assert report == {"has_degraded": False, "degraded_items": []}

    review = renter_client.post("/api/v1/reviews", json={"booking_id": booking_id, "rating": 5, "comment": "Great"})
    assert review.status_code == 201
    assert renter_client.post("/api/v1/reviews", json={"booking_id": booking_id, "rating": 4}).status_code == 409

    trust = renter_client.get(f"/api/v1/verification/users/{owner.id}").get_json()
    assert trust["components"]["reviews"] == 20
    assert trust["components"]["completed_bookings"] == 2

    notifications = renter_client.get("/api/v1/notifications/me").get_json()
    assert notifications["unread"] >= 1
    assert {"booking_approved", "rental_completed"} <= {item["kind"] for item in notifications["items"]}

    # Sweep after the claim window.
    payment = Payment.query.filter_by(booking_id=booking_id).one()
    payment.release_due_at = payment.release_due_at - timedelta(hours=49)
    db.session.commit()
    result = app.test_cli_runner().invoke(args=["release-deposits"])
    assert "released 1" in result.output
    db.session.expire_all()
    assert Payment.query.filter_by(booking_id=booking_id).one().escrow_status == ESCROW_RELEASED


def test_strangers_cannot_read_a_booking(login, make_user, paid_booking):
    stranger = make_user("renter")
    response = login(stranger).get(f"/api/v1/bookings/{paid_booking.id}")
    assert response.status_code == 403


def test_webhook_for_unknown_intent_is_acknowledged(client):
    response = client.post(
        "/api/v1/payments/webhook",
        json={"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_unknown"}}},
    )
    assert response.status_code == 200
    assert response.get_json()["handled"] is False


def test_malformed_webhook_is_rejected(client):
    assert client.post("/api/v1/payments/webhook", json={"type": "x"}).status_code == 400


def test_reconcile_payments_command(app, login, renter, owner, equipment, start_date):
    renter_client = login(renter)
    booking_id = renter_client.post(
        "/api/v1/bookings",
        json={
            "equipment_id": equipment.id,
            "start_date": start_date.isoformat(),
            "end_date": (start_date + timedelta(days=1)).isoformat(),
        },
    ).get_json()["id"]
    renter_client.post(f"/api/v1/bookings/{booking_id}/payment")

    result = app.test_cli_runner().invoke(args=["reconcile-payments"])

    assert "captured 1" in result.output
    db.session.expire_all()
    assert db.session.get(BookingRequest, booking_id).payments.first().payment_status == PAYMENT_SUCCEEDED


def test_each_client_sees_its_own_user(login, renter, owner):
    renter_client = login(renter)
    owner_client = login(owner)

    assert renter_client.get("/api/v1/auth/me").get_json()["id"] == renter.id
    assert owner_client.get("/api/v1/auth/me").get_json()["id"] == owner.id
    assert renter_client.get("/api/v1/auth/me").get_json()["id"] == renter.id


def test_renter_cannot_complete_rental(login, paid_booking, renter, owner):
    InspectionService.record_inspection(paid_booking, renter, "pickup", GOOD_CHECKLIST)
    InspectionService.record_inspection(paid_booking, owner, "return", GOOD_CHECKLIST)

    response = login(renter).post(f"/api/v1/bookings/{paid_booking.id}/complete")

    assert response.status_code == 403
    assert paid_booking.status == BookingStatus.ACTIVE


class RateLimitedConfig(TestingConfig):
    RATELIMIT_ENABLED = True


def test_registration_is_rate_limited():
    app = create_app(RateLimitedConfig)
    with app.app_context():
        db.create_all()
        client = app.test_client()
        statuses = [client.post("/api/v1/auth/register", json={}).status_code for _ in range(16)]
        db.session.remove()
        db.drop_all()

    assert set(statuses[:15]) == {400}
    assert statuses[15] == 429
