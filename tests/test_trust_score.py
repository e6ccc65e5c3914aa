from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from gearshare.errors import NotFoundError
from gearshare.extensions import db
from gearshare.models import BookingRequest, Review
from gearshare.models.base import utcnow
from gearshare.services.trust_service import TrustScoreModel, TrustService


def test_established_user_is_excellent():
    score = TrustScoreModel.score(
        identity_verified=True,
        phone_verified=True,
        email_verified=True,
        completed_bookings=10,
        average_rating=5.0,
        total_reviews=10,
        average_response_time_hours=1,
        account_age_days=365,
    )

    assert score.components["verification"] == 30
    assert score.components["completed_bookings"] == 20
    assert score.components["account_age"] == 10
    assert score.overall > 80
    assert score.label == "Excellent"


def test_new_user_is_building_trust():
    score = TrustScoreModel.score(False, False, False, 0, 0, 0, 100, 0)

    assert score.overall < 10
    assert score.label == "Building Trust"


def test_components_are_rounded_before_summing():
    # reviews: 4.4/5*20 + 3/10 = 17.6 + 0.3 = 17.9 -> 18; account age: 200/365*10 = 5.48 -> 5
    score = TrustScoreModel.score(True, False, False, 3, Decimal("4.4"), 3, 10, 200)

    assert score.components == {
        "verification": 15,
        "reviews": 18,
        "completed_bookings": 6,
        "response_time": 12,
        "account_age": 5,
    }
    assert score.overall == 56
    assert score.label == "Fair"


def test_half_points_round_up():
    # 4.5/5*20 = 18, volume 5/10 = 0.5 -> 18.5 rounds to 19
    assert TrustScoreModel.score(False, False, False, 0, Decimal("4.5"), 5, 30, 0).components["reviews"] == 19


@pytest.mark.parametrize("hours, points", [(6, 15), (6.5, 12), (12, 12), (24, 10), (24.1, 5)])
def test_response_time_is_a_step_function(hours, points):
    assert TrustScoreModel.score(False, False, False, 0, 0, 0, hours, 0).components["response_time"] == points


def test_reviews_without_count_score_zero():
    assert TrustScoreModel.score(False, False, False, 0, 5, 0, 30, 0).components["reviews"] == 0


def test_same_inputs_give_identical_scores():
    args = (True, True, False, 4, Decimal("4.2"), 7, 8, 90)
    assert TrustScoreModel.score(*args) == TrustScoreModel.score(*args)


def test_profile_score_missing_user_is_fatal(app):
    with pytest.raises(NotFoundError):
        TrustService.profile_score(999)


def test_profile_score_uses_stored_facts(paid_booking, renter, owner):
    db.session.add(Review(booking_id=paid_booking.id, reviewer_id=owner.id, reviewee_id=renter.id, rating=5))
    renter.identity_verified = True
    renter.created_at = utcnow() - timedelta(days=365)
    db.session.commit()

    score = TrustService.profile_score(renter.id, now=utcnow())

    assert score.components["verification"] == 15
    assert score.components["reviews"] == 20
    assert score.components["response_time"] == 12
    assert score.components["account_age"] == 10


class _BrokenQuery:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("replica lag"))

        return fail


def test_profile_score_degrades_when_aggregates_fail(app, renter, monkeypatch):
    monkeypatch.setattr(Review, "query", _BrokenQuery())
    monkeypatch.setattr(BookingRequest, "query", _BrokenQuery())
    renter.email_verified = True
    db.session.commit()

    score = TrustService.profile_score(renter.id, now=utcnow())

    assert score.components["reviews"] == 0
    assert score.components["completed_bookings"] == 0
    assert score.components["verification"] == 7


def test_verification_progress_and_messages(app, renter):
    assert TrustService.verification_progress(renter) == 0
    assert TrustService.verification_status_message(renter) == "Verify your email to get started"

    TrustService.set_verification(renter, email_verified=True, identity_verified=True)

    assert TrustService.verification_progress(renter) == 50
    assert TrustService.meets_minimum_verification(renter)
    assert TrustService.verification_status_message(renter) == "Verified"
    assert renter.verified_at is not None
