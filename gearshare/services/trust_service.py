from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from gearshare.errors import NotFoundError
from gearshare.extensions import cache, db
from gearshare.models import BookingRequest, BookingStatus, Review, User
from gearshare.models.base import as_utc, utcnow

DEFAULT_RESPONSE_TIME_HOURS = 12
VERIFICATION_FLAGS = ("identity_verified", "phone_verified", "email_verified", "address_verified")


def _round(value) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class TrustScore:
    overall: int
    components: Dict[str, int] = field(default_factory=dict)

    @property
    def label(self) -> str:
        if self.overall >= 80:
            return "Excellent"
        if self.overall >= 60:
            return "Good"
        if self.overall >= 40:
            return "Fair"
        return "Building Trust"

    def as_dict(self):
        return {"overall": self.overall, "label": self.label, "components": dict(self.components)}


class TrustScoreModel:
    """0-100 composite score. Components are rounded one by one, then summed."""

    @staticmethod
    def verification_points(identity_verified, phone_verified, email_verified):
        return (15 if identity_verified else 0) + (8 if phone_verified else 0) + (7 if email_verified else 0)

    @staticmethod
    def review_points(average_rating, total_reviews):
        if not total_reviews or total_reviews <= 0:
            return 0
        rating = Decimal(str(average_rating or 0))
        return rating / Decimal(5) * Decimal(20) + min(Decimal(total_reviews) / Decimal(10), Decimal(5))

    @staticmethod
    def response_points(average_response_time_hours):
        hours = Decimal(str(average_response_time_hours))
        if hours <= 6:
            return 15
        if hours <= 12:
            return 12
        if hours <= 24:
            return 10
        return 5

    @staticmethod
    def score(
        identity_verified,
        phone_verified,
        email_verified,
        completed_bookings,
        average_rating,
        total_reviews,
        average_response_time_hours,
        account_age_days,
    ) -> TrustScore:
        components = {
            "verification": _round(
                TrustScoreModel.verification_points(identity_verified, phone_verified, email_verified)
            ),
            "reviews": _round(TrustScoreModel.review_points(average_rating, total_reviews)),
            "completed_bookings": _round(min(max(int(completed_bookings or 0), 0) * 2, 20)),
            "response_time": _round(TrustScoreModel.response_points(average_response_time_hours)),
            "account_age": _round(
                min(Decimal(max(int(account_age_days or 0), 0)) / Decimal(365) * Decimal(10), Decimal(10))
            ),
        }
        return TrustScore(overall=sum(components.values()), components=components)


class TrustService:
    @staticmethod
    def _review_stats(user_id):
        try:
            average, total = (
                Review.query.with_entities(func.avg(Review.rating), func.count(Review.id))
                .filter(Review.reviewee_id == user_id)
                .one()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning("Review stats unavailable for user %s: %s", user_id, exc)
            return Decimal("0"), 0
        return Decimal(str(round(float(average or 0), 2))), int(total or 0)

    @staticmethod
    def _completed_bookings(user_id):
        try:
            return (
                BookingRequest.query.filter(BookingRequest.status == BookingStatus.COMPLETED)
                .filter((BookingRequest.renter_id == user_id) | (BookingRequest.owner_id == user_id))
                .count()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning("Completed booking count unavailable for user %s: %s", user_id, exc)
            return 0

    @staticmethod
    def profile_score(user_id, now=None) -> TrustScore:
        """Recompute a user's trust score from the stored facts.

        A missing user is fatal. Review and booking aggregates are not: when
        they cannot be read the score is computed with zeros.
        """
        cache_key = f"trust_score:{user_id}"
        if now is None:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found.")

        average_rating, total_reviews = TrustService._review_stats(user.id)
        completed = TrustService._completed_bookings(user.id)
        response_hours = user.average_response_time_hours
        if response_hours is None:
            response_hours = DEFAULT_RESPONSE_TIME_HOURS
        created_at = as_utc(user.created_at) if user.created_at else None
        age_days = ((now or utcnow()) - created_at).days if created_at else 0

        score = TrustScoreModel.score(
            identity_verified=user.identity_verified,
            phone_verified=user.phone_verified,
            email_verified=user.email_verified,
            completed_bookings=completed,
            average_rating=average_rating,
            total_reviews=total_reviews,
            average_response_time_hours=response_hours,
            account_age_days=age_days,
        )
        if now is None:
            cache.set(cache_key, score, timeout=current_app.config["TRUST_SCORE_CACHE_SECONDS"])
        return score

    @staticmethod
    def forget(user_id):
        cache.delete(f"trust_score:{user_id}")

    @staticmethod
    def verification_progress(user) -> int:
        verified = sum(1 for flag in VERIFICATION_FLAGS if getattr(user, flag))
        return round(verified / len(VERIFICATION_FLAGS) * 100)

    @staticmethod
    def meets_minimum_verification(user) -> bool:
        return bool(user.email_verified and user.identity_verified)

    @staticmethod
    def verification_status_message(user) -> str:
        if all(getattr(user, flag) for flag in VERIFICATION_FLAGS):
            return "Fully verified"
        if TrustService.meets_minimum_verification(user):
            return "Verified"
        if not user.email_verified:
            return "Verify your email to get started"
        if not user.identity_verified:
            return "Verify your identity to build trust"
        return "Complete verification"

    @staticmethod
    def set_verification(user, **flags):
        """Admin update of verification flags; stamps verified_at on first full minimum."""
        for name, value in flags.items():
            if name not in VERIFICATION_FLAGS:
                continue
            setattr(user, name, bool(value))
        if TrustService.meets_minimum_verification(user) and user.verified_at is None:
            user.verified_at = utcnow()
        db.session.commit()
        TrustService.forget(user.id)
        return user
