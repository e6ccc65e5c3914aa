from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from gearshare.errors import ConflictError, ForbiddenError, ValidationError
from gearshare.extensions import db
from gearshare.models import BookingStatus, Review
from gearshare.services.trust_service import TrustService


class ReviewService:
    @staticmethod
    def submit_review(booking, reviewer, rating, comment=None):
        """Each party reviews the other once, after the rental is completed."""
        try:
            rating_int = int(rating)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Rating must be an integer between 1 and 5.") from exc
        if rating_int < 1 or rating_int > 5:
            raise ValidationError("Rating must be an integer between 1 and 5.")

        if not booking.is_party(reviewer.id):
            raise ForbiddenError("Only the renter or owner can review this rental.")
        if booking.status != BookingStatus.COMPLETED:
            raise ForbiddenError("Reviews unlock after the rental is completed.")

        reviewee_id = booking.owner_id if reviewer.id == booking.renter_id else booking.renter_id
        review = Review(
            booking_id=booking.id,
            reviewer_id=reviewer.id,
            reviewee_id=reviewee_id,
            rating=rating_int,
            comment=(comment or "").strip() or None,
        )
        db.session.add(review)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("You already reviewed this rental.") from exc
        TrustService.forget(reviewee_id)
        return review

    @staticmethod
    def reviews_for_user(user_id, limit=20):
        return (
            Review.query.filter_by(reviewee_id=user_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def rating_summary(user_id):
        average, count = (
            db.session.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.reviewee_id == user_id)
            .one()
        )
        return {"average_rating": round(float(average or 0), 2), "total_reviews": int(count or 0)}
