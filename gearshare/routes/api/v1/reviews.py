from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from gearshare.services import BookingService, ReviewService

api_review_bp = Blueprint("api_review", __name__)


@api_review_bp.post("")
@login_required
def add_review():
    payload = request.get_json(silent=True) or {}
    review = ReviewService.submit_review(
        BookingService.get_booking(payload.get("booking_id")),
        current_user,
        rating=payload.get("rating"),
        comment=payload.get("comment"),
    )
    return jsonify({"id": review.id, "rating": review.rating, "reviewee_id": review.reviewee_id}), 201


@api_review_bp.get("/user/<int:user_id>")
def user_reviews(user_id):
    reviews = ReviewService.reviews_for_user(user_id)
    return jsonify(
        {
            "summary": ReviewService.rating_summary(user_id),
            "items": [
                {
                    "id": r.id,
                    "booking_id": r.booking_id,
                    "reviewer_id": r.reviewer_id,
                    "rating": r.rating,
                    "comment": r.comment,
                    "created_at": r.created_at.isoformat(),
                }
                for r in reviews
            ],
        }
    )
