from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from gearshare.extensions import db
from gearshare.models import Notification


class NotificationService:
    @staticmethod
    def push(user_id, title, message, booking_id=None, kind="general"):
        notification = Notification(user_id=user_id, title=title, message=message, booking_id=booking_id, kind=kind)
        db.session.add(notification)
        db.session.flush()
        return notification

    @staticmethod
    def notify_safely(user_id, title, message, booking_id=None, kind="general"):
        """Second phase of a transition: runs after the commit and never undoes it."""
        try:
            notification = NotificationService.push(user_id, title, message, booking_id=booking_id, kind=kind)
            db.session.commit()
            return notification
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning(
                "Notification %r for user %s (booking %s) not delivered: %s", kind, user_id, booking_id, exc
            )
            return None

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, is_read=False).count()

    @staticmethod
    def latest_for_user(user_id, limit=10):
        return (
            Notification.query.filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def mark_all_read(user_id):
        Notification.query.filter_by(user_id=user_id, is_read=False).update({"is_read": True})
        db.session.commit()
