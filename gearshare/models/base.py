from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer

from gearshare.extensions import db

# BIGINT on PostgreSQL, INTEGER on SQLite so autoincrement works.
PKType = BigInteger().with_variant(Integer, "sqlite")


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    """SQLite hands back naive datetimes even for timezone-aware columns."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


def conditional_update(model, row_id, expected, values):
    """Apply ``values`` to one row only if its current columns match ``expected``.

    Single UPDATE ... WHERE id = :id AND <expected>, so concurrent writers
    racing on the same row get exactly one winner. Returns True for the winner.
    """
    query = model.query.filter(model.id == row_id)
    for column, value in expected.items():
        query = query.filter(getattr(model, column) == value)
    updated = query.update(values, synchronize_session=False)
    return updated == 1
