from gearshare.extensions import db
from gearshare.models.base import TimestampMixin


class PlatformSetting(TimestampMixin, db.Model):
    """Runtime-adjustable platform defaults, e.g. ``claim_window_hours``."""

    __tablename__ = "platform_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
