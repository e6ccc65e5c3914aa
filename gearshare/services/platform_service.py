from decimal import Decimal, InvalidOperation

from flask import current_app

from gearshare.extensions import db
from gearshare.models import PlatformSetting


class PlatformService:
    @staticmethod
    def get_setting(key, default=None):
        setting = db.session.get(PlatformSetting, key)
        if not setting:
            return default
        return setting.value

    @staticmethod
    def get_decimal(key, default):
        raw = PlatformService.get_setting(key, str(default))
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            return Decimal(str(default))

    @staticmethod
    def get_int(key, default):
        raw = PlatformService.get_setting(key, default)
        try:
            return int(raw)
        except (TypeError, ValueError):
            return int(default)

    @staticmethod
    def set_setting(key, value):
        setting = db.session.get(PlatformSetting, key)
        if setting:
            setting.value = str(value)
        else:
            setting = PlatformSetting(key=key, value=str(value))
            db.session.add(setting)
        db.session.commit()
        return setting

    @staticmethod
    def claim_window_hours(equipment=None):
        if equipment is not None and equipment.claim_window_hours is not None:
            return int(equipment.claim_window_hours)
        return PlatformService.get_int("claim_window_hours", current_app.config["DEFAULT_CLAIM_WINDOW_HOURS"])
