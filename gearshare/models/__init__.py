from gearshare.models.availability_slot import AvailabilitySlot
from gearshare.models.booking import BookingRequest, BookingStatus
from gearshare.models.damage_claim import DamageClaim
from gearshare.models.equipment import Equipment
from gearshare.models.inspection import Inspection
from gearshare.models.notification import Notification
from gearshare.models.payment import Payment
from gearshare.models.platform_setting import PlatformSetting
from gearshare.models.rental_event import RentalEvent
from gearshare.models.review import Review
from gearshare.models.user import User

__all__ = [
    "User",
    "Equipment",
    "AvailabilitySlot",
    "BookingRequest",
    "BookingStatus",
    "Payment",
    "Inspection",
    "DamageClaim",
    "RentalEvent",
    "Review",
    "Notification",
    "PlatformSetting",
]
