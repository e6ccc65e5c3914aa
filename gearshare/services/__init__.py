from gearshare.services.auth_service import AuthService
from gearshare.services.availability_service import AvailabilityService
from gearshare.services.booking_service import BookingService
from gearshare.services.claim_service import ClaimService
from gearshare.services.condition_diff import ConditionDiff
from gearshare.services.equipment_service import EquipmentService
from gearshare.services.escrow_service import EscrowService, RefundPolicy
from gearshare.services.inspection_service import InspectionService
from gearshare.services.notification_service import NotificationService
from gearshare.services.payment_service import PaymentService
from gearshare.services.platform_service import PlatformService
from gearshare.services.pricing_service import PricingService
from gearshare.services.review_service import ReviewService
from gearshare.services.trust_service import TrustScoreModel, TrustService

__all__ = [
    "AuthService",
    "AvailabilityService",
    "BookingService",
    "ClaimService",
    "ConditionDiff",
    "EquipmentService",
    "EscrowService",
    "InspectionService",
    "NotificationService",
    "PaymentService",
    "PlatformService",
    "PricingService",
    "RefundPolicy",
    "ReviewService",
    "TrustScoreModel",
    "TrustService",
]
