from flask import Blueprint

from gearshare.routes.api.v1.auth import api_auth_bp
from gearshare.routes.api.v1.bookings import api_booking_bp
from gearshare.routes.api.v1.claims import api_claim_bp
from gearshare.routes.api.v1.equipment import api_equipment_bp
from gearshare.routes.api.v1.notifications import api_notification_bp
from gearshare.routes.api.v1.payments import api_payment_bp
from gearshare.routes.api.v1.reviews import api_review_bp
from gearshare.routes.api.v1.verification import api_verification_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_auth_bp, url_prefix="/auth")
api_v1_bp.register_blueprint(api_equipment_bp, url_prefix="/equipment")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_payment_bp, url_prefix="/payments")
api_v1_bp.register_blueprint(api_claim_bp, url_prefix="/claims")
api_v1_bp.register_blueprint(api_review_bp, url_prefix="/reviews")
api_v1_bp.register_blueprint(api_verification_bp, url_prefix="/verification")
api_v1_bp.register_blueprint(api_notification_bp, url_prefix="/notifications")
