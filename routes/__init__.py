from flask import Blueprint, jsonify

from .auth import auth_bp
from .booking import booking_bp
from .admin import admin_bp
from .profile import profile_bp
from .reports import reports_bp
from .achievements import achievements_bp
from .audit_logs import audit_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200
