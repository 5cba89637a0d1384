from flask import Blueprint, jsonify, g

from models import db
from models.user import User
from security.password import hash_password, verify_password
from security.password_policy import validate_password
from security.rbac import require_roles
from utils.audit import log_event
from utils.auth_context import login_required
from utils.request_data import json_object, raw_text
from utils.serializers import profile_to_dict

profile_bp = Blueprint("profile", __name__)


@profile_bp.get("/user/profile")
@login_required
def my_profile():
    return jsonify(user=profile_to_dict(g.user)), 200


@profile_bp.get("/admin/user-profile/<int:user_id>")
@require_roles("admin")
def user_profile(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404
    return jsonify(user=profile_to_dict(user)), 200


@profile_bp.put("/user/change-password")
@login_required
def change_password():
    data = json_object()
    old_password = raw_text(data, "old_password")
    new_password = raw_text(data, "new_password")

    if not old_password or not new_password:
        return jsonify(error="Old and new passwords are required"), 400

    if not verify_password(old_password, g.user.password_hash):
        log_event("PASSWORD_CHANGE_FAIL", user_id=g.user.id)
        return jsonify(error="Old password is incorrect"), 400

    valid, errors = validate_password(new_password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    g.user.password_hash = hash_password(new_password)
    db.session.commit()

    log_event("PASSWORD_CHANGED", user_id=g.user.id)
    return jsonify(message="Password changed successfully"), 200
