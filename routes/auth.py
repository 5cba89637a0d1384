import re

from flask import Blueprint, jsonify, current_app, g

from models import db
from models.user import User, UserDetails, ROLES
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session, revoke_all_sessions, get_request_token
from security.csrf import issue_csrf_token
from security.password_policy import validate_password
from services import notifications
from utils.audit import log_event
from utils.auth_context import login_required
from utils.request_data import json_object, optional_text, raw_text, text
from utils.serializers import user_to_dict


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
EMAIL_RE = re.compile(r"^(?!.*\.{2})(?!.*\.$)(?!.*@.*@)[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,6}$")
PHONE_RE = re.compile(r"^\d{10}$")


def validate_profile_fields(username, email, phone):
    """Shared by registration and admin edits. Returns an error message or None."""
    if not isinstance(username, str) or not USERNAME_RE.match(username):
        return "Username must be 3-20 characters, no spaces or special characters except _"
    if not isinstance(email, str) or not EMAIL_RE.match(email):
        return "Invalid email format"
    if not isinstance(phone, str) or not PHONE_RE.match(phone):
        return "Phone number must be 10 digits"
    return None


@auth_bp.post("/register")
def register():
    data = json_object()
    username = text(data, "username")
    password = raw_text(data, "password")
    email = text(data, "email")
    phone = text(data, "phone")
    role = text(data, "role") or "user"

    if not username or not password or not email or not phone:
        return jsonify(error="Missing required fields"), 400

    if not USERNAME_RE.match(username):
        return jsonify(error="Username must be 3-20 characters, no spaces or special characters except _"), 400

    if User.query.filter_by(username=username).first():
        log_event("REGISTER_FAIL_USERNAME_EXISTS", metadata={"username": username})
        return jsonify(error="Username already exists"), 409

    error = validate_profile_fields(username, email, phone)
    if error:
        return jsonify(error=error), 400

    valid, errors = validate_password(password)
    if not valid:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if role not in ROLES:
        return jsonify(error="Role must be either 'admin' or 'user'"), 400

    if role == "admin":
        expected = current_app.config.get("ADMIN_SIGNUP_CODE")
        if not expected or data.get("admin_code") != expected:
            log_event("REGISTER_FAIL_ADMIN_CODE", metadata={"username": username})
            return jsonify(error="Admin signup not allowed"), 403

    details = UserDetails(
        address_line1=optional_text(data, "address_line1"),
        address_line2=optional_text(data, "address_line2"),
        address_line3=optional_text(data, "address_line3"),
    )
    user = User(
        username=username,
        email=email,
        phone=phone,
        role=role,
        password_hash=hash_password(password),
        details=details,
    )
    db.session.add(user)
    db.session.commit()

    log_event("REGISTER_SUCCESS", user_id=user.id, metadata={"role": role})
    notifications.user_registered(user.id)

    return jsonify(message="User registered successfully", user=user_to_dict(user)), 201


@auth_bp.post("/login")
def login():
    data = json_object()
    username = text(data, "username")
    password = raw_text(data, "password")

    if not username or not password:
        return jsonify(error="Username or password missing"), 400

    user = User.query.filter_by(username=username).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"username": username})
        return jsonify(error="Invalid credentials"), 401

    if user.is_deleted:
        log_event("LOGIN_DEACTIVATED", user_id=user.id)
        return jsonify(error="Account deactivated. Please contact admin."), 403

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "sportshub_session")
    max_age = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)

    resp = jsonify(
        message="Login successful",
        token=raw_token,
        user={"id": user.id, "username": user.username, "role": user.role},
    )
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=max_age,
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(user_to_dict(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "sportshub_session")
    raw_token, _ = get_request_token()

    revoke_session(raw_token)
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
