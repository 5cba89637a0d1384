from flask import Blueprint, jsonify, g, request, send_file
from sqlalchemy import func

from models import db
from models.booking import Booking, BOOKING_STATUSES
from models.user import User, ROLES
from routes.auth import validate_profile_fields
from security.rbac import require_roles
from security.session import revoke_all_sessions
from services import booking_engine, notifications
from utils.audit import log_event
from utils.pdf import render_bookings_report
from utils.request_data import json_object, optional_text, text
from utils.serializers import booking_to_dict, user_to_dict

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

USER_EDITABLE_FIELDS = ("username", "email", "phone", "role")
ADDRESS_FIELDS = ("address_line1", "address_line2", "address_line3")


def _status_and_sort():
    """Shared query args for booking listings. Returns (status, sort, error)."""
    status = (request.args.get("status") or "").strip() or None
    sort = (request.args.get("sort") or "desc").strip().lower()
    if status and status not in BOOKING_STATUSES:
        return None, None, f"status must be one of: {', '.join(BOOKING_STATUSES)}"
    if sort not in ("asc", "desc"):
        return None, None, "sort must be asc or desc"
    return status, sort, None


# ---------- bookings ----------

@admin_bp.put("/approve-booking/<int:booking_id>")
@require_roles("admin")
def approve_booking(booking_id: int):
    booking = booking_engine.approve_booking(booking_id)
    log_event("BOOKING_APPROVE", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(message="Booking approved and receipt emailed", booking=booking_to_dict(booking)), 200


@admin_bp.put("/reject-booking/<int:booking_id>")
@require_roles("admin")
def reject_booking(booking_id: int):
    booking = booking_engine.reject_booking(booking_id)
    log_event("BOOKING_REJECT", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(message="Booking rejected", booking=booking_to_dict(booking)), 200


@admin_bp.get("/all-bookings")
@require_roles("admin")
def all_bookings():
    status, sort, error = _status_and_sort()
    if error:
        return jsonify(error=error), 400

    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    order = Booking.booking_date.asc() if sort == "asc" else Booking.booking_date.desc()

    rows = q.order_by(order, Booking.id.asc()).all()
    return jsonify(bookings=[booking_to_dict(b, include_user=True) for b in rows]), 200


@admin_bp.get("/bookings/full-report")
@require_roles("admin")
def full_booking_report():
    status, sort, error = _status_and_sort()
    if error:
        return jsonify(error=error), 400

    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    order = Booking.created_at.asc() if sort == "asc" else Booking.created_at.desc()

    path = render_bookings_report(q.order_by(order).all(), status)
    log_event("ADMIN_BOOKING_REPORT", user_id=g.user.id, metadata={"status": status, "sort": sort})
    return send_file(path, mimetype="application/pdf", as_attachment=True)


@admin_bp.get("/bookings/stats")
@require_roles("admin")
def booking_stats():
    status_counts = {s: 0 for s in BOOKING_STATUSES}
    for status, count in db.session.query(Booking.status, func.count(Booking.id)).group_by(Booking.status):
        status_counts[status] = count

    daily = (
        db.session.query(Booking.booking_date, func.count(Booking.id))
        .group_by(Booking.booking_date)
        .order_by(Booking.booking_date.asc())
        .all()
    )
    categories = (
        db.session.query(Booking.category, func.count(Booking.id))
        .group_by(Booking.category)
        .order_by(func.count(Booking.id).desc(), Booking.category.asc())
        .all()
    )

    return jsonify(
        total_bookings=Booking.query.count(),
        status_counts=status_counts,
        daily_counts=[{"date": d.isoformat(), "count": n} for d, n in daily],
        category_counts=[{"category": c, "count": n} for c, n in categories],
    ), 200


# ---------- users ----------

@admin_bp.get("/users")
@require_roles("admin")
def list_users():
    role_filter = (request.args.get("role") or "").strip().lower()
    include_deleted = (request.args.get("include_deleted") or "").lower() == "true"

    q = User.query
    if role_filter:
        q = q.filter(User.role == role_filter)
    if not include_deleted:
        q = q.filter(User.is_deleted.is_(False))

    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify(users=[user_to_dict(u) for u in users]), 200


def _editable_user(user_id: int):
    """Returns (user, error_response)."""
    user = db.session.get(User, user_id)
    if not user or user.is_deleted:
        return None, (jsonify(error="User not found"), 404)
    if user.is_admin:
        return None, (jsonify(error="Cannot modify admin users"), 403)
    return user, None


@admin_bp.put("/users/<int:user_id>")
@require_roles("admin")
def update_user(user_id: int):
    user, failure = _editable_user(user_id)
    if failure:
        return failure

    data = json_object()
    changes = {f: text(data, f) for f in USER_EDITABLE_FIELDS if f in data}
    merged = {f: changes.get(f, getattr(user, f)) for f in USER_EDITABLE_FIELDS}

    error = validate_profile_fields(merged["username"], merged["email"], merged["phone"])
    if error:
        return jsonify(error=error), 400
    if merged["role"] not in ROLES:
        return jsonify(error="Role must be either 'admin' or 'user'"), 400

    if merged["username"] != user.username and User.query.filter_by(username=merged["username"]).first():
        return jsonify(error="Username already exists"), 409

    for field, value in merged.items():
        setattr(user, field, value)
    if user.details is not None:
        for field in ADDRESS_FIELDS:
            if field in data:
                setattr(user.details, field, optional_text(data, field))

    db.session.commit()

    log_event("ADMIN_USER_UPDATE", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"fields": sorted(changes) + [f for f in ADDRESS_FIELDS if f in data]})
    notifications.user_updated_by_admin(user.id)
    return jsonify(message="User updated successfully", user=user_to_dict(user)), 200


@admin_bp.delete("/users/<int:user_id>")
@require_roles("admin")
def soft_delete_user(user_id: int):
    user, failure = _editable_user(user_id)
    if failure:
        return failure

    user.is_deleted = True
    db.session.commit()
    revoked = revoke_all_sessions(user.id)

    log_event("USER_SOFT_DELETE", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"revoked_sessions": revoked})
    notifications.user_deactivated(user.id)
    return jsonify(message="User deactivated (soft deleted)"), 200


@admin_bp.put("/users/<int:user_id>/restore")
@require_roles("admin")
def restore_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(error="User not found"), 404

    user.is_deleted = False
    db.session.commit()

    log_event("USER_RESTORE", user_id=g.user.id, entity="user", entity_id=user.id)
    return jsonify(message="User restored successfully"), 200


@admin_bp.post("/send-users-pdf")
@require_roles("admin")
def send_users_pdf():
    notifications.users_report()
    log_event("ADMIN_USERS_PDF", user_id=g.user.id)
    return jsonify(message="Registered users PDF is being generated and emailed"), 202
