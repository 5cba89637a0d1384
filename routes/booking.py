from flask import Blueprint, request, jsonify, g

from models.booking import Booking, BOOKING_STATUSES
from security.rbac import require_roles
from services import booking_engine
from services.errors import SlotConflictError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.request_data import json_object
from utils.serializers import booking_to_dict

booking_bp = Blueprint("booking", __name__)


# ---------- USERS: book slot (DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/book")
@require_roles("user")
def create_booking():
    data = json_object(required=True)

    try:
        booking = booking_engine.create_booking(g.user, data)
    except SlotConflictError:
        log_event("BOOKING_FAIL_ALREADY_BOOKED", user_id=g.user.id, entity="booking",
                  metadata={k: data.get(k) for k in booking_engine.PATCHABLE_FIELDS})
        raise

    log_event("BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(message="Booking created", booking=booking_to_dict(booking)), 201


# ---------- USERS: view my bookings ----------
@booking_bp.get("/book")
@require_roles("user")
def my_bookings():
    status = request.args.get("status")
    if status and status not in BOOKING_STATUSES:
        return jsonify(error=f"status must be one of: {', '.join(BOOKING_STATUSES)}"), 400

    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(status=status)

    rows = q.order_by(Booking.created_at.desc()).all()
    return jsonify(bookings=[booking_to_dict(b) for b in rows]), 200


# ---------- USERS: update booking (only if not approved) ----------
@booking_bp.put("/book/<int:booking_id>")
@require_roles("user")
def update_booking(booking_id: int):
    data = json_object(required=True)

    booking = booking_engine.update_booking(booking_id, g.user, data)

    log_event("BOOKING_UPDATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
              metadata={k: data[k] for k in booking_engine.PATCHABLE_FIELDS if k in data})
    return jsonify(message="Booking updated", booking=booking_to_dict(booking)), 200


# ---------- USERS: cancel booking (hard delete, only if not approved) ----------
@booking_bp.delete("/book/<int:booking_id>")
@require_roles("user")
def cancel_booking(booking_id: int):
    snapshot = booking_engine.cancel_booking(booking_id, g.user)

    log_event("BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata=snapshot)
    return jsonify(message="Booking cancelled"), 200


# ---------- ANY LOGGED-IN ACTOR: slot grid for a date ----------
@booking_bp.get("/user/slot-availability")
@login_required
def slot_availability():
    booking_date = request.args.get("bookingDate") or request.args.get("booking_date")
    return jsonify(booking_engine.slot_availability(booking_date)), 200
