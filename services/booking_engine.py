"""
Slot booking engine.

A slot is a (category, date, time label) triple holding at most one
non-cancelled booking. Exclusivity is enforced by the partial unique index
``uq_bookings_active_slot``; a violation at commit time is the conflict
signal, so concurrent creates for the same slot cannot both succeed.
"""
import logging
import re
from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from services import notifications
from services.errors import (
    ImmutableStateError,
    InvalidCategoryError,
    InvalidDateError,
    InvalidQuantityError,
    InvalidTimeError,
    LeadTimeError,
    NotFoundError,
    SlotConflictError,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("Badminton", "Football", "Table Tennis", "Basketball")
TIME_SLOTS = ("06:00 AM", "08:00 AM", "10:00 AM", "04:00 PM", "06:00 PM")
MIN_QUANTITY = 1
MAX_QUANTITY = 5

# fields an owner may change on a pending/rejected booking
PATCHABLE_FIELDS = ("category", "booking_date", "booking_time", "quantity")

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_booking_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError("Booking date is required")
    value = value.strip()
    if not DATE_RE.match(value):
        raise InvalidDateError("Invalid date format. Use YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise InvalidDateError("Invalid date format. Use YYYY-MM-DD")


def validate_booking(category, booking_date, booking_time, quantity, today: date = None) -> date:
    """
    Check one booking request against the business rules, in order: date,
    lead time, category, time, quantity. Returns the parsed booking date.
    """
    day = parse_booking_date(booking_date)

    lead_days = current_app.config.get("BOOKING_LEAD_DAYS", 3)
    days_diff = (day - (today or date.today())).days
    if days_diff < lead_days:
        raise LeadTimeError(f"Booking must be made at least {lead_days} days in advance.")

    if category not in CATEGORIES:
        raise InvalidCategoryError(f"Invalid category. Allowed categories: {', '.join(CATEGORIES)}")

    if booking_time not in TIME_SLOTS:
        raise InvalidTimeError(f"Invalid booking time. Allowed times: {', '.join(TIME_SLOTS)}")

    # bool is an int subclass; True must not pass as quantity 1
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not MIN_QUANTITY <= quantity <= MAX_QUANTITY:
        raise InvalidQuantityError(f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}.")

    return day


def _commit_slot(booking: Booking):
    conflict_message = (
        f"The {booking.category} slot on {booking.booking_date.isoformat()} at "
        f"{booking.booking_time} is already booked. Please choose another slot."
    )
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise SlotConflictError(conflict_message)


def _get_booking(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")
    return booking


def _get_owned_booking(booking_id: int, user) -> Booking:
    booking = _get_booking(booking_id)
    if booking.user_id != user.id:
        raise NotFoundError("Booking not found")
    return booking


def create_booking(user, data: dict) -> Booking:
    day = validate_booking(
        data.get("category"),
        data.get("booking_date"),
        data.get("booking_time"),
        data.get("quantity"),
    )

    booking = Booking(
        user_id=user.id,
        category=data["category"],
        booking_date=day,
        booking_time=data["booking_time"],
        quantity=data["quantity"],
        status="pending",
        payment_status="unpaid",
    )
    db.session.add(booking)
    _commit_slot(booking)

    logger.info("Booking %s created by user %s for %s %s %s",
                booking.id, user.id, booking.category, booking.booking_date, booking.booking_time)
    notifications.booking_created(booking.id)
    return booking


def update_booking(booking_id: int, user, patch: dict) -> Booking:
    booking = _get_owned_booking(booking_id, user)
    if booking.status == "approved":
        raise ImmutableStateError("Cannot update an approved booking")

    merged = {field: getattr(booking, field) for field in PATCHABLE_FIELDS}
    merged.update({k: v for k, v in (patch or {}).items() if k in PATCHABLE_FIELDS})
    merged["booking_date"] = validate_booking(**merged)

    for field, value in merged.items():
        setattr(booking, field, value)
    _commit_slot(booking)

    logger.info("Booking %s updated by user %s", booking.id, user.id)
    notifications.booking_updated(booking.id)
    return booking


def cancel_booking(booking_id: int, user) -> dict:
    """Hard-deletes the booking; returns a snapshot of what was removed."""
    booking = _get_owned_booking(booking_id, user)
    if booking.status == "approved":
        raise ImmutableStateError("Cannot cancel an approved booking")

    snapshot = {
        "id": booking.id,
        "user_id": booking.user_id,
        "category": booking.category,
        "booking_date": booking.booking_date.isoformat(),
        "booking_time": booking.booking_time,
    }
    db.session.delete(booking)
    db.session.commit()

    logger.info("Booking %s cancelled by user %s", snapshot["id"], user.id)
    notifications.booking_cancelled(snapshot)
    return snapshot


def approve_booking(booking_id: int) -> Booking:
    booking = _get_booking(booking_id)
    booking.status = "approved"
    booking.payment_status = "approved"
    db.session.commit()

    logger.info("Booking %s approved", booking.id)
    notifications.booking_approved(booking.id)
    return booking


def reject_booking(booking_id: int) -> Booking:
    booking = _get_booking(booking_id)
    booking.status = "rejected"
    db.session.commit()

    logger.info("Booking %s rejected", booking.id)
    notifications.booking_rejected(booking.id)
    return booking


def slot_availability(booking_date) -> dict:
    day = parse_booking_date(booking_date)

    rows = (
        Booking.query
        .filter(Booking.booking_date == day, Booking.status != "cancelled")
        .all()
    )
    booked = {(b.category, b.booking_time) for b in rows}

    return {
        "booking_date": day.isoformat(),
        "slots_by_category": {
            category: [
                {"time": t, "status": "Booked" if (category, t) in booked else "Available"}
                for t in TIME_SLOTS
            ]
            for category in CATEGORIES
        },
    }
