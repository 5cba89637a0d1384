"""
Owner/admin notifications.

Public functions are called from the request path and only schedule work via
``run_in_background``; the ``_send_*`` tasks reload rows by id inside their
own app context, so they are safe to run on another thread.
"""
import logging

from flask import current_app

from models import db
from models.booking import Booking
from models.report import Report
from models.user import User
from utils.emailer import send_email
from utils.pdf import render_booking_receipt, render_registration_details, render_users_report
from utils.tasks import run_in_background

logger = logging.getLogger(__name__)


def _deliver(to_email, subject, body, attachments=None):
    ok, error = send_email(to_email, subject, body, attachments=attachments)
    if not ok:
        logger.warning("Notification %r to %s not delivered: %s", subject, to_email, error)
    return ok


def _load_booking(booking_id):
    booking = db.session.get(Booking, booking_id)
    if booking is None:
        logger.warning("Booking %s vanished before notification", booking_id)
    return booking


# ---------- bookings ----------

def booking_created(booking_id: int):
    run_in_background(_send_booking_created, booking_id)


def _send_booking_created(booking_id):
    b = _load_booking(booking_id)
    if b is None:
        return
    _deliver(
        b.user.email,
        "Booking Created",
        f"Hi {b.user.username}, your booking for {b.category} on {b.booking_date.isoformat()} "
        f"at {b.booking_time} has been created. Status: {b.status}",
    )


def booking_updated(booking_id: int):
    run_in_background(_send_booking_updated, booking_id)


def _send_booking_updated(booking_id):
    b = _load_booking(booking_id)
    if b is None:
        return
    _deliver(
        b.user.email,
        "Booking Updated",
        f"Hi {b.user.username}, your booking for {b.category} has been updated. "
        f"New details: Date {b.booking_date.isoformat()}, Time {b.booking_time}, Quantity {b.quantity}",
    )


def booking_cancelled(snapshot: dict):
    # the row is already deleted; the caller passes what the email needs
    run_in_background(_send_booking_cancelled, dict(snapshot))


def _send_booking_cancelled(snapshot):
    user = db.session.get(User, snapshot["user_id"])
    if user is None:
        return
    _deliver(
        user.email,
        "Booking Cancelled",
        f"Hi {user.username}, your booking for {snapshot['category']} on "
        f"{snapshot['booking_date']} at {snapshot['booking_time']} has been cancelled.",
    )


def booking_approved(booking_id: int):
    run_in_background(_send_booking_approved, booking_id)


def _send_booking_approved(booking_id):
    b = _load_booking(booking_id)
    if b is None:
        return
    receipt = render_booking_receipt(b, b.user)
    _deliver(
        b.user.email,
        "Booking Approved & Receipt",
        f"Hi {b.user.username}, your booking has been approved. Please find the attached receipt.",
        attachments=[receipt],
    )


def booking_rejected(booking_id: int):
    run_in_background(_send_booking_rejected, booking_id)


def _send_booking_rejected(booking_id):
    b = _load_booking(booking_id)
    if b is None:
        return
    _deliver(
        b.user.email,
        "Booking Rejected",
        f"Hi {b.user.username}, your booking for {b.category} on {b.booking_date.isoformat()} was rejected.",
    )


# ---------- users ----------

def user_registered(user_id: int):
    run_in_background(_send_user_registered, user_id)


def _send_user_registered(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return
    _deliver(
        user.email,
        "Email Acknowledgement",
        f"Hello {user.username},\n\nAccount created successfully.\n\n- Team",
    )
    details = render_registration_details(user)
    _deliver(
        user.email,
        "Your Registration Details",
        "Please find attached your registration details.",
        attachments=[details],
    )


def user_updated_by_admin(user_id: int):
    run_in_background(_send_user_updated, user_id)


def _send_user_updated(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return
    _deliver(
        user.email,
        "Profile Updated by Admin",
        f"Hi {user.username}, your profile has been updated by admin. "
        "If this wasn't you, please contact support.",
    )


def user_deactivated(user_id: int):
    run_in_background(_send_user_deactivated, user_id)


def _send_user_deactivated(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return
    _deliver(
        user.email,
        "Account Deactivated by Admin",
        f"Hi {user.username}, your account has been deactivated by an administrator.",
    )


def users_report(to_email: str = None):
    run_in_background(_send_users_report, to_email or current_app.config.get("ADMIN_EMAIL"))


def _send_users_report(to_email):
    users = User.query.order_by(User.created_at.asc()).all()
    path = render_users_report(users)
    _deliver(
        to_email,
        "Registered Users PDF",
        "Attached is the latest list of registered users.",
        attachments=[path],
    )


# ---------- problem reports ----------

def report_submitted(report_id: int):
    run_in_background(_send_report_submitted, report_id, current_app.config.get("ADMIN_EMAIL"))


def _send_report_submitted(report_id, admin_email):
    report = db.session.get(Report, report_id)
    if report is None:
        return
    if admin_email:
        _deliver(
            admin_email,
            f"New Problem Report: {report.title}",
            f"A new problem has been reported:\n\nCategory: {report.category}\n\n"
            f"Description: {report.description}\n\nPlease check the admin dashboard to respond.",
        )
    _deliver(
        report.user.email,
        "Problem Report Confirmation",
        f"Hi {report.user.username},\n\nYour problem report \"{report.title}\" has been submitted "
        "successfully. We will review it shortly.\n\nThank you,\nSports Hub Team",
    )


def report_responded(report_id: int):
    run_in_background(_send_report_responded, report_id)


def _send_report_responded(report_id):
    report = db.session.get(Report, report_id)
    if report is None:
        return
    _deliver(
        report.user.email,
        f"Update on Your Report: {report.title}",
        f"Hi {report.user.username},\n\nWe have an update on your reported issue \"{report.title}\".\n\n"
        f"Status: {report.status}\n\nResponse: {report.response}\n\nThank you,\nSports Hub Team",
    )
