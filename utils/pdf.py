import os
import time
import uuid
from xml.sax.saxutils import escape

from flask import current_app
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

_styles = getSampleStyleSheet()


def _pdf_dir() -> str:
    path = current_app.config.get("PDF_DIR")
    os.makedirs(path, exist_ok=True)
    return path


def _header(text: str):
    return [Paragraph(escape(text), _styles["Title"]), Spacer(1, 10)]


def _lines(pairs):
    return [Paragraph(f"<b>{escape(label)}:</b> {escape(str(value))}", _styles["Normal"]) for label, value in pairs]


def _table(header, rows):
    table = Table([header] + rows, repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return table


def _build(filename: str, flowables, title: str, pagesize=A4) -> str:
    path = os.path.join(_pdf_dir(), filename)
    doc = SimpleDocTemplate(path, pagesize=pagesize, title=title)
    doc.build(flowables)
    return path


def _address(details) -> str:
    if not details:
        return "N/A"
    parts = [details.address_line1, details.address_line2, details.address_line3]
    return ", ".join(p for p in parts if p) or "N/A"


def render_booking_receipt(booking, user) -> str:
    """Receipt attached to the approval email. Returns the file path."""
    flowables = _header("Booking Receipt") + _lines([
        ("Name", user.username),
        ("Email", user.email),
        ("Category", booking.category),
        ("Date", booking.booking_date.strftime("%a %b %d %Y")),
        ("Time", booking.booking_time),
        ("Quantity", booking.quantity),
        ("Status", booking.status),
        ("Payment", booking.payment_status),
    ])
    return _build(f"{user.username}_booking_{booking.id}.pdf", flowables, "Booking Receipt")


def render_registration_details(user) -> str:
    flowables = _header("User Registration Details") + _lines([
        ("Username", user.username),
        ("Email", user.email),
        ("Phone", user.phone),
        ("Role", user.role),
        ("Address", _address(user.details)),
    ])
    return _build(f"{user.username}_details.pdf", flowables, "User Registration Details")


def render_users_report(users) -> str:
    rows = [
        [u.username, u.email, u.phone, u.role, "Deactivated" if u.is_deleted else "Active", _address(u.details)]
        for u in users
    ]
    flowables = _header(f"Registered Users ({len(rows)})") + [
        _table(["Username", "Email", "Phone", "Role", "Status", "Address"], rows)
    ]
    # unique per call; concurrent background sends must not share a file
    filename = f"registered_users_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.pdf"
    return _build(filename, flowables, "Registered Users", pagesize=landscape(A4))


def render_bookings_report(bookings, status=None) -> str:
    """Full booking report; one table, optionally restricted to a status."""
    label = status.capitalize() if status else "All"
    rows = []
    for b in bookings:
        user = b.user
        rows.append([
            user.username if user else "N/A",
            user.email if user else "N/A",
            b.category or "N/A",
            b.booking_date.strftime("%a %b %d %Y") if b.booking_date else "N/A",
            b.booking_time or "N/A",
            str(b.quantity) if b.quantity is not None else "N/A",
            b.status or "N/A",
            b.payment_status or "N/A",
        ])

    flowables = _header("Full Booking Report") + [
        Paragraph(escape(f"{label} Bookings ({len(rows)})"), _styles["Heading2"]),
        Spacer(1, 5),
        _table(["User", "Email", "Category", "Date", "Time", "Qty", "Status", "Payment"], rows),
    ]
    filename = f"Booking_Report_{status or 'all'}_{int(time.time() * 1000)}.pdf"
    return _build(filename, flowables, "Full Booking Report", pagesize=landscape(A4))
