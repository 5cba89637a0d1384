from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "approved", "rejected", "cancelled")
PAYMENT_STATUSES = ("unpaid", "paid", "approved")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    category = db.Column(db.String(40), nullable=False)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    booking_time = db.Column(db.String(10), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending")
    payment_status = db.Column(db.String(20), nullable=False, default="unpaid")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", backref=db.backref("bookings", lazy="dynamic"))

    __table_args__ = (
        # Hard business-rule: one non-cancelled booking per (category, date, time) slot
        db.Index(
            "uq_bookings_active_slot",
            "category", "booking_date", "booking_time",
            unique=True,
            sqlite_where=db.text("status != 'cancelled'"),
            postgresql_where=db.text("status != 'cancelled'"),
        ),
        db.CheckConstraint("quantity >= 1 AND quantity <= 5", name="ck_bookings_quantity"),
    )
