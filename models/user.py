from datetime import datetime
from models.db import db

ROLES = ("user", "admin")


class UserDetails(db.Model):
    __tablename__ = "user_details"

    id = db.Column(db.Integer, primary_key=True)
    address_line1 = db.Column(db.String(160), nullable=True)
    address_line2 = db.Column(db.String(160), nullable=True)
    address_line3 = db.Column(db.String(160), nullable=True)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(20), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(10), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    # single role claim: "user" or "admin"
    role = db.Column(db.String(20), nullable=False, default="user")

    # soft delete: deactivated accounts keep their bookings and reports
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)

    details_id = db.Column(db.Integer, db.ForeignKey("user_details.id"), nullable=True)
    details = db.relationship("UserDetails", uselist=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
