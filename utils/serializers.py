from models.booking import Booking


def _iso(value):
    return value.isoformat() if value else None


def details_to_dict(details):
    if details is None:
        return None
    return {
        "address_line1": details.address_line1,
        "address_line2": details.address_line2,
        "address_line3": details.address_line3,
    }


def user_to_dict(u):
    return {
        "id": u.id,
        "username": u.username,
        "email": u.email,
        "phone": u.phone,
        "role": u.role,
        "is_deleted": u.is_deleted,
        "details": details_to_dict(u.details),
        "created_at": _iso(u.created_at),
    }


def booking_to_dict(b, include_user=False):
    out = {
        "id": b.id,
        "user_id": b.user_id,
        "category": b.category,
        "booking_date": _iso(b.booking_date),
        "booking_time": b.booking_time,
        "quantity": b.quantity,
        "status": b.status,
        "payment_status": b.payment_status,
        "created_at": _iso(b.created_at),
        "updated_at": _iso(b.updated_at),
    }
    if include_user:
        out["user"] = {"username": b.user.username, "email": b.user.email} if b.user else None
    return out


def report_to_dict(r, include_user=False):
    out = {
        "id": r.id,
        "user_id": r.user_id,
        "title": r.title,
        "description": r.description,
        "category": r.category,
        "status": r.status,
        "response": r.response,
        "created_at": _iso(r.created_at),
        "updated_at": _iso(r.updated_at),
    }
    if include_user:
        out["user"] = {"username": r.user.username, "email": r.user.email} if r.user else None
    return out


def achievement_to_dict(a):
    return {
        "id": a.id,
        "title": a.title,
        "description": a.description,
        "date": _iso(a.date),
        "category": a.category,
        "image": a.image,
        "featured": a.featured,
        "order": a.sort_order,
        "created_at": _iso(a.created_at),
        "updated_at": _iso(a.updated_at),
    }


def booking_stats(bookings):
    return {
        "total": len(bookings),
        "approved": sum(1 for b in bookings if b.status == "approved"),
        "rejected": sum(1 for b in bookings if b.status == "rejected"),
        "pending": sum(1 for b in bookings if b.status == "pending"),
    }


def profile_to_dict(user):
    bookings = user.bookings.order_by(Booking.created_at.desc()).all()
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "status": "Deactivated" if user.is_deleted else "Active",
        "address": details_to_dict(user.details),
        "booking_stats": booking_stats(bookings),
        "bookings": [booking_to_dict(b) for b in bookings],
    }
