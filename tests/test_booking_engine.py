import threading
from datetime import date, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as OrmSession

from models import db
from models.booking import Booking
from models.user import User
from services import booking_engine
from services.errors import (
    ImmutableStateError,
    InvalidCategoryError,
    InvalidDateError,
    InvalidQuantityError,
    InvalidTimeError,
    LeadTimeError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)

TODAY = date(2030, 5, 10)


@pytest.fixture
def ctx(app, outbox):
    with app.test_request_context():
        yield


def _user(name):
    user = User(username=name, email=f"{name}@example.com", phone="9800000000", password_hash="x")
    db.session.add(user)
    db.session.commit()
    return user


def _data(**overrides):
    data = {
        "category": "Badminton",
        "booking_date": (date.today() + timedelta(days=7)).isoformat(),
        "booking_time": "08:00 AM",
        "quantity": 1,
    }
    data.update(overrides)
    return data


class TestValidateBooking:
    def test_returns_parsed_date(self, ctx):
        day = booking_engine.validate_booking("Football", "2030-05-13", "06:00 PM", 5, today=TODAY)
        assert day == date(2030, 5, 13)

    def test_lead_time_boundary(self, ctx):
        with pytest.raises(LeadTimeError) as exc:
            booking_engine.validate_booking("Football", "2030-05-12", "06:00 PM", 1, today=TODAY)
        assert exc.value.message == "Booking must be made at least 3 days in advance."
        assert exc.value.status_code == 400

    def test_past_date_is_a_lead_time_failure(self, ctx):
        with pytest.raises(LeadTimeError):
            booking_engine.validate_booking("Football", "2020-01-01", "06:00 PM", 1, today=TODAY)

    @pytest.mark.parametrize("value", [
        "", None, "12/05/2030", "2030-13-01", 20300513, "20300520", "2030-05-20T10:00", "2030-5-20",
    ])
    def test_bad_dates(self, ctx, value):
        with pytest.raises(InvalidDateError):
            booking_engine.validate_booking("Football", value, "06:00 PM", 1, today=TODAY)

    def test_lead_time_checked_before_category(self, ctx):
        with pytest.raises(LeadTimeError):
            booking_engine.validate_booking("Chess", "2030-05-11", "11:00 AM", 0, today=TODAY)

    def test_category_checked_before_time(self, ctx):
        with pytest.raises(InvalidCategoryError):
            booking_engine.validate_booking("Chess", "2030-05-20", "11:00 AM", 0, today=TODAY)

    def test_time_checked_before_quantity(self, ctx):
        with pytest.raises(InvalidTimeError):
            booking_engine.validate_booking("Football", "2030-05-20", "11:00 AM", 0, today=TODAY)

    def test_category_is_case_sensitive(self, ctx):
        with pytest.raises(InvalidCategoryError):
            booking_engine.validate_booking("football", "2030-05-20", "06:00 PM", 1, today=TODAY)

    @pytest.mark.parametrize("quantity", [0, 6, -1, "2", 2.5, True, None])
    def test_bad_quantities(self, ctx, quantity):
        with pytest.raises(InvalidQuantityError) as exc:
            booking_engine.validate_booking("Football", "2030-05-20", "06:00 PM", quantity, today=TODAY)
        assert isinstance(exc.value, ValidationError)

    def test_lead_days_follow_config(self, app, ctx):
        app.config["BOOKING_LEAD_DAYS"] = 1
        assert booking_engine.validate_booking("Football", "2030-05-11", "06:00 PM", 1, today=TODAY)


class TestBookingLifecycle:
    def test_create_sets_initial_states(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        assert booking.id is not None
        assert booking.status == "pending"
        assert booking.payment_status == "unpaid"

    def test_second_booking_for_same_slot_conflicts(self, ctx):
        first, second = _user("carol"), _user("dave")
        booking_engine.create_booking(first, _data())
        with pytest.raises(SlotConflictError) as exc:
            booking_engine.create_booking(second, _data(quantity=3))
        assert exc.value.status_code == 409
        assert "already booked" in exc.value.message
        assert Booking.query.count() == 1

    def test_cancelled_rows_do_not_hold_the_slot(self, ctx):
        user = _user("carol")
        data = _data()
        db.session.add(Booking(
            user_id=user.id,
            category=data["category"],
            booking_date=date.fromisoformat(data["booking_date"]),
            booking_time=data["booking_time"],
            quantity=1,
            status="cancelled",
        ))
        db.session.commit()

        booking = booking_engine.create_booking(user, data)
        assert booking.status == "pending"

    def test_rejected_bookings_still_hold_the_slot(self, ctx):
        first, second = _user("carol"), _user("dave")
        booking = booking_engine.create_booking(first, _data())
        booking_engine.reject_booking(booking.id)
        with pytest.raises(SlotConflictError):
            booking_engine.create_booking(second, _data())

    def test_update_merges_only_patchable_fields(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        updated = booking_engine.update_booking(
            booking.id, user, {"quantity": 4, "status": "approved", "user_id": 999}
        )
        assert updated.quantity == 4
        assert updated.status == "pending"
        assert updated.user_id == user.id

    def test_update_revalidates_existing_fields(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        with pytest.raises(InvalidTimeError):
            booking_engine.update_booking(booking.id, user, {"booking_time": "07:00 AM"})
        assert db.session.get(Booking, booking.id).booking_time == "08:00 AM"

    def test_update_into_taken_slot_conflicts(self, ctx):
        user = _user("carol")
        booking_engine.create_booking(user, _data(booking_time="06:00 AM"))
        other = booking_engine.create_booking(user, _data(booking_time="10:00 AM"))
        with pytest.raises(SlotConflictError):
            booking_engine.update_booking(other.id, user, {"booking_time": "06:00 AM"})

    def test_update_keeping_own_slot_is_not_a_conflict(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        updated = booking_engine.update_booking(booking.id, user, {"quantity": 2})
        assert updated.quantity == 2

    def test_other_users_booking_is_not_found(self, ctx):
        owner, stranger = _user("carol"), _user("dave")
        booking = booking_engine.create_booking(owner, _data())
        with pytest.raises(NotFoundError):
            booking_engine.update_booking(booking.id, stranger, {"quantity": 2})
        with pytest.raises(NotFoundError):
            booking_engine.cancel_booking(booking.id, stranger)

    def test_approved_booking_is_frozen_for_owner(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        approved = booking_engine.approve_booking(booking.id)
        assert (approved.status, approved.payment_status) == ("approved", "approved")

        with pytest.raises(ImmutableStateError) as exc:
            booking_engine.update_booking(booking.id, user, {"quantity": 2})
        assert exc.value.status_code == 403
        with pytest.raises(ImmutableStateError):
            booking_engine.cancel_booking(booking.id, user)

    def test_admin_can_flip_between_approved_and_rejected(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        booking_engine.approve_booking(booking.id)
        assert booking_engine.reject_booking(booking.id).status == "rejected"
        assert booking_engine.approve_booking(booking.id).status == "approved"

    def test_rejected_booking_can_be_edited(self, ctx):
        user = _user("carol")
        booking = booking_engine.create_booking(user, _data())
        booking_engine.reject_booking(booking.id)
        updated = booking_engine.update_booking(booking.id, user, {"booking_time": "10:00 AM"})
        assert updated.booking_time == "10:00 AM"
        assert updated.status == "rejected"

    def test_cancel_removes_row_and_frees_slot(self, ctx):
        first, second = _user("carol"), _user("dave")
        booking = booking_engine.create_booking(first, _data())
        snapshot = booking_engine.cancel_booking(booking.id, first)

        assert snapshot["id"] == booking.id
        assert db.session.get(Booking, snapshot["id"]) is None
        with pytest.raises(NotFoundError):
            booking_engine.cancel_booking(snapshot["id"], first)
        assert booking_engine.create_booking(second, _data()).status == "pending"

    def test_approve_missing_booking(self, ctx):
        with pytest.raises(NotFoundError):
            booking_engine.approve_booking(12345)
        with pytest.raises(NotFoundError):
            booking_engine.reject_booking(12345)


class TestSlotAvailability:
    def test_grid_covers_every_category_and_time(self, ctx):
        grid = booking_engine.slot_availability("2030-05-20")
        assert grid["booking_date"] == "2030-05-20"
        assert list(grid["slots_by_category"]) == list(booking_engine.CATEGORIES)
        for slots in grid["slots_by_category"].values():
            assert [s["time"] for s in slots] == list(booking_engine.TIME_SLOTS)
            assert {s["status"] for s in slots} == {"Available"}

    def test_pending_and_rejected_mark_slots_booked(self, ctx):
        user = _user("carol")
        data = _data()
        booking_engine.create_booking(user, data)
        rejected = booking_engine.create_booking(user, _data(category="Basketball", booking_time="04:00 PM"))
        booking_engine.reject_booking(rejected.id)

        grid = booking_engine.slot_availability(data["booking_date"])["slots_by_category"]
        status = {(c, s["time"]): s["status"] for c, slots in grid.items() for s in slots}
        assert status[("Badminton", "08:00 AM")] == "Booked"
        assert status[("Basketball", "04:00 PM")] == "Booked"
        assert list(status.values()).count("Booked") == 2

    def test_other_dates_are_unaffected(self, ctx):
        user = _user("carol")
        booking_engine.create_booking(user, _data())
        other_day = (date.today() + timedelta(days=8)).isoformat()
        grid = booking_engine.slot_availability(other_day)["slots_by_category"]
        assert all(s["status"] == "Available" for slots in grid.values() for s in slots)

    def test_past_dates_are_allowed(self, ctx):
        grid = booking_engine.slot_availability("2001-01-01")
        assert grid["booking_date"] == "2001-01-01"

    @pytest.mark.parametrize("value", [None, "", "tomorrow", "20300520", "2030-05-20T10:00"])
    def test_invalid_date(self, ctx, value):
        with pytest.raises(InvalidDateError):
            booking_engine.slot_availability(value)


class TestConcurrentSlotClaims:
    def _slot_row(self, user_id, data):
        return Booking(
            user_id=user_id,
            category=data["category"],
            booking_date=date.fromisoformat(data["booking_date"]),
            booking_time=data["booking_time"],
            quantity=1,
            status="pending",
        )

    def test_second_session_to_commit_loses(self, ctx):
        first, second = _user("carol").id, _user("dave").id
        data = _data()

        # both sessions decide to insert before either has committed
        with OrmSession(db.engine) as s1, OrmSession(db.engine) as s2:
            s1.add(self._slot_row(first, data))
            s2.add(self._slot_row(second, data))
            s1.commit()
            with pytest.raises(IntegrityError):
                s2.commit()
            s2.rollback()

        rows = Booking.query.all()
        assert [r.user_id for r in rows] == [first]

    def test_racing_creates_yield_one_booking(self, app, ctx):
        users = [SimpleNamespace(id=_user(name).id) for name in ("carol", "dave")]
        data = _data()
        barrier = threading.Barrier(len(users))
        outcomes = []

        def claim(user):
            with app.app_context():
                barrier.wait()
                try:
                    booking_engine.create_booking(user, dict(data))
                    outcomes.append("created")
                except SlotConflictError:
                    outcomes.append("conflict")

        threads = [threading.Thread(target=claim, args=(u,)) for u in users]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert sorted(outcomes) == ["conflict", "created"]
        assert Booking.query.count() == 1
