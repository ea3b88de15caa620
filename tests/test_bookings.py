import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, time, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event

from clinic_booking.client import ApiError, AppointmentClient
from clinic_booking.core.errors import InternalError, SlotAlreadyBooked, SlotExpired, SlotNotFound
from clinic_booking.models import Booking, User
from clinic_booking.services.booking_service import BookingService
from clinic_booking.services.slot_generator import SlotGenerator

from tests.conftest import auth_headers, next_monday, register_and_login


def at(day, hour, minute=0):
    return datetime.combine(day, time(hour, minute))


class TestReserve:

    def test_reserve_free_slot(self, store, make_slot, make_user):
        start = at(next_monday(), 9)
        slot_id = make_slot(start)
        user_id = make_user("patient@example.com", name="Pat Patient")
        now = datetime(2026, 1, 1, 12, 0)

        booking = BookingService(store).reserve(user_id, slot_id, now=now)

        assert booking.id is not None
        assert booking.user_id == user_id
        assert booking.slot_id == slot_id
        assert booking.created_at == now
        assert booking.slot.start_at == start
        assert booking.user.name == "Pat Patient"

        with store.reading() as session:
            assert session.query(Booking).filter(Booking.slot_id == slot_id).count() == 1

    def test_unknown_slot(self, store, make_user):
        user_id = make_user("patient@example.com")
        with pytest.raises(SlotNotFound):
            BookingService(store).reserve(user_id, 12345)

    def test_slot_already_booked(self, store, make_slot, make_user):
        slot_id = make_slot(at(next_monday(), 9))
        first = make_user("first@example.com")
        second = make_user("second@example.com")
        service = BookingService(store)

        service.reserve(first, slot_id)
        with pytest.raises(SlotAlreadyBooked):
            service.reserve(second, slot_id)
        with pytest.raises(SlotAlreadyBooked):
            service.reserve(first, slot_id)

    def test_expired_slot(self, store, make_slot, make_user):
        slot_id = make_slot(datetime.now() - timedelta(hours=1))
        user_id = make_user("patient@example.com")

        with pytest.raises(SlotExpired):
            BookingService(store).reserve(user_id, slot_id)

    def test_slot_starting_now_is_expired(self, store, make_slot, make_user):
        start = at(next_monday(), 9)
        slot_id = make_slot(start)
        user_id = make_user("patient@example.com")

        with pytest.raises(SlotExpired):
            BookingService(store).reserve(user_id, slot_id, now=start)

    def test_expired_wins_over_booked(self, store, make_slot, make_user):
        """A past slot reports expiry whether or not someone holds it."""
        start = at(next_monday(), 9)
        slot_id = make_slot(start)
        first = make_user("first@example.com")
        second = make_user("second@example.com")
        service = BookingService(store)

        service.reserve(first, slot_id, now=start - timedelta(days=1))
        with pytest.raises(SlotExpired):
            service.reserve(second, slot_id, now=start + timedelta(minutes=5))

    def test_failed_reserve_writes_nothing(self, store, make_slot, make_user):
        slot_id = make_slot(datetime.now() - timedelta(days=1))
        user_id = make_user("patient@example.com")

        with pytest.raises(SlotExpired):
            BookingService(store).reserve(user_id, slot_id)

        with store.reading() as session:
            assert session.query(Booking).count() == 0

    def test_rival_commit_between_check_and_insert(self, store, make_slot, make_user):
        """A booking committed after the check wins, and the late insert leaves it untouched."""
        slot_id = make_slot(at(next_monday(), 9))
        rival = make_user("rival@example.com")
        me = make_user("me@example.com")
        fired = []

        def book_for_rival(conn, cursor, statement, parameters, context, executemany):
            if fired or "FROM users" not in statement:
                return
            fired.append(statement)
            with store.atomic() as session:
                session.add(Booking(user_id=rival, slot_id=slot_id, created_at=datetime.now()))

        event.listen(store.engine, "before_cursor_execute", book_for_rival)
        try:
            with pytest.raises(SlotAlreadyBooked):
                BookingService(store).reserve(me, slot_id)
        finally:
            event.remove(store.engine, "before_cursor_execute", book_for_rival)

        assert fired
        with store.reading() as session:
            stored = session.query(Booking).filter(Booking.slot_id == slot_id).all()
            assert [b.user_id for b in stored] == [rival]
            assert session.query(Booking).filter(Booking.slot_id.is_(None)).count() == 0

    def test_store_failure_is_internal_error(self, store):
        """Raw store errors never leak out of reserve."""
        store.drop_db()
        with pytest.raises(InternalError):
            BookingService(store).reserve(1, 1)

    @pytest.mark.parametrize("contenders", [2, 8])
    def test_concurrent_reservations(self, store, make_slot, make_user, contenders):
        """Exactly one of many simultaneous reservations wins the slot."""
        slot_id = make_slot(at(next_monday(), 9))
        user_ids = [make_user(f"patient{i}@example.com") for i in range(contenders)]
        service = BookingService(store)
        barrier = threading.Barrier(contenders)

        def attempt(user_id):
            barrier.wait()
            try:
                return service.reserve(user_id, slot_id)
            except SlotAlreadyBooked as exc:
                return exc

        with ThreadPoolExecutor(max_workers=contenders) as pool:
            results = list(pool.map(attempt, user_ids))

        wins = [r for r in results if isinstance(r, Booking)]
        losses = [r for r in results if isinstance(r, SlotAlreadyBooked)]
        assert len(wins) == 1
        assert len(losses) == contenders - 1

        with store.reading() as session:
            stored = session.query(Booking).filter(Booking.slot_id == slot_id).all()
            assert [b.user_id for b in stored] == [wins[0].user_id]


class TestListings:

    def test_my_bookings_ordered_by_slot_start(self, store, make_slot, make_user):
        monday = next_monday()
        late = make_slot(at(monday, 15))
        early = make_slot(at(monday, 9))
        other_slot = make_slot(at(monday, 11))
        me = make_user("me@example.com")
        other = make_user("other@example.com")
        service = BookingService(store)

        service.reserve(me, late)
        service.reserve(other, other_slot)
        service.reserve(me, early)

        mine = service.list_my_bookings(me)
        assert [b.slot_id for b in mine] == [early, late]
        assert all(b.user_id == me for b in mine)

    def test_all_bookings_ordered_and_repeatable(self, store, make_slot, make_user):
        monday = next_monday()
        slots = [make_slot(at(monday, hour)) for hour in (14, 9, 11)]
        users = [make_user(f"p{i}@example.com") for i in range(3)]
        service = BookingService(store)
        for user_id, slot_id in zip(users, slots):
            service.reserve(user_id, slot_id)

        first = [(b.id, b.slot_id, b.user.email) for b in service.list_all_bookings()]
        second = [(b.id, b.slot_id, b.user.email) for b in service.list_all_bookings()]
        assert first == second
        assert [slot_id for _, slot_id, _ in first] == [slots[1], slots[2], slots[0]]


class TestBookingEndpoints:

    def test_book_slot(self, client, patient_token, future_slot):
        response = client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(patient_token))
        assert response.status_code == 201

        data = response.json()
        assert data["slotId"] == future_slot
        assert data["slot"]["id"] == future_slot
        assert data["user"]["email"] == "patient@example.com"
        assert data["user"]["role"] == "PATIENT"
        assert "createdAt" in data
        assert "passwordHash" not in data["user"]

    def test_double_booking(self, client, patient_token, future_slot):
        other_token = register_and_login(client, "other@example.com")

        first = client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(patient_token))
        assert first.status_code == 201

        second = client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(other_token))
        assert second.status_code == 409
        assert second.json() == {"error": {"code": "SLOT_TAKEN", "message": "This slot is already booked"}}

    def test_unknown_slot(self, client, patient_token):
        response = client.post("/api/book", json={"slotId": 4242}, headers=auth_headers(patient_token))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SLOT_NOT_FOUND"

    def test_past_slot(self, client, patient_token, make_slot):
        slot_id = make_slot(datetime.now() - timedelta(days=1))
        response = client.post("/api/book", json={"slotId": slot_id}, headers=auth_headers(patient_token))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SLOT_EXPIRED"

    @pytest.mark.parametrize("body", [{}, {"slotId": 0}, {"slotId": "abc"}, {"slot": 1}])
    def test_invalid_body(self, client, patient_token, body):
        response = client.post("/api/book", json=body, headers=auth_headers(patient_token))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_book_requires_login(self, client, future_slot):
        response = client.post("/api/book", json={"slotId": future_slot})
        assert response.status_code == 401

    def test_store_failure_envelope(self, client, store, patient_token, future_slot):
        """A failing store yields a generic 500 without table or driver detail."""
        Booking.__table__.drop(store.engine)

        response = client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(patient_token))
        assert response.status_code == 500
        assert response.json() == {"error": {"code": "INTERNAL_ERROR", "message": "Something went wrong"}}
        assert "bookings" not in response.text
        assert "sqlite" not in response.text.lower()

    def test_unhandled_error_envelope(self, app, store, patient_token):
        User.__table__.drop(store.engine)

        raw_client = TestClient(app, base_url="http://testserver", raise_server_exceptions=False)
        response = raw_client.get("/api/my-bookings", headers=auth_headers(patient_token))
        assert response.status_code == 500
        assert response.json() == {"error": {"code": "INTERNAL_ERROR", "message": "Something went wrong"}}
        assert "users" not in response.text

    def test_my_bookings(self, client, patient_token, future_slot):
        client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(patient_token))

        response = client.get("/api/my-bookings", headers=auth_headers(patient_token))
        assert response.status_code == 200

        bookings = response.json()
        assert len(bookings) == 1
        assert bookings[0]["slot"]["id"] == future_slot
        assert "user" not in bookings[0]

    def test_all_bookings(self, client, patient_token, admin_token, future_slot):
        client.post("/api/book", json={"slotId": future_slot}, headers=auth_headers(patient_token))

        response = client.get("/api/all-bookings", headers=auth_headers(admin_token))
        assert response.status_code == 200

        bookings = response.json()
        assert len(bookings) == 1
        assert bookings[0]["user"]["email"] == "patient@example.com"
        assert bookings[0]["slot"]["id"] == future_slot


class TestEndToEnd:

    def test_register_login_book(self, client, store):
        """Register, find the week's first opening, book it, and lose it to nobody."""
        monday = next_monday()
        SlotGenerator(store).generate(monday)
        api = AppointmentClient(client=client)

        user = api.register("Alice Patient", "alice@example.com", "alice-secret")
        assert user["role"] == "PATIENT"
        alice = api.login("alice@example.com", "alice-secret")

        slots = api.get_slots(monday, monday + timedelta(days=6))
        assert len(slots) == 80
        first = slots[0]
        assert first["startAt"] == at(monday, 9).isoformat()

        booking = api.book_slot(first["id"], alice["token"])
        assert booking["slot"]["id"] == first["id"]

        mine = api.get_my_bookings(alice["token"])
        assert [b["id"] for b in mine] == [booking["id"]]
        assert mine[0]["slot"]["id"] == first["id"]

        api.register("Bob Patient", "bob@example.com", "bob-secret")
        bob = api.login("bob@example.com", "bob-secret")
        with pytest.raises(ApiError) as excinfo:
            api.book_slot(first["id"], bob["token"])
        assert excinfo.value.status_code == 409
        assert excinfo.value.code == "SLOT_TAKEN"

        remaining = api.get_slots(monday, monday + timedelta(days=6))
        assert len(remaining) == 79
        assert first["id"] not in {s["id"] for s in remaining}

    def test_client_reports_auth_errors(self, client):
        api = AppointmentClient(client=client)
        with pytest.raises(ApiError) as excinfo:
            api.get_all_bookings("not-a-token")
        assert excinfo.value.status_code == 401
        assert excinfo.value.code == "UNAUTHORIZED"
