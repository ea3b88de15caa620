from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from clinic_booking.core.config import Settings
from clinic_booking.core.database import Store
from clinic_booking.core.security import UserRole, get_password_hash
from clinic_booking.main import create_app
from clinic_booking.models import Slot, User

PASSWORD = "TestPassword123"


def next_monday(today=None) -> date:
    """The first Monday strictly after ``today``."""
    today = today or date.today()
    return today + timedelta(days=7 - today.weekday())


def register_and_login(client, email, name="Test Patient", password=PASSWORD) -> str:
    response = client.post("/api/register", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    response = client.post("/api/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        TESTING=True,
        RATE_LIMIT_ENABLED=False,
        TEST_DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        ADMIN_EMAIL="admin@example.com",
        ADMIN_PASSWORD="AdminPassword123",
    )


@pytest.fixture
def store(test_settings):
    store = Store(test_settings.get_database_url)
    store.init_db()
    yield store
    store.drop_db()
    store.dispose()


@pytest.fixture
def app(test_settings, store):
    return create_app(test_settings, store)


@pytest.fixture
def client(app):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
def make_slot(store):
    def _make_slot(start_at: datetime, minutes: int = 30) -> int:
        with store.atomic() as session:
            slot = Slot(start_at=start_at, end_at=start_at + timedelta(minutes=minutes))
            session.add(slot)
            session.flush()
            return slot.id
    return _make_slot


@pytest.fixture
def make_user(store):
    def _make_user(email: str, role: UserRole = UserRole.PATIENT, name: str = "Test User") -> int:
        with store.atomic() as session:
            user = User(name=name, email=email, password_hash=get_password_hash(PASSWORD), role=role)
            session.add(user)
            session.flush()
            return user.id
    return _make_user


@pytest.fixture
def patient_token(client):
    return register_and_login(client, "patient@example.com")


@pytest.fixture
def admin_token(client, make_user):
    make_user("admin@example.com", role=UserRole.ADMIN, name="Admin User")
    response = client.post("/api/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def future_slot(make_slot):
    return make_slot(datetime.combine(next_monday(), datetime.min.time()).replace(hour=10))
