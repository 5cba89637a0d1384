from datetime import date, timedelta

import pytest

from app import create_app
from config import Config
from models import db

PASSWORD = "secret12!"
ADMIN_CODE = "letmein-admin"


@pytest.fixture
def app(tmp_path):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"
        AUTO_CREATE_TABLES = True
        TASKS_ASYNC = False
        BCRYPT_ROUNDS = 4
        ADMIN_SIGNUP_CODE = ADMIN_CODE
        ADMIN_EMAIL = "admin@example.com"
        PDF_DIR = str(tmp_path / "pdfs")
        UPLOAD_FOLDER = str(tmp_path / "uploads")
        SMTP_HOST = None
        SMTP_FROM_EMAIL = None

    app = create_app(TestConfig)
    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def client(app):
    # bearer tokens only; a stored session cookie would switch on CSRF checks
    return app.test_client(use_cookies=False)


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def fake_send_email(to_email, subject, body, attachments=None):
        sent.append({"to": to_email, "subject": subject, "body": body, "attachments": list(attachments or [])})
        return True, None

    monkeypatch.setattr("services.notifications.send_email", fake_send_email)
    return sent


def future_day(days=10):
    return (date.today() + timedelta(days=days)).isoformat()


def register(client, username, role="user", **extra):
    payload = {
        "username": username,
        "password": PASSWORD,
        "email": f"{username}@example.com",
        "phone": "9800000000",
    }
    if role != "user":
        payload["role"] = role
    if role == "admin":
        payload["admin_code"] = ADMIN_CODE
    payload.update(extra)
    return client.post("/auth/register", json=payload)


def login(client, username, password=PASSWORD):
    resp = client.post("/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return {"Authorization": f"Bearer {resp.get_json()['token']}"}


@pytest.fixture
def make_user(client, outbox):
    """Registers and logs in an account, returning its auth headers."""
    def _make(username, role="user"):
        resp = register(client, username, role=role)
        assert resp.status_code == 201, resp.get_json()
        return login(client, username)
    return _make


@pytest.fixture
def user_headers(make_user):
    return make_user("alice")


@pytest.fixture
def admin_headers(make_user):
    return make_user("boss", role="admin")


def booking_payload(**overrides):
    payload = {
        "category": "Football",
        "booking_date": future_day(),
        "booking_time": "06:00 PM",
        "quantity": 2,
    }
    payload.update(overrides)
    return payload
