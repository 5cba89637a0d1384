from datetime import datetime, timedelta

from conftest import PASSWORD, booking_payload, login, register
from models import db
from models.session import Session
from models.user import User


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_register_and_login(client, outbox):
    resp = register(client, "alice", address_line1="12 Court Road")
    assert resp.status_code == 201
    user = resp.get_json()["user"]
    assert user["role"] == "user"
    assert user["details"]["address_line1"] == "12 Court Road"
    assert "password_hash" not in user

    subjects = [m["subject"] for m in outbox]
    assert subjects == ["Email Acknowledgement", "Your Registration Details"]
    assert outbox[1]["attachments"][0].endswith("alice_details.pdf")

    resp = client.post("/auth/login", json={"username": "alice", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["user"] == {"id": user["id"], "username": "alice", "role": "user"}
    assert body["token"]
    cookies = resp.headers.getlist("Set-Cookie")
    assert any(c.startswith("sportshub_session=") for c in cookies)
    assert any(c.startswith("csrf_token=") for c in cookies)


def test_register_validation(client, outbox):
    assert client.post("/auth/register", json={"username": "alice"}).status_code == 400
    assert register(client, "a b").status_code == 400
    assert register(client, "alice", email="not-an-email").status_code == 400
    assert register(client, "alice", phone="12345").status_code == 400
    assert register(client, "alice", role="owner").status_code == 400

    resp = register(client, "alice", password="short")
    assert resp.status_code == 400
    assert resp.get_json()["details"]

    assert register(client, "alice").status_code == 201
    assert register(client, "alice").status_code == 409


def test_admin_signup_needs_code(client, outbox):
    resp = client.post("/auth/register", json={
        "username": "mallory", "password": PASSWORD, "email": "m@example.com",
        "phone": "9800000000", "role": "admin", "admin_code": "guess",
    })
    assert resp.status_code == 403

    resp = register(client, "boss", role="admin")
    assert resp.status_code == 201
    assert resp.get_json()["user"]["role"] == "admin"


def test_login_failures(client, outbox):
    register(client, "alice")
    assert client.post("/auth/login", json={"username": "alice"}).status_code == 400
    assert client.post("/auth/login", json={"username": "alice", "password": "Wrong1!"}).status_code == 401
    assert client.post("/auth/login", json={"username": "ghost", "password": PASSWORD}).status_code == 401


def test_non_object_bodies_are_rejected(client, outbox):
    resp = client.post("/auth/register", json=["a"])
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "JSON object body required"
    assert client.post("/auth/login", json=["alice", PASSWORD]).status_code == 400


def test_wrong_typed_fields_are_rejected(client, user_headers):
    assert register(client, "bob", phone=9800000000).status_code == 400
    assert register(client, "bob", password=12345678).status_code == 400
    assert client.post("/auth/login", json={"username": {"$ne": ""}, "password": PASSWORD}).status_code == 400
    assert client.post("/auth/login", json={"username": "alice", "password": ["x"]}).status_code == 400

    resp = register(client, "bob", address_line1={"street": "Main"}, address_line2="  Block B ")
    assert resp.status_code == 201
    assert resp.get_json()["user"]["details"]["address_line1"] is None
    assert resp.get_json()["user"]["details"]["address_line2"] == "Block B"

    url = "/user/change-password"
    assert client.put(url, json=[PASSWORD], headers=user_headers).status_code == 400
    assert client.put(url, json={"old_password": PASSWORD, "new_password": 123456789},
                      headers=user_headers).status_code == 400


def test_me_and_logout(client, user_headers):
    resp = client.get("/auth/me", headers=user_headers)
    assert resp.status_code == 200
    assert resp.get_json()["username"] == "alice"

    assert client.post("/auth/logout", headers=user_headers).status_code == 200
    assert client.get("/auth/me", headers=user_headers).status_code == 401


def test_login_rotates_sessions(client, outbox):
    register(client, "alice")
    first = login(client, "alice")
    second = login(client, "alice")

    assert client.get("/auth/me", headers=first).status_code == 401
    assert client.get("/auth/me", headers=second).status_code == 200


def test_expired_session_is_rejected(app, client, user_headers):
    with app.app_context():
        for sess in Session.query.all():
            sess.expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.session.commit()

    assert client.get("/auth/me", headers=user_headers).status_code == 401


def test_idle_session_is_rejected(app, client, user_headers):
    with app.app_context():
        for sess in Session.query.all():
            sess.last_seen_at = datetime.utcnow() - timedelta(hours=1)
        db.session.commit()

    assert client.get("/auth/me", headers=user_headers).status_code == 401


def test_only_token_hash_is_stored(app, client, user_headers):
    raw = user_headers["Authorization"].split(" ", 1)[1]
    with app.app_context():
        stored = [s.token_hash for s in Session.query.all()]
    assert raw not in stored
    assert all(len(h) == 64 for h in stored)


def test_cookie_auth_requires_csrf(client, user_headers):
    token = user_headers["Authorization"].split(" ", 1)[1]

    resp = client.post("/book", json=booking_payload(), headers={"Cookie": f"sportshub_session={token}"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "CSRF validation failed"

    resp = client.post("/book", json=booking_payload(), headers={
        "Cookie": f"sportshub_session={token}; csrf_token=abc123",
        "X-CSRF-Token": "abc123",
    })
    assert resp.status_code == 201

    # reads are not checked
    assert client.get("/book", headers={"Cookie": f"sportshub_session={token}"}).status_code == 200


def test_change_password(app, client, user_headers):
    url = "/user/change-password"
    assert client.put(url, json={"old_password": PASSWORD}, headers=user_headers).status_code == 400
    assert client.put(url, json={"old_password": "Wrong1!", "new_password": "newpass1!"},
                      headers=user_headers).status_code == 400
    assert client.put(url, json={"old_password": PASSWORD, "new_password": "weak"},
                      headers=user_headers).status_code == 400

    resp = client.put(url, json={"old_password": PASSWORD, "new_password": "newpass1!"}, headers=user_headers)
    assert resp.status_code == 200

    assert client.post("/auth/login", json={"username": "alice", "password": PASSWORD}).status_code == 401
    login(client, "alice", password="newpass1!")

    with app.app_context():
        assert User.query.filter_by(username="alice").one().password_hash != PASSWORD


def test_unknown_route_keeps_status(client):
    assert client.get("/nope").status_code == 404
    assert client.post("/health").status_code == 405
