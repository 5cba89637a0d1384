"""
Server-side login sessions.

A login mints an opaque random token. The client presents it either as
``Authorization: Bearer <token>`` (API clients) or in the session cookie
(browser); the database only ever sees its SHA-256. A session dies when
revoked, at ``expires_at``, or after ``IDLE_TIMEOUT_SECONDS`` without use.
"""
import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session
from utils.audit import client_fingerprint

BEARER_PREFIX = "Bearer "


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "sportshub_session")


def create_session(user_id: int) -> str:
    """Stores a new session for user_id and returns the raw token."""
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60)
    ip, user_agent = client_fingerprint()

    db.session.add(Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=ip,
        user_agent=user_agent,
    ))
    db.session.commit()
    return raw_token


def get_request_token():
    """(raw_token, via_cookie). The bearer header wins over the cookie."""
    header = request.headers.get("Authorization", "")
    if header.startswith(BEARER_PREFIX) and header[len(BEARER_PREFIX):].strip():
        return header[len(BEARER_PREFIX):].strip(), False

    raw_token = request.cookies.get(_cookie_name())
    return (raw_token, True) if raw_token else (None, False)


def get_session_from_request():
    """(live Session or None, via_cookie). Touches last_seen_at on success."""
    raw_token, via_cookie = get_request_token()
    if not raw_token:
        return None, False

    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    now = datetime.utcnow()
    if sess is None or not sess.is_live(now, current_app.config.get("IDLE_TIMEOUT_SECONDS", 20 * 60)):
        return None, False

    sess.last_seen_at = now
    db.session.commit()
    return sess, via_cookie


def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if sess is None:
        return False
    sess.revoked = True
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int) -> int:
    """Revokes every open session of a user (login rotation, deactivation)."""
    count = (
        Session.query
        .filter_by(user_id=user_id, revoked=False)
        .update({Session.revoked: True}, synchronize_session=False)
    )
    db.session.commit()
    return count
