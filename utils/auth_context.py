from functools import wraps
from flask import g

from models import db
from models.user import User
from security.rbac import current_actor
from security.session import get_session_from_request


def load_current_user():
    """Resolves the request's session into g.user / g.session / g.auth_via_cookie."""
    g.user = None
    g.session = None
    g.auth_via_cookie = False

    sess, via_cookie = get_session_from_request()
    if sess is None:
        return

    user = db.session.get(User, sess.user_id)
    # deactivated accounts lose access even with a live session
    if user is None or user.is_deleted:
        return

    g.session = sess
    g.user = user
    g.auth_via_cookie = via_cookie


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_actor()
        return fn(*args, **kwargs)
    return wrapper
