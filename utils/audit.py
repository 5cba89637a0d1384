import json
import logging
from flask import has_request_context, request
from models import db
from models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def client_fingerprint():
    """(ip, user_agent) of the current request; (None, None) from the CLI or a task."""
    if not has_request_context():
        return None, None
    ip = request.headers.get("X-Forwarded-For", request.remote_addr)
    user_agent = (request.headers.get("User-Agent") or "")[:255] or None
    return ip, user_agent


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    """Appends one row to the audit trail and commits it."""
    ip, user_agent = client_fingerprint()
    db.session.add(AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=None if entity_id is None else str(entity_id),
        ip=ip,
        user_agent=user_agent,
        metadata_json=json.dumps(metadata, default=str) if metadata else None,
    ))
    db.session.commit()
    logger.debug("audit %s user=%s %s:%s", action, user_id, entity, entity_id)
