from flask import Blueprint, jsonify, request
from models.audit_log import AuditLog
from security.rbac import require_roles

audit_bp = Blueprint("audit", __name__, url_prefix="/admin")

MAX_AUDIT_ROWS = 500


@audit_bp.get("/audit-logs")
@require_roles("admin")
def list_audit_logs():
    """Newest first. Filters: action (case-insensitive), user_id, limit (1..500, default 200)."""
    limit = min(max(request.args.get("limit", default=200, type=int) or 200, 1), MAX_AUDIT_ROWS)
    action = (request.args.get("action") or "").strip().upper()
    user_id = request.args.get("user_id", type=int)

    q = AuditLog.query
    if action:
        q = q.filter_by(action=action)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([
        {
            "id": row.id,
            "timestamp": row.timestamp.isoformat(),
            "user_id": row.user_id,
            "action": row.action,
            "entity": row.entity,
            "entity_id": row.entity_id,
            "ip": row.ip,
            "metadata": row.details,
        }
        for row in rows
    ]), 200
