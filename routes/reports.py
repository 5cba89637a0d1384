from flask import Blueprint, request, jsonify, g

from models import db
from models.report import Report, REPORT_CATEGORIES, REPORT_STATUSES
from security.rbac import require_roles
from services import notifications
from utils.audit import log_event
from utils.request_data import json_object, text
from utils.serializers import report_to_dict

reports_bp = Blueprint("reports", __name__)


@reports_bp.post("/report-problem")
@require_roles("user")
def report_problem():
    data = json_object()
    title = text(data, "title")
    description = text(data, "description")
    category = text(data, "category")

    if not title or not description or not category:
        return jsonify(error="Title, description and category are required"), 400

    if not 5 <= len(title) <= 100:
        return jsonify(error="Title must be between 5 and 100 characters"), 400

    if not 20 <= len(description) <= 1000:
        return jsonify(error="Description must be between 20 and 1000 characters"), 400

    if category not in REPORT_CATEGORIES:
        return jsonify(error=f"Invalid category. Allowed categories: {', '.join(REPORT_CATEGORIES)}"), 400

    report = Report(user_id=g.user.id, title=title, description=description, category=category)
    db.session.add(report)
    db.session.commit()

    log_event("REPORT_CREATE", user_id=g.user.id, entity="report", entity_id=report.id)
    notifications.report_submitted(report.id)
    return jsonify(message="Problem reported successfully", report=report_to_dict(report)), 201


@reports_bp.get("/my-reports")
@require_roles("user")
def my_reports():
    rows = Report.query.filter_by(user_id=g.user.id).order_by(Report.created_at.desc()).all()
    return jsonify(reports=[report_to_dict(r) for r in rows]), 200


@reports_bp.get("/admin/reports")
@require_roles("admin")
def all_reports():
    status = (request.args.get("status") or "").strip()
    q = Report.query
    if status:
        q = q.filter(Report.status == status)

    rows = q.order_by(Report.created_at.desc()).all()
    return jsonify(reports=[report_to_dict(r, include_user=True) for r in rows]), 200


@reports_bp.put("/admin/respond-report/<int:report_id>")
@require_roles("admin")
def respond_report(report_id: int):
    data = json_object()
    response = text(data, "response")
    status = text(data, "status")

    if not response or not status:
        return jsonify(error="Response and status are required"), 400
    if status not in REPORT_STATUSES:
        return jsonify(error=f"status must be one of: {', '.join(REPORT_STATUSES)}"), 400

    report = db.session.get(Report, report_id)
    if not report:
        return jsonify(error="Report not found"), 404

    report.response = response
    report.status = status
    db.session.commit()

    log_event("REPORT_RESPOND", user_id=g.user.id, entity="report", entity_id=report.id, metadata={"status": status})
    notifications.report_responded(report.id)
    return jsonify(message="Response sent successfully", report=report_to_dict(report)), 200
