from datetime import datetime

from flask import Blueprint, request, jsonify, g, current_app, send_from_directory

from models import db
from models.achievement import Achievement
from security.rbac import require_roles
from utils.audit import log_event
from utils.request_data import json_object
from utils.serializers import achievement_to_dict
from utils.uploads import is_image, save_upload, delete_upload

achievements_bp = Blueprint("achievements", __name__)

MAX_LIST_LIMIT = 100


def _parse_date(value):
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except (AttributeError, ValueError):
        return None


def _parse_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _uploaded_image():
    """Returns (file_or_None, error). An empty file field counts as no upload."""
    file = request.files.get("image")
    if not file or not file.filename:
        return None, None
    if not is_image(file):
        return None, "Only image files are allowed!"
    return file, None


# ---------- PUBLIC ----------
@achievements_bp.get("/achievements")
def list_achievements():
    featured = request.args.get("featured")
    category = (request.args.get("category") or "").strip()
    limit = _parse_int(request.args.get("limit", 10))
    if limit is None or limit < 1:
        return jsonify(error="limit must be a positive integer"), 400

    q = Achievement.query
    if featured == "true":
        q = q.filter(Achievement.featured.is_(True))
    if category:
        q = q.filter(Achievement.category == category)

    rows = (
        q.order_by(Achievement.featured.desc(), Achievement.sort_order.desc(), Achievement.date.desc())
        .limit(min(limit, MAX_LIST_LIMIT))
        .all()
    )
    return jsonify(achievements=[achievement_to_dict(a) for a in rows]), 200


@achievements_bp.get("/achievements/<int:achievement_id>")
def get_achievement(achievement_id: int):
    achievement = db.session.get(Achievement, achievement_id)
    if not achievement:
        return jsonify(error="Achievement not found"), 404
    return jsonify(achievement=achievement_to_dict(achievement)), 200


@achievements_bp.get("/uploads/<path:filename>")
def uploaded_file(filename):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)


# ---------- ADMIN ----------
@achievements_bp.post("/admin/achievements")
@require_roles("admin")
def create_achievement():
    form = request.form
    title = (form.get("title") or "").strip()
    description = (form.get("description") or "").strip()
    category = (form.get("category") or "").strip()
    date_str = form.get("date")

    if not title or not description or not date_str or not category:
        return jsonify(error="Title, description, date and category are required"), 400

    day = _parse_date(date_str)
    if day is None:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    order = _parse_int(form.get("order") or 0)
    if order is None:
        return jsonify(error="order must be an integer"), 400

    file, error = _uploaded_image()
    if error:
        return jsonify(error=error), 400

    achievement = Achievement(
        title=title,
        description=description,
        date=day,
        category=category,
        image=save_upload(file, "achievements") if file else None,
        featured=form.get("featured") == "true",
        sort_order=order,
    )
    db.session.add(achievement)
    db.session.commit()

    log_event("ACHIEVEMENT_CREATE", user_id=g.user.id, entity="achievement", entity_id=achievement.id)
    return jsonify(message="Achievement added successfully", achievement=achievement_to_dict(achievement)), 201


@achievements_bp.put("/admin/achievements/<int:achievement_id>")
@require_roles("admin")
def update_achievement(achievement_id: int):
    achievement = db.session.get(Achievement, achievement_id)
    if not achievement:
        return jsonify(error="Achievement not found"), 404

    form = request.form
    for field in ("title", "description", "category"):
        value = (form.get(field) or "").strip()
        if value:
            setattr(achievement, field, value)

    if form.get("date"):
        day = _parse_date(form["date"])
        if day is None:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        achievement.date = day

    if "featured" in form:
        achievement.featured = form["featured"] == "true"

    if "order" in form:
        order = _parse_int(form["order"])
        if order is None:
            return jsonify(error="order must be an integer"), 400
        achievement.sort_order = order

    file, error = _uploaded_image()
    if error:
        return jsonify(error=error), 400
    if file:
        delete_upload(achievement.image)
        achievement.image = save_upload(file, "achievements")

    db.session.commit()

    log_event("ACHIEVEMENT_UPDATE", user_id=g.user.id, entity="achievement", entity_id=achievement.id)
    return jsonify(message="Achievement updated successfully", achievement=achievement_to_dict(achievement)), 200


@achievements_bp.delete("/admin/achievements/<int:achievement_id>")
@require_roles("admin")
def delete_achievement(achievement_id: int):
    achievement = db.session.get(Achievement, achievement_id)
    if not achievement:
        return jsonify(error="Achievement not found"), 404

    delete_upload(achievement.image)
    db.session.delete(achievement)
    db.session.commit()

    log_event("ACHIEVEMENT_DELETE", user_id=g.user.id, entity="achievement", entity_id=achievement_id)
    return jsonify(message="Achievement deleted successfully"), 200


@achievements_bp.put("/admin/achievements-reorder")
@require_roles("admin")
def reorder_achievements():
    data = json_object()
    items = data.get("items")
    if not isinstance(items, list):
        return jsonify(error="Items must be an array"), 400

    ids = [_parse_int(item.get("id")) if isinstance(item, dict) else None for item in items]
    if any(i is None for i in ids):
        return jsonify(error="Each item needs an integer id"), 400

    by_id = {a.id: a for a in Achievement.query.filter(Achievement.id.in_(ids)).all()} if ids else {}
    for index, achievement_id in enumerate(ids):
        if achievement_id in by_id:
            by_id[achievement_id].sort_order = index
    db.session.commit()

    log_event("ACHIEVEMENT_REORDER", user_id=g.user.id, metadata={"ids": ids})
    return jsonify(message="Achievement order updated successfully"), 200
