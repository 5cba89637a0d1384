import logging
import time

import click
from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.user import User
from routes import (
    health_bp, auth_bp, booking_bp, admin_bp, profile_bp,
    reports_bp, achievements_bp, audit_bp,
)
from security.csrf import csrf_protect
from services.errors import ServiceError
from utils.audit import log_event
from utils.auth_context import load_current_user

CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/health",
}


def configure_logging(app):
    log_level = getattr(logging, app.config.get("LOG_LEVEL", "INFO"), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app.logger.setLevel(log_level)


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        return jsonify(error=e.message), e.status_code

    @app.errorhandler(Exception)
    def handle_exception(e):
        # routing errors, 405s, 413s keep their own status
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        app.logger.error(f"Unhandled exception on {request.method} {request.path}: {e}", exc_info=True)
        return jsonify(error="Internal server error"), 500


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(achievements_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    if app.config.get("AUTO_CREATE_TABLES"):
        with app.app_context():
            db.create_all()

    register_error_handlers(app)

    @app.before_request
    def _start_timer():
        g.request_started = time.time()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect(CSRF_EXEMPT_PATHS)

    @app.after_request
    def _log_slow_requests(resp):
        started = getattr(g, "request_started", None)
        if started is not None:
            elapsed = (time.time() - started) * 1000
            if elapsed > app.config.get("SLOW_REQUEST_MS", 500):
                app.logger.warning(
                    f"SLOW REQUEST: {request.method} {request.path} took {elapsed:.2f}ms - Status: {resp.status_code}"
                )
        return resp

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("username")
    def make_admin(username):
        """Promote a user to admin by username (bootstrap)."""
        user = User.query.filter_by(username=username.strip()).first()
        if not user:
            click.echo("User not found")
            return

        if user.role != "admin":
            user.role = "admin"
            db.session.commit()
            log_event("USER_PROMOTE_ADMIN", entity="user", entity_id=user.id, metadata={"via": "cli"})

        click.echo(f"{user.username} promoted to admin")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=4321)
