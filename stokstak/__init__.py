import os

from flask import Flask, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from stokstak.config import Config
from stokstak.db import close_db, init_db
from stokstak.db_migrations import register_db_cli, register_members_cli
from stokstak.errors import AppError, SystemError
from stokstak.observability import configure_json_logging, ensure_request_id, install_request_tracking
from stokstak.security import install_security


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class() if isinstance(config_class, type) else config_class)
    configure_json_logging(app)

    if app.config.get("DATABASE_DIR"):
        os.makedirs(app.config["DATABASE_DIR"], exist_ok=True)

    install_request_tracking(app)
    install_security(app)
    _register_error_handlers(app)
    _register_identity(app)
    _register_blueprints(app)
    register_db_cli(app)
    register_members_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _maybe_init_schema(app: Flask) -> None:
    # Tests always build the schema directly; elsewhere only DB_AUTO_INIT in development does.
    if not app.testing:
        if not app.config.get("DB_AUTO_INIT", False):
            return
        flask_env = (os.environ.get("FLASK_ENV") or "development").strip().lower()
        if flask_env != "development":
            app.logger.warning("DB_AUTO_INIT ignored outside development; run `flask db upgrade`.")
            return

    with app.app_context():
        init_db()


def _register_blueprints(app: Flask) -> None:
    from stokstak.routes.home_routes import home_bp
    from stokstak.routes.purchasing_routes import members_bp, purchasing_bp

    for blueprint in (home_bp, purchasing_bp, members_bp):
        app.register_blueprint(blueprint)


def _register_identity(app: Flask) -> None:
    from stokstak.auth import register_auth

    register_auth(app)

    @app.before_request
    def load_tenant() -> None:
        tenant_id = str(session.get("tenant_id") or request.headers.get("X-Tenant-Id") or "").strip()
        g.tenant_id = tenant_id or None


def _request_log_fields(request_id: str, code: str) -> dict:
    return {
        "request_id": request_id,
        "error_code": code,
        "request_path": request.path,
        "http_method": request.method,
    }


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        log = app.logger.error if exc.critical else app.logger.warning
        log(
            "application_error",
            extra={
                **_request_log_fields(request_id, exc.code),
                "http_status": exc.http_status,
                "message_key": exc.message_key,
                "details": exc.details,
            },
            exc_info=exc.critical,
        )
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(code="unexpected_error", details=str(exc))
        app.logger.exception("unexpected_exception", extra=_request_log_fields(request_id, mapped.code))
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status
