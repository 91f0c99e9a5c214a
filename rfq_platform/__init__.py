import os

from flask import Flask, Response, g, jsonify, request, session
from werkzeug.exceptions import HTTPException

from rfq_platform.config import Config
from rfq_platform.db import close_db, init_db
from rfq_platform.db_migrations import register_db_cli
from rfq_platform.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from rfq_platform.security import apply_security_headers, enforce_rate_limit


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_security(app)
    _register_tenant(app)
    _register_identity(app)
    _register_services(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    _maybe_init_schema(app)

    _register_scheduler(app)
    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        # Testes criam o schema sem depender de migration externa.
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignorado fora de development.")
        return

    with app.app_context():
        init_db()


def _register_services(app: Flask) -> None:
    from rfq_platform.application.rfq_service import build_rfq_service

    app.extensions["rfq_service"] = build_rfq_service(app.config)


def _register_blueprints(app: Flask) -> None:
    from rfq_platform.routes.rfq_routes import rfq_bp

    app.register_blueprint(rfq_bp)


def _register_identity(app: Flask) -> None:
    from rfq_platform.identity import register_identity

    register_identity(app)


def _register_scheduler(app: Flask) -> None:
    from rfq_platform.scheduler import start_expiry_sweeper

    start_expiry_sweeper(app)


def _register_error_handlers(app: Flask) -> None:
    from rfq_platform.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response = observe_response(response)
        return apply_security_headers(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        response = jsonify(exc.to_response_payload(request_id))
        retry_after = exc.payload.get("retry_after")
        if retry_after is not None:
            response.headers["Retry-After"] = str(retry_after)
        return response, exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_security(app: Flask) -> None:
    @app.before_request
    def _rate_limit_guard():
        return enforce_rate_limit()


def _register_tenant(app: Flask) -> None:
    @app.before_request
    def load_tenant() -> None:
        from rfq_platform.tenant import DEFAULT_TENANT_ID, TENANT_HEADER

        session_tenant = (session.get("tenant_id") or "").strip()
        if session_tenant:
            g.tenant_id = session_tenant
            return

        header_tenant = (request.headers.get(TENANT_HEADER) or "").strip()
        g.tenant_id = header_tenant or DEFAULT_TENANT_ID


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "env": app.config.get("ENV", "unknown"),
            "metrics": {
                "http": metrics_snapshot(),
            },
        }
        try:
            from rfq_platform.db import get_read_db

            get_read_db().execute("SELECT 1").fetchone()
        except Exception as exc:  # noqa: BLE001 - health reports instead of failing
            app.logger.warning("health_db_unavailable", extra={"error": str(exc)})
            payload["status"] = "degraded"
        return payload, 200

    @app.route("/metrics")
    def metrics():
        from rfq_platform.db import get_read_db
        from rfq_platform.infrastructure.repositories.rfq_repository import RfqRepository
        from rfq_platform.tenant import scoped_tenant_id

        rfq_state = None
        try:
            rfq_state = {"by_status": RfqRepository(tenant_id=scoped_tenant_id()).count_by_status(get_read_db())}
        except Exception as exc:  # noqa: BLE001 - metrics stay available without the database
            app.logger.warning("metrics_rfq_state_unavailable", extra={"error": str(exc)})
        return Response(prometheus_metrics_text(rfq_state=rfq_state), mimetype="text/plain; version=0.0.4")
