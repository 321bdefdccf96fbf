import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from controle_pedidos.config import Config
from controle_pedidos.db import close_db, init_db
from controle_pedidos.db_migrations import register_db_cli
from controle_pedidos.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from controle_pedidos.security import apply_security_headers, enforce_rate_limit


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_security(app)
    _register_auth(app)
    _register_blueprints(app)
    _register_change_feed()
    _register_health(app)
    register_db_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        # Testes criam o schema direto, sem depender de migration externa.
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignorado fora de development.")
        return

    with app.app_context():
        init_db()


def _register_blueprints(app: Flask) -> None:
    from controle_pedidos.routes.client_routes import client_bp
    from controle_pedidos.routes.home_routes import home_bp
    from controle_pedidos.routes.order_routes import order_bp
    from controle_pedidos.routes.period_routes import period_bp
    from controle_pedidos.routes.quote_routes import quote_bp
    from controle_pedidos.routes.realtime_routes import realtime_bp
    from controle_pedidos.routes.seller_routes import seller_bp
    from controle_pedidos.routes.settings_routes import settings_bp
    from controle_pedidos.routes.tracking_routes import tracking_bp
    from controle_pedidos.routes.user_routes import user_bp
    from controle_pedidos.routes.workspace_routes import workspace_bp

    for blueprint in (
        home_bp,
        period_bp,
        order_bp,
        seller_bp,
        user_bp,
        tracking_bp,
        client_bp,
        quote_bp,
        workspace_bp,
        settings_bp,
        realtime_bp,
    ):
        app.register_blueprint(blueprint)


def _register_auth(app: Flask) -> None:
    from controle_pedidos.auth import register_auth

    register_auth(app)


def _register_change_feed() -> None:
    from controle_pedidos.application.change_feed import register_change_feed
    from controle_pedidos.core import get_event_bus

    register_change_feed(get_event_bus())


def _register_error_handlers(app: Flask) -> None:
    from controle_pedidos.errors import AppError, SystemError

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
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

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


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        from controle_pedidos.db import get_db

        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "env": os.environ.get("FLASK_ENV", "development"),
            "metrics": {
                "http": metrics_snapshot(),
            },
        }
        try:
            get_db().execute("SELECT 1").fetchone()
        except Exception as exc:
            app.logger.warning("health_db_unavailable", extra={"details": str(exc)})
            payload["status"] = "degraded"
        return payload, 200

    @app.route("/metrics")
    def metrics():
        return app.response_class(prometheus_metrics_text(), mimetype="text/plain; version=0.0.4")
