"""
app/__init__.py — Flask application factory.

create_app(config_name) builds a configured app. Nothing is initialised at
import time, so tests can build isolated instances and Alembic commands
work without starting a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Apply LOG_LEVEL to app.logger and the "settleup" logger hierarchy
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register route blueprints under /api/v1 (health under /api)
  5. Register global error handlers (AppError, ValidationError,
     HTTPException, Exception) that all produce {"error": {...}}
  6. Serialise Decimal as str so amounts never become JSON floats

All models are imported inside create_app() so SQLAlchemy's metadata is
complete before db.create_all() or Alembic inspects it.
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from settleup.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Serialises Decimal as str for jsonify() and flask.json.dumps().

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Unknown names fall back to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from settleup.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    with app.app_context():
        from settleup.app.models import (  # noqa: F401
            expense,
            group,
            membership,
            payment,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    app.logger.debug("SettleUp app created with %s config", config_name)
    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the Flask logger and to every service logger
    (they all live under "settleup.*" via logging.getLogger(__name__)).
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)

    package_logger = logging.getLogger("settleup")
    package_logger.setLevel(level)
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            "[%(asctime)s] %(levelname)s in %(name)s: %(message)s"
        ))
        package_logger.addHandler(handler)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    Route files only declare paths relative to their resource; the prefix
    is set here.
    """
    from settleup.app.routes.analytics import analytics_bp
    from settleup.app.routes.auth import auth_bp
    from settleup.app.routes.balances import balances_bp
    from settleup.app.routes.expenses import expenses_bp
    from settleup.app.routes.groups import groups_bp
    from settleup.app.routes.health import health_bp
    from settleup.app.routes.payments import payments_bp

    app.register_blueprint(auth_bp,      url_prefix="/api/v1/auth")
    app.register_blueprint(groups_bp,    url_prefix="/api/v1/groups")
    app.register_blueprint(expenses_bp,  url_prefix="/api/v1/groups")
    app.register_blueprint(balances_bp,  url_prefix="/api/v1/groups")
    # payments_bp owns /groups/<id>/payments AND /payments/<id>/confirm.
    app.register_blueprint(payments_bp,  url_prefix="/api/v1")
    app.register_blueprint(analytics_bp, url_prefix="/api/v1/analytics")
    app.register_blueprint(health_bp,    url_prefix="/api")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

      AppError        → its own code and status; 5xx are logged at ERROR
                        and answered with a generic message
      ValidationError → first field error as MISSING_FIELD / INVALID_FIELD
                        or the registered code the schema raised (400)
      HTTPException   → protocol errors (bad JSON, unknown route, ...)
      Exception       → INTERNAL_ERROR (500); traceback logged, never returned
    """
    from settleup.app.errors import SCHEMA_CODE_MESSAGES, AppError, ErrorCode

    registered_codes = {
        value for name, value in vars(ErrorCode).items() if name.isupper()
    }

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; it propagates here."""
        if error.is_internal:
            app.logger.error(
                "%s on %s %s: %s",
                error.code, request.method, request.path, error.message,
            )
            return jsonify({
                "error": {
                    "code": error.code,
                    "message": "The ledger could not be computed. Please contact support.",
                }
            }), error.http_status
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST error only: one error per response.

        A message equal to a registered ErrorCode (e.g. "INVALID_AMOUNT_PRECISION")
        is used as the code, with its human message from SCHEMA_CODE_MESSAGES.
        """
        field, raw_message = _first_validation_error(error.messages)

        if raw_message in registered_codes:
            code = raw_message
            message = SCHEMA_CODE_MESSAGES.get(code, "Invalid input.")
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        body = {"error": {"code": code, "message": message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = {
            400: ErrorCode.MALFORMED_JSON,
            404: ErrorCode.ROUTE_NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
        }.get(error.code, ErrorCode.HTTP_ERROR)
        return jsonify({
            "error": {"code": code, "message": error.description},
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _first_validation_error(messages) -> tuple[str | None, str]:
    """
    Flattens marshmallow's messages to (field, message) for the first error.

    messages is usually {"amount": ["INVALID_AMOUNT_PRECISION"]}; nested
    dicts and bare lists are handled too.
    """
    field = None
    while isinstance(messages, dict) and messages:
        key, messages = next(iter(messages.items()))
        if field is None and key != "_schema":
            field = str(key)
    if isinstance(messages, list):
        messages = messages[0] if messages else "Invalid input."
    return field, str(messages)


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Only when DEBUG or TESTING is true, so a frontend served from another
    local port can call the API with an Authorization header.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if app.config.get("DEBUG") or app.config.get("TESTING"):
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
        return response
