# backend/stockline/__init__.py
from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config, engine_options
from .errors import LedgerError
from .extensions import db, migrate
from .logging_setup import setup_logging
from .validation import ConflictError, ValidationError


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return jsonify({"error": str(exc), "code": "VALIDATION_ERROR", "details": {}, "retryable": False}), 400

    @app.errorhandler(ConflictError)
    def handle_conflict_error(exc: ConflictError):
        return jsonify({"error": str(exc), "code": "CONFLICT", "details": {}, "retryable": False}), 409

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description, "code": exc.name.upper().replace(" ", "_")}), exc.code
        db.session.rollback()
        current_app.logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
        if "SQLALCHEMY_DATABASE_URI" in config_overrides and "SQLALCHEMY_ENGINE_OPTIONS" not in config_overrides:
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options(app.config["SQLALCHEMY_DATABASE_URI"])

    setup_logging(app.config.get("LOG_LEVEL", "INFO"), as_json=app.config.get("LOG_JSON", False))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.catalog import catalog_bp
    from .routes.inventory import inventory_bp
    from .routes.checkout import checkout_bp
    from .routes.returns import returns_bp
    from .routes.customers import customers_bp
    from .routes.stores import stores_bp
    from .routes.reports import reports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(checkout_bp)
    app.register_blueprint(returns_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(reports_bp)

    _register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
