# backend/warehouse/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides must land before db.init_app reads SQLALCHEMY_DATABASE_URI
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.zones import zones_bp
    from .routes.products import products_bp
    from .routes.movements import movements_bp
    from .routes.dashboard import dashboard_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(zones_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(movements_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    from .services.concurrency import StorageUnavailableError

    @app.errorhandler(StorageUnavailableError)
    def storage_unavailable(exc):
        app.logger.exception("Storage unavailable on %s %s", request.method, request.path)
        return {"error": "Internal server error"}, 500

    @app.errorhandler(404)
    def not_found(exc):
        return {"error": "Not found"}, 404

    @app.errorhandler(405)
    def method_not_allowed(exc):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(500)
    def internal_error(exc):
        # Flask has already logged the traceback
        db.session.rollback()
        return {"error": "Internal server error"}, 500

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
