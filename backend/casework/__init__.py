# backend/casework/__init__.py
from flask import Flask, request

from .config import Config
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp  # Staff sessions and impersonation
    from .routes.budgets import budgets_bp
    from .routes.allocations import allocations_bp  # AJAX allocation handler
    from .routes.vendors import vendors_bp
    from .routes.checkins import checkins_bp  # Kiosk and staff check-ins
    from .routes.api_v1 import api_v1_bp  # Key-authenticated integration API
    from .routes.gateway import gateway_bp  # Agent gateway

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(budgets_bp)
    app.register_blueprint(allocations_bp)
    app.register_blueprint(vendors_bp)
    app.register_blueprint(checkins_bp)
    app.register_blueprint(api_v1_bp)
    app.register_blueprint(gateway_bp)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin and origin in app.config.get("CORS_ALLOWED_ORIGINS", ()):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = (
                "Authorization, Content-Type, X-CSRF-Token, X-API-Key"
            )
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PATCH,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
