# backend/bistro/__init__.py
from flask import Flask, current_app, request

from .config import Config
from .extensions import db, migrate


def create_app(config_object=None, *, rate_limit_clock=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or Config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .errors import register_error_handlers, DatabaseNotConfigured
    register_error_handlers(app)

    from .rate_limit import init_rate_limiter
    init_rate_limiter(app, clock=rate_limit_clock)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.users import users_bp
    from .routes.accounts import accounts_bp
    from .routes.journal import journal_bp
    from .routes.orders import orders_bp
    from .routes.pos import pos_bp
    from .routes.invoices import invoices_bp
    from .routes.expenses import expenses_bp
    from .routes.partners import partners_bp, customers_bp
    from .routes.employees import employees_bp
    from .routes.payroll import payroll_bp
    from .routes.products import products_bp
    from .routes.settings import settings_bp
    from .routes.reports import reports_bp
    from .routes.fiscal_years import fiscal_years_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(journal_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(invoices_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(partners_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(payroll_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(fiscal_years_bp)

    # Legacy URLs; raises at startup if a target route is missing
    from .aliases import register_aliases
    register_aliases(app)

    @app.before_request
    def guard_api():
        if not request.path.startswith("/api/") or request.method == "OPTIONS":
            return None
        if request.path == "/api/health":
            return None

        if current_app.config.get("RATE_LIMIT_ENABLED", True):
            limiter = current_app.extensions["rate_limiter"]
            key = request.headers.get("X-Forwarded-For", request.remote_addr or "unknown").split(",")[0].strip()
            if not limiter.hit(key):
                current_app.logger.warning("Rate limit exceeded for %s on %s", key, request.path)
                return {
                    "error": "rate_limit_exceeded",
                    "message": "Too many requests, please try again later",
                }, 429, {"Retry-After": str(limiter.retry_after(key))}

        if not current_app.config.get("DATABASE_CONFIGURED"):
            raise DatabaseNotConfigured()
        return None

    from .security import apply_cors_headers, apply_security_headers

    @app.after_request
    def add_headers(response):
        apply_cors_headers(response)
        return apply_security_headers(response)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
