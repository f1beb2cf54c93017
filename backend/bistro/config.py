# backend/bistro/config.py
from __future__ import annotations
import os


def _database_uri() -> str | None:
    uri = os.environ.get("DATABASE_URL")
    if not uri:
        return None
    # Heroku/Render style URLs use the legacy scheme SQLAlchemy no longer accepts
    if uri.startswith("postgres://"):
        uri = "postgresql://" + uri[len("postgres://"):]
    return uri


def _engine_options(uri: str | None) -> dict:
    # Managed Postgres requires TLS; the certificate is not verified
    if uri and uri.startswith("postgresql") and "sslmode=" not in uri:
        return {"connect_args": {"sslmode": "require"}, "pool_pre_ping": True}
    return {}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # APP_ENV wins; NODE_ENV is still honoured for existing deployments
    ENV_NAME = os.environ.get("APP_ENV") or os.environ.get("NODE_ENV") or "development"

    # Without DATABASE_URL the app still boots against a throwaway in-memory
    # database, but every /api request answers db_not_configured.
    DATABASE_CONFIGURED = _database_uri() is not None
    SQLALCHEMY_DATABASE_URI = _database_uri() or "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(_database_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        ).split(",")
        if o.strip()
    ]

    RATE_LIMIT_ENABLED = True
    RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "100"))
    RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
    RATE_LIMIT_MAX_KEYS = int(os.environ.get("RATE_LIMIT_MAX_KEYS", "10000"))

    DEFAULT_BRANCH = os.environ.get("DEFAULT_BRANCH", "china_town")
    DEFAULT_TAX_PCT = float(os.environ.get("DEFAULT_TAX_PCT", "15"))

    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "12"))

    ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD")


class TestingConfig(Config):
    TESTING = True
    ENV_NAME = "test"
    DATABASE_CONFIGURED = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATE_LIMIT_MAX_REQUESTS = 1000
    RATE_LIMIT_WINDOW_SECONDS = 60
