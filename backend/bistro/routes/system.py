# Overview: Health endpoint; no auth, not rate limited.

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Account, SessionToken
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    if not current_app.config.get("DATABASE_CONFIGURED"):
        return {"status": "unhealthy", "latency_ms": 0, "error": "db_not_configured"}
    try:
        account_count = db.session.query(Account).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }
    return {
        "status": "healthy" if account_count else "degraded",
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "details": {"accounts": account_count, "active_sessions": active_sessions},
    }


@system_bp.get("/health")
def health():
    """
    200 when the database answers (degraded while the chart of accounts is
    still empty), 503 otherwise.
    """
    database = check_database_health()
    http_status = 503 if database["status"] == "unhealthy" else 200
    return {
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "environment": current_app.config.get("ENV_NAME"),
        "checks": {"database": database},
    }, http_status
