# Overview: Service-layer operations for bearer session tokens.

"""
Session Token Management Service

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout of SESSION_HOURS (12h by default)
- Revocable on logout or user deactivation
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta, timezone

from flask import current_app, has_app_context

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow

DEFAULT_SESSION_HOURS = 12


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, so SHA-256 is enough (no bcrypt needed)
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _naive_utc(dt):
    # Postgres hands back aware datetimes, SQLite naive ones
    if dt is not None and dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _session_lifetime() -> timedelta:
    hours = DEFAULT_SESSION_HOURS
    if has_app_context():
        hours = current_app.config.get("SESSION_HOURS", DEFAULT_SESSION_HOURS)
    return timedelta(hours=hours)


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """Returns (session_record, plaintext_token). Only the hash is stored."""
    plaintext_token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _session_lifetime(),
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    The session's user, or None when the token is unknown, expired, revoked
    or belongs to a deactivated user.
    """
    if not token:
        return None
    now = utcnow()
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if not session or _naive_utc(session.expires_at) < now:
        return None

    user = session.user
    if not user or not user.is_active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "User account deactivated"
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "Logout") -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token), is_revoked=False).first()
    if not session:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()
    return True


def stage_revoke_all(user_id: int, reason: str) -> int:
    """Revoke every live session of a user without committing."""
    return (
        db.session.query(SessionToken)
        .filter_by(user_id=user_id, is_revoked=False)
        .update(
            {
                SessionToken.is_revoked: True,
                SessionToken.revoked_at: utcnow(),
                SessionToken.revoked_reason: reason,
            },
            synchronize_session=False,
        )
    )
