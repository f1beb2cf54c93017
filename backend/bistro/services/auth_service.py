# Overview: Service-layer operations for users and password authentication.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required for new passwords
- Session tokens managed separately (see session_service.py)
- Unknown email and wrong password are distinct errors (404 / 401); the POS
  login screen relies on the difference to prompt for the right field.
"""

from __future__ import annotations

import logging

import bcrypt

from ..branches import default_branch, normalize_branch
from ..errors import AuthError, ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import User
from ..time_utils import utcnow
from .concurrency import run_with_retry

logger = logging.getLogger(__name__)

ROLES = ("admin", "manager", "cashier", "user")
MIN_PASSWORD_LENGTH = 8


def validate_password_strength(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
            code="weak_password",
        )


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(str(password).encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.warning("Malformed password hash rejected")
        return False


def normalize_email(email) -> str:
    return str(email or "").strip().lower()


def authenticate(email, password) -> User:
    """
    Returns the user on success.

    Raises:
        AuthError(invalid_credentials, 400): email or password missing
        NotFoundError: no user with that email
        AuthError(invalid_credentials, 401): wrong password or inactive user
    """
    email = normalize_email(email)
    if not email or not password:
        raise AuthError("Email and password are required", code="invalid_credentials", status=400)

    user = db.session.query(User).filter_by(email=email).first()
    if not user:
        raise NotFoundError("User not found")
    if not verify_password(password, user.password_hash) or not user.is_active:
        raise AuthError("Invalid credentials", code="invalid_credentials")

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def _apply(user: User, data: dict) -> None:
    if "full_name" in data:
        user.full_name = data["full_name"]
    if "role" in data:
        role = str(data["role"] or "user").lower()
        if role not in ROLES:
            raise ValidationError(f"Invalid role {role!r}", code="invalid_role")
        user.role = role
    if "default_branch" in data:
        user.default_branch = normalize_branch(data["default_branch"]) or None
    if "is_active" in data:
        user.is_active = bool(data["is_active"])
    if data.get("password"):
        user.password_hash = hash_password(data["password"])


def create_user(data: dict) -> User:
    email = normalize_email(data.get("email"))
    if not email or "@" not in email:
        raise ValidationError("A valid email is required", code="invalid_email")
    if not data.get("password"):
        raise ValidationError("password is required", code="weak_password")

    def _op():
        if db.session.query(User.id).filter_by(email=email).first():
            raise ConflictError(f"User {email} already exists", code="duplicate_email")
        user = User(email=email, role="user", is_active=True, default_branch=default_branch())
        _apply(user, data)
        db.session.add(user)
        db.session.commit()
        logger.info("User %s created (role=%s)", user.email, user.role)
        return user

    return run_with_retry(_op)


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.email).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(f"User {user_id} not found")
    return user


def update_user(user_id: int, data: dict) -> User:
    def _op():
        user = get_user(user_id)
        _apply(user, data)
        db.session.commit()
        return user

    return run_with_retry(_op)


def toggle_user(user_id: int) -> User:
    """Flip is_active. Deactivation revokes the user's sessions on next use."""
    from . import session_service

    def _op():
        user = get_user(user_id)
        user.is_active = not user.is_active
        if not user.is_active:
            session_service.stage_revoke_all(user.id, "User deactivated")
        db.session.commit()
        return user

    return run_with_retry(_op)


def ensure_admin(email: str, password: str) -> tuple[User, bool]:
    """Create the admin user if missing; an existing user is promoted, password untouched."""
    email = normalize_email(email)
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        if user.role != "admin":
            user.role = "admin"
            db.session.commit()
        return user, False
    return create_user({"email": email, "password": password, "role": "admin"}), True


def backfill_default_branch(branch: str | None = None) -> int:
    """Give every user without a default branch one. Returns rows changed."""
    branch = normalize_branch(branch) or default_branch()

    def _op():
        changed = (
            db.session.query(User)
            .filter(db.or_(User.default_branch.is_(None), User.default_branch == ""))
            .update({User.default_branch: branch}, synchronize_session=False)
        )
        db.session.commit()
        return changed

    return run_with_retry(_op)
