# Overview: Key/value settings store used by company, branch and POS layout screens.

from __future__ import annotations

from ..branches import normalize_branch
from ..errors import ValidationError
from ..extensions import db
from ..models import Setting
from .concurrency import run_with_retry


COMPANY_KEY = "settings_company"


def branch_key(branch: str) -> str:
    return f"settings_branch_{normalize_branch(branch)}"


def tables_layout_key(branch: str) -> str:
    return f"pos_tables_layout_{normalize_branch(branch)}"


def get_setting(key: str, default=None):
    row = db.session.query(Setting).filter_by(key=key).first()
    return row.value if row is not None and row.value is not None else default


def list_settings() -> dict:
    return {row.key: row.value for row in db.session.query(Setting).order_by(Setting.key)}


def stage_setting(key: str, value, user_id: int | None = None) -> Setting:
    """Upsert without committing."""
    if not key or len(key) > 128:
        raise ValidationError("Invalid setting key", code="invalid_key")
    row = db.session.query(Setting).filter_by(key=key).first()
    if row is None:
        row = Setting(key=key)
        db.session.add(row)
    row.value = value
    row.updated_by_user_id = user_id
    db.session.flush()
    return row


def put_setting(key: str, value, user_id: int | None = None) -> Setting:
    def _op():
        row = stage_setting(key, value, user_id)
        db.session.commit()
        return row
    return run_with_retry(_op)


def get_branch_settings(branch: str) -> dict:
    return get_setting(branch_key(branch), {}) or {}


def verify_cancel_password(branch: str, password: str | None) -> bool:
    """
    True when the branch has no cancel password configured, or when the
    given password matches it.
    """
    expected = str(get_branch_settings(branch).get("cancel_password") or "")
    if not expected:
        return True
    return str(password or "") == expected
