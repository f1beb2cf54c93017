# Overview: Per-screen, per-branch permission checks and the security event log.

"""
Permission model

A user's permissions form a map

    {screen: {"_global": {action: bool}, <branch>: {action: bool}, ...}}

built from UserPermission rows (an empty branch_code is the "_global" slot).

Check order:
1. role "admin" is always allowed
2. a global grant for (screen, action) allows every branch
3. otherwise the request's branch must carry an explicit allow

Denials are written to security_events. Grants are not logged.
"""

from __future__ import annotations

from ..branches import default_branch, normalize_branch
from ..errors import PermissionDenied, ValidationError
from ..extensions import db
from ..models import SecurityEvent, User, UserPermission
from ..time_utils import utcnow
from .concurrency import run_with_retry

GLOBAL = "_global"

SCREENS = (
    "clients", "suppliers", "employees", "expenses", "products", "sales",
    "purchases", "reports", "accounting", "journal", "settings", "fiscal_years",
)
ACTIONS = ("view", "create", "edit", "delete", "post")


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    branch: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        branch=branch,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.commit()
    return event


def get_permission_map(user_id: int) -> dict:
    permissions: dict[str, dict[str, dict[str, bool]]] = {}
    rows = db.session.query(UserPermission).filter_by(user_id=user_id).all()
    for row in rows:
        screen = (row.screen_code or "").strip().lower()
        slot = normalize_branch(row.branch_code) or GLOBAL
        action = (row.action_code or "").strip().lower()
        permissions.setdefault(screen, {GLOBAL: {}}).setdefault(slot, {})[action] = bool(row.allowed)
    return permissions


def allowed_screens(permissions: dict) -> list[str]:
    """Screens with at least one allowed action, globally or in any branch."""
    return sorted(
        screen for screen, slots in permissions.items()
        if any(any(actions.values()) for actions in slots.values())
    )


def allowed_branches(permissions: dict, user: User) -> list[str]:
    """Branches with an explicit grant; falls back to the user's default branch."""
    branches = {
        slot
        for slots in permissions.values()
        for slot, actions in slots.items()
        if slot != GLOBAL and any(actions.values())
    }
    if branches:
        return sorted(branches)
    return [normalize_branch(user.default_branch) or default_branch()]


def has_permission(user: User, screen: str, action: str, branch: str | None = None,
                   permissions: dict | None = None) -> bool:
    """
    Raises ValidationError(branch_required) when only a branch-scoped grant
    could allow the action and no branch was given.
    """
    if user.is_admin:
        return True
    permissions = get_permission_map(user.id) if permissions is None else permissions
    slots = permissions.get(screen.lower(), {})
    action = action.lower()
    if slots.get(GLOBAL, {}).get(action):
        return True
    if not any(actions.get(action) for slot, actions in slots.items() if slot != GLOBAL):
        return False
    branch = normalize_branch(branch)
    if not branch:
        raise ValidationError("A branch is required for this action", code="branch_required")
    return bool(slots.get(branch, {}).get(action))


def require_permission(
    user: User,
    screen: str,
    action: str,
    branch: str | None = None,
    *,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    if has_permission(user, screen, action, branch):
        return
    log_security_event(
        user_id=user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource or screen,
        action=action,
        branch=normalize_branch(branch) or None,
        reason=f"Missing {screen}.{action}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDenied(f"Not allowed to {action} {screen}")


def _flatten(payload) -> list[tuple[str, str, str, bool]]:
    """Accepts either the nested map or a list of {screen, branch, action, allowed}."""
    rows = []
    if isinstance(payload, dict):
        for screen, slots in payload.items():
            for slot, actions in (slots or {}).items():
                branch = "" if slot == GLOBAL else normalize_branch(slot)
                for action, allowed in (actions or {}).items():
                    rows.append((str(screen).lower(), branch, str(action).lower(), bool(allowed)))
    elif isinstance(payload, list):
        for item in payload:
            rows.append((
                str(item.get("screen") or item.get("screen_code") or "").lower(),
                normalize_branch(item.get("branch") or item.get("branch_code")),
                str(item.get("action") or item.get("action_code") or "").lower(),
                bool(item.get("allowed")),
            ))
    else:
        raise ValidationError("permissions must be an object or a list", code="invalid_permissions")

    for screen, _, action, _ in rows:
        if not screen or not action:
            raise ValidationError("screen and action are required", code="invalid_permissions")
    return rows


def set_permissions(user_id: int, payload) -> dict:
    """Replace all of a user's permission rows in one transaction."""
    rows = _flatten(payload)

    def _op():
        db.session.query(UserPermission).filter_by(user_id=user_id).delete(synchronize_session=False)
        seen = set()
        for screen, branch, action, allowed in rows:
            key = (screen, branch, action)
            if key in seen:
                continue
            seen.add(key)
            db.session.add(UserPermission(
                user_id=user_id,
                screen_code=screen,
                branch_code=branch,
                action_code=action,
                allowed=allowed,
            ))
        db.session.commit()

    run_with_retry(_op)
    return get_permission_map(user_id)


def grant(user_id: int, screen: str, action: str, branch: str | None = None, allowed: bool = True) -> UserPermission:
    branch_code = normalize_branch(branch)
    row = (
        db.session.query(UserPermission)
        .filter_by(user_id=user_id, screen_code=screen.lower(), branch_code=branch_code, action_code=action.lower())
        .first()
    )
    if row is None:
        row = UserPermission(user_id=user_id, screen_code=screen.lower(), branch_code=branch_code,
                             action_code=action.lower())
        db.session.add(row)
    row.allowed = allowed
    db.session.commit()
    return row
