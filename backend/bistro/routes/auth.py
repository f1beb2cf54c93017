# Overview: Flask API routes for login, logout and the current user.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..errors import AuthError, NotFoundError
from ..services import auth_service, permission_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _log_failed_login(email, reason: str, user_id=None) -> None:
    permission_service.log_security_event(
        user_id=user_id,
        event_type="LOGIN_FAILED",
        success=False,
        action=auth_service.normalize_email(email) or None,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


@auth_bp.post("/login")
def login_route():
    """
    Body: {email, password}

    Returns {token, user, screens, branches}. screens and branches are
    derived from the user's permission map; branches falls back to the
    user's default branch.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    try:
        user = auth_service.authenticate(email, data.get("password"))
    except NotFoundError:
        current_app.logger.info("Login rejected: unknown user %s", email)
        _log_failed_login(email, "User not found")
        raise
    except AuthError as e:
        if e.status == 401:
            current_app.logger.info("Login rejected: invalid password for %s", email)
            _log_failed_login(email, "Invalid password")
        raise

    _, token = session_service.create_session(
        user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    permissions = permission_service.get_permission_map(user.id)
    current_app.logger.info("Login ok for user %s", user.id)
    return {
        "token": token,
        "user": user.to_dict(),
        "screens": permission_service.allowed_screens(permissions),
        "branches": permission_service.allowed_branches(permissions, user),
    }


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "default_branch": user.default_branch,
        "isAdmin": user.is_admin,
    }


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.token)
    return {"ok": True}
