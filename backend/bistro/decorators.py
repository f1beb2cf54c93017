# Overview: Request and permission decorators for API routes.

from __future__ import annotations

from functools import wraps

from flask import g, request

from .branches import normalize_branch
from .errors import AuthError, PermissionDenied
from .services import permission_service, session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Resolve the bearer token to a user and store it in g.current_user.

    401 unauthorized when the header is missing, the token is unknown,
    expired or revoked, or the user has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            raise AuthError("Authentication required")
        user = session_service.validate_session(token)
        if user is None:
            raise AuthError("Invalid or expired token")
        g.current_user = user
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def request_branch(branch_from=None, view_kwargs: dict | None = None) -> str:
    """
    Branch the request acts on. `branch_from` may be a callable taking the
    view kwargs; otherwise JSON body, then query string, then the user's
    default branch.
    """
    if callable(branch_from):
        value = branch_from(**(view_kwargs or {}))
        if value:
            return normalize_branch(value)
    body = request.get_json(silent=True) if request.is_json else None
    if isinstance(body, dict) and body.get("branch"):
        return normalize_branch(body["branch"])
    if request.args.get("branch"):
        return normalize_branch(request.args["branch"])
    user = getattr(g, "current_user", None)
    return normalize_branch(user.default_branch) if user is not None else ""


def require_permission(screen: str, action: str, branch_from=None):
    """Must be applied below @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                raise AuthError("Authentication required")
            if not user.is_admin:
                permission_service.require_permission(
                    user,
                    screen,
                    action,
                    request_branch(branch_from, kwargs),
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            raise AuthError("Authentication required")
        if not user.is_admin:
            permission_service.log_security_event(
                user_id=user.id,
                event_type="PERMISSION_DENIED",
                success=False,
                resource=request.path,
                action=request.method,
                reason="Admin role required",
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
            raise PermissionDenied("Admin role required")
        return f(*args, **kwargs)

    return decorated_function
