# Overview: Admin-only user management and per-screen permission editing.

from flask import Blueprint, request

from ..decorators import require_admin, require_auth
from ..services import auth_service, permission_service

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    return {"items": [u.to_dict() for u in auth_service.list_users()]}


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(data)
    if data.get("permissions") is not None:
        permission_service.set_permissions(user.id, data["permissions"])
    return user.to_dict(), 201


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    return auth_service.get_user(user_id).to_dict()


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    return auth_service.update_user(user_id, data).to_dict()


@users_bp.post("/<int:user_id>/toggle")
@require_auth
@require_admin
def toggle_user_route(user_id: int):
    return auth_service.toggle_user(user_id).to_dict()


@users_bp.get("/<int:user_id>/permissions")
@require_auth
@require_admin
def get_permissions_route(user_id: int):
    auth_service.get_user(user_id)
    return {
        "user_id": user_id,
        "permissions": permission_service.get_permission_map(user_id),
        "screens": list(permission_service.SCREENS),
        "actions": list(permission_service.ACTIONS),
    }


@users_bp.put("/<int:user_id>/permissions")
@require_auth
@require_admin
def set_permissions_route(user_id: int):
    auth_service.get_user(user_id)
    data = request.get_json(silent=True)
    payload = data.get("permissions", data) if isinstance(data, dict) else data
    return {"user_id": user_id, "permissions": permission_service.set_permissions(user_id, payload)}
