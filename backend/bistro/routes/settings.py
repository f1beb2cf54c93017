# Overview: Flask API routes for the key/value settings store.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..services import settings_service

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
@require_permission("settings", "view")
def list_settings_route():
    return settings_service.list_settings()


@settings_bp.get("/company")
@require_auth
@require_permission("settings", "view")
def get_company_route():
    return {"key": settings_service.COMPANY_KEY, "value": settings_service.get_setting(settings_service.COMPANY_KEY, {})}


@settings_bp.put("/company")
@require_auth
@require_permission("settings", "edit")
def put_company_route():
    data = request.get_json(silent=True) or {}
    row = settings_service.put_setting(settings_service.COMPANY_KEY, data, g.current_user.id)
    return row.to_dict()


@settings_bp.get("/<key>")
@require_auth
@require_permission("settings", "view")
def get_setting_route(key: str):
    return {"key": key, "value": settings_service.get_setting(key)}


@settings_bp.put("/<key>")
@require_auth
@require_permission("settings", "edit")
def put_setting_route(key: str):
    """Body is the JSON value, or {"value": ...}."""
    data = request.get_json(silent=True)
    value = data["value"] if isinstance(data, dict) and set(data) == {"value"} else data
    return settings_service.put_setting(key, value, g.current_user.id).to_dict()
