# Overview: Flask API routes for fiscal years; state changes, date checks and rollover.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..services import fiscal_year_service

fiscal_years_bp = Blueprint("fiscal_years", __name__, url_prefix="/api/fiscal-years")


def _actor() -> dict:
    return {"user": g.current_user, "ip_address": request.remote_addr}


@fiscal_years_bp.get("")
@require_auth
@require_permission("fiscal_years", "view")
def list_years_route():
    return {"items": [y.to_dict() for y in fiscal_year_service.list_years()]}


@fiscal_years_bp.post("")
@require_auth
@require_permission("fiscal_years", "create")
def create_year_route():
    """Body: {year, start_date?, end_date?, notes?}; dates default to the calendar year."""
    data = request.get_json(silent=True) or {}
    return fiscal_year_service.create_year(data, **_actor()).to_dict(), 201


@fiscal_years_bp.get("/current")
@require_auth
def current_year_route():
    return fiscal_year_service.current_year().to_dict()


@fiscal_years_bp.get("/for-date")
@require_auth
def for_date_route():
    return fiscal_year_service.check_date(request.args.get("date"))


@fiscal_years_bp.get("/can-create")
@require_auth
def can_create_route():
    result = fiscal_year_service.check_date(request.args.get("date"))
    return {"can_create": result["can_create"], "reason": result["reason"]}


@fiscal_years_bp.get("/<int:year_id>")
@require_auth
@require_permission("fiscal_years", "view")
def get_year_route(year_id: int):
    return fiscal_year_service.get_year(year_id).to_dict()


@fiscal_years_bp.get("/<int:year_id>/activities")
@require_auth
@require_permission("fiscal_years", "view")
def activities_route(year_id: int):
    return {"items": [a.to_dict() for a in fiscal_year_service.list_activities(year_id)]}


@fiscal_years_bp.post("/<int:year_id>/open")
@require_auth
@require_permission("fiscal_years", "edit")
def open_year_route(year_id: int):
    return fiscal_year_service.open_year(year_id, **_actor()).to_dict()


@fiscal_years_bp.post("/<int:year_id>/close")
@require_auth
@require_permission("fiscal_years", "edit")
def close_year_route(year_id: int):
    data = request.get_json(silent=True) or {}
    return fiscal_year_service.close_year(year_id, data, **_actor()).to_dict()


@fiscal_years_bp.post("/<int:year_id>/temporary-open")
@require_auth
@require_permission("fiscal_years", "edit")
def temporary_open_route(year_id: int):
    data = request.get_json(silent=True) or {}
    return fiscal_year_service.temporary_open(year_id, data, **_actor()).to_dict()


@fiscal_years_bp.post("/<int:year_id>/temporary-close")
@require_auth
@require_permission("fiscal_years", "edit")
def temporary_close_route(year_id: int):
    return fiscal_year_service.temporary_close(year_id, **_actor()).to_dict()


@fiscal_years_bp.post("/<int:year_id>/rollover")
@require_auth
@require_permission("fiscal_years", "edit")
def rollover_route(year_id: int):
    """Body: {target_year?}; defaults to the following year."""
    data = request.get_json(silent=True) or {}
    return fiscal_year_service.rollover(year_id, data, **_actor())
