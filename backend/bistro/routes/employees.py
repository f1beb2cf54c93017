# Overview: Flask API routes for employees.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import employee_service

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_permission("employees", "view")
def list_employees_route():
    employees = employee_service.list_employees(request.args.get("branch"), request.args.get("status"))
    return {"items": [e.to_dict() for e in employees]}


@employees_bp.post("")
@require_auth
@require_permission("employees", "create")
def create_employee_route():
    data = request.get_json(silent=True) or {}
    return employee_service.create_employee(data).to_dict(), 201


@employees_bp.get("/<int:employee_id>")
@require_auth
@require_permission("employees", "view")
def get_employee_route(employee_id: int):
    return employee_service.get_employee(employee_id).to_dict()


@employees_bp.put("/<int:employee_id>")
@require_auth
@require_permission("employees", "edit")
def update_employee_route(employee_id: int):
    data = request.get_json(silent=True) or {}
    return employee_service.update_employee(employee_id, data).to_dict()


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_permission("employees", "delete")
def delete_employee_route(employee_id: int):
    employee_service.delete_employee(employee_id)
    return {"ok": True}
