# Overview: Flask API routes for payroll runs, salary payments and payroll statements.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import payroll_service

payroll_bp = Blueprint("payroll", __name__, url_prefix="/api/payroll")


@payroll_bp.get("/runs")
@require_auth
@require_permission("employees", "view")
def list_runs_route():
    runs = payroll_service.list_runs(
        period=request.args.get("period"),
        branch=request.args.get("branch"),
        status=request.args.get("status"),
    )
    return {"items": [r.to_dict() for r in runs]}


@payroll_bp.post("/run")
@require_auth
@require_permission("employees", "create")
def create_run_route():
    """Body: {period: "YYYY-MM", branch}. Items are filled from active employees."""
    data = request.get_json(silent=True) or {}
    return payroll_service.create_run(data).to_dict(include_items=True), 201


@payroll_bp.get("/run/<int:run_id>/items")
@require_auth
@require_permission("employees", "view")
def get_items_route(run_id: int):
    return {"items": [i.to_dict() for i in payroll_service.get_items(run_id)]}


@payroll_bp.put("/run/<int:run_id>/items")
@require_auth
@require_permission("employees", "edit")
def update_items_route(run_id: int):
    data = request.get_json(silent=True) or {}
    items = data.get("items") if isinstance(data, dict) else data
    return payroll_service.update_items(run_id, items).to_dict(include_items=True)


@payroll_bp.post("/run/<int:run_id>/approve")
@require_auth
@require_permission("employees", "edit")
def approve_run_route(run_id: int):
    return payroll_service.approve_run(run_id).to_dict()


@payroll_bp.post("/run/<int:run_id>/draft")
@require_auth
@require_permission("employees", "edit")
def draft_run_route(run_id: int):
    return payroll_service.return_to_draft(run_id).to_dict()


@payroll_bp.post("/run/<int:run_id>/post")
@require_auth
@require_permission("employees", "post")
def post_run_route(run_id: int):
    data = request.get_json(silent=True) or {}
    return payroll_service.post_run(run_id, data).to_dict()


@payroll_bp.delete("/run/<int:run_id>")
@require_auth
@require_permission("employees", "delete")
def delete_run_route(run_id: int):
    payroll_service.delete_run(run_id)
    return {"ok": True}


@payroll_bp.post("/payments")
@require_auth
@require_permission("employees", "post")
def payments_route():
    """Body: {run_id, amount?, payment_method?, employee_ids?, date?}"""
    data = request.get_json(silent=True) or {}
    return payroll_service.record_payment(data).to_dict(include_items=True), 201


@payroll_bp.get("/statements")
@require_auth
@require_permission("employees", "view")
def statements_route():
    rows = payroll_service.statements(
        employee_id=request.args.get("employee_id", type=int),
        branch=request.args.get("branch"),
        period_from=request.args.get("from"),
        period_to=request.args.get("to"),
    )
    return {"items": rows}


@payroll_bp.get("/previous-dues")
@require_auth
@require_permission("employees", "view")
def previous_dues_route():
    rows = payroll_service.previous_dues(
        branch=request.args.get("branch"),
        before_period=request.args.get("period"),
        employee_id=request.args.get("employee_id", type=int),
    )
    return {"items": rows}
