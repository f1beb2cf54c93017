# Overview: Flask API routes for expenses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import expense_service
from ..services.report_service import parse_range

expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_permission("expenses", "view")
def list_expenses_route():
    date_from, date_to = parse_range(request.args.get("from"), request.args.get("to"))
    expenses = expense_service.list_expenses(
        branch=request.args.get("branch"),
        status=request.args.get("status"),
        date_from=date_from,
        date_to=date_to,
    )
    return {"items": [e.to_dict() for e in expenses]}


@expenses_bp.post("")
@require_auth
@require_permission("expenses", "create")
def create_expense_route():
    """auto_post defaults to true: the journal entry is written with the expense."""
    data = request.get_json(silent=True) or {}
    return expense_service.create_expense(data).to_dict(), 201


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_permission("expenses", "view")
def get_expense_route(expense_id: int):
    return expense_service.get_expense(expense_id).to_dict()


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_permission("expenses", "edit")
def update_expense_route(expense_id: int):
    data = request.get_json(silent=True) or {}
    return expense_service.update_expense(expense_id, data).to_dict()


@expenses_bp.post("/<int:expense_id>/post")
@require_auth
@require_permission("expenses", "post")
def post_expense_route(expense_id: int):
    return expense_service.post_expense(expense_id).to_dict()


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_permission("expenses", "delete")
def delete_expense_route(expense_id: int):
    expense_service.delete_expense(expense_id)
    return {"ok": True}
