# Overview: Flask API routes for financial reports.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import report_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/trial-balance")
@require_auth
@require_permission("reports", "view")
def trial_balance_route():
    """Query params: from, to (YYYY-MM-DD), branch."""
    return report_service.trial_balance(
        request.args.get("from"), request.args.get("to"), request.args.get("branch")
    )


@reports_bp.get("/sales-vs-expenses")
@require_auth
@require_permission("reports", "view")
def sales_vs_expenses_route():
    return report_service.sales_vs_expenses(
        request.args.get("from"), request.args.get("to"), request.args.get("branch")
    )


@reports_bp.get("/sales-by-branch")
@require_auth
@require_permission("reports", "view")
def sales_by_branch_route():
    return report_service.sales_by_branch(request.args.get("from"), request.args.get("to"))


@reports_bp.get("/expenses-by-branch")
@require_auth
@require_permission("reports", "view")
def expenses_by_branch_route():
    return report_service.expenses_by_branch(request.args.get("from"), request.args.get("to"))
