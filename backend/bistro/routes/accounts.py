# Overview: Flask API routes for the chart of accounts.

from flask import Blueprint, request

from ..decorators import require_admin, require_auth, require_permission
from ..services import account_service

accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")


@accounts_bp.get("")
@require_auth
@require_permission("accounting", "view")
def tree_route():
    """Nested tree by default; ?flat=1 returns the plain list."""
    if request.args.get("flat") in ("1", "true"):
        return {"items": [a.to_dict() for a in account_service.list_accounts()]}
    return {"items": account_service.get_tree()}


@accounts_bp.post("")
@require_auth
@require_permission("accounting", "create")
def create_account_route():
    data = request.get_json(silent=True) or {}
    return account_service.create_account(data).to_dict(), 201


@accounts_bp.post("/seed-default")
@require_auth
@require_admin
def seed_route():
    seeded = account_service.seed_chart_of_accounts()
    return {"ok": True, "accounts": seeded}


@accounts_bp.get("/validate")
@require_auth
@require_permission("accounting", "view")
def validate_route():
    return account_service.validate_tree().to_dict()


@accounts_bp.get("/<int:account_id>")
@require_auth
@require_permission("accounting", "view")
def get_account_route(account_id: int):
    return account_service.get_account(account_id).to_dict()


@accounts_bp.put("/<int:account_id>")
@require_auth
@require_permission("accounting", "edit")
def update_account_route(account_id: int):
    data = request.get_json(silent=True) or {}
    return account_service.update_account(account_id, data).to_dict()


@accounts_bp.delete("/<int:account_id>")
@require_auth
@require_permission("accounting", "delete")
def delete_account_route(account_id: int):
    account_service.delete_account(account_id)
    return {"ok": True}
