# Overview: Flask API routes for POS orders (generic CRUD); items always come back with the order.

from flask import Blueprint, g, request

from ..decorators import require_auth, require_permission
from ..services import order_service

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_branch(order_id: int):
    return order_service.get_order(order_id).branch


@orders_bp.get("")
@require_auth
@require_permission("sales", "view")
def list_orders_route():
    """Query params: branch, table, status (comma separated, any case)."""
    orders = order_service.list_orders(
        branch=request.args.get("branch"),
        table=request.args.get("table"),
        statuses=request.args.get("status"),
    )
    return {"items": [o.to_dict() for o in orders]}


@orders_bp.post("")
@require_auth
@require_permission("sales", "create")
def create_order_route():
    data = request.get_json(silent=True) or {}
    return order_service.create_order(data, g.current_user).to_dict(), 201


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("sales", "view", branch_from=_order_branch)
def get_order_route(order_id: int):
    return order_service.get_order(order_id).to_dict()


@orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("sales", "edit", branch_from=_order_branch)
def update_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    return order_service.update_order(order_id, data).to_dict()


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("sales", "delete", branch_from=_order_branch)
def delete_order_route(order_id: int):
    order_service.delete_order(order_id)
    return {"ok": True}
