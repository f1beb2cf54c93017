# Overview: Flask API routes for products operations; parses input and returns JSON responses.

from flask import Blueprint, request

from ..decorators import require_auth, require_permission
from ..services import product_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("products", "view")
def list_products_route():
    """
    Query params:
    - branch: products of the branch plus those sold everywhere
    - category
    - active: "1" to hide inactive products
    """
    products = product_service.list_products(
        branch=request.args.get("branch"),
        category=request.args.get("category"),
        active_only=request.args.get("active") in ("1", "true"),
    )
    return {"items": [p.to_dict() for p in products]}


@products_bp.post("")
@require_auth
@require_permission("products", "create")
def create_product_route():
    data = request.get_json(silent=True) or {}
    return product_service.create_product(data).to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products", "view")
def get_product_route(product_id: int):
    return product_service.get_product(product_id).to_dict()


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("products", "edit")
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    return product_service.update_product(product_id, data).to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("products", "delete")
def delete_product_route(product_id: int):
    product_service.delete_product(product_id)
    return {"ok": True}
