# Overview: Service-layer operations for the POS product catalogue.

from __future__ import annotations

from ..branches import normalize_branch
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from .concurrency import run_with_retry
from .journal_service import to_amount


def _apply(product: Product, data: dict) -> None:
    for key in ("name", "name_en", "category"):
        if key in data:
            setattr(product, key, data[key])
    if "price" in data:
        price = to_amount(data["price"], "price")
        if price < 0:
            raise ValidationError("price must be non-negative", code="invalid_amount")
        product.price = price
    if "branch" in data:
        product.branch = normalize_branch(data["branch"]) or None
    if "is_active" in data:
        product.is_active = bool(data["is_active"])
    if not (product.name or "").strip():
        raise ValidationError("name is required", code="missing_name")


def list_products(branch: str | None = None, category: str | None = None, active_only: bool = False) -> list[Product]:
    q = db.session.query(Product)
    if branch:
        # Products without a branch are sold everywhere
        q = q.filter(db.or_(Product.branch == normalize_branch(branch), Product.branch.is_(None)))
    if category:
        q = q.filter(Product.category == category)
    if active_only:
        q = q.filter(Product.is_active.is_(True))
    return q.order_by(Product.category, Product.name).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def create_product(data: dict) -> Product:
    def _op():
        product = Product(price=0, is_active=True)
        _apply(product, data)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, data: dict) -> Product:
    def _op():
        product = get_product(product_id)
        _apply(product, data)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """Order items keep a copy of name and price, so products can go."""
    def _op():
        db.session.delete(get_product(product_id))
        db.session.commit()

    run_with_retry(_op)
