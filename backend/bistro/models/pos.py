from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# DRAFT/OPEN/BUSY: table occupied, order editable. ISSUED: closed by an invoice.
ORDER_STATUSES = ("DRAFT", "OPEN", "BUSY", "ISSUED", "CANCELLED")
OPEN_ORDER_STATUSES = ("DRAFT", "OPEN", "BUSY")


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    name_en = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(128), nullable=True)
    price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    branch = db.Column(db.String(64), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "name_en": self.name_en,
            "category": self.category,
            "price": float(self.price or 0),
            "branch": self.branch,
            "is_active": self.is_active,
        }


class Order(db.Model):
    """
    POS order for one table in one branch.

    Items live in order_items and are always loaded with the order
    (lazy="selectin"), whichever query produced the order row.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_branch_table_status", "branch", "table_code", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    branch = db.Column(db.String(64), nullable=False)
    table_code = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="DRAFT")

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=True)
    payment_method = db.Column(db.String(32), nullable=True)

    discount_pct = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    tax_pct = db.Column(db.Numeric(6, 2), nullable=False, default=15)
    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.id,
            "branch": self.branch,
            "table": self.table_code,
            "table_code": self.table_code,
            "status": self.status,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_id": self.customer_id,
            "payment_method": self.payment_method,
            "discount_pct": float(self.discount_pct or 0),
            "tax_pct": float(self.tax_pct or 0),
            "subtotal": float(self.subtotal or 0),
            "discount_amount": float(self.discount_amount or 0),
            "tax_amount": float(self.tax_amount or 0),
            "total_amount": float(self.total_amount or 0),
            "invoice_id": self.invoice_id,
            "items": [item.to_dict() for item in self.items],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.Index("ix_order_items_order", "order_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)
    # No FK: ad-hoc items (open price, off-menu) carry only a name
    product_id = db.Column(db.Integer, nullable=True)
    name = db.Column(db.String(255), nullable=True)
    name_en = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    price = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    def to_dict(self) -> dict:
        qty = float(self.quantity or 0)
        return {
            "id": self.product_id,
            "product_id": self.product_id,
            "name": self.name,
            "name_en": self.name_en,
            "qty": qty,
            "quantity": qty,
            "price": float(self.price or 0),
            "discount": float(self.discount or 0),
        }
