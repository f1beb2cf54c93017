# Overview: Service-layer operations for POS orders; draft lifecycle, table state and invoice issuing.

"""
POS draft order lifecycle:

    no order -> DRAFT (saved with >= 1 item) -> BUSY/OPEN (table occupied)
             -> ISSUED (invoice created)      or CANCELLED

- An order is keyed by branch + table while it is open. The client keeps the
  open order id under pos_order_<branch>_<table> and reopens by id.
- Items are stored as order_items rows and are loaded with every order,
  whether fetched by id or through a list query. An order that was saved
  with items never comes back with an empty item list.
- Items on the order are the only source of truth when issuing; totals are
  recomputed from them.
- Issuing creates the invoice, closes the order and writes the sales journal
  entry in one transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app, has_app_context

from ..branches import default_branch, normalize_branch
from ..errors import InvalidStateError, NotFoundError, ValidationError, parse_id
from ..extensions import db
from ..models import Invoice, Order, OrderItem, Partner
from ..models.pos import OPEN_ORDER_STATUSES, ORDER_STATUSES
from ..time_utils import parse_date, today
from . import journal_service, posting_rules, settings_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _num(value, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number", code="invalid_amount")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a number", code="invalid_amount")
    return result


def default_tax_pct() -> Decimal:
    if has_app_context():
        return Decimal(str(current_app.config.get("DEFAULT_TAX_PCT", 15)))
    return Decimal("15")


# ---------------------------------------------------------------------------
# Items and totals
# ---------------------------------------------------------------------------

@dataclass
class LineInput:
    product_id: int | None
    name: str | None
    name_en: str | None
    quantity: Decimal
    price: Decimal
    discount: Decimal


def parse_items(raw_items) -> list[LineInput]:
    """
    Accept the shapes the POS sends: {id|product_id, qty|quantity, price,
    discount, name, name_en}. Entries with type "meta" are skipped, as are
    entries with neither a product id nor a name.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list", code="invalid_items")

    lines = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict) or item.get("type") == "meta":
            continue
        product_id = item.get("product_id", item.get("id"))
        name = item.get("name") or None
        if product_id in (None, "") and not name:
            continue
        if product_id not in (None, ""):
            try:
                product_id = int(product_id)
            except (TypeError, ValueError):
                raise ValidationError("product id must be an integer", code="invalid_items", details={"line": index})
        else:
            product_id = None

        quantity = _num(item.get("quantity", item.get("qty")), "quantity")
        price = _num(item.get("price"), "price")
        discount = _num(item.get("discount"), "discount")
        if quantity < 0 or price < 0 or discount < 0:
            raise ValidationError("Quantities and prices must be non-negative", code="invalid_items",
                                  details={"line": index})
        lines.append(LineInput(product_id, name, item.get("name_en") or None, quantity, price, discount))
    return lines


@dataclass
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "discount_amount": float(self.discount_amount),
            "tax_amount": float(self.tax_amount),
            "total_amount": float(self.total_amount),
        }


def compute_totals(lines: list[LineInput], discount_pct=0, tax_pct=None) -> Totals:
    """
    subtotal = sum(qty * price)
    discount = sum(item discounts) + subtotal * discount_pct / 100
    tax      = (subtotal - discount) * tax_pct / 100
    total    = subtotal - discount + tax
    """
    discount_pct = _num(discount_pct, "discount_pct")
    tax_pct = default_tax_pct() if tax_pct in (None, "") else _num(tax_pct, "tax_pct")

    subtotal = sum((l.quantity * l.price for l in lines), Decimal("0"))
    discount = sum((l.discount for l in lines), Decimal("0"))
    if discount_pct > 0:
        discount += subtotal * discount_pct / 100
    subtotal = _money(subtotal)
    discount = _money(discount)
    tax = _money((subtotal - discount) * tax_pct / 100)
    return Totals(subtotal, discount, tax, subtotal - discount + tax)


def _replace_items(order: Order, lines: list[LineInput]) -> None:
    order.items.clear()
    db.session.flush()
    for position, line in enumerate(lines):
        order.items.append(OrderItem(
            position=position,
            product_id=line.product_id,
            name=line.name,
            name_en=line.name_en,
            quantity=line.quantity,
            price=line.price,
            discount=line.discount,
        ))


def _apply_totals(order: Order, lines: list[LineInput]) -> Totals:
    totals = compute_totals(lines, order.discount_pct, order.tax_pct)
    order.subtotal = totals.subtotal
    order.discount_amount = totals.discount_amount
    order.tax_amount = totals.tax_amount
    order.total_amount = totals.total_amount
    return totals


def _first(data: dict, *keys, default=None):
    for key in keys:
        if key in data and data[key] not in (None, ""):
            return data[key]
    return default


def _apply_meta(order: Order, data: dict) -> None:
    customer_name = _first(data, "customer_name", "customerName")
    if customer_name is not None:
        order.customer_name = customer_name
    customer_phone = _first(data, "customer_phone", "customerPhone")
    if customer_phone is not None:
        order.customer_phone = customer_phone
    customer_id = _first(data, "customer_id", "customerId")
    if customer_id is not None:
        customer_id = parse_id(customer_id, "customer_id")
        if db.session.get(Partner, customer_id) is None:
            raise ValidationError(f"Customer {customer_id} not found", code="customer_not_found")
        order.customer_id = customer_id
    payment_method = _first(data, "payment_method", "paymentMethod")
    if payment_method is not None:
        order.payment_method = payment_method
    discount_pct = _first(data, "discount_pct", "discountPct")
    if discount_pct is not None:
        order.discount_pct = _num(discount_pct, "discount_pct")
    tax_pct = _first(data, "tax_pct", "taxPct")
    if tax_pct is not None:
        order.tax_pct = _num(tax_pct, "tax_pct")


# ---------------------------------------------------------------------------
# Draft lifecycle
# ---------------------------------------------------------------------------

def save_draft(data: dict, user=None) -> tuple[Order, Totals]:
    """
    Persist the POS cart for a table.

    With order_id the existing open order is updated and its items replaced;
    without it a new DRAFT order is created.
    """
    requested_branch = normalize_branch(_first(data, "branch"))
    branch = requested_branch or normalize_branch((user.default_branch if user else None) or default_branch())
    if not branch:
        raise ValidationError("Branch is required", code="invalid_branch")
    table = str(_first(data, "table", "table_code", "tableId", default="")).strip()
    if not table:
        raise ValidationError("Table is required", code="invalid_table")

    raw_items = data.get("items") if data.get("items") is not None else data.get("lines")
    lines = parse_items(raw_items)

    order_id = _first(data, "order_id", "orderId")
    if order_id:
        order_id = parse_id(order_id, "order_id")

    def _op():
        if order_id:
            order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
            if not order:
                raise NotFoundError(f"Order {order_id} not found")
            if order.status not in OPEN_ORDER_STATUSES:
                raise InvalidStateError(f"Order {order.id} is {order.status}")
            # An open order stays keyed by the branch and table it was opened on
            if (requested_branch and order.branch != requested_branch) or order.table_code != table:
                raise ValidationError(
                    f"Order {order.id} belongs to {order.branch}/{order.table_code}",
                    code="order_mismatch",
                    details={"branch": order.branch, "table": order.table_code},
                )
        else:
            order = Order(
                branch=branch,
                table_code=table,
                status="DRAFT",
                tax_pct=default_tax_pct(),
                discount_pct=0,
                created_by_user_id=user.id if user else None,
            )
            db.session.add(order)

        _apply_meta(order, data)
        _replace_items(order, lines)
        totals = _apply_totals(order, lines)
        db.session.commit()
        logger.info("Draft order %s saved for %s/%s with %d items", order.id, order.branch, table, len(lines))
        return order, totals

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def parse_statuses(value) -> list[str]:
    """'draft, Open' -> ['DRAFT', 'OPEN']; unknown values are rejected."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    statuses = [str(s).strip().upper() for s in value if str(s).strip()]
    unknown = [s for s in statuses if s not in ORDER_STATUSES]
    if unknown:
        raise ValidationError(f"Unknown status: {', '.join(unknown)}", code="invalid_status")
    return statuses


def list_orders(branch: str | None = None, table: str | None = None, statuses=None) -> list[Order]:
    q = db.session.query(Order)
    if branch:
        q = q.filter(Order.branch == normalize_branch(branch))
    if table not in (None, ""):
        q = q.filter(Order.table_code == str(table).strip())
    statuses = parse_statuses(statuses)
    if statuses:
        q = q.filter(Order.status.in_(statuses))
    return q.order_by(Order.id.desc()).all()


def create_order(data: dict, user=None) -> Order:
    status = str(data.get("status") or "DRAFT").upper()
    if status not in OPEN_ORDER_STATUSES:
        raise ValidationError("New orders must be DRAFT, OPEN or BUSY", code="invalid_status")
    order, _ = save_draft({**data, "order_id": None}, user)
    if status != "DRAFT":
        order = set_status(order.id, status)
    return order


def update_order(order_id: int, data: dict) -> Order:
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in OPEN_ORDER_STATUSES:
            raise InvalidStateError(f"Order {order.id} is {order.status}")

        if data.get("status"):
            status = str(data["status"]).upper()
            if status not in OPEN_ORDER_STATUSES:
                raise InvalidStateError("Use issueInvoice or cancel to close an order")
            order.status = status
        if data.get("table") or data.get("table_code"):
            order.table_code = str(_first(data, "table", "table_code")).strip()
        _apply_meta(order, data)

        raw_items = data.get("items") if data.get("items") is not None else data.get("lines")
        if raw_items is not None:
            lines = parse_items(raw_items)
            _replace_items(order, lines)
        else:
            lines = [
                LineInput(i.product_id, i.name, i.name_en, Decimal(i.quantity), Decimal(i.price), Decimal(i.discount))
                for i in order.items
            ]
        _apply_totals(order, lines)
        db.session.commit()
        return order

    return run_with_retry(_op)


def set_status(order_id: int, status: str) -> Order:
    """Move an open order between DRAFT, OPEN and BUSY."""
    status = str(status).upper()
    if status not in OPEN_ORDER_STATUSES:
        raise InvalidStateError(f"Cannot set status {status} directly")

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in OPEN_ORDER_STATUSES:
            raise InvalidStateError(f"Order {order.id} is {order.status}")
        order.status = status
        db.session.commit()
        return order

    return run_with_retry(_op)


def mark_busy(order_id: int) -> Order:
    """Table occupied: DRAFT or OPEN becomes BUSY."""
    return set_status(order_id, "BUSY")


def delete_order(order_id: int) -> None:
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in OPEN_ORDER_STATUSES:
            raise InvalidStateError("Issued orders cannot be deleted")
        db.session.delete(order)
        db.session.commit()

    run_with_retry(_op)


def cancel_order(order_id: int, password: str | None = None) -> Order:
    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.status not in OPEN_ORDER_STATUSES:
            raise InvalidStateError(f"Order {order.id} is {order.status}")
        if not settings_service.verify_cancel_password(order.branch, password):
            raise ValidationError("Cancel password is incorrect", code="invalid_cancel_password")
        order.status = "CANCELLED"
        db.session.commit()
        logger.info("Order %s cancelled", order.id)
        return order

    return run_with_retry(_op)


def table_state(branch: str | None) -> list[str]:
    """Table codes with an open order in the branch."""
    branch = normalize_branch(branch)
    if not branch:
        return []
    rows = (
        db.session.query(Order.table_code)
        .filter(Order.branch == branch, Order.status.in_(OPEN_ORDER_STATUSES))
        .distinct()
        .all()
    )
    return sorted(r[0] for r in rows if r[0])


def get_tables_layout(branch: str) -> dict:
    return settings_service.get_setting(settings_service.tables_layout_key(branch), {"rows": []})


def save_tables_layout(branch: str, layout: dict, user_id: int | None = None) -> dict:
    if not isinstance(layout, dict):
        raise ValidationError("Layout must be an object", code="invalid_layout")
    settings_service.put_setting(settings_service.tables_layout_key(branch), layout, user_id)
    return layout


# ---------------------------------------------------------------------------
# Issue
# ---------------------------------------------------------------------------

def _invoice_number(requested) -> str:
    if requested is None or str(requested).strip().lower() in ("", "auto"):
        return next_document_number()
    return str(requested).strip()


def issue_invoice(data: dict, user=None) -> tuple[Invoice, Order, object]:
    """
    Close an open order with a sales invoice.

    Returns (invoice, order, journal_entry_or_None). Any failure rolls back
    the invoice, the order status change and the journal entry together.
    """
    order_id = _first(data, "order_id", "orderId")
    if not order_id:
        raise ValidationError("order_id is required", code="missing_order_id")
    order_id = parse_id(order_id, "order_id")

    try:
        invoice_date = parse_date(data.get("date")) or today()
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")
    status = str(data.get("status") or "posted").lower()
    if status not in ("draft", "posted"):
        raise ValidationError(f"Invalid status {status!r}", code="invalid_status")

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise NotFoundError(f"Order {order_id} not found")
        if order.invoice_id:
            raise ValidationError(f"Order {order.id} already has invoice {order.invoice_id}", code="already_issued")
        if order.status not in OPEN_ORDER_STATUSES:
            raise InvalidStateError(f"Order is {order.status}; only open orders can be invoiced")

        _apply_meta(order, data)
        lines = [
            LineInput(i.product_id, i.name, i.name_en, Decimal(i.quantity), Decimal(i.price), Decimal(i.discount))
            for i in order.items
            if Decimal(i.quantity or 0) > 0
        ]
        if not lines:
            raise ValidationError("Order has no items", code="empty_lines")
        totals = _apply_totals(order, lines)

        partner = db.session.get(Partner, order.customer_id) if order.customer_id else None
        invoice = Invoice(
            number=_invoice_number(data.get("number")),
            date=invoice_date,
            type="sale",
            partner_id=partner.id if partner else None,
            customer_name=order.customer_name,
            lines=[
                {
                    "type": "item",
                    "product_id": l.product_id,
                    "name": l.name or "",
                    "name_en": l.name_en or "",
                    "qty": float(l.quantity),
                    "price": float(l.price),
                    "discount": float(l.discount),
                }
                for l in lines
            ],
            subtotal=totals.subtotal,
            discount_pct=order.discount_pct,
            discount_amount=totals.discount_amount,
            tax_pct=order.tax_pct,
            tax_amount=totals.tax_amount,
            total=totals.total_amount,
            payment_method=order.payment_method or "cash",
            status=status,
            branch=order.branch,
            order_id=order.id,
        )
        invoice.partner = partner
        db.session.add(invoice)
        db.session.flush()

        order.status = "ISSUED"
        order.invoice_id = invoice.id

        entry = None
        if status == "posted" and totals.total_amount > 0:
            entry = journal_service.add_entry(
                postings=posting_rules.sales_invoice_postings(invoice),
                description=f"Invoice {invoice.number}",
                entry_date=invoice.date,
                reference=journal_service.JournalReference.invoice(invoice.id),
                status="posted",
                branch=invoice.branch,
            )
            invoice.journal_entry_id = entry.id

        db.session.commit()
        logger.info("Order %s issued as invoice %s", order.id, invoice.number)
        return invoice, order, entry

    return run_with_retry(_op)
