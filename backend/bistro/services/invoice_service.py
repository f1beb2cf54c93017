# Overview: Service-layer operations for back-office sales and supplier invoices.

from __future__ import annotations

import logging
from datetime import date

from ..branches import default_branch, normalize_branch
from ..errors import InvalidStateError, NotFoundError, ValidationError, parse_id
from ..extensions import db
from ..models import Invoice, Partner
from ..time_utils import parse_date, today
from . import journal_service, posting_rules
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number, peek_document_number
from .order_service import compute_totals, parse_items

logger = logging.getLogger(__name__)

INVOICE_TYPES = ("sale", "purchase")


def _reference_for(invoice: Invoice) -> journal_service.JournalReference:
    if invoice.type == "purchase":
        return journal_service.JournalReference.supplier_invoice(invoice.id)
    return journal_service.JournalReference.invoice(invoice.id)


def _postings_for(invoice: Invoice) -> list[dict]:
    if invoice.type == "purchase":
        return posting_rules.supplier_invoice_postings(invoice)
    return posting_rules.sales_invoice_postings(invoice)


def _stage_journal(invoice: Invoice) -> None:
    if invoice.total and invoice.total > 0:
        entry = journal_service.add_entry(
            postings=_postings_for(invoice),
            description=("Supplier invoice " if invoice.type == "purchase" else "Invoice ") + invoice.number,
            entry_date=invoice.date,
            reference=_reference_for(invoice),
            status="posted",
            branch=invoice.branch,
        )
        invoice.journal_entry_id = entry.id


def _apply(invoice: Invoice, data: dict) -> None:
    if "partner_id" in data:
        partner_id = parse_id(data["partner_id"], "partner_id") if data.get("partner_id") else None
        partner = db.session.get(Partner, partner_id) if partner_id else None
        if partner_id and partner is None:
            raise ValidationError(f"Partner {partner_id} not found", code="partner_not_found")
        invoice.partner = partner
        invoice.partner_id = partner.id if partner else None
    if "customer_name" in data:
        invoice.customer_name = data["customer_name"]
    if "payment_method" in data:
        invoice.payment_method = data["payment_method"]
    if "branch" in data:
        invoice.branch = normalize_branch(data["branch"]) or default_branch()
    if data.get("date"):
        try:
            invoice.date = parse_date(data["date"])
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")

    if "lines" in data or "items" in data or "discount_pct" in data or "tax_pct" in data:
        raw = data.get("lines") if data.get("lines") is not None else data.get("items")
        lines = parse_items(raw if raw is not None else invoice.lines)
        if "discount_pct" in data:
            invoice.discount_pct = data.get("discount_pct") or 0
        if "tax_pct" in data:
            invoice.tax_pct = data.get("tax_pct") or 0
        totals = compute_totals(lines, invoice.discount_pct or 0, invoice.tax_pct or 0)
        invoice.lines = [
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
        ]
        invoice.subtotal = totals.subtotal
        invoice.discount_amount = totals.discount_amount
        invoice.tax_amount = totals.tax_amount
        invoice.total = totals.total_amount


def next_number() -> str:
    return peek_document_number()


def list_invoices(
    *,
    type: str | None = None,
    status: str | None = None,
    branch: str | None = None,
    partner_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Invoice]:
    q = db.session.query(Invoice)
    if type:
        q = q.filter(Invoice.type == type)
    if status:
        q = q.filter(Invoice.status == status)
    if branch:
        q = q.filter(Invoice.branch == normalize_branch(branch))
    if partner_id:
        q = q.filter(Invoice.partner_id == partner_id)
    if date_from:
        q = q.filter(Invoice.date >= date_from)
    if date_to:
        q = q.filter(Invoice.date <= date_to)
    return q.order_by(Invoice.date.desc(), Invoice.id.desc()).all()


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def create_invoice(data: dict) -> Invoice:
    """
    Create a sale or purchase invoice. With status "posted" the journal entry
    is written in the same transaction.
    """
    invoice_type = str(data.get("type") or "sale").lower()
    if invoice_type not in INVOICE_TYPES:
        raise ValidationError(f"Invalid invoice type {invoice_type!r}", code="invalid_type")
    status = str(data.get("status") or "draft").lower()
    if status not in ("draft", "posted"):
        raise ValidationError(f"Invalid status {status!r}", code="invalid_status")

    def _op():
        requested = data.get("number")
        if requested is None or str(requested).strip().lower() in ("", "auto"):
            number = next_document_number()
        else:
            number = str(requested).strip()
            if db.session.query(Invoice).filter_by(number=number).first():
                raise ValidationError(f"Invoice number {number} already exists", code="duplicate_number")

        invoice = Invoice(
            number=number,
            date=today(),
            type=invoice_type,
            status="draft",
            branch=default_branch(),
            payment_method="cash",
            discount_pct=0,
            tax_pct=15,
            lines=[],
        )
        payload = dict(data)
        payload.setdefault("lines", payload.pop("items", None) or [])
        _apply(invoice, payload)
        db.session.add(invoice)
        db.session.flush()

        if status == "posted":
            invoice.status = "posted"
            _stage_journal(invoice)

        db.session.commit()
        logger.info("Invoice %s created (%s, %s)", invoice.number, invoice.type, invoice.status)
        return invoice

    return run_with_retry(_op)


def update_invoice(invoice_id: int, data: dict) -> Invoice:
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status != "draft":
            raise InvalidStateError("Only draft invoices can be edited")
        _apply(invoice, data)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def post_invoice(invoice_id: int) -> Invoice:
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status != "draft":
            raise InvalidStateError(f"Invoice is {invoice.status}")
        invoice.status = "posted"
        _stage_journal(invoice)
        db.session.commit()
        return invoice

    return run_with_retry(_op)


def delete_invoice(invoice_id: int) -> None:
    def _op():
        invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
        if not invoice:
            raise NotFoundError(f"Invoice {invoice_id} not found")
        if invoice.status != "draft":
            raise InvalidStateError("Posted invoices cannot be deleted; reverse the journal entry instead")
        db.session.delete(invoice)
        db.session.commit()

    run_with_retry(_op)
