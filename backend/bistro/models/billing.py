from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


class Invoice(db.Model):
    """
    Sales or purchase invoice.

    type "sale" is issued to customers (POS or back office); type "purchase"
    records a supplier invoice. A posted invoice is linked to the journal
    entry generated for it.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("number", name="uq_invoices_number"),
        db.Index("ix_invoices_branch_date", "branch", "date"),
        db.Index("ix_invoices_partner", "partner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.String(64), nullable=False)
    date = db.Column(db.Date, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="sale")
    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    lines = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    discount_pct = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    tax_pct = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft")
    branch = db.Column(db.String(64), nullable=True)
    # Plain column: orders.invoice_id already points the other way
    order_id = db.Column(db.Integer, nullable=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    partner = db.relationship("Partner")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "number": self.number,
            "date": to_iso_date(self.date),
            "type": self.type,
            "partner_id": self.partner_id,
            "customer_name": self.customer_name,
            "lines": self.lines or [],
            "subtotal": float(self.subtotal or 0),
            "discount_pct": float(self.discount_pct or 0),
            "discount_amount": float(self.discount_amount or 0),
            "tax_pct": float(self.tax_pct or 0),
            "tax_amount": float(self.tax_amount or 0),
            "total": float(self.total or 0),
            "payment_method": self.payment_method,
            "status": self.status,
            "branch": self.branch,
            "order_id": self.order_id,
            "journal_entry_id": self.journal_entry_id,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """
    Operating expense paid in cash or from a bank account.

    Either a single account_code carries the whole amount, or `items` splits
    it across several expense accounts ([{account_code, amount, description}]).
    """
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_branch_date", "branch", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    type = db.Column(db.String(32), nullable=False, default="expense")
    amount = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    account_code = db.Column(db.String(32), nullable=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=True)
    description = db.Column(db.Text, nullable=True)
    items = db.Column(db.JSON, nullable=False, default=list)
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    status = db.Column(db.String(16), nullable=False, default="draft")
    branch = db.Column(db.String(64), nullable=True)
    date = db.Column(db.Date, nullable=False)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "type": self.type,
            "amount": float(self.amount or 0),
            "total": float(self.total or 0),
            "account_code": self.account_code,
            "partner_id": self.partner_id,
            "description": self.description,
            "items": self.items or [],
            "payment_method": self.payment_method,
            "status": self.status,
            "branch": self.branch,
            "date": to_iso_date(self.date),
            "journal_entry_id": self.journal_entry_id,
            "created_at": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Yearly counters for document numbers (INV/2026/0000000001).

    The counter restarts at 1 for every (document_type, year) pair.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "year", name="uq_document_sequences_type_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
