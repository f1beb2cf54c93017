# Overview: Read-only ledger and chart-of-accounts integrity checks (CLI and health).

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Invoice, JournalEntry, JournalPosting, Order
from .account_service import validate_tree
from .journal_service import BALANCE_TOLERANCE


@dataclass
class IntegrityReport:
    unbalanced_entries: list[dict] = field(default_factory=list)
    issued_orders_without_invoice: list[int] = field(default_factory=list)
    posted_invoices_without_entry: list[str] = field(default_factory=list)
    tree: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not (
            self.unbalanced_entries
            or self.issued_orders_without_invoice
            or self.posted_invoices_without_entry
            or not self.tree.get("ok", True)
        )

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "unbalanced_entries": self.unbalanced_entries,
            "issued_orders_without_invoice": self.issued_orders_without_invoice,
            "posted_invoices_without_entry": self.posted_invoices_without_entry,
            "tree": self.tree,
        }


def unbalanced_entries() -> list[dict]:
    rows = (
        db.session.query(
            JournalEntry.id,
            JournalEntry.entry_number,
            func.coalesce(func.sum(JournalPosting.debit), 0),
            func.coalesce(func.sum(JournalPosting.credit), 0),
        )
        .outerjoin(JournalPosting, JournalPosting.journal_entry_id == JournalEntry.id)
        .filter(JournalEntry.status.in_(("posted", "reversed")))
        .group_by(JournalEntry.id, JournalEntry.entry_number)
        .all()
    )
    bad = []
    for entry_id, number, debit, credit in rows:
        debit, credit = Decimal(debit or 0), Decimal(credit or 0)
        if abs(debit - credit) > BALANCE_TOLERANCE:
            bad.append({
                "id": entry_id,
                "entry_number": number,
                "total_debit": float(debit),
                "total_credit": float(credit),
            })
    return bad


def check() -> IntegrityReport:
    issued = (
        db.session.query(Order.id)
        .filter(Order.status == "ISSUED", Order.invoice_id.is_(None))
        .order_by(Order.id)
        .all()
    )
    invoices = (
        db.session.query(Invoice.number)
        .filter(Invoice.status == "posted", Invoice.journal_entry_id.is_(None), Invoice.total > 0)
        .order_by(Invoice.number)
        .all()
    )
    return IntegrityReport(
        unbalanced_entries=unbalanced_entries(),
        issued_orders_without_invoice=[row[0] for row in issued],
        posted_invoices_without_entry=[row[0] for row in invoices],
        tree=validate_tree().to_dict(),
    )
