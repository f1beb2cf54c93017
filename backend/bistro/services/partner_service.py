# Overview: Service-layer operations for customers and suppliers, their balances and statements.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..branches import normalize_branch
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Invoice, JournalEntry, JournalPosting, Partner
from . import journal_service
from .concurrency import run_with_retry

PARTNER_TYPES = ("customer", "supplier")
WRITABLE_FIELDS = ("name", "name_en", "phone", "email", "tax_number", "status")


def _apply(partner: Partner, data: dict) -> None:
    for key in WRITABLE_FIELDS:
        if key in data:
            setattr(partner, key, data[key])
    if "type" in data:
        partner_type = str(data["type"] or "").lower()
        if partner_type not in PARTNER_TYPES:
            raise ValidationError(f"Invalid partner type {partner_type!r}", code="invalid_type")
        partner.type = partner_type
    if "branch" in data:
        partner.branch = normalize_branch(data["branch"])
    if not (partner.name or "").strip():
        raise ValidationError("name is required", code="missing_name")


def list_partners(partner_type: str | None = None, search: str | None = None) -> list[Partner]:
    q = db.session.query(Partner)
    if partner_type:
        q = q.filter(Partner.type == partner_type)
    if search:
        like = f"%{search}%"
        q = q.filter(db.or_(Partner.name.ilike(like), Partner.name_en.ilike(like), Partner.phone.ilike(like)))
    return q.order_by(Partner.name).all()


def list_customers(search: str | None = None) -> list[Partner]:
    return list_partners("customer", search)


def get_partner(partner_id: int) -> Partner:
    partner = db.session.get(Partner, partner_id)
    if not partner:
        raise NotFoundError(f"Partner {partner_id} not found")
    return partner


def create_partner(data: dict) -> Partner:
    def _op():
        partner = Partner(type="customer", status="active")
        _apply(partner, data)
        db.session.add(partner)
        db.session.commit()
        return partner

    return run_with_retry(_op)


def update_partner(partner_id: int, data: dict) -> Partner:
    def _op():
        partner = get_partner(partner_id)
        if "type" in data and data["type"] != partner.type and partner.account_id:
            raise ConflictError("Partner already has ledger activity; its type cannot change")
        _apply(partner, data)
        db.session.commit()
        return partner

    return run_with_retry(_op)


def delete_partner(partner_id: int) -> None:
    def _op():
        partner = get_partner(partner_id)
        if db.session.query(Invoice.id).filter_by(partner_id=partner.id).first():
            raise ConflictError("Partner has invoices and cannot be deleted", code="partner_in_use")
        if partner.account_id and db.session.query(JournalPosting.id).filter_by(account_id=partner.account_id).first():
            raise ConflictError("Partner has ledger activity and cannot be deleted", code="partner_in_use")
        db.session.delete(partner)
        db.session.commit()

    run_with_retry(_op)


def balance(partner_id: int) -> dict:
    """
    Balance of the partner's sub-account over posted entries. Positive means
    the customer owes us (debit) or, for suppliers, that we owe them (credit).
    """
    partner = get_partner(partner_id)
    debit = credit = Decimal("0")
    if partner.account_id:
        row = (
            db.session.query(
                func.coalesce(func.sum(JournalPosting.debit), 0),
                func.coalesce(func.sum(JournalPosting.credit), 0),
            )
            .join(JournalEntry, JournalPosting.journal_entry_id == JournalEntry.id)
            .filter(JournalPosting.account_id == partner.account_id)
            .filter(JournalEntry.status.in_(("posted", "reversed")))
            .one()
        )
        debit, credit = Decimal(row[0] or 0), Decimal(row[1] or 0)

    amount = debit - credit if partner.type == "customer" else credit - debit
    return {
        "partner_id": partner.id,
        "type": partner.type,
        "account_id": partner.account_id,
        "total_debit": float(debit),
        "total_credit": float(credit),
        "balance": float(amount),
    }


def statement(partner_id: int, date_from: date | None = None, date_to: date | None = None) -> dict:
    partner = get_partner(partner_id)
    if not partner.account_id:
        return {
            "partner": partner.to_dict(),
            "opening_balance": 0.0,
            "movements": [],
            "closing_balance": 0.0,
        }
    activity = journal_service.account_activity(partner.account_id, date_from, date_to)
    activity.pop("account", None)
    return {"partner": partner.to_dict(), **activity}
