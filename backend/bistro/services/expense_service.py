# Overview: Service-layer operations for expenses and their cash/bank journal entries.

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from ..branches import default_branch, normalize_branch
from ..errors import InvalidStateError, NotFoundError, ValidationError, parse_id
from ..extensions import db
from ..models import Expense, Partner
from ..time_utils import parse_date, today
from . import journal_service, posting_rules
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "bank", "card", "transfer")


def _amount(value, field_name: str) -> Decimal:
    return journal_service.to_amount(value, field_name)


def _apply(expense: Expense, data: dict) -> None:
    for key in ("invoice_number", "type", "description", "account_code"):
        if key in data:
            setattr(expense, key, data[key])
    if "payment_method" in data:
        method = str(data["payment_method"] or "cash").lower()
        if method not in PAYMENT_METHODS:
            raise ValidationError(f"Invalid payment method {method!r}", code="invalid_payment_method")
        expense.payment_method = method
    if "branch" in data:
        expense.branch = normalize_branch(data["branch"]) or default_branch()
    if "partner_id" in data:
        partner_id = parse_id(data["partner_id"], "partner_id") if data["partner_id"] else None
        if partner_id and db.session.get(Partner, partner_id) is None:
            raise ValidationError(f"Partner {partner_id} not found", code="partner_not_found")
        expense.partner_id = partner_id
    if data.get("date"):
        try:
            expense.date = parse_date(data["date"])
        except ValueError:
            raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")

    if "items" in data:
        items = []
        for index, item in enumerate(data["items"] or []):
            if not isinstance(item, dict):
                raise ValidationError("items must be objects", code="invalid_items", details={"line": index})
            amount = _amount(item.get("amount"), "amount")
            if amount < 0:
                raise ValidationError("Item amounts must be non-negative", code="invalid_amount",
                                      details={"line": index})
            items.append({
                "account_code": item.get("account_code"),
                "amount": float(amount),
                "description": item.get("description"),
            })
        expense.items = items

    if "amount" in data or "total" in data or "items" in data:
        items_total = sum((Decimal(str(i["amount"])) for i in expense.items or []), Decimal("0"))
        amount = _amount(data.get("amount", expense.amount), "amount")
        total = _amount(data.get("total"), "total") if data.get("total") not in (None, "") else None
        if items_total > 0:
            if total is not None and abs(total - items_total) > journal_service.BALANCE_TOLERANCE:
                raise ValidationError("Item amounts do not add up to the total", code="invalid_amount")
            total = items_total
        if total is None:
            total = amount
        if total < 0:
            raise ValidationError("Total must be non-negative", code="invalid_amount")
        expense.amount = amount if amount else total
        expense.total = total


def _stage_journal(expense: Expense) -> None:
    entry = journal_service.add_entry(
        postings=posting_rules.expense_postings(expense),
        description=expense.description or f"Expense {expense.invoice_number or expense.id}",
        entry_date=expense.date,
        reference=journal_service.JournalReference.expense(expense.id),
        status="posted",
        branch=expense.branch,
    )
    expense.journal_entry_id = entry.id
    expense.status = "posted"


def list_expenses(
    *,
    branch: str | None = None,
    status: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[Expense]:
    q = db.session.query(Expense)
    if branch:
        q = q.filter(Expense.branch == normalize_branch(branch))
    if status:
        q = q.filter(Expense.status == status)
    if date_from:
        q = q.filter(Expense.date >= date_from)
    if date_to:
        q = q.filter(Expense.date <= date_to)
    return q.order_by(Expense.date.desc(), Expense.id.desc()).all()


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise NotFoundError(f"Expense {expense_id} not found")
    return expense


def create_expense(data: dict) -> Expense:
    """
    Record an expense. auto_post defaults to true: the expense and its
    journal entry are committed together, or not at all.
    """
    auto_post = data.get("auto_post", True)
    if isinstance(auto_post, str):
        auto_post = auto_post.strip().lower() not in ("0", "false", "no")

    def _op():
        expense = Expense(
            date=today(),
            branch=default_branch(),
            payment_method="cash",
            status="draft",
            items=[],
            amount=0,
            total=0,
        )
        _apply(expense, {"amount": 0, **data})
        db.session.add(expense)
        db.session.flush()
        if auto_post:
            _stage_journal(expense)
        db.session.commit()
        logger.info("Expense %s recorded (%s)", expense.id, expense.status)
        return expense

    return run_with_retry(_op)


def update_expense(expense_id: int, data: dict) -> Expense:
    def _op():
        expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.status != "draft":
            raise InvalidStateError("Posted expenses cannot be edited; reverse the journal entry instead")
        _apply(expense, data)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def post_expense(expense_id: int) -> Expense:
    def _op():
        expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.status != "draft":
            raise InvalidStateError(f"Expense is {expense.status}")
        _stage_journal(expense)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(expense_id: int) -> None:
    def _op():
        expense = lock_for_update(db.session.query(Expense).filter_by(id=expense_id)).first()
        if not expense:
            raise NotFoundError(f"Expense {expense_id} not found")
        if expense.status != "draft":
            raise InvalidStateError("Posted expenses cannot be deleted; reverse the journal entry instead")
        db.session.delete(expense)
        db.session.commit()

    run_with_retry(_op)
