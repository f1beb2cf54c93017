# Overview: Service-layer operations for financial reports; read-only queries over posted data.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..branches import normalize_branch
from ..errors import ValidationError
from ..extensions import db
from ..models import Account, Expense, Invoice, JournalEntry, JournalPosting
from ..time_utils import parse_date, to_iso_date
from .journal_service import BALANCE_TOLERANCE

# Reversed entries stay in the ledger next to their mirror entry
LEDGER_STATUSES = ("posted", "reversed")


def parse_range(start, end) -> tuple[date | None, date | None]:
    try:
        start_d = parse_date(start) if start else None
        end_d = parse_date(end) if end else None
    except ValueError:
        raise ValidationError("Dates must be YYYY-MM-DD", code="invalid_date")
    if start_d and end_d and start_d > end_d:
        raise ValidationError("from must not be after to", code="invalid_date")
    return start_d, end_d


def _sums_by_account(date_from: date | None = None, date_to: date | None = None,
                     before: date | None = None, branch: str | None = None) -> dict[int, tuple[Decimal, Decimal]]:
    q = (
        db.session.query(
            JournalPosting.account_id,
            func.coalesce(func.sum(JournalPosting.debit), 0),
            func.coalesce(func.sum(JournalPosting.credit), 0),
        )
        .join(JournalEntry, JournalPosting.journal_entry_id == JournalEntry.id)
        .filter(JournalEntry.status.in_(LEDGER_STATUSES))
    )
    if branch:
        q = q.filter(JournalEntry.branch == normalize_branch(branch))
    if before:
        q = q.filter(JournalEntry.date < before)
    if date_from:
        q = q.filter(JournalEntry.date >= date_from)
    if date_to:
        q = q.filter(JournalEntry.date <= date_to)
    return {
        account_id: (Decimal(debit or 0), Decimal(credit or 0))
        for account_id, debit, credit in q.group_by(JournalPosting.account_id)
    }


def trial_balance(start=None, end=None, branch: str | None = None) -> dict:
    """
    Per account: beginning balance (opening balance plus movements before
    `start`), debits and credits inside the window, ending balance. All
    balances are debit-positive.
    """
    date_from, date_to = parse_range(start, end)
    prior = _sums_by_account(before=date_from, branch=branch) if date_from else {}
    window = _sums_by_account(date_from=date_from, date_to=date_to, branch=branch)

    rows = []
    total_debit = total_credit = Decimal("0")
    zero = (Decimal("0"), Decimal("0"))
    for account in db.session.query(Account).order_by(Account.account_number, Account.id):
        prior_dr, prior_cr = prior.get(account.id, zero)
        debit, credit = window.get(account.id, zero)
        beginning = Decimal(account.opening_balance or 0) + prior_dr - prior_cr
        if not (beginning or debit or credit):
            continue
        ending = beginning + debit - credit
        total_debit += debit
        total_credit += credit
        rows.append({
            "account_id": account.id,
            "account_code": account.code,
            "name": account.name,
            "name_en": account.name_en,
            "type": account.type,
            "beginning": float(beginning),
            "debit": float(debit),
            "credit": float(credit),
            "ending": float(ending),
        })

    return {
        "from": to_iso_date(date_from),
        "to": to_iso_date(date_to),
        "branch": normalize_branch(branch) or None,
        "items": rows,
        "totals": {"debit": float(total_debit), "credit": float(total_credit)},
        "balanced": abs(total_debit - total_credit) <= BALANCE_TOLERANCE,
    }


def _daily(model, amount_col, date_from, date_to, branch, *extra_filters) -> dict[str, Decimal]:
    q = db.session.query(model.date, func.coalesce(func.sum(amount_col), 0)).filter(model.status == "posted")
    for condition in extra_filters:
        q = q.filter(condition)
    if branch:
        q = q.filter(model.branch == normalize_branch(branch))
    if date_from:
        q = q.filter(model.date >= date_from)
    if date_to:
        q = q.filter(model.date <= date_to)
    return {to_iso_date(d): Decimal(total or 0) for d, total in q.group_by(model.date)}


def sales_vs_expenses(start=None, end=None, branch: str | None = None) -> dict:
    date_from, date_to = parse_range(start, end)
    sales = _daily(Invoice, Invoice.total, date_from, date_to, branch, Invoice.type == "sale")
    expenses = _daily(Expense, Expense.total, date_from, date_to, branch)

    rows = []
    for day in sorted(set(sales) | set(expenses)):
        s, e = sales.get(day, Decimal("0")), expenses.get(day, Decimal("0"))
        rows.append({"date": day, "sales": float(s), "expenses": float(e), "net": float(s - e)})
    total_sales = sum(sales.values(), Decimal("0"))
    total_expenses = sum(expenses.values(), Decimal("0"))
    return {
        "from": to_iso_date(date_from),
        "to": to_iso_date(date_to),
        "items": rows,
        "totals": {
            "sales": float(total_sales),
            "expenses": float(total_expenses),
            "net": float(total_sales - total_expenses),
        },
    }


def _by_branch(model, amount_col, date_from, date_to, *extra_filters) -> list[dict]:
    q = db.session.query(
        model.branch,
        func.count(model.id),
        func.coalesce(func.sum(amount_col), 0),
    ).filter(model.status == "posted")
    for condition in extra_filters:
        q = q.filter(condition)
    if date_from:
        q = q.filter(model.date >= date_from)
    if date_to:
        q = q.filter(model.date <= date_to)
    return [
        {"branch": branch, "count": int(count or 0), "total": float(total or 0)}
        for branch, count, total in q.group_by(model.branch).order_by(model.branch)
    ]


def sales_by_branch(start=None, end=None) -> dict:
    date_from, date_to = parse_range(start, end)
    rows = _by_branch(Invoice, Invoice.total, date_from, date_to, Invoice.type == "sale")
    return {"from": to_iso_date(date_from), "to": to_iso_date(date_to), "items": rows}


def expenses_by_branch(start=None, end=None) -> dict:
    date_from, date_to = parse_range(start, end)
    rows = _by_branch(Expense, Expense.total, date_from, date_to)
    return {"from": to_iso_date(date_from), "to": to_iso_date(date_to), "items": rows}
