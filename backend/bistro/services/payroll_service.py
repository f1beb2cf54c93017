# Overview: Service-layer operations for payroll runs, salary accruals and payments.

"""
Payroll lifecycle:

    draft -> approved -> posted -> paid
      ^         |
      +---------+   (approved runs may return to draft)

- A run is unique per (period, branch) and is filled from the branch's
  active employees when created.
- Items are editable only while the run is draft; every edit recomputes the
  item and the run totals.
- Posting writes the accrual entry (salaries against accrued payroll and
  GOSI payable) in the same transaction as the status change.
- Payments debit accrued payroll and credit cash/bank; they are allocated to
  items in order and never exceed what is outstanding. The run is "paid"
  once nothing is outstanding.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from ..branches import default_branch, normalize_branch
from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError, parse_id
from ..extensions import db
from ..models import Employee, PayrollItem, PayrollRun
from ..time_utils import parse_date, parse_period, period_of, today, utcnow
from . import journal_service, posting_rules
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
EDITABLE_ITEM_FIELDS = ("basic_salary", "allowances", "additions", "deductions")


def _d(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT)


@dataclass(frozen=True)
class ItemAmounts:
    gosi: Decimal
    gross: Decimal
    net: Decimal


def compute_item(basic, allowances, additions, deductions, gosi_base, gosi_rate) -> ItemAmounts:
    """
    gross = basic + allowances + additions
    gosi  = gosi_base * rate / 100   (employee share)
    net   = gross - deductions - gosi
    """
    gross = _d(basic) + _d(allowances) + _d(additions)
    gosi = (_d(gosi_base) * _d(gosi_rate) / Decimal("100")).quantize(CENT)
    net = gross - _d(deductions) - gosi
    if net < 0:
        raise ValidationError("Deductions exceed gross salary", code="invalid_amount")
    return ItemAmounts(gosi=gosi, gross=gross, net=net)


def _recalculate_item(item: PayrollItem) -> None:
    employee = item.employee
    housing = _d(employee.housing_allowance) if employee else Decimal("0")
    rate = employee.gosi_rate if employee else 0
    amounts = compute_item(
        item.basic_salary, item.allowances, item.additions, item.deductions,
        _d(item.basic_salary) + housing, rate,
    )
    item.gosi = amounts.gosi
    item.gross = amounts.gross
    item.net = amounts.net


def _recalculate_totals(run: PayrollRun) -> None:
    run.total_gross = sum((_d(i.gross) for i in run.items), Decimal("0"))
    run.total_deductions = sum((_d(i.deductions) for i in run.items), Decimal("0"))
    run.total_gosi = sum((_d(i.gosi) for i in run.items), Decimal("0"))
    run.total_net = sum((_d(i.net) for i in run.items), Decimal("0"))
    run.total_paid = sum((_d(i.paid) for i in run.items), Decimal("0"))


def _locked_run(run_id: int) -> PayrollRun:
    run = lock_for_update(db.session.query(PayrollRun).filter_by(id=run_id)).first()
    if not run:
        raise NotFoundError(f"Payroll run {run_id} not found")
    return run


def _period(value) -> str:
    if not value:
        return period_of(today())
    try:
        year, month = parse_period(value)
    except ValueError:
        raise ValidationError("period must be YYYY-MM", code="invalid_period")
    return f"{year:04d}-{month:02d}"


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------

def list_runs(period: str | None = None, branch: str | None = None, status: str | None = None) -> list[PayrollRun]:
    q = db.session.query(PayrollRun)
    if period:
        q = q.filter(PayrollRun.period == _period(period))
    if branch:
        q = q.filter(PayrollRun.branch == normalize_branch(branch))
    if status:
        q = q.filter(PayrollRun.status == status)
    return q.order_by(PayrollRun.period.desc(), PayrollRun.branch).all()


def get_run(run_id: int) -> PayrollRun:
    run = db.session.get(PayrollRun, run_id)
    if not run:
        raise NotFoundError(f"Payroll run {run_id} not found")
    return run


def create_run(data: dict) -> PayrollRun:
    period = _period(data.get("period"))
    branch = normalize_branch(data.get("branch")) or default_branch()

    def _op():
        if db.session.query(PayrollRun.id).filter_by(period=period, branch=branch).first():
            raise ConflictError(f"A payroll run for {branch} {period} already exists", code="duplicate_run")

        run = PayrollRun(period=period, branch=branch, status="draft")
        employees = (
            db.session.query(Employee)
            .filter(Employee.status == "active", Employee.branch == branch)
            .order_by(Employee.id)
            .all()
        )
        for employee in employees:
            item = PayrollItem(
                employee=employee,
                basic_salary=_d(employee.basic_salary),
                allowances=_d(employee.housing_allowance) + _d(employee.other_allowances),
                additions=0,
                deductions=0,
                paid=0,
            )
            _recalculate_item(item)
            run.items.append(item)
        _recalculate_totals(run)

        db.session.add(run)
        db.session.commit()
        logger.info("Payroll run %s created for %s %s with %d employees", run.id, branch, period, len(employees))
        return run

    return run_with_retry(_op)


def get_items(run_id: int) -> list[PayrollItem]:
    return list(get_run(run_id).items)


def update_items(run_id: int, items: list[dict]) -> PayrollRun:
    """Apply edits to draft items (matched by item id or employee_id) and recompute."""
    if not isinstance(items, list):
        raise ValidationError("items must be a list", code="invalid_items")

    def _op():
        run = _locked_run(run_id)
        if run.status != "draft":
            raise InvalidStateError("Only draft payroll runs can be edited")

        by_id = {i.id: i for i in run.items}
        by_employee = {i.employee_id: i for i in run.items}
        for index, raw in enumerate(items):
            item = by_id.get(raw.get("id")) or by_employee.get(raw.get("employee_id"))
            if item is None:
                raise ValidationError("Unknown payroll item", code="invalid_items", details={"line": index})
            for key in EDITABLE_ITEM_FIELDS:
                if key in raw:
                    value = journal_service.to_amount(raw[key], key)
                    if value < 0:
                        raise ValidationError(f"{key} must be non-negative", code="invalid_amount",
                                              details={"line": index})
                    setattr(item, key, value)
            if "notes" in raw:
                item.notes = raw["notes"]
            _recalculate_item(item)
        _recalculate_totals(run)
        db.session.commit()
        return run

    return run_with_retry(_op)


def approve_run(run_id: int) -> PayrollRun:
    def _op():
        run = _locked_run(run_id)
        if run.status != "draft":
            raise InvalidStateError(f"Payroll run is {run.status}, only drafts can be approved")
        if not run.items:
            raise ValidationError("Payroll run has no items", code="empty_run")
        run.status = "approved"
        db.session.commit()
        return run

    return run_with_retry(_op)


def return_to_draft(run_id: int) -> PayrollRun:
    def _op():
        run = _locked_run(run_id)
        if run.status != "approved":
            raise InvalidStateError(f"Payroll run is {run.status}, only approved runs can return to draft")
        run.status = "draft"
        db.session.commit()
        return run

    return run_with_retry(_op)


def post_run(run_id: int, data: dict | None = None) -> PayrollRun:
    """Write the salary accrual entry and mark the run posted."""
    data = data or {}
    try:
        entry_date = parse_date(data["date"]) if data.get("date") else None
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")

    def _op():
        run = _locked_run(run_id)
        if run.status != "approved":
            raise InvalidStateError(f"Payroll run is {run.status}, only approved runs can be posted")
        _recalculate_totals(run)
        if run.total_gross <= 0:
            raise ValidationError("Payroll run has nothing to post", code="empty_run")

        entry = journal_service.add_entry(
            postings=posting_rules.payroll_accrual_postings(run),
            description=f"Payroll {run.period} {run.branch}",
            entry_date=entry_date or today(),
            reference=journal_service.JournalReference.payroll(run.id),
            status="posted",
            branch=run.branch,
        )
        run.journal_entry_id = entry.id
        run.status = "posted"
        run.posted_at = utcnow()
        db.session.commit()
        logger.info("Payroll run %s posted as entry #%s", run.id, entry.entry_number)
        return run

    return run_with_retry(_op)


def delete_run(run_id: int) -> None:
    def _op():
        run = _locked_run(run_id)
        if run.status != "draft":
            raise InvalidStateError("Only draft payroll runs can be deleted")
        db.session.delete(run)
        db.session.commit()

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def record_payment(data: dict) -> PayrollRun:
    """
    Pay salaries of a posted run. Without `amount` the whole outstanding
    balance (of the selected employees, or of the run) is paid.
    """
    run_id = data.get("run_id")
    if not run_id:
        raise ValidationError("run_id is required", code="missing_run_id")
    employee_ids = set(parse_id(e, "employee_ids") for e in data.get("employee_ids") or [])
    payment_method = data.get("payment_method") or "cash"
    try:
        entry_date = parse_date(data["date"]) if data.get("date") else today()
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")

    def _op():
        run = _locked_run(parse_id(run_id, "run_id"))
        if run.status != "posted":
            raise InvalidStateError(f"Payroll run is {run.status}, only posted runs can be paid")

        targets = [i for i in run.items if not employee_ids or i.employee_id in employee_ids]
        outstanding = sum((_d(i.net) - _d(i.paid) for i in targets), Decimal("0"))
        amount = _d(data["amount"]) if data.get("amount") not in (None, "") else outstanding
        if amount <= 0:
            raise ValidationError("Nothing to pay", code="invalid_amount")
        if amount > outstanding:
            raise ValidationError(
                "Payment exceeds outstanding salaries",
                code="overpayment",
                details={"outstanding": float(outstanding), "amount": float(amount)},
            )

        remaining = amount
        for item in targets:
            due = _d(item.net) - _d(item.paid)
            share = min(due, remaining)
            if share > 0:
                item.paid = _d(item.paid) + share
                remaining -= share
            if remaining <= 0:
                break

        entry = journal_service.add_entry(
            postings=posting_rules.payroll_payment_postings(run, amount, payment_method),
            description=f"Salary payment {run.period} {run.branch}",
            entry_date=entry_date,
            reference=journal_service.JournalReference.payroll_payment(run.id),
            status="posted",
            branch=run.branch,
        )
        run.payment_entry_id = entry.id
        _recalculate_totals(run)
        if run.outstanding <= 0:
            run.status = "paid"
        db.session.commit()
        logger.info("Payroll run %s: paid %s (entry #%s)", run.id, amount, entry.entry_number)
        return run

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def _item_rows(query) -> list[dict]:
    rows = []
    for item, run in query:
        data = item.to_dict()
        data.update({"period": run.period, "branch": run.branch, "run_status": run.status})
        rows.append(data)
    return rows


def statements(
    *,
    employee_id: int | None = None,
    branch: str | None = None,
    period_from: str | None = None,
    period_to: str | None = None,
) -> list[dict]:
    """Per-employee salary lines of posted and paid runs."""
    q = (
        db.session.query(PayrollItem, PayrollRun)
        .join(PayrollRun, PayrollItem.run_id == PayrollRun.id)
        .filter(PayrollRun.status.in_(("posted", "paid")))
    )
    if employee_id:
        q = q.filter(PayrollItem.employee_id == employee_id)
    if branch:
        q = q.filter(PayrollRun.branch == normalize_branch(branch))
    if period_from:
        q = q.filter(PayrollRun.period >= _period(period_from))
    if period_to:
        q = q.filter(PayrollRun.period <= _period(period_to))
    return _item_rows(q.order_by(PayrollRun.period, PayrollItem.employee_id))


def previous_dues(*, branch: str | None = None, before_period: str | None = None,
                  employee_id: int | None = None) -> list[dict]:
    """Unpaid salaries of earlier posted runs, one row per employee."""
    q = (
        db.session.query(PayrollItem, PayrollRun)
        .join(PayrollRun, PayrollItem.run_id == PayrollRun.id)
        .filter(PayrollRun.status == "posted")
        .filter(PayrollItem.net > PayrollItem.paid)
    )
    if branch:
        q = q.filter(PayrollRun.branch == normalize_branch(branch))
    if before_period:
        q = q.filter(PayrollRun.period < _period(before_period))
    if employee_id:
        q = q.filter(PayrollItem.employee_id == employee_id)

    dues: dict[int, dict] = {}
    for item, run in q.order_by(PayrollRun.period):
        row = dues.setdefault(item.employee_id, {
            "employee_id": item.employee_id,
            "employee_name": item.employee.name if item.employee else None,
            "periods": [],
            "outstanding": Decimal("0"),
        })
        row["periods"].append(run.period)
        row["outstanding"] += _d(item.net) - _d(item.paid)
    return [{**row, "outstanding": float(row["outstanding"])} for row in dues.values()]
