# Overview: Service-layer operations for journal entries; balanced posting, lifecycle and lookups.

"""
Journal invariants (authoritative):

- An entry and its postings are written in one transaction. If anything
  fails, nothing is written.
- A posted entry balances: sum(debit) == sum(credit), within 0.01.
- Every posting references an existing account, has non-negative amounts
  and is either a debit or a credit, never both.
- Posted entries are not edited or deleted. They are corrected by reversal,
  which creates a mirror entry and marks the original "reversed". Manual
  entries (no reference) may be returned to draft; system-generated ones
  may not.
- Entry numbers increase monotonically (max + 1); numbers of deleted drafts
  are not reused.
- Entries dated inside a closed fiscal year are not created, edited, posted
  or returned to draft.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable

from sqlalchemy import func

from ..branches import default_branch, normalize_branch
from ..errors import InvalidStateError, NotFoundError, UnbalancedEntryError, ValidationError, parse_id
from ..extensions import db
from ..models import Account, Expense, FiscalYear, Invoice, JournalEntry, JournalPosting, PayrollRun
from ..time_utils import parse_date, period_of, today, utcnow
from . import fiscal_year_service
from .account_service import find_by_code
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

BALANCE_TOLERANCE = Decimal("0.01")
CENT = Decimal("0.01")


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JournalReference:
    """
    What produced a journal entry. `kind` is one of REFERENCE_KINDS; `id` is
    the primary key of the originating record.
    """
    kind: str
    id: int

    def __post_init__(self):
        if self.kind not in REFERENCE_KINDS:
            raise ValidationError(f"Unknown reference type {self.kind!r}", code="invalid_reference")

    def resolve(self):
        """Load the originating record, or None if it no longer exists."""
        return REFERENCE_KINDS[self.kind](self.id)

    @classmethod
    def from_entry(cls, entry: JournalEntry) -> "JournalReference | None":
        if not entry.reference_type or entry.reference_id is None:
            return None
        return cls(entry.reference_type, entry.reference_id)

    @classmethod
    def expense(cls, expense_id: int) -> "JournalReference":
        return cls("expense", expense_id)

    @classmethod
    def invoice(cls, invoice_id: int) -> "JournalReference":
        return cls("invoice", invoice_id)

    @classmethod
    def supplier_invoice(cls, invoice_id: int) -> "JournalReference":
        return cls("supplier_invoice", invoice_id)

    @classmethod
    def payroll(cls, run_id: int) -> "JournalReference":
        return cls("payroll", run_id)

    @classmethod
    def payroll_payment(cls, run_id: int) -> "JournalReference":
        return cls("payroll_payment", run_id)

    @classmethod
    def reversal(cls, entry_id: int) -> "JournalReference":
        return cls("reversal", entry_id)

    @classmethod
    def fiscal_close(cls, fiscal_year_id: int) -> "JournalReference":
        return cls("fiscal_close", fiscal_year_id)


def _getter(model) -> Callable[[int], object]:
    return lambda pk: db.session.get(model, pk)


REFERENCE_KINDS: dict[str, Callable[[int], object]] = {
    "expense": _getter(Expense),
    "invoice": _getter(Invoice),
    "supplier_invoice": _getter(Invoice),
    "payroll": _getter(PayrollRun),
    "payroll_payment": _getter(PayrollRun),
    "reversal": _getter(JournalEntry),
    "fiscal_close": _getter(FiscalYear),
}


# ---------------------------------------------------------------------------
# Posting validation
# ---------------------------------------------------------------------------

@dataclass
class PostingLine:
    account_id: int
    debit: Decimal
    credit: Decimal
    description: str | None = None


def to_amount(value, field_name: str = "amount") -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field_name} must be a number", code="invalid_amount")
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number", code="invalid_amount")
    return amount.quantize(CENT)


def normalize_postings(postings: Iterable[dict]) -> list[PostingLine]:
    """
    Validate raw posting dicts ({account_id | account_code, debit, credit}).

    Raises ValidationError naming the offending line.
    """
    lines = []
    for index, raw in enumerate(postings or []):
        account_id = raw.get("account_id")
        if account_id is None and raw.get("account_code"):
            account = find_by_code(raw["account_code"])
            account_id = account.id if account else None
        if account_id is None:
            raise ValidationError("account_id is required", code="invalid_posting", details={"line": index})
        account_id = parse_id(account_id, "account_id")
        if db.session.get(Account, account_id) is None:
            raise ValidationError(
                f"Account {account_id} not found",
                code="account_not_found",
                details={"line": index, "account_id": account_id},
            )

        debit = to_amount(raw.get("debit"), "debit")
        credit = to_amount(raw.get("credit"), "credit")
        if debit < 0 or credit < 0:
            raise ValidationError("Amounts must be non-negative", code="invalid_posting", details={"line": index})
        if debit > 0 and credit > 0:
            raise ValidationError(
                "A posting cannot have both debit and credit",
                code="invalid_posting",
                details={"line": index},
            )
        if debit == 0 and credit == 0:
            raise ValidationError("A posting needs a debit or a credit", code="invalid_posting", details={"line": index})

        lines.append(PostingLine(account_id, debit, credit, raw.get("description")))
    return lines


def check_balanced(lines: list[PostingLine]) -> None:
    if len(lines) < 2:
        raise ValidationError("A journal entry needs at least two postings", code="invalid_posting")
    total_debit = sum((l.debit for l in lines), Decimal("0"))
    total_credit = sum((l.credit for l in lines), Decimal("0"))
    if abs(total_debit - total_credit) > BALANCE_TOLERANCE:
        raise UnbalancedEntryError(total_debit, total_credit)


def next_entry_number() -> int:
    current = db.session.query(func.max(JournalEntry.entry_number)).scalar()
    return (current or 0) + 1


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def add_entry(
    *,
    postings: Iterable[dict],
    description: str | None = None,
    entry_date: date | None = None,
    reference: JournalReference | None = None,
    status: str = "posted",
    branch: str | None = None,
) -> JournalEntry:
    """
    Stage an entry in the current session without committing.

    Callers that write their own records in the same unit of work (invoice
    issue, expense posting, payroll) use this and commit once at the end.
    """
    if status not in ("draft", "posted"):
        raise ValidationError(f"Invalid status {status!r}", code="invalid_status")

    lines = normalize_postings(postings)
    if status == "posted":
        check_balanced(lines)
    elif not lines:
        raise ValidationError("A journal entry needs postings", code="invalid_posting")

    entry_date = entry_date or today()
    fiscal_year_service.ensure_open(entry_date)
    entry = JournalEntry(
        entry_number=next_entry_number(),
        description=description,
        date=entry_date,
        period=period_of(entry_date),
        reference_type=reference.kind if reference else None,
        reference_id=reference.id if reference else None,
        branch=normalize_branch(branch) or default_branch(),
        status=status,
        posted_at=utcnow() if status == "posted" else None,
    )
    for line in lines:
        entry.postings.append(JournalPosting(
            account_id=line.account_id,
            debit=line.debit,
            credit=line.credit,
            description=line.description,
        ))
    db.session.add(entry)
    db.session.flush()
    logger.info(
        "Journal entry #%s staged (%s, ref=%s:%s)",
        entry.entry_number, status, entry.reference_type, entry.reference_id,
    )
    return entry


def create_entry(
    *,
    postings: Iterable[dict],
    description: str | None = None,
    entry_date=None,
    reference: JournalReference | None = None,
    status: str = "draft",
    branch: str | None = None,
) -> JournalEntry:
    """Create and commit an entry. Unbalanced posted entries are rejected whole."""
    try:
        parsed_date = parse_date(entry_date) if entry_date else None
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")

    postings = list(postings or [])

    def _op():
        entry = add_entry(
            postings=postings,
            description=description,
            entry_date=parsed_date,
            reference=reference,
            status=status,
            branch=branch,
        )
        db.session.commit()
        return entry

    return run_with_retry(_op)


def _locked_entry(entry_id: int) -> JournalEntry:
    entry = lock_for_update(db.session.query(JournalEntry).filter_by(id=entry_id)).first()
    if not entry:
        raise NotFoundError(f"Journal entry {entry_id} not found")
    return entry


def update_entry(entry_id: int, data: dict) -> JournalEntry:
    """Replace description/date/branch/postings of a draft entry."""
    def _op():
        entry = _locked_entry(entry_id)
        if entry.status != "draft":
            raise InvalidStateError("Only draft entries can be edited")

        if "description" in data:
            entry.description = data["description"]
        if data.get("date"):
            try:
                entry.date = parse_date(data["date"])
            except ValueError:
                raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")
            entry.period = period_of(entry.date)
        if "branch" in data:
            entry.branch = normalize_branch(data["branch"]) or entry.branch
        if "postings" in data:
            lines = normalize_postings(data["postings"])
            if not lines:
                raise ValidationError("A journal entry needs postings", code="invalid_posting")
            entry.postings.clear()
            db.session.flush()
            for line in lines:
                entry.postings.append(JournalPosting(
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description,
                ))
        fiscal_year_service.ensure_open(entry.date)
        db.session.commit()
        return entry

    return run_with_retry(_op)


def post_entry(entry_id: int) -> JournalEntry:
    def _op():
        entry = _locked_entry(entry_id)
        if entry.status != "draft":
            raise InvalidStateError(f"Entry is {entry.status}, only drafts can be posted")
        fiscal_year_service.ensure_open(entry.date)
        lines = [PostingLine(p.account_id, Decimal(p.debit or 0), Decimal(p.credit or 0)) for p in entry.postings]
        check_balanced(lines)
        entry.status = "posted"
        entry.posted_at = utcnow()
        db.session.commit()
        return entry

    return run_with_retry(_op)


def return_to_draft(entry_id: int) -> JournalEntry:
    def _op():
        entry = _locked_entry(entry_id)
        if entry.status != "posted":
            raise InvalidStateError(f"Entry is {entry.status}, only posted entries can return to draft")
        if entry.reference_type:
            raise InvalidStateError(
                "System-generated entries cannot return to draft; reverse them instead",
                code="entry_immutable",
            )
        fiscal_year_service.ensure_open(entry.date)
        entry.status = "draft"
        entry.posted_at = None
        db.session.commit()
        return entry

    return run_with_retry(_op)


def stage_reversal(entry: JournalEntry, description: str | None = None) -> JournalEntry:
    """Mirror `entry` with debit/credit swapped and mark it reversed. No commit."""
    if entry.status != "posted":
        raise InvalidStateError(f"Entry is {entry.status}, only posted entries can be reversed")
    mirror = add_entry(
        postings=[
            {
                "account_id": p.account_id,
                "debit": p.credit,
                "credit": p.debit,
                "description": p.description,
            }
            for p in entry.postings
        ],
        description=description or f"Reversal of entry #{entry.entry_number}",
        entry_date=today(),
        reference=JournalReference.reversal(entry.id),
        status="posted",
        branch=entry.branch,
    )
    entry.status = "reversed"
    return mirror


def reverse_entry(entry_id: int, description: str | None = None) -> JournalEntry:
    """Returns the new reversing entry."""
    def _op():
        entry = _locked_entry(entry_id)
        mirror = stage_reversal(entry, description)
        db.session.commit()
        return mirror

    return run_with_retry(_op)


def delete_entry(entry_id: int) -> None:
    def _op():
        entry = _locked_entry(entry_id)
        if entry.status != "draft":
            raise InvalidStateError("Posted entries cannot be deleted; reverse them instead", code="entry_immutable")
        db.session.delete(entry)
        db.session.commit()

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_entry(entry_id: int) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if not entry:
        raise NotFoundError(f"Journal entry {entry_id} not found")
    return entry


def list_entries(
    *,
    status: str | None = None,
    branch: str | None = None,
    period: str | None = None,
    reference_type: str | None = None,
    reference_id: int | None = None,
    account_id: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = 1,
    page_size: int = 50,
) -> tuple[list[JournalEntry], int]:
    q = db.session.query(JournalEntry)
    if status:
        q = q.filter(JournalEntry.status == status)
    if branch:
        q = q.filter(JournalEntry.branch == normalize_branch(branch))
    if period:
        q = q.filter(JournalEntry.period == period)
    if reference_type:
        q = q.filter(JournalEntry.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(JournalEntry.reference_id == reference_id)
    if account_id is not None:
        q = q.filter(JournalEntry.postings.any(JournalPosting.account_id == account_id))
    if date_from:
        q = q.filter(JournalEntry.date >= date_from)
    if date_to:
        q = q.filter(JournalEntry.date <= date_to)

    total = q.count()
    page = max(page, 1)
    page_size = max(1, min(page_size, 500))
    rows = (
        q.order_by(JournalEntry.date.desc(), JournalEntry.entry_number.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return rows, total


def find_by_reference(reference: JournalReference) -> list[JournalEntry]:
    return (
        db.session.query(JournalEntry)
        .filter_by(reference_type=reference.kind, reference_id=reference.id)
        .order_by(JournalEntry.entry_number)
        .all()
    )


def account_activity(account_id: int, date_from: date | None = None, date_to: date | None = None) -> dict:
    """Posted movements on one account with a running balance (debit - credit)."""
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError(f"Account {account_id} not found")

    q = (
        db.session.query(JournalPosting, JournalEntry)
        .join(JournalEntry, JournalPosting.journal_entry_id == JournalEntry.id)
        .filter(JournalPosting.account_id == account_id)
        .filter(JournalEntry.status.in_(("posted", "reversed")))
    )
    opening = Decimal(account.opening_balance or 0)
    if date_from:
        before = q.filter(JournalEntry.date < date_from).with_entities(
            func.coalesce(func.sum(JournalPosting.debit), 0) - func.coalesce(func.sum(JournalPosting.credit), 0)
        ).scalar()
        opening += Decimal(before or 0)
        q = q.filter(JournalEntry.date >= date_from)
    if date_to:
        q = q.filter(JournalEntry.date <= date_to)

    running = opening
    movements = []
    for posting, entry in q.order_by(JournalEntry.date, JournalEntry.entry_number, JournalPosting.id):
        running += Decimal(posting.debit or 0) - Decimal(posting.credit or 0)
        movements.append({
            "entry_id": entry.id,
            "entry_number": entry.entry_number,
            "date": entry.date.isoformat(),
            "description": posting.description or entry.description,
            "reference_type": entry.reference_type,
            "reference_id": entry.reference_id,
            "debit": float(posting.debit or 0),
            "credit": float(posting.credit or 0),
            "balance": float(running),
        })

    return {
        "account": account.to_dict(),
        "opening_balance": float(opening),
        "movements": movements,
        "closing_balance": float(running),
    }
