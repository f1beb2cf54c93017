# Overview: Service-layer operations for fiscal years; open/close state, date checks and year-end rollover.

"""
Fiscal year rules:

- A year covers start_date..end_date (default Jan 1 - Dec 31). Years never
  overlap and a calendar year has at most one row.
- Journal writes dated inside a closed year are refused with
  fiscal_year_closed unless the year is temporarily open. Dates that no
  year covers are not restricted.
- Rollover posts one closing entry on the last day of the year that zeroes
  revenue and expense accounts into retained earnings, closes the year and
  makes sure the following year exists. Balance sheet accounts carry over
  through the cumulative ledger, so no opening entry is written.
- Every state change is recorded in fiscal_year_activities.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func

from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError, parse_id
from ..extensions import db
from ..models import Account, FiscalYear, FiscalYearActivity, JournalEntry, JournalPosting
from ..time_utils import parse_date, today, utcnow
from . import journal_service, posting_rules
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

# Reversed entries stay in the ledger next to their mirror entry
LEDGER_STATUSES = ("posted", "reversed")
RESULT_ACCOUNT_TYPES = ("revenue", "expense")


# ---------------------------------------------------------------------------
# Date checks
# ---------------------------------------------------------------------------

def year_for_date(day: date) -> FiscalYear | None:
    return (
        db.session.query(FiscalYear)
        .filter(FiscalYear.start_date <= day, FiscalYear.end_date >= day)
        .order_by(FiscalYear.year.desc())
        .first()
    )


def ensure_open(day: date) -> None:
    """Raise fiscal_year_closed when `day` falls in a closed, not temporarily open, year."""
    fiscal_year = year_for_date(day)
    if fiscal_year is not None and not fiscal_year.can_create_entries:
        raise InvalidStateError(
            f"Fiscal year {fiscal_year.year} is closed",
            code="fiscal_year_closed",
            details={"fiscal_year": fiscal_year.year, "date": day.isoformat()},
        )


def check_date(value) -> dict:
    """{can_create, reason, fiscal_year} for a YYYY-MM-DD date."""
    try:
        day = parse_date(value)
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD", code="invalid_date")
    if day is None:
        raise ValidationError("date is required", code="invalid_date")

    fiscal_year = year_for_date(day)
    if fiscal_year is None:
        return {"date": day.isoformat(), "can_create": True, "reason": None, "fiscal_year": None}
    can_create = fiscal_year.can_create_entries
    return {
        "date": day.isoformat(),
        "can_create": can_create,
        "reason": None if can_create else f"Fiscal year {fiscal_year.year} is closed",
        "fiscal_year": fiscal_year.to_dict(),
    }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_years() -> list[FiscalYear]:
    return db.session.query(FiscalYear).order_by(FiscalYear.year.desc()).all()


def get_year(year_id: int) -> FiscalYear:
    fiscal_year = db.session.get(FiscalYear, year_id)
    if not fiscal_year:
        raise NotFoundError(f"Fiscal year {year_id} not found")
    return fiscal_year


def current_year() -> FiscalYear:
    fiscal_year = year_for_date(today())
    if fiscal_year is None:
        raise NotFoundError("No fiscal year covers today")
    return fiscal_year


def list_activities(year_id: int) -> list[FiscalYearActivity]:
    return get_year(year_id).activities


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _log(fiscal_year: FiscalYear, action: str, details: dict | None, user_id, ip_address) -> None:
    fiscal_year.activities.append(FiscalYearActivity(
        action=action,
        details=details or None,
        user_id=user_id,
        ip_address=ip_address,
    ))


def _locked_year(year_id: int) -> FiscalYear:
    fiscal_year = lock_for_update(db.session.query(FiscalYear).filter_by(id=year_id)).first()
    if not fiscal_year:
        raise NotFoundError(f"Fiscal year {year_id} not found")
    return fiscal_year


def _stage_year(year: int, start: date | None = None, end: date | None = None, notes: str | None = None) -> FiscalYear:
    start = start or date(year, 1, 1)
    end = end or date(year, 12, 31)
    if start > end:
        raise ValidationError("start_date must not be after end_date", code="invalid_date")
    if db.session.query(FiscalYear).filter_by(year=year).first():
        raise ConflictError(f"Fiscal year {year} already exists", code="duplicate_year")
    overlapping = (
        db.session.query(FiscalYear)
        .filter(FiscalYear.start_date <= end, FiscalYear.end_date >= start)
        .first()
    )
    if overlapping:
        raise ConflictError(
            f"Dates overlap fiscal year {overlapping.year}",
            code="overlapping_year",
            details={"fiscal_year": overlapping.year},
        )
    fiscal_year = FiscalYear(year=year, status="open", start_date=start, end_date=end,
                             notes=notes or f"Fiscal year {year}")
    db.session.add(fiscal_year)
    return fiscal_year


def create_year(data: dict, user=None, ip_address: str | None = None) -> FiscalYear:
    if not data.get("year"):
        raise ValidationError("year is required", code="invalid_year")
    year = parse_id(data["year"], "year")
    try:
        start = parse_date(data.get("start_date"))
        end = parse_date(data.get("end_date"))
    except ValueError:
        raise ValidationError("Dates must be YYYY-MM-DD", code="invalid_date")

    def _op():
        fiscal_year = _stage_year(year, start, end, data.get("notes"))
        db.session.flush()
        _log(fiscal_year, "create", {"year": year}, user.id if user else None, ip_address)
        db.session.commit()
        logger.info("Fiscal year %s created (%s..%s)", year, fiscal_year.start_date, fiscal_year.end_date)
        return fiscal_year

    return run_with_retry(_op)


def open_year(year_id: int, user=None, ip_address: str | None = None) -> FiscalYear:
    def _op():
        fiscal_year = _locked_year(year_id)
        fiscal_year.status = "open"
        fiscal_year.temporary_open = False
        _log(fiscal_year, "open", None, user.id if user else None, ip_address)
        db.session.commit()
        return fiscal_year

    return run_with_retry(_op)


def _close(fiscal_year: FiscalYear, user_id) -> None:
    fiscal_year.status = "closed"
    fiscal_year.temporary_open = False
    fiscal_year.closed_by_user_id = user_id
    fiscal_year.closed_at = utcnow()


def close_year(year_id: int, data: dict | None = None, user=None, ip_address: str | None = None) -> FiscalYear:
    data = data or {}

    def _op():
        fiscal_year = _locked_year(year_id)
        _close(fiscal_year, user.id if user else None)
        if data.get("notes"):
            fiscal_year.notes = data["notes"]
        _log(fiscal_year, "close", {"notes": data.get("notes")}, user.id if user else None, ip_address)
        db.session.commit()
        logger.info("Fiscal year %s closed", fiscal_year.year)
        return fiscal_year

    return run_with_retry(_op)


def temporary_open(year_id: int, data: dict | None = None, user=None, ip_address: str | None = None) -> FiscalYear:
    """Let a closed year accept entries again without reopening it."""
    reason = str((data or {}).get("reason") or "").strip()
    if not reason:
        raise ValidationError("A reason is required to open a closed year", code="reason_required")

    def _op():
        fiscal_year = _locked_year(year_id)
        if fiscal_year.status != "closed":
            raise InvalidStateError(f"Fiscal year {fiscal_year.year} is not closed", code="year_not_closed")
        fiscal_year.temporary_open = True
        fiscal_year.temporary_open_by_user_id = user.id if user else None
        fiscal_year.temporary_open_at = utcnow()
        fiscal_year.temporary_open_reason = reason
        _log(fiscal_year, "temporary_open", {"reason": reason}, user.id if user else None, ip_address)
        db.session.commit()
        logger.warning("Fiscal year %s temporarily opened: %s", fiscal_year.year, reason)
        return fiscal_year

    return run_with_retry(_op)


def temporary_close(year_id: int, user=None, ip_address: str | None = None) -> FiscalYear:
    def _op():
        fiscal_year = _locked_year(year_id)
        if not fiscal_year.temporary_open:
            raise InvalidStateError(f"Fiscal year {fiscal_year.year} is not temporarily open",
                                    code="year_not_temporarily_open")
        fiscal_year.temporary_open = False
        _log(fiscal_year, "temporary_close", None, user.id if user else None, ip_address)
        db.session.commit()
        return fiscal_year

    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Rollover
# ---------------------------------------------------------------------------

def result_balances(date_from: date, date_to: date) -> dict[int, Decimal]:
    """Debit-positive balance of each revenue/expense account over the window."""
    rows = (
        db.session.query(
            JournalPosting.account_id,
            func.coalesce(func.sum(JournalPosting.debit), 0) - func.coalesce(func.sum(JournalPosting.credit), 0),
        )
        .join(JournalEntry, JournalPosting.journal_entry_id == JournalEntry.id)
        .join(Account, JournalPosting.account_id == Account.id)
        .filter(
            JournalEntry.status.in_(LEDGER_STATUSES),
            JournalEntry.date >= date_from,
            JournalEntry.date <= date_to,
            Account.type.in_(RESULT_ACCOUNT_TYPES),
        )
        .group_by(JournalPosting.account_id)
        .all()
    )
    balances = {account_id: Decimal(str(balance or 0)) for account_id, balance in rows}
    return {account_id: balance for account_id, balance in balances.items() if balance != 0}


def rollover(year_id: int, data: dict | None = None, user=None, ip_address: str | None = None) -> dict:
    """
    Close the year's revenue and expenses into retained earnings, close the
    year and make sure the target year (default: next year) exists.
    """
    data = data or {}
    target = data.get("target_year")
    target = parse_id(target, "target_year") if target else None
    user_id = user.id if user else None

    def _op():
        fiscal_year = _locked_year(year_id)
        if any(a.action == "rollover" for a in fiscal_year.activities):
            raise InvalidStateError(f"Fiscal year {fiscal_year.year} was already rolled over",
                                    code="already_rolled_over")
        target_year = target or fiscal_year.year + 1
        if target_year <= fiscal_year.year:
            raise ValidationError("target_year must follow the source year", code="invalid_year")

        next_year = db.session.query(FiscalYear).filter_by(year=target_year).first()
        if next_year is None:
            next_year = _stage_year(target_year, notes=f"Fiscal year {target_year}, created by rollover")
            db.session.flush()
            _log(next_year, "create", {"year": target_year, "source_year": fiscal_year.year}, user_id, ip_address)

        balances = result_balances(fiscal_year.start_date, fiscal_year.end_date)
        postings = posting_rules.year_end_closing_postings(balances, fiscal_year.year)
        entry = None
        if postings:
            # Dated inside the source year, so the year must still accept entries
            entry = journal_service.add_entry(
                postings=postings,
                description=f"Year-end closing {fiscal_year.year}",
                entry_date=fiscal_year.end_date,
                reference=journal_service.JournalReference.fiscal_close(fiscal_year.id),
                status="posted",
            )
            fiscal_year.closing_entry_id = entry.id

        net_income = -sum(balances.values(), Decimal("0"))
        _close(fiscal_year, user_id)
        _log(fiscal_year, "rollover", {
            "target_year": target_year,
            "accounts_closed": len(balances),
            "net_income": float(net_income),
            "closing_entry_id": entry.id if entry else None,
        }, user_id, ip_address)
        db.session.commit()
        logger.info("Fiscal year %s rolled over into %s (net income %s)", fiscal_year.year, target_year, net_income)
        return {
            "source_year": fiscal_year.year,
            "target_year": target_year,
            "closing_entry_id": entry.id if entry else None,
            "accounts_closed": len(balances),
            "net_income": float(net_income),
        }

    return run_with_retry(_op)
