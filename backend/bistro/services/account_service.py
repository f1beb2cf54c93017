# Overview: Service-layer operations for the chart of accounts; tree maintenance and idempotent provisioning.

"""
Account tree invariants:

- parent_id references an existing account or is null
- the parent chain never loops back on itself
- account_code and account_number are unique when set

Provisioning routines (ensure_*) check-then-create. They never rename an
existing account or change its id; the only mutation they perform on an
existing row is moving it under the expected parent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Account, JournalPosting, Partner
from .chart_of_accounts import (
    CUSTOMERS,
    DEFAULT_CHART,
    LIABILITIES_ROOT,
    PAYROLL_ACCOUNTS,
    SUPPLIERS,
    VAT_ACCOUNTS,
    VAT_PARENT,
    AccountSeed,
)
from .concurrency import lock_for_update, run_with_retry

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = {
    "account_number", "account_code", "name", "name_en", "type", "nature",
    "parent_id", "opening_balance", "allow_manual_entry",
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def find_by_code(code: str) -> Account | None:
    if not code:
        return None
    return (
        db.session.query(Account)
        .filter(or_(Account.account_code == str(code), Account.account_number == str(code)))
        .order_by(Account.id)
        .first()
    )


def require_by_code(code: str) -> Account:
    """Posting rules use this: missing accounts are an error, never created."""
    account = find_by_code(code)
    if not account:
        raise ValidationError(
            f"Account {code} not found",
            code="account_not_found",
            details={"account_code": code},
        )
    return account


def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if not account:
        raise NotFoundError(f"Account {account_id} not found")
    return account


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.account_number, Account.id).all()


def get_tree() -> list[dict]:
    """Nested account tree; each node carries a `children` list."""
    accounts = list_accounts()
    nodes = {a.id: {**a.to_dict(), "children": []} for a in accounts}
    roots = []
    for a in accounts:
        node = nodes[a.id]
        if a.parent_id and a.parent_id in nodes:
            nodes[a.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


# ---------------------------------------------------------------------------
# Tree validation
# ---------------------------------------------------------------------------

def _would_cycle(account_id: int | None, new_parent_id: int | None) -> bool:
    seen = set()
    current = new_parent_id
    while current is not None:
        if current == account_id or current in seen:
            return True
        seen.add(current)
        parent = db.session.get(Account, current)
        if parent is None:
            return False
        current = parent.parent_id
    return False


def _check_parent(account_id: int | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if db.session.get(Account, parent_id) is None:
        raise ValidationError(f"Parent account {parent_id} not found", code="invalid_parent")
    if _would_cycle(account_id, parent_id):
        raise ValidationError("Account cannot be its own ancestor", code="account_cycle")


@dataclass
class TreeReport:
    orphans: list[dict] = field(default_factory=list)
    cycles: list[list[int]] = field(default_factory=list)
    duplicate_codes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not (self.orphans or self.cycles or self.duplicate_codes)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "orphans": self.orphans,
            "cycles": self.cycles,
            "duplicate_codes": self.duplicate_codes,
        }


def validate_tree() -> TreeReport:
    """Scan the whole table for dangling parents, loops and duplicate codes."""
    accounts = {a.id: a for a in db.session.query(Account).all()}
    report = TreeReport()

    for a in accounts.values():
        if a.parent_id is not None and a.parent_id not in accounts:
            report.orphans.append({"id": a.id, "code": a.code, "parent_id": a.parent_id})

    reported = set()
    for start in accounts:
        path = []
        current = start
        while current is not None and current in accounts:
            if current in path:
                loop = path[path.index(current):]
                key = frozenset(loop)
                if key not in reported:
                    reported.add(key)
                    report.cycles.append(sorted(loop))
                break
            path.append(current)
            current = accounts[current].parent_id

    codes: dict[str, int] = {}
    for a in accounts.values():
        if a.code:
            codes[a.code] = codes.get(a.code, 0) + 1
    report.duplicate_codes = sorted(c for c, n in codes.items() if n > 1)
    return report


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

def _next_child_number(parent: Account | None) -> str:
    """Next free number under `parent`: last sibling + 1, or parent prefix + 1."""
    if parent is None:
        roots = [a.account_number for a in db.session.query(Account).filter(Account.parent_id.is_(None))
                 if a.account_number and a.account_number.isdigit()]
        return f"{(max(int(n) for n in roots) + 1) if roots else 1:04d}"

    siblings = [c.account_number for c in parent.children if c.account_number and c.account_number.isdigit()]
    if siblings:
        candidate = max(int(n) for n in siblings) + 1
    else:
        base = parent.code or str(parent.id)
        # First child: parent code + "01"
        candidate = int(f"{base}01") if base.isdigit() else parent.id * 100 + 1
    while find_by_code(str(candidate)):
        candidate += 1
    return str(candidate)


def create_account(data: dict) -> Account:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required")

    parent_id = data.get("parent_id")
    parent = None
    if parent_id is not None:
        parent = db.session.get(Account, parent_id)
        if parent is None:
            raise ValidationError(f"Parent account {parent_id} not found", code="invalid_parent")

    def _op():
        number = data.get("account_number") or data.get("account_code") or _next_child_number(parent)
        if find_by_code(number):
            raise ConflictError(f"Account code {number} already exists", code="duplicate_account_code")

        account = Account(
            account_number=str(number),
            account_code=str(data.get("account_code") or number),
            name=name,
            name_en=data.get("name_en"),
            type=data.get("type") or (parent.type if parent else "asset"),
            nature=data.get("nature") or (parent.nature if parent else "debit"),
            parent_id=parent.id if parent else None,
            opening_balance=Decimal(str(data.get("opening_balance") or 0)),
            allow_manual_entry=bool(data.get("allow_manual_entry", True)),
        )
        db.session.add(account)
        db.session.commit()
        return account

    return run_with_retry(_op)


def update_account(account_id: int, data: dict) -> Account:
    def _op():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
        if not account:
            raise NotFoundError(f"Account {account_id} not found")

        unknown = set(data) - WRITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")

        if "parent_id" in data:
            _check_parent(account.id, data["parent_id"])

        for key in ("account_number", "account_code"):
            if key in data and data[key]:
                clash = find_by_code(data[key])
                if clash and clash.id != account.id:
                    raise ConflictError(f"Account code {data[key]} already exists", code="duplicate_account_code")

        for key, value in data.items():
            if key == "opening_balance":
                value = Decimal(str(value or 0))
            setattr(account, key, value)
        db.session.commit()
        return account

    return run_with_retry(_op)


def delete_account(account_id: int) -> None:
    def _op():
        account = lock_for_update(db.session.query(Account).filter_by(id=account_id)).first()
        if not account:
            raise NotFoundError(f"Account {account_id} not found")
        if db.session.query(Account).filter_by(parent_id=account.id).count():
            raise ConflictError("Account has child accounts", code="account_has_children")
        if db.session.query(JournalPosting).filter_by(account_id=account.id).count():
            raise ConflictError("Account has journal postings", code="account_in_use")
        db.session.delete(account)
        db.session.commit()

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Idempotent provisioning
# ---------------------------------------------------------------------------

def ensure_account(seed: AccountSeed, *, commit: bool = True) -> tuple[Account, str]:
    """
    Make sure `seed.number` exists under `seed.parent`.

    Returns (account, action) where action is "created", "reparented" or
    "unchanged". An existing account keeps its id, code and names.
    """
    parent = None
    if seed.parent:
        parent = find_by_code(seed.parent)

    account = lock_for_update(
        db.session.query(Account).filter(
            or_(Account.account_code == seed.number, Account.account_number == seed.number)
        )
    ).first()

    if account is None:
        account = Account(
            account_number=seed.number,
            account_code=seed.number,
            name=seed.name,
            name_en=seed.name_en,
            type=seed.type,
            nature=seed.nature,
            parent_id=parent.id if parent else None,
            opening_balance=0,
            allow_manual_entry=True,
        )
        db.session.add(account)
        db.session.flush()
        action = "created"
    elif parent is not None and account.parent_id != parent.id and not _would_cycle(account.id, parent.id):
        account.parent_id = parent.id
        action = "reparented"
    else:
        action = "unchanged"

    if commit:
        db.session.commit()
    if action != "unchanged":
        logger.info("Account %s %s", seed.number, action)
    return account, action


def _ensure_many(seeds) -> dict[str, str]:
    def _op():
        results = {}
        for seed in seeds:
            _, action = ensure_account(seed, commit=False)
            results[seed.number] = action
        db.session.commit()
        return results
    return run_with_retry(_op)


def seed_chart_of_accounts() -> dict[str, str]:
    """Create any missing default accounts. Safe to run repeatedly."""
    return _ensure_many(DEFAULT_CHART)


def ensure_vat_accounts() -> dict[str, str]:
    """VAT Settlement (2130) and Non-recoverable VAT (2140) under 2100."""
    if find_by_code(VAT_PARENT) is None:
        raise ValidationError(f"Parent account {VAT_PARENT} not found", code="account_not_found")
    return _ensure_many(VAT_ACCOUNTS)


def ensure_payroll_accounts() -> dict[str, str]:
    """Accounts Payable (2400) with Accrued Payroll (2430) and GOSI Payable (2431)."""
    if find_by_code(LIABILITIES_ROOT) is None:
        logger.warning("Liabilities root %s missing; 2400 will be created at top level", LIABILITIES_ROOT)
    return _ensure_many(PAYROLL_ACCOUNTS)


def fix_account_codes() -> int:
    """
    Backfill account_code from account_number and the other way round,
    skipping values already taken by another row. Returns rows changed.
    """
    def _op():
        changed = 0
        taken_codes = {a.account_code for a in db.session.query(Account) if a.account_code}
        taken_numbers = {a.account_number for a in db.session.query(Account) if a.account_number}
        for account in db.session.query(Account).order_by(Account.id):
            if not account.account_code and account.account_number and account.account_number not in taken_codes:
                account.account_code = account.account_number
                taken_codes.add(account.account_code)
                changed += 1
            elif not account.account_number and account.account_code and account.account_code not in taken_numbers:
                account.account_number = account.account_code
                taken_numbers.add(account.account_number)
                changed += 1
        db.session.commit()
        return changed
    return run_with_retry(_op)


# ---------------------------------------------------------------------------
# Partner sub-accounts
# ---------------------------------------------------------------------------

def get_or_create_partner_account(partner: Partner) -> Account:
    """
    Partner's own sub-account under the customers or suppliers control
    account. The control account itself must already exist. Does not commit;
    callers run this inside their own unit of work.
    """
    if partner.account_id:
        account = db.session.get(Account, partner.account_id)
        if account is not None:
            return account

    control_code = CUSTOMERS if partner.type == "customer" else SUPPLIERS
    control = require_by_code(control_code)

    number = _next_child_number(control)
    account = Account(
        account_number=number,
        account_code=number,
        name=partner.name,
        name_en=partner.name_en,
        type=control.type,
        nature=control.nature,
        parent_id=control.id,
        opening_balance=0,
        allow_manual_entry=True,
    )
    db.session.add(account)
    db.session.flush()
    partner.account_id = account.id
    return account
