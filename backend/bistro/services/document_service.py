# Overview: Gap-free yearly document numbering (invoices).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import today

INVOICE_PREFIX = "INV"
INVOICE_PAD = 10


def format_number(prefix: str, year: int, number: int, pad: int = INVOICE_PAD) -> str:
    return f"{prefix}/{year}/{number:0{pad}d}"


def _current(document_type: str, year: int) -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, year=year)
        .scalar()
    )


def next_document_number(
    *,
    document_type: str = "invoice",
    prefix: str = INVOICE_PREFIX,
    year: int | None = None,
    pad: int = INVOICE_PAD,
) -> str:
    """
    Allocate the next number for (document_type, year) inside the caller's
    transaction.

    The counter row is bumped with a single UPDATE so concurrent issuers
    serialise on the row lock. The first number of a year inserts the row in
    a savepoint; losing that insert race falls back to the UPDATE.
    """
    year = year or today().year
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type, DocumentSequence.year == year)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        number = _current(document_type, year) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, year=year, next_number=2))
            number = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            number = _current(document_type, year) - 1

    return format_number(prefix, year, number, pad)


def peek_document_number(
    *,
    document_type: str = "invoice",
    prefix: str = INVOICE_PREFIX,
    year: int | None = None,
    pad: int = INVOICE_PAD,
) -> str:
    """The number next_document_number would hand out, without reserving it."""
    year = year or today().year
    return format_number(prefix, year, _current(document_type, year) or 1, pad)
