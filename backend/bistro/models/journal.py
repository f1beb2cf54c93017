from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


ENTRY_STATUSES = ("draft", "posted", "reversed")


class JournalEntry(db.Model):
    """
    Dated accounting record made of balanced debit/credit postings.

    reference_type/reference_id link an entry to the record that produced it
    (invoice, expense, payroll run, reversed entry, closed fiscal year). Manual entries have no
    reference. See services/journal_service.JournalReference.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.UniqueConstraint("entry_number", name="uq_journal_entries_number"),
        db.Index("ix_journal_entries_reference", "reference_type", "reference_id"),
        db.Index("ix_journal_entries_status_date", "status", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    date = db.Column(db.Date, nullable=False)
    period = db.Column(db.String(7), nullable=False)
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    branch = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft")
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    postings = db.relationship(
        "JournalPosting",
        backref="entry",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="JournalPosting.id",
    )

    @property
    def total_debit(self):
        return sum((p.debit or 0) for p in self.postings)

    @property
    def total_credit(self):
        return sum((p.credit or 0) for p in self.postings)

    def to_dict(self, include_postings: bool = True) -> dict:
        data = {
            "id": self.id,
            "entry_number": self.entry_number,
            "description": self.description,
            "date": to_iso_date(self.date),
            "period": self.period,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "branch": self.branch,
            "status": self.status,
            "posted_at": to_utc_z(self.posted_at),
            "total_debit": float(self.total_debit),
            "total_credit": float(self.total_credit),
            "created_at": to_utc_z(self.created_at),
        }
        if include_postings:
            data["postings"] = [p.to_dict() for p in self.postings]
        return data


class JournalPosting(db.Model):
    """One line of a journal entry: debits or credits exactly one account."""
    __tablename__ = "journal_postings"
    __table_args__ = (
        db.Index("ix_journal_postings_entry", "journal_entry_id"),
        db.Index("ix_journal_postings_account", "account_id"),
        db.CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_postings_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    debit = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    credit = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)

    account = db.relationship("Account", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "account_id": self.account_id,
            "account_code": self.account.code if self.account else None,
            "account_name": self.account.name if self.account else None,
            "debit": float(self.debit or 0),
            "credit": float(self.credit or 0),
            "description": self.description,
        }
