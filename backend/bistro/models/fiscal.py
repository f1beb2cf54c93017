from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


FISCAL_YEAR_STATUSES = ("open", "closed")


class FiscalYear(db.Model):
    """
    Accounting year with its own open/closed state.

    Journal writes dated inside a closed year are refused unless the year is
    temporarily opened. Dates outside every defined year are not restricted.
    closing_entry_id is set once the year has been rolled over.
    """
    __tablename__ = "fiscal_years"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_fiscal_years_year"),
        db.CheckConstraint("start_date <= end_date", name="ck_fiscal_years_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="open")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    temporary_open = db.Column(db.Boolean, nullable=False, default=False)
    temporary_open_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    temporary_open_at = db.Column(db.DateTime(timezone=True), nullable=True)
    temporary_open_reason = db.Column(db.Text, nullable=True)

    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closing_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    activities = db.relationship(
        "FiscalYearActivity",
        backref="fiscal_year",
        cascade="all, delete-orphan",
        order_by="FiscalYearActivity.id",
    )

    @property
    def can_create_entries(self) -> bool:
        return self.status == "open" or bool(self.temporary_open)

    def covers(self, day) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "year": self.year,
            "status": self.status,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "notes": self.notes,
            "temporary_open": bool(self.temporary_open),
            "temporary_open_by_user_id": self.temporary_open_by_user_id,
            "temporary_open_at": to_utc_z(self.temporary_open_at),
            "temporary_open_reason": self.temporary_open_reason,
            "closed_by_user_id": self.closed_by_user_id,
            "closed_at": to_utc_z(self.closed_at),
            "closing_entry_id": self.closing_entry_id,
            "can_create_entries": self.can_create_entries,
            "created_at": to_utc_z(self.created_at),
        }


class FiscalYearActivity(db.Model):
    """Append-only log of state changes on a fiscal year."""
    __tablename__ = "fiscal_year_activities"
    __table_args__ = (
        db.Index("ix_fiscal_year_activities_year", "fiscal_year_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    fiscal_year_id = db.Column(db.Integer, db.ForeignKey("fiscal_years.id"), nullable=False)
    action = db.Column(db.String(32), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fiscal_year_id": self.fiscal_year_id,
            "action": self.action,
            "details": self.details,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }
