from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


PAYROLL_STATUSES = ("draft", "approved", "posted", "paid")


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = (
        db.UniqueConstraint("employee_number", name="uq_employees_number"),
        db.Index("ix_employees_branch_status", "branch", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_number = db.Column(db.String(32), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    name_en = db.Column(db.String(255), nullable=True)
    branch = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    phone = db.Column(db.String(64), nullable=True)
    national_id = db.Column(db.String(64), nullable=True)
    hire_date = db.Column(db.Date, nullable=True)

    basic_salary = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    housing_allowance = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    other_allowances = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    # Employee share of GOSI, percent of basic + housing
    gosi_rate = db.Column(db.Numeric(6, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_number": self.employee_number,
            "name": self.name,
            "name_en": self.name_en,
            "branch": self.branch,
            "status": self.status,
            "phone": self.phone,
            "national_id": self.national_id,
            "hire_date": to_iso_date(self.hire_date),
            "basic_salary": float(self.basic_salary or 0),
            "housing_allowance": float(self.housing_allowance or 0),
            "other_allowances": float(self.other_allowances or 0),
            "gosi_rate": float(self.gosi_rate or 0),
        }


class PayrollRun(db.Model):
    """
    Monthly payroll for one branch.

    Lifecycle: draft -> approved -> posted (accrual entry) -> paid (payment
    entry). Approved runs can go back to draft; posted runs cannot.
    """
    __tablename__ = "payroll_runs"
    __table_args__ = (
        db.UniqueConstraint("period", "branch", name="uq_payroll_runs_period_branch"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    period = db.Column(db.String(7), nullable=False)
    branch = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft")

    total_gross = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_deductions = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_gosi = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_net = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    total_paid = db.Column(db.Numeric(18, 2), nullable=False, default=0)

    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)
    # Latest salary payment entry; earlier ones are found by reference
    payment_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=db.func.now())

    items = db.relationship(
        "PayrollItem",
        backref="run",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PayrollItem.id",
    )

    @property
    def outstanding(self):
        return (self.total_net or 0) - (self.total_paid or 0)

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "period": self.period,
            "branch": self.branch,
            "status": self.status,
            "total_gross": float(self.total_gross or 0),
            "total_deductions": float(self.total_deductions or 0),
            "total_gosi": float(self.total_gosi or 0),
            "total_net": float(self.total_net or 0),
            "total_paid": float(self.total_paid or 0),
            "outstanding": float(self.outstanding),
            "journal_entry_id": self.journal_entry_id,
            "payment_entry_id": self.payment_entry_id,
            "posted_at": to_utc_z(self.posted_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [i.to_dict() for i in self.items]
        return data


class PayrollItem(db.Model):
    __tablename__ = "payroll_items"
    __table_args__ = (
        db.UniqueConstraint("run_id", "employee_id", name="uq_payroll_items_run_employee"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    run_id = db.Column(db.Integer, db.ForeignKey("payroll_runs.id", ondelete="CASCADE"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False)

    basic_salary = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    allowances = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    additions = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    deductions = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    gosi = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    gross = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    net = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    paid = db.Column(db.Numeric(18, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    employee = db.relationship("Employee", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "run_id": self.run_id,
            "employee_id": self.employee_id,
            "employee_name": self.employee.name if self.employee else None,
            "basic_salary": float(self.basic_salary or 0),
            "allowances": float(self.allowances or 0),
            "additions": float(self.additions or 0),
            "deductions": float(self.deductions or 0),
            "gosi": float(self.gosi or 0),
            "gross": float(self.gross or 0),
            "net": float(self.net or 0),
            "paid": float(self.paid or 0),
            "outstanding": float((self.net or 0) - (self.paid or 0)),
            "notes": self.notes,
        }
