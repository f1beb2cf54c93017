# Overview: Service-layer operations for employees.

from __future__ import annotations

from ..branches import normalize_branch
from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Employee, PayrollItem
from ..time_utils import parse_date
from .concurrency import run_with_retry
from .journal_service import to_amount

TEXT_FIELDS = ("employee_number", "name", "name_en", "phone", "national_id", "status")
MONEY_FIELDS = ("basic_salary", "housing_allowance", "other_allowances", "gosi_rate")


def _apply(employee: Employee, data: dict) -> None:
    for key in TEXT_FIELDS:
        if key in data:
            setattr(employee, key, data[key])
    for key in MONEY_FIELDS:
        if key in data:
            value = to_amount(data[key], key)
            if value < 0:
                raise ValidationError(f"{key} must be non-negative", code="invalid_amount")
            setattr(employee, key, value)
    if "branch" in data:
        employee.branch = normalize_branch(data["branch"])
    if "hire_date" in data:
        try:
            employee.hire_date = parse_date(data["hire_date"]) if data["hire_date"] else None
        except ValueError:
            raise ValidationError("hire_date must be YYYY-MM-DD", code="invalid_date")
    if not (employee.name or "").strip():
        raise ValidationError("name is required", code="missing_name")


def list_employees(branch: str | None = None, status: str | None = None) -> list[Employee]:
    q = db.session.query(Employee)
    if branch:
        q = q.filter(Employee.branch == normalize_branch(branch))
    if status:
        q = q.filter(Employee.status == status)
    return q.order_by(Employee.name).all()


def get_employee(employee_id: int) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise NotFoundError(f"Employee {employee_id} not found")
    return employee


def create_employee(data: dict) -> Employee:
    def _op():
        employee = Employee(status="active")
        _apply(employee, data)
        if employee.employee_number and db.session.query(Employee.id).filter_by(
            employee_number=employee.employee_number
        ).first():
            raise ConflictError(f"Employee number {employee.employee_number} already exists")
        db.session.add(employee)
        db.session.commit()
        return employee

    return run_with_retry(_op)


def update_employee(employee_id: int, data: dict) -> Employee:
    def _op():
        employee = get_employee(employee_id)
        _apply(employee, data)
        db.session.commit()
        return employee

    return run_with_retry(_op)


def delete_employee(employee_id: int) -> None:
    """Employees on any payroll run are deactivated rather than deleted."""
    def _op():
        employee = get_employee(employee_id)
        if db.session.query(PayrollItem.id).filter_by(employee_id=employee.id).first():
            employee.status = "inactive"
        else:
            db.session.delete(employee)
        db.session.commit()

    run_with_retry(_op)
