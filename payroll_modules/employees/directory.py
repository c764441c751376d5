"""
Collaborator interfaces consumed by payroll (``payroll_modules.employees.directory``).

Contract:
    EmployeeDirectory  -- employee master data by id and by company.
    CompanyDirectory   -- company existence check.
    WorkCalendar       -- holidays, unpaid leave and overtime hours for a
                          pay window.

Payroll never queries HR tables directly; services receive these
collaborators by constructor injection.  ``SqlEmployeeDirectory`` is the
reference implementation over the minimal tables in ``employees.orm``.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_engines.aggregation import NO_OVERTIME, OvertimeHours
from payroll_modules.employees.models import Employee
from payroll_modules.employees.orm import CompanyModel, EmployeeModel

# =========================================================================
# Protocols
# =========================================================================


@runtime_checkable
class EmployeeDirectory(Protocol):
    """Read access to employee master data."""

    def get_employee(self, employee_id: UUID) -> Employee | None:
        """Return the employee, or None if unknown."""
        ...

    def list_employees(self, company_id: UUID) -> list[Employee]:
        """Return every employee of the company, ordered by employee number."""
        ...


@runtime_checkable
class CompanyDirectory(Protocol):
    def company_exists(self, company_id: UUID) -> bool:
        ...


class WorkCalendar(Protocol):
    """Attendance facts for a pay window."""

    def holidays(self, company_id: UUID, start: date, end: date) -> frozenset[date]:
        ...

    def unpaid_leave_days(self, employee_id: UUID, start: date, end: date) -> int:
        ...

    def overtime_hours(self, employee_id: UUID, start: date, end: date) -> OvertimeHours:
        ...


# =========================================================================
# Implementations
# =========================================================================


class NullWorkCalendar:
    """No holidays, no leave, no overtime."""

    def holidays(self, company_id: UUID, start: date, end: date) -> frozenset[date]:
        return frozenset()

    def unpaid_leave_days(self, employee_id: UUID, start: date, end: date) -> int:
        return 0

    def overtime_hours(self, employee_id: UUID, start: date, end: date) -> OvertimeHours:
        return NO_OVERTIME


class StaticWorkCalendar:
    """
    In-memory calendar.

    Holidays are filtered to the requested window; leave and overtime are
    keyed by employee id and returned as given.
    """

    def __init__(
        self,
        holidays: frozenset[date] | set[date] = frozenset(),
        unpaid_leave: Mapping[UUID, int] | None = None,
        overtime: Mapping[UUID, OvertimeHours] | None = None,
    ):
        self._holidays = frozenset(holidays)
        self._unpaid_leave = dict(unpaid_leave or {})
        self._overtime = dict(overtime or {})

    def holidays(self, company_id: UUID, start: date, end: date) -> frozenset[date]:
        return frozenset(d for d in self._holidays if start <= d <= end)

    def unpaid_leave_days(self, employee_id: UUID, start: date, end: date) -> int:
        return self._unpaid_leave.get(employee_id, 0)

    def overtime_hours(self, employee_id: UUID, start: date, end: date) -> OvertimeHours:
        return self._overtime.get(employee_id, NO_OVERTIME)


class SqlEmployeeDirectory:
    """EmployeeDirectory and CompanyDirectory over the ``employees`` tables."""

    def __init__(self, session: Session):
        self._session = session

    def get_employee(self, employee_id: UUID) -> Employee | None:
        model = self._session.get(EmployeeModel, employee_id)
        return model.to_dto() if model is not None else None

    def list_employees(self, company_id: UUID) -> list[Employee]:
        rows = self._session.scalars(
            select(EmployeeModel)
            .where(EmployeeModel.company_id == company_id)
            .order_by(EmployeeModel.employee_number)
        )
        return [row.to_dto() for row in rows]

    def company_exists(self, company_id: UUID) -> bool:
        return self._session.get(CompanyModel, company_id) is not None

    def add_company(self, name: str, created_by_id: UUID, company_id: UUID | None = None) -> UUID:
        model = CompanyModel(name=name, created_by_id=created_by_id)
        if company_id is not None:
            model.id = company_id
        self._session.add(model)
        self._session.flush()
        return model.id

    def add_employee(self, employee: Employee, created_by_id: UUID) -> Employee:
        model = EmployeeModel.from_dto(employee, created_by_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

