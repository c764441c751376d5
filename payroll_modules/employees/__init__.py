"""
Employee and company collaborators (``payroll_modules.employees``).

Payroll reads employee master data and attendance facts only through the
protocols in ``directory``; ``SqlEmployeeDirectory`` is the reference
implementation.
"""

from payroll_modules.employees.directory import (
    CompanyDirectory,
    EmployeeDirectory,
    NullWorkCalendar,
    SqlEmployeeDirectory,
    StaticWorkCalendar,
    WorkCalendar,
)
from payroll_modules.employees.models import (
    Company,
    Employee,
    EmploymentStatus,
    EmploymentType,
    PayType,
)

__all__ = [
    "Company",
    "CompanyDirectory",
    "Employee",
    "EmployeeDirectory",
    "EmploymentStatus",
    "EmploymentType",
    "NullWorkCalendar",
    "PayType",
    "SqlEmployeeDirectory",
    "StaticWorkCalendar",
    "WorkCalendar",
]
