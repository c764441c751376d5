"""
Employee and company value objects (``payroll_modules.employees.models``).

Only the fields payroll reads are modelled.  Employee master data is owned
by the HR system; payroll sees it through the directory protocols.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.employees.models")


class EmploymentStatus(Enum):
    ACTIVE = "active"
    RESIGNED = "resigned"
    TERMINATED = "terminated"
    INACTIVE = "inactive"


class EmploymentType(Enum):
    PERMANENT = "permanent"
    CONTRACT = "contract"
    PROBATION = "probation"
    FREELANCE = "freelance"
    INTERNSHIP = "internship"


class PayType(Enum):
    """Who bears the income tax."""
    GROSS = "gross"  # employee bears tax
    NET = "net"      # employer bears tax via a tax allowance (gross-up)


# Employment types paid outside regular payroll.
EXCLUDED_EMPLOYMENT_TYPES = frozenset({EmploymentType.FREELANCE, EmploymentType.INTERNSHIP})

# Statuses whose final partial month is still paid.
LEAVING_STATUSES = frozenset({EmploymentStatus.RESIGNED, EmploymentStatus.TERMINATED})


@dataclass(frozen=True)
class Employee:
    """An employee as seen by payroll."""
    id: UUID
    company_id: UUID
    employee_number: str
    name: str
    basic_salary: Decimal
    ptkp_status: str
    hire_date: date
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    employment_type: EmploymentType = EmploymentType.PERMANENT
    pay_type: PayType = PayType.GROSS
    termination_date: date | None = None

    def __post_init__(self):
        if self.basic_salary < 0:
            logger.warning(
                "employee_negative_basic_salary",
                extra={"employee_id": str(self.id), "basic_salary": str(self.basic_salary)},
            )
            raise ValueError("basic_salary cannot be negative")
        if self.termination_date is not None and self.termination_date < self.hire_date:
            raise ValueError("termination_date cannot precede hire_date")

    def is_payable_in(self, window_start: date, window_end: date) -> bool:
        """
        Whether this employee gets a payroll record for the pay window.

        Active employees hired on or before the window end qualify, as do
        leavers whose termination falls inside or after the window start.
        Freelancers and interns are paid outside payroll.
        """
        if self.employment_type in EXCLUDED_EMPLOYMENT_TYPES:
            return False
        if self.hire_date > window_end:
            return False
        if self.employment_status == EmploymentStatus.ACTIVE:
            return True
        if self.employment_status in LEAVING_STATUSES:
            return self.termination_date is not None and self.termination_date >= window_start
        return False


@dataclass(frozen=True)
class Company:
    id: UUID
    name: str
