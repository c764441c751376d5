"""
Allowance value objects (``payroll_modules.allowances.models``).

An allowance is either employee-specific or a company template
(``employee_id`` None) that applies to every employee of the company.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_engines.aggregation import AllowanceBase, AllowanceInput


class AllowanceStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AllowanceFrequency(Enum):
    MONTHLY = "monthly"
    ONE_TIME = "one_time"


@dataclass(frozen=True)
class Allowance:
    """A configured allowance."""
    id: UUID
    company_id: UUID
    name: str
    calculation_base: AllowanceBase = AllowanceBase.FIXED
    amount: Decimal | None = None
    percentage: Decimal | None = None
    employee_id: UUID | None = None
    is_taxable: bool = True
    is_bpjs_object: bool = True
    is_prorated: bool = True
    frequency: AllowanceFrequency = AllowanceFrequency.MONTHLY
    effective_date: date | None = None
    end_date: date | None = None
    status: AllowanceStatus = AllowanceStatus.ACTIVE

    def __post_init__(self):
        if self.calculation_base == AllowanceBase.FIXED:
            if self.amount is None or self.amount < 0:
                raise ValueError(f"Allowance {self.name}: fixed allowance needs a non-negative amount")
        elif self.percentage is None or self.percentage < 0:
            raise ValueError(f"Allowance {self.name}: percentage allowance needs a non-negative percentage")
        if self.effective_date and self.end_date and self.end_date < self.effective_date:
            raise ValueError(f"Allowance {self.name}: end_date precedes effective_date")

    @property
    def is_template(self) -> bool:
        return self.employee_id is None

    def applies_to(self, window_start: date, window_end: date) -> bool:
        """
        Whether the allowance is paid for the pay window ``[window_start, window_end]``.

        Monthly allowances apply when their own window overlaps the pay
        window; one-time allowances when their effective date falls in it.
        """
        if self.status != AllowanceStatus.ACTIVE:
            return False
        if self.frequency == AllowanceFrequency.ONE_TIME:
            return self.effective_date is not None and window_start <= self.effective_date <= window_end
        if self.effective_date is not None and self.effective_date > window_end:
            return False
        if self.end_date is not None and self.end_date < window_start:
            return False
        return True

    def to_input(self) -> AllowanceInput:
        return AllowanceInput(
            name=self.name,
            calculation_base=self.calculation_base,
            amount=self.amount,
            percentage=self.percentage,
            is_taxable=self.is_taxable,
            is_bpjs_object=self.is_bpjs_object,
            is_prorated=self.is_prorated,
            reference_id=str(self.id),
        )
