"""
Payroll record value objects (``payroll_modules.payroll.models``).

``PayrollBreakdown`` is the full, deterministic result of calculating one
employee's pay for one period.  ``PayrollRecord`` is its persisted form
plus lifecycle state.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from payroll_engines.aggregation import AllowanceLine, EarningLine
from payroll_engines.contributions import ContributionLine
from payroll_kernel.domain.values import PayPeriod
from payroll_modules.adjustments.models import AdjustmentCharge


class PayrollStatus(Enum):
    DRAFT = "draft"
    CALCULATED = "calculated"
    VALIDATED = "validated"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


@dataclass(frozen=True)
class DeductionLine:
    """A deduction adjustment (penalty, loan installment, ...) taken from net pay."""
    adjustment_id: UUID
    adjustment_type: str
    amount: Decimal
    description: str = ""
    installment_number: int | None = None


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class PayrollBreakdown:
    """
    Every figure behind one employee's net pay for one period.

    Identities:
        gross_salary = prorated_basic + total_allowances + overtime_pay
                       + total_earnings + tax_allowance
        net_salary   = gross_salary - total_employee_contributions
                       - tax_amount - total_deductions
    """
    employee_id: UUID
    company_id: UUID
    period: PayPeriod
    window_start: date
    window_end: date
    pay_type: str

    basic_salary: Decimal
    prorated_basic: Decimal
    proration_factor: Decimal
    proration_reason: str | None
    allowances: tuple[AllowanceLine, ...]
    total_allowances: Decimal
    overtime_pay: Decimal
    earnings: tuple[EarningLine, ...]
    total_earnings: Decimal
    tax_allowance: Decimal
    gross_salary: Decimal
    taxable_gross: Decimal
    contribution_base: Decimal

    contributions: tuple[ContributionLine, ...]
    total_employee_contributions: Decimal
    total_employer_contributions: Decimal

    tax_method: str
    ptkp_status: str
    ptkp_amount: Decimal | None
    ter_category: str | None
    position_cost: Decimal
    taxable_base: Decimal
    annual_taxable_income: Decimal | None
    tax_rate: Decimal
    tax_amount: Decimal

    deductions: tuple[DeductionLine, ...]
    total_deductions: Decimal
    net_salary: Decimal

    charges: tuple[AdjustmentCharge, ...] = field(default=())

    def contribution(self, name: str) -> ContributionLine | None:
        for line in self.contributions:
            if line.name == name:
                return line
        return None

    def to_detail(self) -> dict[str, Any]:
        """JSON-safe line detail; Decimals as strings."""
        return {
            "period": str(self.period),
            "window": [self.window_start.isoformat(), self.window_end.isoformat()],
            "proration": {"factor": str(self.proration_factor), "reason": self.proration_reason},
            "allowances": [
                {
                    "name": a.name,
                    "amount": str(a.amount),
                    "calculation_base": a.calculation_base.value,
                    "is_taxable": a.is_taxable,
                    "is_bpjs_object": a.is_bpjs_object,
                    "reference_id": a.reference_id,
                }
                for a in self.allowances
            ],
            "earnings": [
                {
                    "name": e.name,
                    "amount": str(e.amount),
                    "adjustment_type": e.adjustment_type,
                    "is_taxable": e.is_taxable,
                    "reference_id": e.reference_id,
                }
                for e in self.earnings
            ],
            "contributions": [
                {
                    "name": c.name,
                    "base": str(c.base),
                    "employee_share": str(c.employee_share),
                    "employer_share": str(c.employer_share),
                    "cap": _money(c.cap),
                }
                for c in self.contributions
            ],
            "tax": {
                "method": self.tax_method,
                "ptkp_status": self.ptkp_status,
                "ptkp_amount": _money(self.ptkp_amount),
                "ter_category": self.ter_category,
                "annual_taxable_income": _money(self.annual_taxable_income),
                "rate": str(self.tax_rate),
            },
            "deductions": [
                {
                    "adjustment_id": str(d.adjustment_id),
                    "adjustment_type": d.adjustment_type,
                    "amount": str(d.amount),
                    "description": d.description,
                    "installment_number": d.installment_number,
                }
                for d in self.deductions
            ],
        }


def charges_to_json(charges: tuple[AdjustmentCharge, ...]) -> list[dict[str, Any]]:
    return [
        {
            "adjustment_id": str(c.adjustment_id),
            "adjustment_type": c.adjustment_type.value,
            "amount": str(c.amount),
            "is_recurring": c.is_recurring,
            "installment_number": c.installment_number,
        }
        for c in charges
    ]


@dataclass(frozen=True)
class ChargeRef:
    """An adjustment charge as recorded on a persisted payroll record."""
    adjustment_id: UUID
    adjustment_type: str
    amount: Decimal
    is_recurring: bool = False
    installment_number: int | None = None

    @property
    def is_installment(self) -> bool:
        return self.installment_number is not None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "ChargeRef":
        return cls(
            adjustment_id=UUID(data["adjustment_id"]),
            adjustment_type=data["adjustment_type"],
            amount=Decimal(data["amount"]),
            is_recurring=bool(data.get("is_recurring", False)),
            installment_number=data.get("installment_number"),
        )


@dataclass(frozen=True)
class PayrollRecord:
    """A persisted payroll record."""
    id: UUID
    employee_id: UUID
    company_id: UUID
    period: PayPeriod
    status: PayrollStatus
    basic_salary: Decimal
    prorated_basic: Decimal
    proration_factor: Decimal
    proration_reason: str | None
    total_allowances: Decimal
    overtime_pay: Decimal
    total_earnings: Decimal
    tax_allowance: Decimal
    gross_salary: Decimal
    taxable_gross: Decimal
    contribution_shares: dict[str, tuple[Decimal, Decimal]]
    total_employee_contributions: Decimal
    total_employer_contributions: Decimal
    position_cost: Decimal
    taxable_base: Decimal
    tax_method: str
    tax_rate: Decimal
    ter_category: str | None
    tax_amount: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    charges: tuple[ChargeRef, ...] = ()
    detail: dict[str, Any] | None = None
    rejection_reason: str | None = None
    calculated_at: datetime | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class GenerationDetail:
    """Outcome for one employee in a generation run."""
    employee_id: UUID
    success: bool
    payroll_id: UUID | None = None
    net_salary: Decimal | None = None
    code: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    company_id: UUID
    period: PayPeriod
    details: tuple[GenerationDetail, ...]

    @property
    def generated(self) -> int:
        return sum(1 for d in self.details if d.success)

    @property
    def errors(self) -> int:
        return sum(1 for d in self.details if not d.success)

    @property
    def error_details(self) -> tuple[GenerationDetail, ...]:
        return tuple(d for d in self.details if not d.success)
