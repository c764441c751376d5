"""
Payroll adjustment value objects (``payroll_modules.adjustments.models``).

Adjustments are one-off or recurring changes to an employee's pay:
earnings (bonus, incentive, ...) add to gross; deductions (penalty, loan
installments, ...) reduce net pay.  Loans and advances created with an
installment plan are amortized: once the loan itself is approved, each
approved payroll that charges it processes one installment until the
balance reaches zero.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_engines.amortization import AmortizationState
from payroll_engines.schedule import RecurringFrequency, occurs_in
from payroll_kernel.domain.values import PayPeriod


class AdjustmentType(Enum):
    BONUS = "bonus"
    ALLOWANCE = "allowance"
    REIMBURSEMENT = "reimbursement"
    INCENTIVE = "incentive"
    COMMISSION = "commission"
    CORRECTION = "correction"
    DEDUCTION = "deduction"
    PENALTY = "penalty"
    LOAN = "loan"
    ADVANCE = "advance"


EARNING_TYPES = frozenset({
    AdjustmentType.BONUS,
    AdjustmentType.ALLOWANCE,
    AdjustmentType.REIMBURSEMENT,
    AdjustmentType.INCENTIVE,
    AdjustmentType.COMMISSION,
    AdjustmentType.CORRECTION,
})
DEDUCTION_TYPES = frozenset({
    AdjustmentType.DEDUCTION,
    AdjustmentType.PENALTY,
    AdjustmentType.LOAN,
    AdjustmentType.ADVANCE,
})
LOAN_TYPES = frozenset({AdjustmentType.LOAN, AdjustmentType.ADVANCE})


class AdjustmentStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PayrollAdjustment:
    """
    An adjustment to one employee's pay.

    Loan fields are set only for loans/advances created with an
    installment plan; ``amount`` then equals ``installment_amount``.
    """
    id: UUID
    company_id: UUID
    employee_id: UUID
    adjustment_type: AdjustmentType
    amount: Decimal
    effective_date: date
    pay_period: PayPeriod | None = None
    description: str = ""
    is_taxable: bool = True
    is_recurring: bool = False
    recurring_frequency: RecurringFrequency | None = None
    recurring_end_date: date | None = None
    status: AdjustmentStatus = AdjustmentStatus.PENDING
    rejection_reason: str | None = None
    reference_number: str | None = None
    total_loan_amount: Decimal | None = None
    installment_amount: Decimal | None = None
    total_installments: int | None = None
    current_installment: int = 0
    remaining_balance: Decimal | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    processed_at: datetime | None = None

    def __post_init__(self):
        if self.amount < 0:
            raise ValueError(f"Adjustment amount cannot be negative: {self.amount}")
        if self.remaining_balance is not None and self.remaining_balance < 0:
            raise ValueError("remaining_balance cannot be negative")

    @property
    def is_earning(self) -> bool:
        return self.adjustment_type in EARNING_TYPES

    @property
    def is_deduction(self) -> bool:
        return self.adjustment_type in DEDUCTION_TYPES

    @property
    def has_installment_plan(self) -> bool:
        return self.adjustment_type in LOAN_TYPES and self.total_installments is not None

    def amortization_state(self) -> AmortizationState:
        if not self.has_installment_plan:
            raise ValueError(f"Adjustment {self.id} has no installment plan")
        return AmortizationState(
            total_loan_amount=self.total_loan_amount,
            installment_amount=self.installment_amount,
            total_installments=self.total_installments,
            current_installment=self.current_installment,
            remaining_balance=self.remaining_balance,
        )

    @property
    def is_fully_paid(self) -> bool:
        return self.has_installment_plan and self.amortization_state().is_fully_paid

    def charge_for(self, period: PayPeriod) -> Decimal | None:
        """
        Amount this adjustment contributes to ``period``'s payroll, or None.

        Nothing is charged before approval.  Installment loans then charge
        their next installment in every period from the effective month
        until fully paid; everything else must fall due in the period.
        """
        if self.status != AdjustmentStatus.APPROVED:
            return None
        if self.has_installment_plan:
            if period < PayPeriod.of(self.effective_date):
                return None
            state = self.amortization_state()
            return None if state.is_fully_paid else state.next_charge

        due = occurs_in(
            period,
            pay_period=self.pay_period,
            effective_date=self.effective_date,
            is_recurring=self.is_recurring,
            frequency=self.recurring_frequency,
            end_date=self.recurring_end_date,
        )
        return self.amount if due else None


@dataclass(frozen=True)
class AdjustmentCharge:
    """One adjustment as charged to one payroll period."""
    adjustment_id: UUID
    adjustment_type: AdjustmentType
    amount: Decimal
    description: str = ""
    is_taxable: bool = True
    is_recurring: bool = False
    installment_number: int | None = None

    @property
    def is_earning(self) -> bool:
        return self.adjustment_type in EARNING_TYPES

    @property
    def is_installment(self) -> bool:
        return self.installment_number is not None


@dataclass(frozen=True)
class BulkFailure:
    index: int
    code: str
    message: str
    adjustment_id: UUID | None = None


@dataclass(frozen=True)
class BulkResult:
    """Per-item outcome of a bulk adjustment operation."""
    succeeded: tuple[PayrollAdjustment, ...]
    failures: tuple[BulkFailure, ...]

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failures)
