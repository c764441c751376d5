"""
Payroll Adjustment ORM Model (``payroll_modules.adjustments.orm``).

Responsibility:
    Persist ``PayrollAdjustment`` including the running installment state of
    loans and advances.

Invariants enforced:
    - ``remaining_balance`` >= 0 (ck_adjustment_remaining_balance).
    - ``current_installment`` <= ``total_installments`` when a plan exists.
    - ``pay_period`` stored as (pay_period_year, pay_period_month), both NULL
      or both set.
    - Enum fields stored as String(50) containing the enum .value string.

Audit relevance:
    approved_by_id / approved_at record the last approval event;
    processed_at records when the adjustment was fully consumed by payroll.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase


class PayrollAdjustmentModel(TrackedBase):
    __tablename__ = "payroll_adjustments"

    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    adjustment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    pay_period_year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pay_period_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_frequency: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recurring_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="pending")
    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total_loan_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    installment_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_installments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_installment: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining_balance: Mapped[Decimal | None] = mapped_column(nullable=True)

    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "remaining_balance IS NULL OR remaining_balance >= 0",
            name="ck_adjustment_remaining_balance",
        ),
        CheckConstraint(
            "total_installments IS NULL OR current_installment <= total_installments",
            name="ck_adjustment_installment_bound",
        ),
        Index("idx_adjustment_employee_status", "employee_id", "status"),
        Index("idx_adjustment_company", "company_id"),
    )

    def to_dto(self):
        from payroll_engines.schedule import RecurringFrequency
        from payroll_kernel.domain.values import PayPeriod
        from payroll_modules.adjustments.models import (
            AdjustmentStatus,
            AdjustmentType,
            PayrollAdjustment,
        )

        pay_period = None
        if self.pay_period_year is not None and self.pay_period_month is not None:
            pay_period = PayPeriod(self.pay_period_year, self.pay_period_month)
        return PayrollAdjustment(
            id=self.id,
            company_id=self.company_id,
            employee_id=self.employee_id,
            adjustment_type=AdjustmentType(self.adjustment_type),
            amount=self.amount,
            effective_date=self.effective_date,
            pay_period=pay_period,
            description=self.description,
            is_taxable=self.is_taxable,
            is_recurring=self.is_recurring,
            recurring_frequency=(
                RecurringFrequency(self.recurring_frequency) if self.recurring_frequency else None
            ),
            recurring_end_date=self.recurring_end_date,
            status=AdjustmentStatus(self.status),
            rejection_reason=self.rejection_reason,
            reference_number=self.reference_number,
            total_loan_amount=self.total_loan_amount,
            installment_amount=self.installment_amount,
            total_installments=self.total_installments,
            current_installment=self.current_installment,
            remaining_balance=self.remaining_balance,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            processed_at=self.processed_at,
        )

    def apply_dto(self, dto) -> None:
        """Copy every mutable field of ``dto`` onto this row."""
        self.adjustment_type = dto.adjustment_type.value
        self.amount = dto.amount
        self.effective_date = dto.effective_date
        self.pay_period_year = dto.pay_period.year if dto.pay_period else None
        self.pay_period_month = dto.pay_period.month if dto.pay_period else None
        self.description = dto.description
        self.is_taxable = dto.is_taxable
        self.is_recurring = dto.is_recurring
        self.recurring_frequency = dto.recurring_frequency.value if dto.recurring_frequency else None
        self.recurring_end_date = dto.recurring_end_date
        self.status = dto.status.value
        self.rejection_reason = dto.rejection_reason
        self.reference_number = dto.reference_number
        self.total_loan_amount = dto.total_loan_amount
        self.installment_amount = dto.installment_amount
        self.total_installments = dto.total_installments
        self.current_installment = dto.current_installment
        self.remaining_balance = dto.remaining_balance
        self.approved_by_id = dto.approved_by_id
        self.approved_at = dto.approved_at
        self.processed_at = dto.processed_at

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayrollAdjustmentModel":
        model = cls(
            id=dto.id,
            company_id=dto.company_id,
            employee_id=dto.employee_id,
            created_by_id=created_by_id,
        )
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<PayrollAdjustmentModel {self.adjustment_type} {self.amount} [{self.status}]>"
