"""
Payroll Record ORM Model (``payroll_modules.payroll.orm``).

Responsibility:
    Persist one employee's payroll for one period: summary figures as
    typed columns, line detail as JSON, and the lifecycle state.

Invariants enforced:
    - (employee_id, period_year, period_month) is unique
      (uq_payroll_employee_period); a re-run of generation fails with
      IntegrityError, which the service reports as DuplicatePayrollError.
    - Money columns are Decimal (Numeric(38,9)); JSON detail stores
      Decimals as strings.
    - A record whose status is ``paid`` is immutable
      (``payroll_kernel.db.immutability``).

Failure modes:
    - IntegrityError on a duplicate (employee, period).
    - ImmutabilityError on flush of any change to a paid record.

Audit relevance:
    approved_by_id / approved_at and paid_at identify the approval and the
    payment.  ``adjustment_charges`` lists the adjustments (and loan
    installment numbers) consumed by this record.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.db.immutability import register_immutability_listeners

_CONTRIBUTION_COLUMNS = {
    "bpjs_kes": ("bpjs_kes_employee", "bpjs_kes_company"),
    "bpjs_jht": ("bpjs_jht_employee", "bpjs_jht_company"),
    "bpjs_jp": ("bpjs_jp_employee", "bpjs_jp_company"),
    "bpjs_jkk": (None, "bpjs_jkk_company"),
    "bpjs_jkm": (None, "bpjs_jkm_company"),
}


class PayrollRecordModel(TrackedBase):
    """
    ORM model for ``PayrollRecord``.

    Guarantees:
        - One record per employee per period.
        - ``status`` holds a ``PayrollStatus`` value string.
    """

    __tablename__ = "payroll_records"

    employee_id: Mapped[UUID] = mapped_column(ForeignKey("employees.id"), nullable=False)
    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    prorated_basic: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    proration_factor: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    proration_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    total_allowances: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    overtime_pay: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_allowance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    taxable_gross: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    bpjs_kes_employee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_kes_company: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jht_employee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jht_company: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jp_employee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jp_company: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jkk_company: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    bpjs_jkm_company: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_employee_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_employer_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    position_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    taxable_base: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    tax_method: Mapped[str] = mapped_column(String(20), nullable=False, default="ter")
    tax_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    ter_category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    net_salary: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    detail: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    adjustment_charges: Mapped[list | None] = mapped_column(JSON, nullable=True)

    rejection_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("employee_id", "period_year", "period_month", name="uq_payroll_employee_period"),
        Index("idx_payroll_company_period", "company_id", "period_year", "period_month"),
        Index("idx_payroll_status", "status"),
    )

    def apply_breakdown(self, breakdown, calculated_at: datetime) -> None:
        """Copy every calculated figure of ``breakdown`` onto this row."""
        from payroll_modules.payroll.models import charges_to_json

        self.basic_salary = breakdown.basic_salary
        self.prorated_basic = breakdown.prorated_basic
        self.proration_factor = breakdown.proration_factor
        self.proration_reason = breakdown.proration_reason
        self.total_allowances = breakdown.total_allowances
        self.overtime_pay = breakdown.overtime_pay
        self.total_earnings = breakdown.total_earnings
        self.tax_allowance = breakdown.tax_allowance
        self.gross_salary = breakdown.gross_salary
        self.taxable_gross = breakdown.taxable_gross

        for name, (employee_col, company_col) in _CONTRIBUTION_COLUMNS.items():
            line = breakdown.contribution(name)
            if employee_col is not None:
                setattr(self, employee_col, line.employee_share if line else Decimal("0"))
            setattr(self, company_col, line.employer_share if line else Decimal("0"))
        self.total_employee_contributions = breakdown.total_employee_contributions
        self.total_employer_contributions = breakdown.total_employer_contributions

        self.position_cost = breakdown.position_cost
        self.taxable_base = breakdown.taxable_base
        self.tax_method = breakdown.tax_method
        self.tax_rate = breakdown.tax_rate
        self.ter_category = breakdown.ter_category
        self.tax_amount = breakdown.tax_amount
        self.total_deductions = breakdown.total_deductions
        self.net_salary = breakdown.net_salary

        self.detail = breakdown.to_detail()
        self.adjustment_charges = charges_to_json(breakdown.charges)
        self.calculated_at = calculated_at

    @classmethod
    def from_breakdown(cls, breakdown, status: str, created_by_id: UUID, calculated_at: datetime) -> "PayrollRecordModel":
        model = cls(
            employee_id=breakdown.employee_id,
            company_id=breakdown.company_id,
            period_year=breakdown.period.year,
            period_month=breakdown.period.month,
            status=status,
            created_by_id=created_by_id,
        )
        model.apply_breakdown(breakdown, calculated_at)
        return model

    def contribution_shares(self) -> dict[str, tuple[Decimal, Decimal]]:
        """Program name -> (employee share, employer share)."""
        shares: dict[str, tuple[Decimal, Decimal]] = {}
        for name, (employee_col, company_col) in _CONTRIBUTION_COLUMNS.items():
            employee = getattr(self, employee_col) if employee_col else Decimal("0")
            shares[name] = (employee, getattr(self, company_col))
        return shares

    def to_dto(self):
        from payroll_kernel.domain.values import PayPeriod
        from payroll_modules.payroll.models import ChargeRef, PayrollRecord, PayrollStatus

        return PayrollRecord(
            id=self.id,
            employee_id=self.employee_id,
            company_id=self.company_id,
            period=PayPeriod(self.period_year, self.period_month),
            status=PayrollStatus(self.status),
            basic_salary=self.basic_salary,
            prorated_basic=self.prorated_basic,
            proration_factor=self.proration_factor,
            proration_reason=self.proration_reason,
            total_allowances=self.total_allowances,
            overtime_pay=self.overtime_pay,
            total_earnings=self.total_earnings,
            tax_allowance=self.tax_allowance,
            gross_salary=self.gross_salary,
            taxable_gross=self.taxable_gross,
            contribution_shares=self.contribution_shares(),
            total_employee_contributions=self.total_employee_contributions,
            total_employer_contributions=self.total_employer_contributions,
            position_cost=self.position_cost,
            taxable_base=self.taxable_base,
            tax_method=self.tax_method,
            tax_rate=self.tax_rate,
            ter_category=self.ter_category,
            tax_amount=self.tax_amount,
            total_deductions=self.total_deductions,
            net_salary=self.net_salary,
            charges=tuple(ChargeRef.from_json(c) for c in (self.adjustment_charges or [])),
            detail=self.detail,
            rejection_reason=self.rejection_reason,
            calculated_at=self.calculated_at,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            paid_at=self.paid_at,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollRecordModel {self.employee_id} "
            f"{self.period_year}-{self.period_month:02d} [{self.status}] net={self.net_salary}>"
        )


register_immutability_listeners()
