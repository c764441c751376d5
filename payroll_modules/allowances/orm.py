"""
Allowance ORM Model (``payroll_modules.allowances.orm``).

Invariants enforced:
    - ``employee_id`` NULL marks a company template.
    - ``calculation_base``, ``frequency`` and ``status`` stored as the enum
      .value string.
    - ``percentage`` is a fraction (0.10 for 10%).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase


class AllowanceModel(TrackedBase):
    __tablename__ = "allowances"

    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    employee_id: Mapped[UUID | None] = mapped_column(ForeignKey("employees.id"), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    calculation_base: Mapped[str] = mapped_column(String(50), nullable=False, default="fixed")
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_bpjs_object: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_prorated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="monthly")
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    __table_args__ = (
        Index("idx_allowance_company_employee", "company_id", "employee_id"),
    )

    def to_dto(self):
        from payroll_engines.aggregation import AllowanceBase
        from payroll_modules.allowances.models import (
            Allowance,
            AllowanceFrequency,
            AllowanceStatus,
        )
        return Allowance(
            id=self.id,
            company_id=self.company_id,
            employee_id=self.employee_id,
            name=self.name,
            calculation_base=AllowanceBase(self.calculation_base),
            amount=self.amount,
            percentage=self.percentage,
            is_taxable=self.is_taxable,
            is_bpjs_object=self.is_bpjs_object,
            is_prorated=self.is_prorated,
            frequency=AllowanceFrequency(self.frequency),
            effective_date=self.effective_date,
            end_date=self.end_date,
            status=AllowanceStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "AllowanceModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            employee_id=dto.employee_id,
            name=dto.name,
            calculation_base=dto.calculation_base.value,
            amount=dto.amount,
            percentage=dto.percentage,
            is_taxable=dto.is_taxable,
            is_bpjs_object=dto.is_bpjs_object,
            is_prorated=dto.is_prorated,
            frequency=dto.frequency.value,
            effective_date=dto.effective_date,
            end_date=dto.end_date,
            status=dto.status.value,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        scope = self.employee_id or "template"
        return f"<AllowanceModel {self.name} ({self.calculation_base}) for {scope}>"
