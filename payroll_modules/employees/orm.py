"""
Employee Directory ORM Models (``payroll_modules.employees.orm``).

Responsibility:
    Minimal company and employee tables backing ``SqlEmployeeDirectory``.
    In a full HR deployment these rows are owned by the HR master-data
    service; payroll only reads them.

Invariants enforced:
    - ``employee_number`` is unique per company.
    - ``basic_salary`` is Decimal (Numeric(38,9)).
    - Enum fields stored as String(50) containing the enum .value string.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# CompanyModel
# ---------------------------------------------------------------------------


class CompanyModel(TrackedBase):
    __tablename__ = "companies"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def to_dto(self):
        from payroll_modules.employees.models import Company
        return Company(id=self.id, name=self.name)

    def __repr__(self) -> str:
        return f"<CompanyModel {self.name}>"


# ---------------------------------------------------------------------------
# EmployeeModel
# ---------------------------------------------------------------------------


class EmployeeModel(TrackedBase):
    """
    ORM model for ``Employee``.

    Guarantees:
        - (company_id, employee_number) is unique (uq_employee_company_number).
        - ``ptkp_status`` holds a PTKP status code such as ``TK/0`` or ``K/I/2``.
    """

    __tablename__ = "employees"

    company_id: Mapped[UUID] = mapped_column(ForeignKey("companies.id"), nullable=False)
    employee_number: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    basic_salary: Mapped[Decimal] = mapped_column(nullable=False)
    ptkp_status: Mapped[str] = mapped_column(String(10), nullable=False)
    hire_date: Mapped[date] = mapped_column(Date, nullable=False)
    termination_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_status: Mapped[str] = mapped_column(String(50), nullable=False, default="active")
    employment_type: Mapped[str] = mapped_column(String(50), nullable=False, default="permanent")
    pay_type: Mapped[str] = mapped_column(String(50), nullable=False, default="gross")

    __table_args__ = (
        UniqueConstraint("company_id", "employee_number", name="uq_employee_company_number"),
        Index("idx_employee_company_status", "company_id", "employment_status"),
    )

    def to_dto(self):
        from payroll_modules.employees.models import (
            Employee,
            EmploymentStatus,
            EmploymentType,
            PayType,
        )
        return Employee(
            id=self.id,
            company_id=self.company_id,
            employee_number=self.employee_number,
            name=self.name,
            basic_salary=self.basic_salary,
            ptkp_status=self.ptkp_status,
            hire_date=self.hire_date,
            termination_date=self.termination_date,
            employment_status=EmploymentStatus(self.employment_status),
            employment_type=EmploymentType(self.employment_type),
            pay_type=PayType(self.pay_type),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeModel":
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            employee_number=dto.employee_number,
            name=dto.name,
            basic_salary=dto.basic_salary,
            ptkp_status=dto.ptkp_status,
            hire_date=dto.hire_date,
            termination_date=dto.termination_date,
            employment_status=dto.employment_status.value,
            employment_type=dto.employment_type.value,
            pay_type=dto.pay_type.value,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<EmployeeModel {self.employee_number}: {self.name} ({self.ptkp_status})>"
