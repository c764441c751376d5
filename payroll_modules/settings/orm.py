"""
Settings and Tax Table ORM Models (``payroll_modules.settings.orm``).

Responsibility:
    Persist company payroll settings and the statutory withholding tables
    (PTKP, progressive brackets, TER bands).

Invariants enforced:
    - One PayrollSettingModel per company (uq_payroll_setting_company).
    - PTKP ``status`` is unique (uq_ptkp_status).
    - Bracket and band amounts are Decimal (Numeric(38,9)); rates are
      fractions.  ``max_income`` NULL marks the open-ended final row.
    - TaxBracketModel.company_id NULL is the global table; a company-scoped
      set overrides it for that company.

Failure modes:
    - IntegrityError on a second settings row for the same company.

Audit relevance:
    Tables are reference data.  Rates that applied to a paid payroll are
    copied onto the payroll record, so later table edits never change
    historical figures.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# PayrollSettingModel
# ---------------------------------------------------------------------------


class PayrollSettingModel(TrackedBase):
    """ORM model for ``PayrollSetting``."""

    __tablename__ = "payroll_settings"

    company_id: Mapped[UUID] = mapped_column(nullable=False)

    bpjs_kes_employee_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_kes_company_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_kes_max_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    bpjs_jht_employee_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jht_company_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jp_employee_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jp_company_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jp_max_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    bpjs_jkk_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jkk_max_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    bpjs_jkm_rate: Mapped[Decimal] = mapped_column(nullable=False)
    bpjs_jkm_max_salary: Mapped[Decimal | None] = mapped_column(nullable=True)

    use_effective_rate_method: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    position_cost_rate: Mapped[Decimal] = mapped_column(nullable=False)
    position_cost_max: Mapped[Decimal] = mapped_column(nullable=False)

    overtime_rate_weekday: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_rate_weekend: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_rate_holiday: Mapped[Decimal] = mapped_column(nullable=False)
    overtime_hourly_divisor: Mapped[Decimal] = mapped_column(nullable=False)

    payroll_cutoff_date: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_date: Mapped[int] = mapped_column(Integer, nullable=False)
    prorate_method: Mapped[str] = mapped_column(String(50), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")
    enable_rounding: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rounding_method: Mapped[str] = mapped_column(String(20), nullable=False, default="nearest")
    rounding_precision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_payroll_setting_company"),
    )

    def to_dto(self):
        from payroll_modules.settings.config import PayrollSetting

        values = {name: getattr(self, name) for name in _SETTING_COLUMNS}
        return PayrollSetting(company_id=self.company_id, **values)

    def apply_dto(self, dto) -> None:
        """Copy every setting field from ``dto`` onto this row."""
        for name in _SETTING_COLUMNS:
            setattr(self, name, getattr(dto, name))

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayrollSettingModel":
        model = cls(company_id=dto.company_id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        method = "TER" if self.use_effective_rate_method else "progressive"
        return f"<PayrollSettingModel company={self.company_id} {method}>"


_SETTING_COLUMNS = (
    "bpjs_kes_employee_rate",
    "bpjs_kes_company_rate",
    "bpjs_kes_max_salary",
    "bpjs_jht_employee_rate",
    "bpjs_jht_company_rate",
    "bpjs_jp_employee_rate",
    "bpjs_jp_company_rate",
    "bpjs_jp_max_salary",
    "bpjs_jkk_rate",
    "bpjs_jkk_max_salary",
    "bpjs_jkm_rate",
    "bpjs_jkm_max_salary",
    "use_effective_rate_method",
    "position_cost_rate",
    "position_cost_max",
    "overtime_rate_weekday",
    "overtime_rate_weekend",
    "overtime_rate_holiday",
    "overtime_hourly_divisor",
    "payroll_cutoff_date",
    "payment_date",
    "prorate_method",
    "currency",
    "enable_rounding",
    "rounding_method",
    "rounding_precision",
)


# ---------------------------------------------------------------------------
# PTKPModel
# ---------------------------------------------------------------------------


class PTKPModel(TrackedBase):
    __tablename__ = "ptkp"

    status: Mapped[str] = mapped_column(String(10), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    ter_category: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    __table_args__ = (UniqueConstraint("status", name="uq_ptkp_status"),)

    def to_dto(self):
        from payroll_config.schema import PTKPEntry
        return PTKPEntry(
            status=self.status,
            amount=self.amount,
            ter_category=self.ter_category,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PTKPModel":
        return cls(
            status=dto.status,
            amount=dto.amount,
            ter_category=dto.ter_category,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<PTKPModel {self.status}: {self.amount} ({self.ter_category})>"


# ---------------------------------------------------------------------------
# TaxBracketModel
# ---------------------------------------------------------------------------


class TaxBracketModel(TrackedBase):
    """Progressive bracket; ``company_id`` NULL is the global table."""

    __tablename__ = "tax_brackets"

    company_id: Mapped[UUID | None] = mapped_column(nullable=True)
    min_income: Mapped[Decimal] = mapped_column(nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_tax_bracket_company_min", "company_id", "min_income"),
    )

    def to_dto(self):
        from payroll_config.schema import BracketDef
        return BracketDef(min_income=self.min_income, max_income=self.max_income, rate=self.rate)

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID, company_id: UUID | None = None) -> "TaxBracketModel":
        return cls(
            company_id=company_id,
            min_income=dto.min_income,
            max_income=dto.max_income,
            rate=dto.rate,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        upper = self.max_income if self.max_income is not None else "..."
        return f"<TaxBracketModel [{self.min_income}, {upper}) @ {self.rate}>"


# ---------------------------------------------------------------------------
# TERBandModel
# ---------------------------------------------------------------------------


class TERBandModel(TrackedBase):
    __tablename__ = "ter_bands"

    category: Mapped[str] = mapped_column(String(20), nullable=False)
    min_income: Mapped[Decimal] = mapped_column(nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(nullable=True)
    rate: Mapped[Decimal] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("category", "min_income", name="uq_ter_band_category_min"),
    )

    def to_dto(self):
        from payroll_config.schema import TERBandDef
        return TERBandDef(
            category=self.category,
            min_income=self.min_income,
            max_income=self.max_income,
            rate=self.rate,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "TERBandModel":
        return cls(
            category=dto.category,
            min_income=dto.min_income,
            max_income=dto.max_income,
            rate=dto.rate,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<TERBandModel {self.category} from {self.min_income} @ {self.rate}>"
