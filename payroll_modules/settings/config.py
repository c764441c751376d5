"""
Payroll Setting Schema.

Company-level payroll configuration with statutory Indonesian defaults
(BPJS rates and caps, position cost, overtime multipliers, cutoff day,
proration method, rounding policy).  Values are loaded per company at
runtime; ``with_defaults()`` materializes the statutory set.
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal
from typing import Any, Self
from uuid import UUID

from payroll_engines.aggregation import OvertimeRates
from payroll_engines.contributions import ContributionRate
from payroll_engines.proration import ProrateMethod
from payroll_engines.tax import TaxMethod
from payroll_kernel.domain.values import RoundingPolicy
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.settings.config")

VALID_PRORATE_METHODS = {m.value for m in ProrateMethod}
VALID_ROUNDING_METHODS = {"nearest", "up", "down"}

# Contribution program names, in reporting order.
BPJS_KES = "bpjs_kes"
BPJS_JHT = "bpjs_jht"
BPJS_JP = "bpjs_jp"
BPJS_JKK = "bpjs_jkk"
BPJS_JKM = "bpjs_jkm"
CONTRIBUTION_PROGRAMS = (BPJS_KES, BPJS_JHT, BPJS_JP, BPJS_JKK, BPJS_JKM)

_RATE_FIELDS = (
    "bpjs_kes_employee_rate",
    "bpjs_kes_company_rate",
    "bpjs_jht_employee_rate",
    "bpjs_jht_company_rate",
    "bpjs_jp_employee_rate",
    "bpjs_jp_company_rate",
    "bpjs_jkk_rate",
    "bpjs_jkm_rate",
    "position_cost_rate",
)


@dataclass
class PayrollSetting:
    """
    Payroll configuration for one company.

    Field defaults are the statutory 2024 values.  Override per company:

        setting = PayrollSetting.from_dict({"use_effective_rate_method": False, ...})
    """

    company_id: UUID | None = None

    # Health (BPJS Kesehatan)
    bpjs_kes_employee_rate: Decimal = Decimal("0.01")
    bpjs_kes_company_rate: Decimal = Decimal("0.04")
    bpjs_kes_max_salary: Decimal | None = Decimal("12000000")

    # Old-age savings (JHT)
    bpjs_jht_employee_rate: Decimal = Decimal("0.02")
    bpjs_jht_company_rate: Decimal = Decimal("0.037")

    # Pension (JP)
    bpjs_jp_employee_rate: Decimal = Decimal("0.01")
    bpjs_jp_company_rate: Decimal = Decimal("0.02")
    bpjs_jp_max_salary: Decimal | None = Decimal("10042300")

    # Employer-only programs
    bpjs_jkk_rate: Decimal = Decimal("0.0024")
    bpjs_jkk_max_salary: Decimal | None = None
    bpjs_jkm_rate: Decimal = Decimal("0.003")
    bpjs_jkm_max_salary: Decimal | None = None

    # Income tax
    use_effective_rate_method: bool = True
    position_cost_rate: Decimal = Decimal("0.05")
    position_cost_max: Decimal = Decimal("500000")

    # Overtime
    overtime_rate_weekday: Decimal = Decimal("1.5")
    overtime_rate_weekend: Decimal = Decimal("2.0")
    overtime_rate_holiday: Decimal = Decimal("3.0")
    overtime_hourly_divisor: Decimal = Decimal("173")

    # Schedule
    payroll_cutoff_date: int = 25
    payment_date: int = 28
    prorate_method: str = ProrateMethod.WORKING_DAYS.value

    # Money
    currency: str = "IDR"
    enable_rounding: bool = True
    rounding_method: str = "nearest"
    rounding_precision: int = 0

    def __post_init__(self):
        for name in _RATE_FIELDS:
            value = getattr(self, name)
            if not Decimal("0") <= value <= Decimal("1"):
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

        for name in ("bpjs_kes_max_salary", "bpjs_jp_max_salary", "bpjs_jkk_max_salary", "bpjs_jkm_max_salary"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive when set, got {value}")

        if self.position_cost_max < 0:
            raise ValueError("position_cost_max cannot be negative")

        for name in ("overtime_rate_weekday", "overtime_rate_weekend", "overtime_rate_holiday"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.overtime_hourly_divisor <= 0:
            raise ValueError("overtime_hourly_divisor must be positive")

        if not 1 <= self.payroll_cutoff_date <= 31:
            raise ValueError(f"payroll_cutoff_date must be 1..31, got {self.payroll_cutoff_date}")
        if not 1 <= self.payment_date <= 31:
            raise ValueError(f"payment_date must be 1..31, got {self.payment_date}")

        if self.prorate_method not in VALID_PRORATE_METHODS:
            raise ValueError(
                f"prorate_method must be one of {VALID_PRORATE_METHODS}, "
                f"got '{self.prorate_method}'"
            )
        if self.rounding_method not in VALID_ROUNDING_METHODS:
            raise ValueError(
                f"rounding_method must be one of {VALID_ROUNDING_METHODS}, "
                f"got '{self.rounding_method}'"
            )
        if self.rounding_precision < 0:
            raise ValueError("rounding_precision cannot be negative")
        if len(self.currency) != 3:
            raise ValueError(f"currency must be an ISO 4217 code, got '{self.currency}'")

        logger.debug(
            "payroll_setting_initialized",
            extra={
                "company_id": str(self.company_id) if self.company_id else None,
                "use_effective_rate_method": self.use_effective_rate_method,
                "prorate_method": self.prorate_method,
                "payroll_cutoff_date": self.payroll_cutoff_date,
            },
        )

    # -- derived engine inputs -------------------------------------------------

    @property
    def tax_method(self) -> TaxMethod:
        return TaxMethod.TER if self.use_effective_rate_method else TaxMethod.PROGRESSIVE

    def rounding_policy(self) -> RoundingPolicy:
        return RoundingPolicy(
            enabled=self.enable_rounding,
            method=self.rounding_method,
            precision=self.rounding_precision,
        )

    def contribution_rates(self) -> tuple[ContributionRate, ...]:
        return (
            ContributionRate(BPJS_KES, self.bpjs_kes_employee_rate, self.bpjs_kes_company_rate, self.bpjs_kes_max_salary),
            ContributionRate(BPJS_JHT, self.bpjs_jht_employee_rate, self.bpjs_jht_company_rate),
            ContributionRate(BPJS_JP, self.bpjs_jp_employee_rate, self.bpjs_jp_company_rate, self.bpjs_jp_max_salary),
            ContributionRate(BPJS_JKK, Decimal("0"), self.bpjs_jkk_rate, self.bpjs_jkk_max_salary),
            ContributionRate(BPJS_JKM, Decimal("0"), self.bpjs_jkm_rate, self.bpjs_jkm_max_salary),
        )

    def overtime_rates(self) -> OvertimeRates:
        return OvertimeRates(
            weekday=self.overtime_rate_weekday,
            weekend=self.overtime_rate_weekend,
            holiday=self.overtime_rate_holiday,
            hourly_divisor=self.overtime_hourly_divisor,
        )

    # -- construction ----------------------------------------------------------

    @classmethod
    def with_defaults(cls, company_id: UUID | None = None) -> Self:
        """Create a setting with the statutory defaults."""
        logger.info(
            "payroll_setting_created_with_defaults",
            extra={"company_id": str(company_id) if company_id else None},
        )
        return cls(company_id=company_id)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Create a setting from a mapping (database row, YAML, API payload).

        Unknown keys raise ValueError.  Numeric strings are converted to
        Decimal for Decimal-typed fields.
        """
        logger.info(
            "payroll_setting_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown payroll setting fields: {sorted(unknown)}")

        defaults = cls()
        values: dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(getattr(defaults, key), Decimal) or key.endswith("_max_salary"):
                values[key] = None if value is None else Decimal(str(value))
            else:
                values[key] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
