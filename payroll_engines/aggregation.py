"""
Salary Aggregation Engine - basic salary, allowances, overtime and earnings
adjustments combined into gross pay for one period.

Pure functions with no I/O.  The caller selects which allowances and
adjustments apply to the period; this engine only prices them.

Percentage allowances are priced in two passes:
    pass 1: fixed amounts and percentages of basic salary
    pass 2: percentages of gross, on (basic + pass-1 total)
so a gross-based allowance never depends on itself.

Outputs three wage figures:
    gross              everything earned in the period
    taxable_gross      gross less non-taxable items
    contribution_base  gross less items that are not BPJS wage components
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from payroll_engines.proration import FULL_PERIOD, ProrationResult
from payroll_kernel.domain.values import RoundingPolicy
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

ZERO = Decimal("0")


class AllowanceBase(str, Enum):
    """What an allowance is priced from."""

    FIXED = "fixed"
    BASIC_SALARY = "basic_salary"
    GROSS_SALARY = "gross_salary"


@dataclass(frozen=True)
class AllowanceInput:
    """
    An allowance that applies to the period.

    Exactly one of ``amount`` (FIXED) or ``percentage`` (BASIC/GROSS) is
    meaningful; ``percentage`` is a fraction (0.10 for 10%).
    """

    name: str
    calculation_base: AllowanceBase = AllowanceBase.FIXED
    amount: Decimal | None = None
    percentage: Decimal | None = None
    is_taxable: bool = True
    is_bpjs_object: bool = True
    is_prorated: bool = True
    reference_id: str | None = None

    def __post_init__(self) -> None:
        base = AllowanceBase(self.calculation_base)
        if base == AllowanceBase.FIXED:
            if self.amount is None or self.amount < ZERO:
                raise ValueError(f"Allowance {self.name}: fixed allowance needs a non-negative amount")
        elif self.percentage is None or self.percentage < ZERO:
            raise ValueError(f"Allowance {self.name}: percentage allowance needs a non-negative percentage")


@dataclass(frozen=True)
class EarningInput:
    """An approved earnings adjustment (bonus, incentive, ...) due this period."""

    name: str
    amount: Decimal
    adjustment_type: str = "bonus"
    is_taxable: bool = True
    is_bpjs_object: bool = False
    reference_id: str | None = None


@dataclass(frozen=True)
class OvertimeRates:
    weekday: Decimal = Decimal("1.5")
    weekend: Decimal = Decimal("2.0")
    holiday: Decimal = Decimal("3.0")
    hourly_divisor: Decimal = Decimal("173")


@dataclass(frozen=True)
class OvertimeHours:
    weekday: Decimal = ZERO
    weekend: Decimal = ZERO
    holiday: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.weekday + self.weekend + self.holiday


NO_OVERTIME = OvertimeHours()


@dataclass(frozen=True)
class AllowanceLine:
    name: str
    amount: Decimal
    calculation_base: AllowanceBase
    is_taxable: bool
    is_bpjs_object: bool
    reference_id: str | None = None


@dataclass(frozen=True)
class EarningLine:
    name: str
    amount: Decimal
    adjustment_type: str
    is_taxable: bool
    reference_id: str | None = None


@dataclass(frozen=True)
class GrossBreakdown:
    """Priced components of gross pay for one period."""

    basic_salary: Decimal
    prorated_basic: Decimal
    proration: ProrationResult
    allowances: tuple[AllowanceLine, ...]
    earnings: tuple[EarningLine, ...]
    overtime_pay: Decimal
    gross: Decimal
    taxable_gross: Decimal
    contribution_base: Decimal

    @property
    def total_allowances(self) -> Decimal:
        return sum((a.amount for a in self.allowances), ZERO)

    @property
    def total_earnings(self) -> Decimal:
        return sum((e.amount for e in self.earnings), ZERO)


def calculate_overtime_pay(
    basic_salary: Decimal,
    hours: OvertimeHours,
    rates: OvertimeRates,
) -> Decimal:
    """
    Overtime pay from hours by day kind.

    Postconditions: hourly = basic / divisor; pay = sum(hours x hourly x multiplier).
    """
    if hours.total == ZERO:
        return ZERO
    hourly = basic_salary / rates.hourly_divisor
    return hourly * (
        hours.weekday * rates.weekday
        + hours.weekend * rates.weekend
        + hours.holiday * rates.holiday
    )


class SalaryAggregator:
    """
    Price basic salary, allowances, overtime and earnings into gross pay.

    Pure - no I/O.  Rounding is applied per line so that the components
    always sum exactly to gross.
    """

    def __init__(self, rounding: RoundingPolicy | None = None):
        self._rounding = rounding or RoundingPolicy()

    def _price_allowance(self, allowance: AllowanceInput, base_amount: Decimal, proration: ProrationResult) -> AllowanceLine:
        kind = AllowanceBase(allowance.calculation_base)
        if kind == AllowanceBase.FIXED:
            raw = allowance.amount
        else:
            raw = base_amount * allowance.percentage
        if allowance.is_prorated:
            raw = proration.apply(raw)
        return AllowanceLine(
            name=allowance.name,
            amount=self._rounding.apply(raw),
            calculation_base=kind,
            is_taxable=allowance.is_taxable,
            is_bpjs_object=allowance.is_bpjs_object,
            reference_id=allowance.reference_id,
        )

    def aggregate_gross(
        self,
        basic_salary: Decimal,
        allowances: Sequence[AllowanceInput] = (),
        earnings: Sequence[EarningInput] = (),
        proration: ProrationResult = FULL_PERIOD,
        overtime_hours: OvertimeHours = NO_OVERTIME,
        overtime_rates: OvertimeRates | None = None,
    ) -> GrossBreakdown:
        """
        Build the gross breakdown for one employee and period.

        Preconditions:
            - basic_salary >= 0.
        Postconditions:
            - gross = prorated_basic + sum(allowances) + overtime + sum(earnings).
            - taxable_gross <= gross and contribution_base <= gross.
        Raises:
            ValueError: if basic_salary is negative.
        """
        if basic_salary < ZERO:
            raise ValueError(f"basic_salary cannot be negative: {basic_salary}")

        prorated_basic = self._rounding.apply(proration.apply(basic_salary))

        first_pass = [
            a for a in allowances if AllowanceBase(a.calculation_base) != AllowanceBase.GROSS_SALARY
        ]
        second_pass = [
            a for a in allowances if AllowanceBase(a.calculation_base) == AllowanceBase.GROSS_SALARY
        ]

        lines = [self._price_allowance(a, basic_salary, proration) for a in first_pass]
        # Gross-based allowances see basic plus the unprorated first pass.
        first_pass_full = sum(
            (
                a.amount if AllowanceBase(a.calculation_base) == AllowanceBase.FIXED
                else basic_salary * a.percentage
                for a in first_pass
            ),
            ZERO,
        )
        gross_estimate = basic_salary + first_pass_full
        lines.extend(self._price_allowance(a, gross_estimate, proration) for a in second_pass)

        earning_lines = tuple(
            EarningLine(
                name=e.name,
                amount=self._rounding.apply(e.amount),
                adjustment_type=e.adjustment_type,
                is_taxable=e.is_taxable,
                reference_id=e.reference_id,
            )
            for e in earnings
        )

        overtime_pay = self._rounding.apply(
            calculate_overtime_pay(basic_salary, overtime_hours, overtime_rates or OvertimeRates())
        )

        gross = (
            prorated_basic
            + sum((line.amount for line in lines), ZERO)
            + overtime_pay
            + sum((e.amount for e in earning_lines), ZERO)
        )
        non_taxable = sum((line.amount for line in lines if not line.is_taxable), ZERO) + sum(
            (e.amount for e in earning_lines if not e.is_taxable), ZERO
        )
        non_contribution = sum((line.amount for line in lines if not line.is_bpjs_object), ZERO) + sum(
            (e.amount for e, src in zip(earning_lines, earnings) if not src.is_bpjs_object), ZERO
        )

        breakdown = GrossBreakdown(
            basic_salary=basic_salary,
            prorated_basic=prorated_basic,
            proration=proration,
            allowances=tuple(lines),
            earnings=earning_lines,
            overtime_pay=overtime_pay,
            gross=gross,
            taxable_gross=gross - non_taxable,
            contribution_base=gross - non_contribution,
        )
        logger.debug(
            "gross_aggregated",
            extra={
                "basic_salary": str(basic_salary),
                "prorated_basic": str(prorated_basic),
                "allowance_count": len(lines),
                "earning_count": len(earning_lines),
                "overtime_pay": str(overtime_pay),
                "gross": str(gross),
            },
        )
        return breakdown
