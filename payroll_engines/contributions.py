"""
Contribution Engine - social-insurance (BPJS) contributions.

Computes capped, rate-based contributions split between the employee and
the employer.  Pure functions with no I/O - rates and caps are provided as
parameters.

Programs (Indonesian BPJS naming):
    bpjs_kes   health                  employee + employer, capped wage
    bpjs_jht   old-age savings         employee + employer
    bpjs_jp    pension                 employee + employer, capped wage
    bpjs_jkk   workplace accident      employer only
    bpjs_jkm   death benefit           employer only

Only the employee side reduces taxable income and net pay.  The employer
side is reported on the payroll record for cost purposes.

Usage:
    from payroll_engines.contributions import ContributionCalculator, ContributionRate

    rates = [
        ContributionRate("bpjs_kes", Decimal("0.01"), Decimal("0.04"), cap=Decimal("12000000")),
        ContributionRate("bpjs_jkk", Decimal("0"), Decimal("0.0024")),
    ]
    result = ContributionCalculator().calculate(Decimal("15000000"), rates)
    result.total_employee   # 120000
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from payroll_kernel.domain.values import RoundingPolicy
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.contributions")

ZERO = Decimal("0")


@dataclass(frozen=True)
class ContributionRate:
    """
    One contribution program.

    ``cap`` is the maximum wage the rates apply to; None means uncapped.
    """

    name: str
    employee_rate: Decimal
    employer_rate: Decimal
    cap: Decimal | None = None

    def __post_init__(self) -> None:
        if self.employee_rate < ZERO or self.employer_rate < ZERO:
            raise ValueError(f"Contribution {self.name}: rates cannot be negative")
        if self.cap is not None and self.cap <= ZERO:
            raise ValueError(f"Contribution {self.name}: cap must be positive")

    @property
    def is_employer_only(self) -> bool:
        return self.employee_rate == ZERO

    def max_employee_share(self) -> Decimal | None:
        return None if self.cap is None else self.cap * self.employee_rate

    def max_employer_share(self) -> Decimal | None:
        return None if self.cap is None else self.cap * self.employer_rate


@dataclass(frozen=True)
class ContributionLine:
    """Calculated contribution for one program."""

    name: str
    base: Decimal
    employee_share: Decimal
    employer_share: Decimal
    cap: Decimal | None = None


@dataclass(frozen=True)
class ContributionResult:
    lines: tuple[ContributionLine, ...]

    @property
    def total_employee(self) -> Decimal:
        return sum((line.employee_share for line in self.lines), ZERO)

    @property
    def total_employer(self) -> Decimal:
        return sum((line.employer_share for line in self.lines), ZERO)

    def line(self, name: str) -> ContributionLine | None:
        for line in self.lines:
            if line.name == name:
                return line
        return None


class ContributionCalculator:
    """
    Calculate social-insurance contributions for one wage.

    Pure - no I/O, no database access.
    """

    def __init__(self, rounding: RoundingPolicy | None = None):
        self._rounding = rounding or RoundingPolicy()

    def calculate_line(self, wage: Decimal, rate: ContributionRate) -> ContributionLine:
        """
        Preconditions: wage >= 0.
        Postconditions: base = min(wage, cap); shares = base x rate, rounded.
        """
        base = wage if rate.cap is None else min(wage, rate.cap)
        return ContributionLine(
            name=rate.name,
            base=base,
            employee_share=self._rounding.apply(base * rate.employee_rate),
            employer_share=self._rounding.apply(base * rate.employer_rate),
            cap=rate.cap,
        )

    def calculate(self, wage: Decimal, rates: Sequence[ContributionRate]) -> ContributionResult:
        """
        Calculate every program for ``wage``.

        Raises:
            ValueError: if the wage is negative.
        """
        if wage < ZERO:
            raise ValueError(f"Contribution wage cannot be negative: {wage}")

        result = ContributionResult(lines=tuple(self.calculate_line(wage, r) for r in rates))
        logger.debug(
            "contributions_calculated",
            extra={
                "wage": str(wage),
                "program_count": len(result.lines),
                "total_employee": str(result.total_employee),
                "total_employer": str(result.total_employer),
            },
        )
        return result
