"""
Tax Engine - monthly PPh 21 withholding.

Two mutually exclusive methods, chosen per company:

    TER (effective rate)
        The PTKP status selects a TER category; the monthly taxable base
        selects one band in that category; tax = base x band rate.  Flat,
        not marginal.

    Progressive (annualized)
        annual = monthly base x 12 - PTKP, clamped at zero; the bracket
        table is walked as a marginal schedule; monthly tax = annual / 12.

The monthly taxable base is:
    taxable_gross - employee contributions - position cost
    position cost = min(taxable_gross x rate, cap)

Pure functions with no I/O - PTKP, brackets and bands are provided as
parameters.  A missing PTKP row or a base no row covers raises a
ConfigurationError; the engine never falls back to zero tax.

Usage:
    from payroll_engines.tax import TaxCalculator, TaxMethod, WithholdingInput

    result = TaxCalculator().calculate(
        WithholdingInput(
            taxable_gross=Decimal("10500000"),
            employee_contributions=Decimal("105000"),
            position_cost_rate=Decimal("0"),
            position_cost_cap=Decimal("0"),
            method=TaxMethod.PROGRESSIVE,
        ),
        ptkp=tables.ptkp_for("TK/0"),
        brackets=tables.brackets,
        bands=(),
    )
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum

from payroll_config.schema import BracketDef, PTKPEntry, TERBandDef
from payroll_config.validator import ensure_contiguous
from payroll_kernel.domain.values import RoundingPolicy
from payroll_kernel.exceptions import (
    MissingPTKPError,
    TaxTableGapError,
    UnknownTaxCategoryError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

ZERO = Decimal("0")
MONTHS_PER_YEAR = Decimal("12")
GROSS_UP_MAX_ITERATIONS = 10


class TaxMethod(str, Enum):
    """Withholding method."""

    TER = "ter"
    PROGRESSIVE = "progressive"


@dataclass(frozen=True)
class WithholdingInput:
    """
    Inputs for one month's withholding.

    All amounts are monthly.  ``position_cost_rate`` is a fraction.
    """

    taxable_gross: Decimal
    employee_contributions: Decimal
    position_cost_rate: Decimal
    position_cost_cap: Decimal
    method: TaxMethod = TaxMethod.TER

    def __post_init__(self) -> None:
        if self.taxable_gross < ZERO:
            raise ValueError("taxable_gross cannot be negative")
        if self.employee_contributions < ZERO:
            raise ValueError("employee_contributions cannot be negative")
        if self.position_cost_rate < ZERO or self.position_cost_cap < ZERO:
            raise ValueError("position cost rate and cap cannot be negative")


@dataclass(frozen=True)
class WithholdingResult:
    """
    Complete withholding calculation.

    ``rate_applied`` is the band rate (TER) or the marginal rate at the
    annual taxable income (progressive).
    """

    method: TaxMethod
    ptkp_status: str
    taxable_gross: Decimal
    employee_contributions: Decimal
    position_cost: Decimal
    monthly_taxable_base: Decimal
    tax_amount: Decimal
    rate_applied: Decimal
    ter_category: str | None = None
    ptkp_amount: Decimal | None = None
    annual_taxable_income: Decimal | None = None
    annual_tax: Decimal | None = None
    tax_allowance: Decimal = ZERO

    @property
    def effective_rate(self) -> Decimal:
        if self.taxable_gross == ZERO:
            return ZERO
        return self.tax_amount / self.taxable_gross


def calculate_position_cost(taxable_gross: Decimal, rate: Decimal, cap: Decimal) -> Decimal:
    """Position-cost deduction: min(gross x rate, cap)."""
    return min(taxable_gross * rate, cap)


def find_ter_band(bands: Sequence[TERBandDef], amount: Decimal) -> TERBandDef:
    """
    Return the band containing ``amount`` (lower-inclusive, upper-exclusive).

    Raises:
        TaxTableGapError: if no band covers the amount.
    """
    for band in bands:
        if band.contains(amount):
            return band
    category = bands[0].category if bands else "?"
    raise TaxTableGapError(
        f"ter_bands.{category}", amount, f"no band covers monthly income {amount}"
    )


def progressive_annual_tax(
    annual_income: Decimal, brackets: Sequence[BracketDef]
) -> tuple[Decimal, Decimal]:
    """
    Marginal tax on ``annual_income``.

    Walks brackets in ascending order.  Each bracket taxes the slice of
    income in ``[min_income, max_income)``; income equal to a bracket's
    minimum is the first unit of that bracket.

    Returns:
        (annual tax, marginal rate of the bracket containing the income)
    Raises:
        TaxTableGapError: if the brackets stop below ``annual_income``.
    """
    tax = ZERO
    covered = ZERO
    for bracket in brackets:
        if annual_income <= bracket.min_income:
            break
        upper = annual_income if bracket.max_income is None else min(annual_income, bracket.max_income)
        tax += (upper - bracket.min_income) * bracket.rate
        covered = upper
    marginal = next((b for b in brackets if b.contains(annual_income)), None)
    if covered < annual_income or marginal is None:
        raise TaxTableGapError(
            "progressive_brackets",
            annual_income,
            f"no bracket covers annual income above {covered}",
        )
    return tax, marginal.rate


class TaxCalculator:
    """
    Calculate monthly withholding.

    Pure - no I/O, no database access.  Tables are provided as parameters.
    """

    def __init__(self, rounding: RoundingPolicy | None = None):
        self._rounding = rounding or RoundingPolicy()

    def _ter(self, base: Decimal, ptkp: PTKPEntry, bands: Sequence[TERBandDef]) -> tuple[Decimal, Decimal]:
        category_bands = sorted(
            (b for b in bands if b.category == ptkp.ter_category), key=lambda b: b.min_income
        )
        if not category_bands:
            logger.error("ter_category_missing", extra={"ter_category": ptkp.ter_category})
            raise UnknownTaxCategoryError(ptkp.ter_category)
        ensure_contiguous(category_bands, f"ter_bands.{ptkp.ter_category}")
        band = find_ter_band(category_bands, base)
        return self._rounding.apply(base * band.rate), band.rate

    def calculate(
        self,
        data: WithholdingInput,
        ptkp: PTKPEntry | None,
        brackets: Sequence[BracketDef],
        bands: Sequence[TERBandDef],
        ptkp_status: str | None = None,
    ) -> WithholdingResult:
        """
        Calculate one month's withholding.

        Args:
            data: Monthly wage figures and position-cost parameters.
            ptkp: PTKP row for the employee's status (None if not found).
            brackets: Progressive table (used in PROGRESSIVE mode).
            bands: TER bands, any categories (used in TER mode).
            ptkp_status: Status code, for error reporting when ptkp is None.

        Raises:
            ConfigurationError: missing PTKP, category or covering row.
        """
        t0 = time.monotonic()
        if ptkp is None:
            logger.error("ptkp_missing", extra={"ptkp_status": ptkp_status})
            raise MissingPTKPError(ptkp_status or "")

        method = TaxMethod(data.method)
        position_cost = self._rounding.apply(
            calculate_position_cost(data.taxable_gross, data.position_cost_rate, data.position_cost_cap)
        )
        base = max(ZERO, data.taxable_gross - data.employee_contributions - position_cost)

        if method == TaxMethod.TER:
            tax, rate = self._ter(base, ptkp, bands)
            result = WithholdingResult(
                method=method,
                ptkp_status=ptkp.status,
                taxable_gross=data.taxable_gross,
                employee_contributions=data.employee_contributions,
                position_cost=position_cost,
                monthly_taxable_base=base,
                tax_amount=tax,
                rate_applied=rate,
                ter_category=ptkp.ter_category,
                ptkp_amount=ptkp.amount,
            )
        else:
            ordered = sorted(brackets, key=lambda b: b.min_income)
            ensure_contiguous(ordered, "progressive_brackets")
            annual_income = max(ZERO, base * MONTHS_PER_YEAR - ptkp.amount)
            annual_tax, rate = progressive_annual_tax(annual_income, ordered)
            result = WithholdingResult(
                method=method,
                ptkp_status=ptkp.status,
                taxable_gross=data.taxable_gross,
                employee_contributions=data.employee_contributions,
                position_cost=position_cost,
                monthly_taxable_base=base,
                tax_amount=self._rounding.apply(annual_tax / MONTHS_PER_YEAR),
                rate_applied=rate,
                ter_category=ptkp.ter_category,
                ptkp_amount=ptkp.amount,
                annual_taxable_income=annual_income,
                annual_tax=annual_tax,
            )

        logger.debug(
            "withholding_calculated",
            extra={
                "method": method.value,
                "ptkp_status": ptkp.status,
                "monthly_taxable_base": str(base),
                "tax_amount": str(result.tax_amount),
                "rate_applied": str(result.rate_applied),
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return result

    def calculate_gross_up(
        self,
        data: WithholdingInput,
        ptkp: PTKPEntry | None,
        brackets: Sequence[BracketDef],
        bands: Sequence[TERBandDef],
        ptkp_status: str | None = None,
    ) -> WithholdingResult:
        """
        Withholding when the employer bears the tax.

        Finds a tax allowance A such that A equals the tax due on
        (taxable gross + A), by fixed-point iteration.  Stops when two
        successive allowances differ by at most one rounding unit, or after
        GROSS_UP_MAX_ITERATIONS.

        Postconditions:
            result.tax_allowance == result.tax_amount
        """
        quantum = self._rounding.quantum
        allowance = ZERO
        result = self.calculate(data, ptkp, brackets, bands, ptkp_status)
        for iteration in range(GROSS_UP_MAX_ITERATIONS):
            candidate = result.tax_amount
            if abs(candidate - allowance) <= quantum and iteration > 0:
                break
            allowance = candidate
            grossed_up = replace(data, taxable_gross=data.taxable_gross + allowance)
            result = self.calculate(grossed_up, ptkp, brackets, bands, ptkp_status)

        # Tax withheld equals the allowance paid, so the employee is whole.
        result = replace(result, tax_amount=allowance, tax_allowance=allowance)
        logger.debug(
            "gross_up_converged",
            extra={"tax_allowance": str(allowance), "method": result.method.value},
        )
        return result

