"""
Payroll calculation (``payroll_modules.payroll.calculation``).

Composes the pure engines into one employee's payroll for one period:

    cutoff window -> proration -> gross (aggregation)
        -> contributions -> withholding (TER / progressive, gross-up for
           net-pay employees) -> deductions -> net

No I/O.  Every input (settings, tables, allowances, adjustment charges,
attendance facts) is passed in through ``PayrollInputs``, so the same
inputs always produce an equal ``PayrollBreakdown``.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payroll_config.schema import BracketDef, PTKPEntry, TERBandDef
from payroll_engines.aggregation import (
    NO_OVERTIME,
    AllowanceInput,
    EarningInput,
    OvertimeHours,
    SalaryAggregator,
)
from payroll_engines.contributions import ContributionCalculator
from payroll_engines.proration import ProrateMethod, calculate_proration
from payroll_engines.tax import TaxCalculator, WithholdingInput
from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.logging_config import get_logger
from payroll_modules.adjustments.models import AdjustmentCharge
from payroll_modules.employees.models import Employee, PayType
from payroll_modules.payroll.models import DeductionLine, PayrollBreakdown
from payroll_modules.settings.config import PayrollSetting

logger = get_logger("modules.payroll.calculation")

ZERO = Decimal("0")


@dataclass(frozen=True)
class PayrollInputs:
    """Everything one payroll calculation reads."""
    employee: Employee
    period: PayPeriod
    ptkp: PTKPEntry | None
    brackets: tuple[BracketDef, ...] = ()
    ter_bands: tuple[TERBandDef, ...] = ()
    allowances: tuple[AllowanceInput, ...] = ()
    charges: tuple[AdjustmentCharge, ...] = ()
    holidays: Collection[date] = frozenset()
    unpaid_leave_days: int = 0
    overtime_hours: OvertimeHours = NO_OVERTIME


class PayrollCalculator:
    """
    Gross-to-net for one employee and period under one company setting.

    Pure - no I/O, no database access.
    """

    def __init__(self, setting: PayrollSetting):
        self._setting = setting
        rounding = setting.rounding_policy()
        self._rounding = rounding
        self._aggregator = SalaryAggregator(rounding)
        self._contributions = ContributionCalculator(rounding)
        self._tax = TaxCalculator(rounding)

    def pay_window(self, period: PayPeriod) -> tuple[date, date]:
        return period.cutoff_window(self._setting.payroll_cutoff_date)

    def calculate(self, inputs: PayrollInputs) -> PayrollBreakdown:
        """
        Calculate one payroll.

        Raises:
            ConfigurationError: missing PTKP row, unknown TER category, or a
                tax table that does not cover the computed base.
        """
        setting = self._setting
        employee = inputs.employee
        window_start, window_end = self.pay_window(inputs.period)

        proration = calculate_proration(
            period_start=window_start,
            period_end=window_end,
            hire_date=employee.hire_date,
            termination_date=employee.termination_date,
            unpaid_leave_days=inputs.unpaid_leave_days,
            method=ProrateMethod(setting.prorate_method),
            holidays=inputs.holidays,
        )

        earnings = tuple(
            EarningInput(
                name=c.description or c.adjustment_type.value,
                amount=c.amount,
                adjustment_type=c.adjustment_type.value,
                is_taxable=c.is_taxable,
                reference_id=str(c.adjustment_id),
            )
            for c in inputs.charges
            if c.is_earning
        )
        gross = self._aggregator.aggregate_gross(
            basic_salary=employee.basic_salary,
            allowances=inputs.allowances,
            earnings=earnings,
            proration=proration,
            overtime_hours=inputs.overtime_hours,
            overtime_rates=setting.overtime_rates(),
        )

        contributions = self._contributions.calculate(
            gross.contribution_base, setting.contribution_rates()
        )

        withholding_input = WithholdingInput(
            taxable_gross=gross.taxable_gross,
            employee_contributions=contributions.total_employee,
            position_cost_rate=setting.position_cost_rate,
            position_cost_cap=setting.position_cost_max,
            method=setting.tax_method,
        )
        if employee.pay_type == PayType.NET:
            withholding = self._tax.calculate_gross_up(
                withholding_input, inputs.ptkp, inputs.brackets, inputs.ter_bands, employee.ptkp_status
            )
        else:
            withholding = self._tax.calculate(
                withholding_input, inputs.ptkp, inputs.brackets, inputs.ter_bands, employee.ptkp_status
            )

        deductions = tuple(
            DeductionLine(
                adjustment_id=c.adjustment_id,
                adjustment_type=c.adjustment_type.value,
                amount=self._rounding.apply(c.amount),
                description=c.description,
                installment_number=c.installment_number,
            )
            for c in inputs.charges
            if not c.is_earning
        )
        total_deductions = sum((d.amount for d in deductions), ZERO)

        gross_salary = gross.gross + withholding.tax_allowance
        net_salary = (
            gross_salary
            - contributions.total_employee
            - withholding.tax_amount
            - total_deductions
        )

        breakdown = PayrollBreakdown(
            employee_id=employee.id,
            company_id=employee.company_id,
            period=inputs.period,
            window_start=window_start,
            window_end=window_end,
            pay_type=employee.pay_type.value,
            basic_salary=employee.basic_salary,
            prorated_basic=gross.prorated_basic,
            proration_factor=proration.factor,
            proration_reason=proration.reason,
            allowances=gross.allowances,
            total_allowances=gross.total_allowances,
            overtime_pay=gross.overtime_pay,
            earnings=gross.earnings,
            total_earnings=gross.total_earnings,
            tax_allowance=withholding.tax_allowance,
            gross_salary=gross_salary,
            taxable_gross=withholding.taxable_gross,
            contribution_base=gross.contribution_base,
            contributions=contributions.lines,
            total_employee_contributions=contributions.total_employee,
            total_employer_contributions=contributions.total_employer,
            tax_method=withholding.method.value,
            ptkp_status=withholding.ptkp_status,
            ptkp_amount=withholding.ptkp_amount,
            ter_category=withholding.ter_category,
            position_cost=withholding.position_cost,
            taxable_base=withholding.monthly_taxable_base,
            annual_taxable_income=withholding.annual_taxable_income,
            tax_rate=withholding.rate_applied,
            tax_amount=withholding.tax_amount,
            deductions=deductions,
            total_deductions=total_deductions,
            net_salary=net_salary,
            charges=tuple(inputs.charges),
        )
        logger.info(
            "payroll_calculated",
            extra={
                "employee_id": str(employee.id),
                "period": str(inputs.period),
                "gross_salary": str(gross_salary),
                "tax_amount": str(withholding.tax_amount),
                "net_salary": str(net_salary),
                "prorated": proration.is_prorated,
            },
        )
        return breakdown
