"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculation engines.  Canonical import surface for
    ``payroll_modules``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payroll_kernel (domain values, exceptions, logging) and
    payroll_config schema/validator.  MUST NOT import payroll_modules.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by the services.
    - Decimal-only arithmetic: all monetary amounts use ``Decimal``.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - ValueError on invalid input values.
    - ConfigurationError subclasses when tax tables cannot cover a base.
    - AlreadyAmortizedError when a fully paid loan is approved again.
"""

from payroll_engines.aggregation import (
    AllowanceBase,
    AllowanceInput,
    AllowanceLine,
    EarningInput,
    EarningLine,
    GrossBreakdown,
    OvertimeHours,
    OvertimeRates,
    SalaryAggregator,
    calculate_overtime_pay,
)
from payroll_engines.amortization import (
    AmortizationState,
    LoanPlan,
    apply_installment,
    plan_loan,
)
from payroll_engines.contributions import (
    ContributionCalculator,
    ContributionLine,
    ContributionRate,
    ContributionResult,
)
from payroll_engines.proration import (
    ProrateMethod,
    ProrationResult,
    calculate_proration,
    count_working_days,
)
from payroll_engines.schedule import RecurringFrequency, occurs_in
from payroll_engines.tax import (
    TaxCalculator,
    TaxMethod,
    WithholdingInput,
    WithholdingResult,
    calculate_position_cost,
    find_ter_band,
    progressive_annual_tax,
)

__all__ = [
    "AllowanceBase",
    "AllowanceInput",
    "AllowanceLine",
    "AmortizationState",
    "ContributionCalculator",
    "ContributionLine",
    "ContributionRate",
    "ContributionResult",
    "EarningInput",
    "EarningLine",
    "GrossBreakdown",
    "LoanPlan",
    "OvertimeHours",
    "OvertimeRates",
    "ProrateMethod",
    "ProrationResult",
    "RecurringFrequency",
    "SalaryAggregator",
    "TaxCalculator",
    "TaxMethod",
    "WithholdingInput",
    "WithholdingResult",
    "apply_installment",
    "calculate_overtime_pay",
    "calculate_position_cost",
    "calculate_proration",
    "count_working_days",
    "find_ter_band",
    "occurs_in",
    "plan_loan",
    "progressive_annual_tax",
]
