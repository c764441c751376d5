"""
Payroll calculation, generation and record lifecycle (``payroll_modules.payroll``).
"""

from payroll_modules.payroll.calculation import PayrollCalculator, PayrollInputs
from payroll_modules.payroll.models import (
    ChargeRef,
    DeductionLine,
    GenerationDetail,
    GenerationResult,
    PayrollBreakdown,
    PayrollRecord,
    PayrollStatus,
)
from payroll_modules.payroll.service import PayrollService
from payroll_modules.payroll.workflows import PAYROLL_ACTIONS, PAYROLL_RECORD_WORKFLOW

__all__ = [
    "ChargeRef",
    "DeductionLine",
    "GenerationDetail",
    "GenerationResult",
    "PAYROLL_ACTIONS",
    "PAYROLL_RECORD_WORKFLOW",
    "PayrollBreakdown",
    "PayrollCalculator",
    "PayrollInputs",
    "PayrollRecord",
    "PayrollService",
    "PayrollStatus",
]
