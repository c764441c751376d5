"""
Payroll adjustments and loan amortization (``payroll_modules.adjustments``).
"""

from payroll_modules.adjustments.models import (
    DEDUCTION_TYPES,
    EARNING_TYPES,
    LOAN_TYPES,
    AdjustmentCharge,
    AdjustmentStatus,
    AdjustmentType,
    BulkFailure,
    BulkResult,
    PayrollAdjustment,
)
from payroll_modules.adjustments.repository import AdjustmentRepository, SqlAdjustmentRepository
from payroll_modules.adjustments.service import AdjustmentService
from payroll_modules.adjustments.workflows import ADJUSTMENT_WORKFLOW, LOAN_ADJUSTMENT_WORKFLOW

__all__ = [
    "ADJUSTMENT_WORKFLOW",
    "AdjustmentCharge",
    "AdjustmentRepository",
    "AdjustmentService",
    "AdjustmentStatus",
    "AdjustmentType",
    "BulkFailure",
    "BulkResult",
    "DEDUCTION_TYPES",
    "EARNING_TYPES",
    "LOAN_ADJUSTMENT_WORKFLOW",
    "LOAN_TYPES",
    "PayrollAdjustment",
    "SqlAdjustmentRepository",
]
