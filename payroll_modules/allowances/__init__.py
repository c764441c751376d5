"""Allowances: employee-specific and company-template pay components."""

from payroll_modules.allowances.models import Allowance, AllowanceFrequency, AllowanceStatus
from payroll_modules.allowances.repository import AllowanceRepository, SqlAllowanceRepository

__all__ = [
    "Allowance",
    "AllowanceFrequency",
    "AllowanceRepository",
    "AllowanceStatus",
    "SqlAllowanceRepository",
]
