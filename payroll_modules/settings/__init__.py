"""
Company payroll settings and statutory tax tables (``payroll_modules.settings``).
"""

from payroll_modules.settings.config import CONTRIBUTION_PROGRAMS, PayrollSetting
from payroll_modules.settings.repositories import (
    SeedResult,
    SettingsRepository,
    SqlSettingsRepository,
    SqlTaxTableRepository,
    StaticTaxTableRepository,
    TaxTableRepository,
    seed_tax_tables,
)
from payroll_modules.settings.service import SettingsResolver

__all__ = [
    "CONTRIBUTION_PROGRAMS",
    "PayrollSetting",
    "SeedResult",
    "SettingsRepository",
    "SettingsResolver",
    "SqlSettingsRepository",
    "SqlTaxTableRepository",
    "StaticTaxTableRepository",
    "TaxTableRepository",
    "seed_tax_tables",
]
