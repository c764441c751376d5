"""
Statutory withholding-table configuration.

Tables are data, not code: they live as YAML under ``tables/``, are parsed
into frozen schema dataclasses, and are validated for contiguity before
use.

Usage:
    from payroll_config import load_default_tables
    tables = load_default_tables()
"""

from payroll_config.loader import load_default_tables, load_table_set, parse_table_set
from payroll_config.schema import BracketDef, PTKPEntry, TaxTableSet, TERBandDef
from payroll_config.validator import (
    TableValidationResult,
    ensure_contiguous,
    validate_table_set,
)

__all__ = [
    "BracketDef",
    "PTKPEntry",
    "TERBandDef",
    "TaxTableSet",
    "TableValidationResult",
    "ensure_contiguous",
    "load_default_tables",
    "load_table_set",
    "parse_table_set",
    "validate_table_set",
]
