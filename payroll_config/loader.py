"""
Tax-Table Loader (``payroll_config.loader``).

Responsibility
--------------
Loads statutory withholding tables from YAML and parses them into typed
``payroll_config.schema`` dataclasses.  The single public entry point for
the bundled tables is ``load_default_tables()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Consumed by the static tax
table repository and by ``seed_tax_tables``.  No dependency on engines or
modules.

Invariants enforced
-------------------
* Every amount and rate becomes a ``Decimal`` parsed from its string form;
  YAML floats never reach arithmetic.
* Rows are sorted by ``min_income`` before validation.
* A table set that fails ``validate_table_set`` is never returned.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Gaps, overlaps, bad rates  -> ``ConfigurationError``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import BracketDef, PTKPEntry, TaxTableSet, TERBandDef
from payroll_config.validator import validate_table_set
from payroll_kernel.exceptions import ConfigurationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.loader")

TABLES_DIR = Path(__file__).parent / "tables"
DEFAULT_TABLE_FILE = TABLES_DIR / "pph21_2024.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Postconditions:
        - Returns a ``dict`` (possibly empty if the YAML is empty).
    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Parse a YAML scalar into Decimal via its string form."""
    if value is None:
        raise ValueError("Expected a number, got null")
    return Decimal(str(value))


def _parse_max(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_ptkp(data: dict[str, Any]) -> PTKPEntry:
    return PTKPEntry(
        status=str(data["status"]),
        amount=parse_decimal(data["amount"]),
        ter_category=str(data["ter_category"]),
        description=data.get("description", ""),
    )


def parse_bracket(data: dict[str, Any]) -> BracketDef:
    return BracketDef(
        min_income=parse_decimal(data["min_income"]),
        max_income=_parse_max(data.get("max_income")),
        rate=parse_decimal(data["rate"]),
    )


def parse_ter_band(category: str, data: dict[str, Any]) -> TERBandDef:
    return TERBandDef(
        category=category,
        min_income=parse_decimal(data["min_income"]),
        max_income=_parse_max(data.get("max_income")),
        rate=parse_decimal(data["rate"]),
    )


def parse_table_set(data: dict[str, Any]) -> TaxTableSet:
    """
    Parse and validate a ``TaxTableSet`` from a dict.

    Preconditions:
        - ``data`` contains ``name``, ``effective_from``, ``ptkp``,
          ``progressive_brackets`` and ``ter_bands`` (a mapping of category
          to rows).
    Raises:
        KeyError: if required keys are missing.
        ConfigurationError: if the tables fail validation.
    """
    brackets = sorted(
        (parse_bracket(row) for row in data["progressive_brackets"]),
        key=lambda b: b.min_income,
    )
    bands: list[TERBandDef] = []
    for category, rows in data["ter_bands"].items():
        bands.extend(
            sorted((parse_ter_band(category, row) for row in rows), key=lambda b: b.min_income)
        )

    tables = TaxTableSet(
        name=data["name"],
        effective_from=parse_date(data["effective_from"]),
        currency=data.get("currency", "IDR"),
        ptkp=tuple(parse_ptkp(row) for row in data["ptkp"]),
        brackets=tuple(brackets),
        ter_bands=tuple(bands),
    )

    result = validate_table_set(tables)
    for warning in result.warnings:
        logger.warning("tax_table_warning", extra={"table_set": tables.name, "detail": warning})
    if not result.is_valid:
        logger.error(
            "tax_table_invalid",
            extra={"table_set": tables.name, "errors": result.errors},
        )
        raise ConfigurationError(
            f"Tax table set {tables.name!r} is invalid: " + "; ".join(result.errors)
        )
    return tables


def load_table_set(path: Path) -> TaxTableSet:
    """Load, parse and validate one YAML table file."""
    tables = parse_table_set(load_yaml_file(path))
    logger.info(
        "tax_tables_loaded",
        extra={
            "table_set": tables.name,
            "path": str(path),
            "ptkp_rows": len(tables.ptkp),
            "bracket_rows": len(tables.brackets),
            "ter_rows": len(tables.ter_bands),
        },
    )
    return tables


def load_default_tables() -> TaxTableSet:
    """Load the bundled statutory tables."""
    return load_table_set(DEFAULT_TABLE_FILE)
