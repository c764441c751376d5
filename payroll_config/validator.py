"""
Tax-Table Validator (``payroll_config.validator``).

Responsibility
--------------
Checks withholding tables for structural integrity before they are used
by the tax engine, whether they come from YAML or from the database.

Architecture position
---------------------
**Config layer**.  Depends only on ``payroll_config.schema`` and the
kernel exception types.

Invariants enforced
-------------------
* Progressive brackets start at zero, are ordered, contiguous (each
  ``min_income`` equals the previous ``max_income``), never overlap, and
  end with exactly one open-ended row.
* The same holds for every TER category independently.
* Rates lie in ``[0, 1]``.
* PTKP statuses are unique and every referenced TER category has bands.

Failure modes
-------------
* ``validate_table_set`` collects every problem into a
  ``TableValidationResult``.
* ``ensure_contiguous`` raises ``TaxTableGapError`` on the first problem;
  repositories call it on every load.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from payroll_config.schema import TaxTableSet
from payroll_kernel.exceptions import TaxTableGapError

ZERO = Decimal("0")
ONE = Decimal("1")


class _RangeRow(Protocol):
    min_income: Decimal
    max_income: Decimal | None
    rate: Decimal


@dataclass
class TableValidationResult:
    """Collected validation findings for a table set."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def range_problems(rows: Sequence[_RangeRow], table: str) -> list[str]:
    """Return every contiguity/ordering problem in ``rows`` (already sorted)."""
    problems: list[str] = []
    if not rows:
        return [f"{table}: table is empty"]

    if rows[0].min_income != ZERO:
        problems.append(f"{table}: first row starts at {rows[0].min_income}, expected 0")

    for i, row in enumerate(rows):
        if not ZERO <= row.rate <= ONE:
            problems.append(f"{table}: row {i} rate {row.rate} outside [0, 1]")
        if row.max_income is not None and row.max_income <= row.min_income:
            problems.append(
                f"{table}: row {i} is empty or inverted "
                f"[{row.min_income}, {row.max_income})"
            )
        if i == 0:
            continue
        prev = rows[i - 1]
        if prev.max_income is None:
            problems.append(f"{table}: open-ended row {i - 1} is not last")
        elif row.min_income > prev.max_income:
            problems.append(f"{table}: gap between {prev.max_income} and {row.min_income}")
        elif row.min_income < prev.max_income:
            problems.append(f"{table}: overlap at {row.min_income}")
        if row.rate < prev.rate:
            problems.append(f"{table}: rate decreases at row {i}")

    if rows[-1].max_income is not None:
        problems.append(f"{table}: missing open-ended final row above {rows[-1].max_income}")
    return problems


def ensure_contiguous(rows: Sequence[_RangeRow], table: str) -> None:
    """
    Raise on the first structural problem in ``rows``.

    Raises:
        TaxTableGapError: gap, overlap, bad rate, or missing open final row.
    """
    problems = range_problems(rows, table)
    if problems:
        raise TaxTableGapError(table, None, problems[0])


def validate_table_set(tables: TaxTableSet) -> TableValidationResult:
    """Validate a complete table set and collect every finding."""
    result = TableValidationResult()

    seen: set[str] = set()
    for entry in tables.ptkp:
        if entry.status in seen:
            result.errors.append(f"ptkp: duplicate status {entry.status}")
        seen.add(entry.status)
        if entry.amount < ZERO:
            result.errors.append(f"ptkp: negative amount for {entry.status}")

    result.errors.extend(range_problems(tables.brackets, "progressive_brackets"))

    categories = set(tables.categories)
    for category in sorted(categories):
        result.errors.extend(range_problems(tables.bands_for(category), f"ter_bands.{category}"))

    for entry in tables.ptkp:
        if entry.ter_category not in categories:
            result.errors.append(
                f"ptkp: status {entry.status} maps to {entry.ter_category} which has no bands"
            )

    unused = categories - {e.ter_category for e in tables.ptkp}
    for category in sorted(unused):
        result.warnings.append(f"ter_bands: category {category} is not referenced by any PTKP")

    return result
