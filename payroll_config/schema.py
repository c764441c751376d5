"""
Statutory tax-table schema.

Defines the reviewable source artifact for withholding tables.  YAML files
under ``payroll_config/tables/`` are parsed into these types by the loader
and checked by the validator before any engine sees them.

All amounts are ``Decimal``.  Ranges are ``[min_income, max_income)``;
``max_income=None`` marks the open-ended final row.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

# ---------------------------------------------------------------------------
# Rows
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PTKPEntry:
    """Annual non-taxable threshold for one marital/dependent status."""

    status: str
    amount: Decimal
    ter_category: str
    description: str = ""


@dataclass(frozen=True)
class BracketDef:
    """One progressive bracket over annual taxable income."""

    min_income: Decimal
    max_income: Decimal | None
    rate: Decimal

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_income:
            return False
        return self.max_income is None or amount < self.max_income


@dataclass(frozen=True)
class TERBandDef:
    """One monthly effective-rate band within a TER category."""

    category: str
    min_income: Decimal
    max_income: Decimal | None
    rate: Decimal

    def contains(self, amount: Decimal) -> bool:
        if amount < self.min_income:
            return False
        return self.max_income is None or amount < self.max_income


# ---------------------------------------------------------------------------
# Table set
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxTableSet:
    """A complete, versioned set of withholding tables."""

    name: str
    effective_from: date
    currency: str
    ptkp: tuple[PTKPEntry, ...]
    brackets: tuple[BracketDef, ...]
    ter_bands: tuple[TERBandDef, ...]

    def ptkp_for(self, status: str) -> PTKPEntry | None:
        for entry in self.ptkp:
            if entry.status == status:
                return entry
        return None

    def bands_for(self, category: str) -> tuple[TERBandDef, ...]:
        return tuple(b for b in self.ter_bands if b.category == category)

    @property
    def categories(self) -> tuple[str, ...]:
        return tuple(sorted({b.category for b in self.ter_bands}))
