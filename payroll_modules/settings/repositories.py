"""
Settings and Tax Table Repositories (``payroll_modules.settings.repositories``).

Contract:
    SettingsRepository   -- load/save one PayrollSetting per company.
    TaxTableRepository   -- read-only PTKP, bracket and TER band lookup.

Implementations:
    SqlSettingsRepository, SqlTaxTableRepository  -- SQLAlchemy session.
    StaticTaxTableRepository                      -- an in-memory TaxTableSet
                                                     (YAML-backed, for tests
                                                     and previews).

Tables loaded from the database are checked for contiguity on every read;
a gap or overlap raises TaxTableGapError rather than silently producing a
zero tax.  ``seed_tax_tables`` copies a TaxTableSet into the database,
skipping rows that already exist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_config.schema import BracketDef, PTKPEntry, TaxTableSet, TERBandDef
from payroll_config.validator import ensure_contiguous
from payroll_kernel.logging_config import get_logger
from payroll_modules.settings.config import PayrollSetting
from payroll_modules.settings.orm import (
    PayrollSettingModel,
    PTKPModel,
    TaxBracketModel,
    TERBandModel,
)

logger = get_logger("modules.settings.repositories")

SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


# =========================================================================
# Protocols
# =========================================================================


@runtime_checkable
class SettingsRepository(Protocol):
    def get(self, company_id: UUID) -> PayrollSetting | None:
        ...

    def save(self, setting: PayrollSetting, actor_id: UUID) -> PayrollSetting:
        """Insert or update the company's setting row."""
        ...


@runtime_checkable
class TaxTableRepository(Protocol):
    """Read-only view over the statutory tables."""

    def ptkp(self, status: str) -> PTKPEntry | None:
        ...

    def brackets(self, company_id: UUID | None = None) -> tuple[BracketDef, ...]:
        """Ascending brackets; the company-scoped set wins when it exists."""
        ...

    def ter_bands(self, category: str) -> tuple[TERBandDef, ...]:
        """Ascending bands for one TER category (empty if unknown)."""
        ...


# =========================================================================
# Settings
# =========================================================================


class SqlSettingsRepository:
    def __init__(self, session: Session):
        self._session = session

    def _row(self, company_id: UUID) -> PayrollSettingModel | None:
        return self._session.scalars(
            select(PayrollSettingModel).where(PayrollSettingModel.company_id == company_id)
        ).one_or_none()

    def get(self, company_id: UUID) -> PayrollSetting | None:
        row = self._row(company_id)
        return row.to_dto() if row is not None else None

    def save(self, setting: PayrollSetting, actor_id: UUID) -> PayrollSetting:
        if setting.company_id is None:
            raise ValueError("Cannot save a PayrollSetting without company_id")
        row = self._row(setting.company_id)
        if row is None:
            row = PayrollSettingModel.from_dto(setting, created_by_id=actor_id)
            self._session.add(row)
        else:
            row.apply_dto(setting)
            row.updated_by_id = actor_id
        self._session.flush()
        return row.to_dto()


# =========================================================================
# Tax tables
# =========================================================================


class SqlTaxTableRepository:
    def __init__(self, session: Session):
        self._session = session

    def ptkp(self, status: str) -> PTKPEntry | None:
        row = self._session.scalars(
            select(PTKPModel).where(PTKPModel.status == status)
        ).one_or_none()
        return row.to_dto() if row is not None else None

    def brackets(self, company_id: UUID | None = None) -> tuple[BracketDef, ...]:
        rows: list[TaxBracketModel] = []
        if company_id is not None:
            rows = list(self._session.scalars(
                select(TaxBracketModel)
                .where(TaxBracketModel.company_id == company_id)
                .order_by(TaxBracketModel.min_income)
            ))
        scope = "company" if rows else "global"
        if not rows:
            rows = list(self._session.scalars(
                select(TaxBracketModel)
                .where(TaxBracketModel.company_id.is_(None))
                .order_by(TaxBracketModel.min_income)
            ))
        brackets = tuple(row.to_dto() for row in rows)
        ensure_contiguous(brackets, f"progressive_brackets[{scope}]")
        return brackets

    def ter_bands(self, category: str) -> tuple[TERBandDef, ...]:
        rows = self._session.scalars(
            select(TERBandModel)
            .where(TERBandModel.category == category)
            .order_by(TERBandModel.min_income)
        )
        bands = tuple(row.to_dto() for row in rows)
        if bands:
            ensure_contiguous(bands, f"ter_bands.{category}")
        return bands


class StaticTaxTableRepository:
    """TaxTableRepository over an already-validated TaxTableSet."""

    def __init__(self, tables: TaxTableSet):
        self._tables = tables

    def ptkp(self, status: str) -> PTKPEntry | None:
        return self._tables.ptkp_for(status)

    def brackets(self, company_id: UUID | None = None) -> tuple[BracketDef, ...]:
        return tuple(sorted(self._tables.brackets, key=lambda b: b.min_income))

    def ter_bands(self, category: str) -> tuple[TERBandDef, ...]:
        return tuple(sorted(self._tables.bands_for(category), key=lambda b: b.min_income))


# =========================================================================
# Seeding
# =========================================================================


@dataclass(frozen=True)
class SeedResult:
    ptkp_inserted: int
    brackets_inserted: int
    ter_bands_inserted: int
    skipped: int

    @property
    def total_inserted(self) -> int:
        return self.ptkp_inserted + self.brackets_inserted + self.ter_bands_inserted


def seed_tax_tables(
    session: Session,
    tables: TaxTableSet,
    created_by_id: UUID = SYSTEM_ACTOR_ID,
    company_id: UUID | None = None,
) -> SeedResult:
    """
    Load ``tables`` into the database.

    Rows that already exist (same PTKP status, same bracket lower bound in
    the same scope, same band category and lower bound) are skipped, so
    seeding is safe to repeat.  Brackets are written with ``company_id``
    scope when one is given.  Flushes but does not commit.
    """
    existing_ptkp = set(session.scalars(select(PTKPModel.status)))
    bracket_query = select(TaxBracketModel.min_income).where(
        TaxBracketModel.company_id == company_id
        if company_id is not None
        else TaxBracketModel.company_id.is_(None)
    )
    existing_brackets = set(session.scalars(bracket_query))
    existing_bands = set(session.execute(select(TERBandModel.category, TERBandModel.min_income)).tuples())

    ptkp_count = bracket_count = band_count = skipped = 0

    for entry in tables.ptkp:
        if entry.status in existing_ptkp:
            skipped += 1
            continue
        session.add(PTKPModel.from_dto(entry, created_by_id))
        ptkp_count += 1

    for bracket in tables.brackets:
        if bracket.min_income in existing_brackets:
            skipped += 1
            continue
        session.add(TaxBracketModel.from_dto(bracket, created_by_id, company_id=company_id))
        bracket_count += 1

    for band in tables.ter_bands:
        if (band.category, band.min_income) in existing_bands:
            skipped += 1
            continue
        session.add(TERBandModel.from_dto(band, created_by_id))
        band_count += 1

    session.flush()
    result = SeedResult(ptkp_count, bracket_count, band_count, skipped)
    logger.info(
        "tax_tables_seeded",
        extra={
            "table_set": tables.name,
            "company_id": str(company_id) if company_id else None,
            "ptkp_inserted": ptkp_count,
            "brackets_inserted": bracket_count,
            "ter_bands_inserted": band_count,
            "skipped": skipped,
        },
    )
    return result
