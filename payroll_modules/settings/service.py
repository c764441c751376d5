"""
Settings Resolver (``payroll_modules.settings.service``).

Responsibility
--------------
Return the payroll configuration for a company, creating it lazily from
the statutory defaults the first time a company is seen.  Also updates and
resets a company's settings.

Architecture position
---------------------
**Modules layer**.  Composes ``SettingsRepository`` (persistence) and
``CompanyDirectory`` (existence check).  The payroll service calls
``get_or_create`` inside its own transaction and relies on the resolver
never committing there.

Invariants enforced
-------------------
* Exactly one setting row per company (unique constraint on company_id).
* A setting is never created for a company the directory does not know.
* Every persisted setting passes ``PayrollSetting.__post_init__``.

Failure modes
-------------
* Unknown company  -> ``CompanyNotFoundError``.
* Invalid field value in ``update``  -> ``ValueError``; session rolled back.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.exceptions import CompanyNotFoundError
from payroll_kernel.logging_config import get_logger
from payroll_modules.employees.directory import CompanyDirectory, SqlEmployeeDirectory
from payroll_modules.settings.config import PayrollSetting
from payroll_modules.settings.repositories import (
    SYSTEM_ACTOR_ID,
    SettingsRepository,
    SqlSettingsRepository,
)

logger = get_logger("modules.settings.service")


class SettingsResolver:
    """
    Load or materialize a company's PayrollSetting.

    ``get_or_create`` flushes but does not commit, so it can run inside a
    caller's transaction.  ``update`` and ``reset_to_default`` own their
    transaction boundary.
    """

    def __init__(
        self,
        session: Session,
        companies: CompanyDirectory | None = None,
        repository: SettingsRepository | None = None,
        clock: Clock | None = None,
    ):
        self._session = session
        self._companies = companies or SqlEmployeeDirectory(session)
        self._repository = repository or SqlSettingsRepository(session)
        self._clock = clock or SystemClock()

    def get_or_create(self, company_id: UUID, actor_id: UUID = SYSTEM_ACTOR_ID) -> PayrollSetting:
        """
        Return the company's settings, creating statutory defaults if absent.

        Raises:
            CompanyNotFoundError: the company does not exist.
        """
        existing = self._repository.get(company_id)
        if existing is not None:
            return existing

        if not self._companies.company_exists(company_id):
            logger.warning("settings_company_not_found", extra={"company_id": str(company_id)})
            raise CompanyNotFoundError(str(company_id))

        setting = self._repository.save(PayrollSetting.with_defaults(company_id), actor_id)
        logger.info(
            "settings_created_from_defaults",
            extra={"company_id": str(company_id), "actor_id": str(actor_id)},
        )
        return setting

    def update(self, company_id: UUID, changes: dict[str, Any], actor_id: UUID) -> PayrollSetting:
        """
        Apply ``changes`` to the company's settings and commit.

        ``changes`` is validated through ``PayrollSetting.from_dict``; an
        unknown key or an out-of-range value raises ValueError.
        """
        try:
            current = self.get_or_create(company_id, actor_id)
            merged = current.to_dict()
            merged.update(changes)
            merged["company_id"] = company_id
            updated = self._repository.save(PayrollSetting.from_dict(merged), actor_id)
            self._session.commit()
            logger.info(
                "settings_updated",
                extra={
                    "company_id": str(company_id),
                    "actor_id": str(actor_id),
                    "fields": sorted(changes),
                    "updated_at": self._clock.now().isoformat(),
                },
            )
            return updated
        except Exception:
            self._session.rollback()
            raise

    def reset_to_default(self, company_id: UUID, actor_id: UUID) -> PayrollSetting:
        """Overwrite the company's settings with the statutory defaults and commit."""
        try:
            self.get_or_create(company_id, actor_id)
            defaults = PayrollSetting.with_defaults(company_id)
            setting = self._repository.save(defaults, actor_id)
            self._session.commit()
            logger.info(
                "settings_reset_to_default",
                extra={"company_id": str(company_id), "actor_id": str(actor_id)},
            )
            return setting
        except Exception:
            self._session.rollback()
            raise
