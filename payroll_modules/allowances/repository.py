"""
Allowance repository (``payroll_modules.allowances.repository``).

``for_period`` returns the allowances an employee is paid in a period:
the employee's own allowances plus the company templates, filtered by
status and frequency against the period's cutoff window.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.logging_config import get_logger
from payroll_modules.allowances.models import Allowance
from payroll_modules.allowances.orm import AllowanceModel

logger = get_logger("modules.allowances.repository")


@runtime_checkable
class AllowanceRepository(Protocol):
    def for_period(
        self, company_id: UUID, employee_id: UUID, period: PayPeriod, cutoff_day: int
    ) -> list[Allowance]:
        ...


class SqlAllowanceRepository:
    def __init__(self, session: Session):
        self._session = session

    def for_period(
        self, company_id: UUID, employee_id: UUID, period: PayPeriod, cutoff_day: int
    ) -> list[Allowance]:
        rows = self._session.scalars(
            select(AllowanceModel)
            .where(
                AllowanceModel.company_id == company_id,
                or_(AllowanceModel.employee_id == employee_id, AllowanceModel.employee_id.is_(None)),
                AllowanceModel.status == "active",
            )
            .order_by(AllowanceModel.name, AllowanceModel.id)
        )
        allowances = [row.to_dto() for row in rows]
        window_start, window_end = period.cutoff_window(cutoff_day)
        applicable = [a for a in allowances if a.applies_to(window_start, window_end)]
        logger.debug(
            "allowances_selected",
            extra={
                "employee_id": str(employee_id),
                "period": str(period),
                "candidate_count": len(allowances),
                "applicable_count": len(applicable),
            },
        )
        return applicable

    def add(self, allowance: Allowance, created_by_id: UUID) -> Allowance:
        model = AllowanceModel.from_dto(allowance, created_by_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()
