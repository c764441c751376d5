"""
Payroll adjustment repository (``payroll_modules.adjustments.repository``).

DTO in, DTO out.  ``get_for_update`` takes a row lock on dialects that
support it so concurrent approvals of the same loan serialize.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from payroll_modules.adjustments.models import PayrollAdjustment
from payroll_modules.adjustments.orm import PayrollAdjustmentModel


@runtime_checkable
class AdjustmentRepository(Protocol):
    def get(self, adjustment_id: UUID) -> PayrollAdjustment | None:
        ...

    def get_for_update(self, adjustment_id: UUID) -> PayrollAdjustment | None:
        ...

    def list_for_employee(self, employee_id: UUID) -> list[PayrollAdjustment]:
        ...

    def add(self, adjustment: PayrollAdjustment, created_by_id: UUID) -> PayrollAdjustment:
        ...

    def update(self, adjustment: PayrollAdjustment, actor_id: UUID) -> PayrollAdjustment:
        ...

    def delete(self, adjustment_id: UUID) -> None:
        ...


class SqlAdjustmentRepository:
    def __init__(self, session: Session):
        self._session = session

    def get(self, adjustment_id: UUID) -> PayrollAdjustment | None:
        model = self._session.get(PayrollAdjustmentModel, adjustment_id)
        return model.to_dto() if model is not None else None

    def get_for_update(self, adjustment_id: UUID) -> PayrollAdjustment | None:
        model = self._session.scalars(
            select(PayrollAdjustmentModel)
            .where(PayrollAdjustmentModel.id == adjustment_id)
            .with_for_update()
        ).one_or_none()
        return model.to_dto() if model is not None else None

    def list_for_employee(self, employee_id: UUID) -> list[PayrollAdjustment]:
        rows = self._session.scalars(
            select(PayrollAdjustmentModel)
            .where(PayrollAdjustmentModel.employee_id == employee_id)
            .order_by(PayrollAdjustmentModel.effective_date, PayrollAdjustmentModel.id)
        )
        return [row.to_dto() for row in rows]

    def add(self, adjustment: PayrollAdjustment, created_by_id: UUID) -> PayrollAdjustment:
        model = PayrollAdjustmentModel.from_dto(adjustment, created_by_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update(self, adjustment: PayrollAdjustment, actor_id: UUID) -> PayrollAdjustment:
        model = self._session.get(PayrollAdjustmentModel, adjustment.id)
        if model is None:
            raise ValueError(f"Adjustment {adjustment.id} does not exist")
        model.apply_dto(adjustment)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def delete(self, adjustment_id: UUID) -> None:
        model = self._session.get(PayrollAdjustmentModel, adjustment_id)
        if model is not None:
            self._session.delete(model)
            self._session.flush()
