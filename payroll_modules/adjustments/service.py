"""
Payroll Adjustment Service (``payroll_modules.adjustments.service``).

Responsibility
--------------
Create, approve, reject, edit and delete payroll adjustments, and amortize
installment loans and advances.  Selects the adjustments charged to an
employee's payroll for a period.

Architecture position
---------------------
**Modules layer**.  Delegates installment math to
``payroll_engines.amortization`` and recurrence to
``payroll_engines.schedule``; lifecycle rules are declared in
``adjustments.workflows``.

Invariants enforced
-------------------
* Public methods own the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on any exception).
* ``record_installment`` and ``settle_charged`` never commit; the payroll
  service calls them inside the approval transaction so the record status
  and the loan state land together.
* A loan's installment count never exceeds ``total_installments``; a
  further approval raises ``AlreadyAmortizedError``.
* Non-loan adjustments leave ``pending`` exactly once.

Failure modes
-------------
* Unknown id  -> ``AdjustmentNotFoundError``.
* Action not allowed from the current status  -> ``InvalidTransitionError``.
* Rejection without a reason  -> ``RejectionReasonRequiredError``.
* Edit/delete of a processed adjustment or a loan with processed
  installments  -> ``AdjustmentLockedError``.

Audit relevance
---------------
Every state change logs the adjustment id, actor and resulting status;
installment processing logs the installment number and remaining balance.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from payroll_engines.amortization import apply_installment, plan_loan
from payroll_engines.schedule import RecurringFrequency
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.exceptions import (
    AdjustmentLockedError,
    AdjustmentNotFoundError,
    AlreadyAmortizedError,
    EmployeeNotFoundError,
    PayrollError,
    PayrollValidationError,
)
from payroll_kernel.logging_config import get_logger
from payroll_modules._transition_helpers import resolve_transition
from payroll_modules.adjustments.models import (
    EARNING_TYPES,
    LOAN_TYPES,
    AdjustmentCharge,
    AdjustmentStatus,
    AdjustmentType,
    BulkFailure,
    BulkResult,
    PayrollAdjustment,
)
from payroll_modules.adjustments.repository import AdjustmentRepository, SqlAdjustmentRepository
from payroll_modules.adjustments.workflows import ADJUSTMENT_WORKFLOW, LOAN_ADJUSTMENT_WORKFLOW
from payroll_modules.employees.directory import EmployeeDirectory, SqlEmployeeDirectory

logger = get_logger("modules.adjustments.service")

_EDITABLE_FIELDS = frozenset({
    "amount",
    "description",
    "effective_date",
    "pay_period",
    "is_taxable",
    "recurring_end_date",
    "reference_number",
})


class AdjustmentService:
    """
    Adjustment lifecycle and loan amortization.

    Contract
    --------
    * ``create_adjustment`` returns the adjustment in ``pending``.
    * ``approve_adjustment`` moves ``pending -> approved``; for installment
      loans it processes no installment.
    * ``record_installment`` processes exactly one installment of an
      approved loan.
    * ``adjustments_for_payroll`` is read-only.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        employees: EmployeeDirectory | None = None,
        repository: AdjustmentRepository | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._employees = employees or SqlEmployeeDirectory(session)
        self._repository = repository or SqlAdjustmentRepository(session)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, adjustment_id: UUID) -> PayrollAdjustment:
        adjustment = self._repository.get(adjustment_id)
        if adjustment is None:
            raise AdjustmentNotFoundError(str(adjustment_id))
        return adjustment

    def _get_for_update(self, adjustment_id: UUID) -> PayrollAdjustment:
        adjustment = self._repository.get_for_update(adjustment_id)
        if adjustment is None:
            raise AdjustmentNotFoundError(str(adjustment_id))
        return adjustment

    def adjustments_for_payroll(self, employee_id: UUID, period: PayPeriod) -> list[AdjustmentCharge]:
        """
        Adjustments charged to the employee's payroll for ``period``.

        Ordered by effective date.  Installment loans report the installment
        number the charge will become once the payroll is approved.
        """
        charges: list[AdjustmentCharge] = []
        for adjustment in self._repository.list_for_employee(employee_id):
            amount = adjustment.charge_for(period)
            if amount is None:
                continue
            charges.append(
                AdjustmentCharge(
                    adjustment_id=adjustment.id,
                    adjustment_type=adjustment.adjustment_type,
                    amount=amount,
                    description=adjustment.description,
                    is_taxable=adjustment.is_taxable,
                    is_recurring=adjustment.is_recurring,
                    installment_number=(
                        adjustment.current_installment + 1
                        if adjustment.has_installment_plan
                        else None
                    ),
                )
            )
        logger.debug(
            "adjustments_selected_for_payroll",
            extra={
                "employee_id": str(employee_id),
                "period": str(period),
                "charge_count": len(charges),
            },
        )
        return charges

    # =========================================================================
    # Creation
    # =========================================================================

    def _build(
        self,
        employee_id: UUID,
        adjustment_type: AdjustmentType | str,
        amount: Decimal | None,
        effective_date: date,
        *,
        pay_period: PayPeriod | None = None,
        description: str = "",
        is_taxable: bool | None = None,
        is_recurring: bool = False,
        recurring_frequency: RecurringFrequency | str | None = None,
        recurring_end_date: date | None = None,
        reference_number: str | None = None,
        total_loan_amount: Decimal | None = None,
        installment_amount: Decimal | None = None,
    ) -> PayrollAdjustment:
        employee = self._employees.get_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id))

        kind = AdjustmentType(adjustment_type)
        frequency = RecurringFrequency(recurring_frequency) if recurring_frequency else None
        taxable = (kind in EARNING_TYPES) if is_taxable is None else is_taxable

        if kind in LOAN_TYPES and total_loan_amount is not None and installment_amount is not None:
            plan = plan_loan(total_loan_amount, installment_amount, effective_date)
            return PayrollAdjustment(
                id=uuid4(),
                company_id=employee.company_id,
                employee_id=employee_id,
                adjustment_type=kind,
                amount=plan.installment_amount,
                effective_date=effective_date,
                description=description,
                is_taxable=False,
                is_recurring=True,
                recurring_frequency=RecurringFrequency.MONTHLY,
                recurring_end_date=plan.recurring_end_date,
                reference_number=reference_number,
                total_loan_amount=plan.total_loan_amount,
                installment_amount=plan.installment_amount,
                total_installments=plan.total_installments,
                current_installment=0,
                remaining_balance=plan.total_loan_amount,
            )

        if amount is None or amount <= 0:
            raise PayrollValidationError(f"Adjustment amount must be positive, got {amount}")
        if is_recurring and recurring_end_date is not None and recurring_end_date < effective_date:
            raise PayrollValidationError("recurring_end_date precedes effective_date")

        return PayrollAdjustment(
            id=uuid4(),
            company_id=employee.company_id,
            employee_id=employee_id,
            adjustment_type=kind,
            amount=amount,
            effective_date=effective_date,
            pay_period=None if is_recurring else (pay_period or PayPeriod.of(effective_date)),
            description=description,
            is_taxable=taxable,
            is_recurring=is_recurring,
            recurring_frequency=(frequency or RecurringFrequency.MONTHLY) if is_recurring else None,
            recurring_end_date=recurring_end_date if is_recurring else None,
            reference_number=reference_number,
        )

    def create_adjustment(
        self,
        employee_id: UUID,
        adjustment_type: AdjustmentType | str,
        amount: Decimal | None,
        effective_date: date,
        actor_id: UUID,
        **options: Any,
    ) -> PayrollAdjustment:
        """
        Create a pending adjustment.

        Loans and advances given both ``total_loan_amount`` and
        ``installment_amount`` get an installment plan:
        ``total_installments = ceil(total / installment)``, recurring
        monthly, ``amount = installment_amount``.

        Raises:
            EmployeeNotFoundError: unknown employee.
            PayrollValidationError: non-positive amount or inverted window.
            ValueError: non-positive loan amounts.
        """
        try:
            adjustment = self._repository.add(
                self._build(employee_id, adjustment_type, amount, effective_date, **options),
                actor_id,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "adjustment_created",
            extra={
                "adjustment_id": str(adjustment.id),
                "employee_id": str(employee_id),
                "adjustment_type": adjustment.adjustment_type.value,
                "amount": str(adjustment.amount),
                "total_installments": adjustment.total_installments,
                "actor_id": str(actor_id),
            },
        )
        return adjustment

    def bulk_create(self, items: Sequence[Mapping[str, Any]], actor_id: UUID) -> BulkResult:
        """
        Create many adjustments; each item is isolated in a SAVEPOINT.

        Items are keyword mappings for ``create_adjustment`` (without
        ``actor_id``).  A failing item is reported and skipped.
        """
        succeeded: list[PayrollAdjustment] = []
        failures: list[BulkFailure] = []
        try:
            for index, item in enumerate(items):
                savepoint = self._session.begin_nested()
                try:
                    fields = dict(item)
                    adjustment = self._repository.add(
                        self._build(
                            fields.pop("employee_id"),
                            fields.pop("adjustment_type"),
                            fields.pop("amount", None),
                            fields.pop("effective_date"),
                            **fields,
                        ),
                        actor_id,
                    )
                    savepoint.commit()
                    succeeded.append(adjustment)
                except (PayrollError, ValueError, KeyError, TypeError) as exc:
                    savepoint.rollback()
                    code = getattr(exc, "code", type(exc).__name__)
                    failures.append(BulkFailure(index=index, code=code, message=str(exc)))
                    logger.warning(
                        "bulk_create_item_failed",
                        extra={"index": index, "error_code": code, "error_msg": str(exc)},
                    )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "bulk_create_completed",
            extra={"succeeded": len(succeeded), "failed": len(failures), "actor_id": str(actor_id)},
        )
        return BulkResult(succeeded=tuple(succeeded), failures=tuple(failures))

    # =========================================================================
    # Approval / rejection
    # =========================================================================

    def record_installment(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        """
        Process one installment of an approved loan/advance.  Does not commit.

        Called by payroll approval for every installment the record charged.

        Postconditions:
            - current_installment incremented; remaining_balance reduced.
            - status ``approved``, or ``processed`` once fully paid.
        Raises:
            AlreadyAmortizedError: every installment was already processed.
        """
        adjustment = self._get_for_update(adjustment_id)
        if adjustment.is_fully_paid:
            raise AlreadyAmortizedError(str(adjustment.id), adjustment.total_installments)

        transition = resolve_transition(
            LOAN_ADJUSTMENT_WORKFLOW,
            "PayrollAdjustment",
            adjustment.id,
            current_state=adjustment.status.value,
            action="record_installment",
        )
        state = apply_installment(adjustment.amortization_state(), str(adjustment.id))
        status = AdjustmentStatus(transition.to_state)
        processed_at = None
        if state.is_fully_paid:
            settle = resolve_transition(
                LOAN_ADJUSTMENT_WORKFLOW,
                "PayrollAdjustment",
                adjustment.id,
                current_state=transition.to_state,
                action="settle",
            )
            status = AdjustmentStatus(settle.to_state)
            processed_at = self._clock.now()

        updated = self._repository.update(
            replace(
                adjustment,
                current_installment=state.current_installment,
                remaining_balance=state.remaining_balance,
                status=status,
                processed_at=processed_at,
            ),
            actor_id,
        )
        logger.info(
            "loan_installment_recorded",
            extra={
                "adjustment_id": str(adjustment.id),
                "current_installment": state.current_installment,
                "total_installments": state.total_installments,
                "remaining_balance": str(state.remaining_balance),
                "status": status.value,
                "actor_id": str(actor_id),
            },
        )
        return updated

    def _approve_one(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        adjustment = self._get_for_update(adjustment_id)
        if adjustment.is_fully_paid:
            raise AlreadyAmortizedError(str(adjustment.id), adjustment.total_installments)

        workflow = LOAN_ADJUSTMENT_WORKFLOW if adjustment.has_installment_plan else ADJUSTMENT_WORKFLOW
        transition = resolve_transition(
            workflow,
            "PayrollAdjustment",
            adjustment.id,
            current_state=adjustment.status.value,
            action="approve",
        )
        return self._repository.update(
            replace(
                adjustment,
                status=AdjustmentStatus(transition.to_state),
                approved_by_id=actor_id,
                approved_at=self._clock.now(),
            ),
            actor_id,
        )

    def approve_adjustment(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        """
        Approve a pending adjustment.

        Approving an installment loan processes no installment; its
        installments are processed by the payroll approvals that charge it.

        Raises:
            AdjustmentNotFoundError, InvalidTransitionError, AlreadyAmortizedError.
        """
        try:
            adjustment = self._approve_one(adjustment_id, actor_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "adjustment_approved",
            extra={
                "adjustment_id": str(adjustment_id),
                "status": adjustment.status.value,
                "actor_id": str(actor_id),
            },
        )
        return adjustment

    def bulk_approve(self, adjustment_ids: Sequence[UUID], actor_id: UUID) -> BulkResult:
        """Approve many adjustments; each is isolated in a SAVEPOINT."""
        succeeded: list[PayrollAdjustment] = []
        failures: list[BulkFailure] = []
        try:
            for index, adjustment_id in enumerate(adjustment_ids):
                savepoint = self._session.begin_nested()
                try:
                    succeeded.append(self._approve_one(adjustment_id, actor_id))
                    savepoint.commit()
                except PayrollError as exc:
                    savepoint.rollback()
                    failures.append(
                        BulkFailure(
                            index=index,
                            code=exc.code,
                            message=str(exc),
                            adjustment_id=adjustment_id,
                        )
                    )
                    logger.warning(
                        "bulk_approve_item_failed",
                        extra={
                            "adjustment_id": str(adjustment_id),
                            "error_code": exc.code,
                            "error_msg": str(exc),
                        },
                    )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "bulk_approve_completed",
            extra={"succeeded": len(succeeded), "failed": len(failures), "actor_id": str(actor_id)},
        )
        return BulkResult(succeeded=tuple(succeeded), failures=tuple(failures))

    def reject_adjustment(self, adjustment_id: UUID, reason: str | None, actor_id: UUID) -> PayrollAdjustment:
        """
        Reject a pending adjustment.

        Raises:
            RejectionReasonRequiredError: empty reason.
            InvalidTransitionError: the adjustment is not pending.
        """
        try:
            adjustment = self._get_for_update(adjustment_id)
            workflow = LOAN_ADJUSTMENT_WORKFLOW if adjustment.has_installment_plan else ADJUSTMENT_WORKFLOW
            transition = resolve_transition(
                workflow,
                "PayrollAdjustment",
                adjustment.id,
                current_state=adjustment.status.value,
                action="reject",
                reason=reason,
            )
            rejected = self._repository.update(
                replace(
                    adjustment,
                    status=AdjustmentStatus(transition.to_state),
                    rejection_reason=reason.strip(),
                ),
                actor_id,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "adjustment_rejected",
            extra={"adjustment_id": str(adjustment_id), "reason": rejected.rejection_reason, "actor_id": str(actor_id)},
        )
        return rejected

    def cancel_adjustment(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        """Withdraw a pending or approved adjustment; it is no longer charged."""
        try:
            adjustment = self._get_for_update(adjustment_id)
            workflow = LOAN_ADJUSTMENT_WORKFLOW if adjustment.has_installment_plan else ADJUSTMENT_WORKFLOW
            transition = resolve_transition(
                workflow,
                "PayrollAdjustment",
                adjustment.id,
                current_state=adjustment.status.value,
                action="cancel",
            )
            cancelled = self._repository.update(
                replace(adjustment, status=AdjustmentStatus(transition.to_state)),
                actor_id,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("adjustment_cancelled", extra={"adjustment_id": str(adjustment_id), "actor_id": str(actor_id)})
        return cancelled

    # =========================================================================
    # Processing
    # =========================================================================

    def settle_charged(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        """
        Mark an approved one-off adjustment processed.  Does not commit.

        Recurring adjustments stay approved; they are charged again in later
        periods.
        """
        adjustment = self._get_for_update(adjustment_id)
        if adjustment.is_recurring:
            return adjustment
        transition = resolve_transition(
            ADJUSTMENT_WORKFLOW,
            "PayrollAdjustment",
            adjustment.id,
            current_state=adjustment.status.value,
            action="process",
        )
        return self._repository.update(
            replace(
                adjustment,
                status=AdjustmentStatus(transition.to_state),
                processed_at=self._clock.now(),
            ),
            actor_id,
        )

    def mark_processed(self, adjustment_id: UUID, actor_id: UUID) -> PayrollAdjustment:
        """Mark an approved non-loan adjustment processed and commit."""
        try:
            adjustment = self._get_for_update(adjustment_id)
            if adjustment.has_installment_plan:
                raise PayrollValidationError(
                    f"Adjustment {adjustment_id} is an installment loan; "
                    "it is processed by approving its installments"
                )
            transition = resolve_transition(
                ADJUSTMENT_WORKFLOW,
                "PayrollAdjustment",
                adjustment.id,
                current_state=adjustment.status.value,
                action="process",
            )
            processed = self._repository.update(
                replace(
                    adjustment,
                    status=AdjustmentStatus(transition.to_state),
                    processed_at=self._clock.now(),
                ),
                actor_id,
            )
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("adjustment_processed", extra={"adjustment_id": str(adjustment_id), "actor_id": str(actor_id)})
        return processed

    # =========================================================================
    # Edit / delete
    # =========================================================================

    def _ensure_editable(self, adjustment: PayrollAdjustment) -> None:
        if adjustment.status == AdjustmentStatus.PROCESSED or adjustment.current_installment > 0:
            logger.warning(
                "adjustment_locked",
                extra={
                    "adjustment_id": str(adjustment.id),
                    "status": adjustment.status.value,
                    "current_installment": adjustment.current_installment,
                },
            )
            raise AdjustmentLockedError(str(adjustment.id), adjustment.status.value)

    def update_adjustment(self, adjustment_id: UUID, changes: Mapping[str, Any], actor_id: UUID) -> PayrollAdjustment:
        """
        Edit descriptive and amount fields.

        Raises:
            AdjustmentLockedError: processed, or installments already processed.
            PayrollValidationError: unknown or non-editable field, a
                non-positive amount, or an installment loan's end date.
        """
        try:
            adjustment = self._get_for_update(adjustment_id)
            self._ensure_editable(adjustment)
            unknown = set(changes) - _EDITABLE_FIELDS
            if unknown:
                raise PayrollValidationError(f"Fields not editable: {sorted(unknown)}")
            if adjustment.has_installment_plan and "recurring_end_date" in changes:
                raise PayrollValidationError(
                    "recurring_end_date of an installment loan follows its plan; "
                    "edit amount or effective_date instead"
                )
            if "amount" in changes and (changes["amount"] is None or changes["amount"] <= 0):
                raise PayrollValidationError(f"Adjustment amount must be positive, got {changes['amount']}")

            values = dict(changes)
            if adjustment.has_installment_plan and ("amount" in values or "effective_date" in values):
                plan = plan_loan(
                    adjustment.total_loan_amount,
                    values.get("amount", adjustment.installment_amount),
                    values.get("effective_date", adjustment.effective_date),
                )
                values.update(
                    installment_amount=plan.installment_amount,
                    total_installments=plan.total_installments,
                    recurring_end_date=plan.recurring_end_date,
                )
            updated = self._repository.update(replace(adjustment, **values), actor_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "adjustment_updated",
            extra={"adjustment_id": str(adjustment_id), "fields": sorted(changes), "actor_id": str(actor_id)},
        )
        return updated

    def delete_adjustment(self, adjustment_id: UUID, actor_id: UUID) -> None:
        """
        Delete an adjustment.

        Raises:
            AdjustmentLockedError: processed, or installments already processed.
        """
        try:
            adjustment = self._get_for_update(adjustment_id)
            self._ensure_editable(adjustment)
            self._repository.delete(adjustment_id)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info("adjustment_deleted", extra={"adjustment_id": str(adjustment_id), "actor_id": str(actor_id)})
