"""
ORM-Level Immutability Enforcement for paid payroll records.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  We register listeners that inspect attribute history:

    session.flush()
         |
         v
    [before_update] --> _check_payroll_record_update() --> ImmutabilityError
         |
    [before_delete] --> _check_payroll_record_delete() --> ImmutabilityError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable           | Allowed changes
------------------|--------------------------|-------------------------------
PayrollRecord     | After status = paid      | updated_at, updated_by_id

A record may be UPDATED INTO the paid state (that is the mark_paid
transition itself).  Once flushed as paid, every later field change or
delete is blocked.  Corrections go through a new PayrollAdjustment in a
later period.

Usage:
    from payroll_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent

The listeners are registered when ``payroll_modules.payroll.orm`` is
imported and again by ``init_engine_from_url()``.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from payroll_kernel.exceptions import ImmutabilityError
from payroll_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})
_FROZEN_STATUS = "paid"


def _was_paid_before(target) -> bool:
    status_history = get_history(target, "status")
    if status_history.deleted:
        return status_history.deleted[0] == _FROZEN_STATUS
    if not status_history.added:
        return target.status == _FROZEN_STATUS
    return False


def _check_payroll_record_update(mapper, connection, target):
    """Block any non-audit field change on a record that was already paid."""
    if not _was_paid_before(target):
        return

    for attr in inspect(target).attrs:
        if attr.key in _AUDIT_FIELDS:
            continue
        if attr.history.has_changes():
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "PayrollRecord",
                    "entity_id": str(target.id),
                    "operation": "UPDATE",
                    "field": attr.key,
                },
            )
            raise ImmutabilityError(
                entity_type="PayrollRecord",
                entity_id=str(target.id),
                reason=f"cannot modify field '{attr.key}' on a paid payroll",
            )


def _check_payroll_record_delete(mapper, connection, target):
    if target.status == _FROZEN_STATUS:
        logger.error(
            "immutability_violation_blocked",
            extra={
                "entity_type": "PayrollRecord",
                "entity_id": str(target.id),
                "operation": "DELETE",
            },
        )
        raise ImmutabilityError(
            entity_type="PayrollRecord",
            entity_id=str(target.id),
            reason="paid payroll records cannot be deleted",
        )


def register_immutability_listeners() -> None:
    """Register the paid-record guards.  Safe to call more than once."""
    from payroll_modules.payroll.orm import PayrollRecordModel

    if not event.contains(PayrollRecordModel, "before_update", _check_payroll_record_update):
        event.listen(PayrollRecordModel, "before_update", _check_payroll_record_update)
    if not event.contains(PayrollRecordModel, "before_delete", _check_payroll_record_delete):
        event.listen(PayrollRecordModel, "before_delete", _check_payroll_record_delete)


def unregister_immutability_listeners() -> None:
    """Remove the guards. FOR TESTING ONLY."""
    from payroll_modules.payroll.orm import PayrollRecordModel

    if event.contains(PayrollRecordModel, "before_update", _check_payroll_record_update):
        event.remove(PayrollRecordModel, "before_update", _check_payroll_record_update)
    if event.contains(PayrollRecordModel, "before_delete", _check_payroll_record_delete):
        event.remove(PayrollRecordModel, "before_delete", _check_payroll_record_delete)
