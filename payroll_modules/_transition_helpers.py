"""
Shared helpers for lifecycle transitions.

Used by payroll_modules/*/service.py to resolve a workflow transition and
enforce the declarative flags on it (reason required) before the service
applies the state change.

Architecture: Modules layer. Imports only from payroll_kernel.
"""

from __future__ import annotations

from uuid import UUID

from payroll_kernel.domain.workflow import Transition, Workflow
from payroll_kernel.exceptions import InvalidTransitionError, RejectionReasonRequiredError
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.transitions")


def resolve_transition(
    workflow: Workflow,
    entity_type: str,
    entity_id: UUID,
    *,
    current_state: str,
    action: str,
    reason: str | None = None,
) -> Transition:
    """
    Look up ``action`` out of ``current_state`` in ``workflow``.

    Raises:
        InvalidTransitionError: no such transition.
        RejectionReasonRequiredError: the transition requires a reason and
            ``reason`` is empty or whitespace.
    """
    transition = workflow.transition_for(current_state, action)
    if transition is None:
        logger.warning(
            "transition_refused",
            extra={
                "workflow": workflow.name,
                "entity_id": str(entity_id),
                "current_state": current_state,
                "action": action,
                "allowed_actions": list(workflow.allowed_actions(current_state)),
            },
        )
        raise InvalidTransitionError(entity_type, str(entity_id), current_state, action)

    if transition.requires_reason and not (reason and reason.strip()):
        raise RejectionReasonRequiredError(entity_type, str(entity_id))

    return transition
