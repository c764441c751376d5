"""Payroll Record Workflow.

State machine for one employee's payroll in one period.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

INPUTS_PRESENT = Guard(
    name="inputs_present",
    description="Employee, settings and tax tables resolve for the period",
)

FIGURES_VALID = Guard(
    name="figures_valid",
    description="Net salary is zero or more and no contribution share exceeds its capped maximum",
)

logger.info(
    "payroll_workflow_guards_defined",
    extra={
        "guards": [
            INPUTS_PRESENT.name,
            FIGURES_VALID.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Payroll Record Workflow
# -----------------------------------------------------------------------------

PAYROLL_RECORD_WORKFLOW = Workflow(
    name="payroll_record",
    description="Payroll record: calculate, validate, submit, approve or reject, pay",
    initial_state="draft",
    states=(
        "draft",
        "calculated",
        "validated",
        "submitted",
        "approved",
        "rejected",
        "paid",
    ),
    transitions=(
        Transition("draft", "calculated", action="calculate", guard=INPUTS_PRESENT),
        Transition("calculated", "calculated", action="calculate", guard=INPUTS_PRESENT),
        Transition("calculated", "validated", action="validate", guard=FIGURES_VALID),
        Transition("validated", "submitted", action="submit"),
        Transition("submitted", "approved", action="approve", amortizes_loans=True),
        Transition("submitted", "rejected", action="reject", requires_reason=True),
        Transition("rejected", "draft", action="revise"),
        Transition("approved", "paid", action="mark_paid"),
    ),
    terminal_states=("paid",),
)

PAYROLL_ACTIONS = frozenset(t.action for t in PAYROLL_RECORD_WORKFLOW.transitions)
