"""Payroll Adjustment Workflows.

State machines for one-off/recurring adjustments and for installment
loans and advances.
"""

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.adjustments.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

INSTALLMENTS_REMAINING = Guard(
    name="installments_remaining",
    description="Loan or advance has installments left to process",
)

_STATES = ("pending", "approved", "rejected", "processed", "cancelled")


# -----------------------------------------------------------------------------
# Adjustment Workflow
# -----------------------------------------------------------------------------

ADJUSTMENT_WORKFLOW = Workflow(
    name="payroll_adjustment",
    description="Adjustment approval: approved or rejected once, processed by payroll",
    initial_state="pending",
    states=_STATES,
    transitions=(
        Transition("pending", "approved", action="approve"),
        Transition("pending", "rejected", action="reject", requires_reason=True),
        Transition("pending", "cancelled", action="cancel"),
        Transition("approved", "processed", action="process"),
        Transition("approved", "cancelled", action="cancel"),
    ),
    terminal_states=("rejected", "processed", "cancelled"),
)


# -----------------------------------------------------------------------------
# Loan / Advance Workflow
# -----------------------------------------------------------------------------

LOAN_ADJUSTMENT_WORKFLOW = Workflow(
    name="payroll_loan_adjustment",
    description="Installment loan: approved once, one installment per approved payroll",
    initial_state="pending",
    states=_STATES,
    transitions=(
        Transition("pending", "approved", action="approve"),
        Transition("approved", "approved", action="record_installment",
                   guard=INSTALLMENTS_REMAINING, amortizes_loans=True),
        Transition("approved", "processed", action="settle"),
        Transition("pending", "rejected", action="reject", requires_reason=True),
        Transition("pending", "cancelled", action="cancel"),
        Transition("approved", "cancelled", action="cancel"),
    ),
    terminal_states=("rejected", "processed", "cancelled"),
)

logger.info(
    "adjustment_workflows_defined",
    extra={"workflows": [ADJUSTMENT_WORKFLOW.name, LOAN_ADJUSTMENT_WORKFLOW.name]},
)
