"""
Amortization Engine - loan and advance installment tracking.

A loan (or salary advance) of ``total_loan_amount`` is repaid in
``installment_amount`` steps deducted from successive payrolls:

    total_installments = ceil(total / installment)
    after each approval:
        current_installment += 1
        remaining_balance = max(0, total - current x installment)
    fully paid  <=>  current_installment == total_installments

The charge for an installment is ``installment_amount`` except the last,
which is capped at the outstanding balance so that the charges sum to the
loan total exactly.

Pure functions with no I/O.  Persisting the new state is the caller's
job and must happen in the same transaction as the approval that caused it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from payroll_kernel.domain.values import add_months
from payroll_kernel.exceptions import AlreadyAmortizedError
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.amortization")

ZERO = Decimal("0")


@dataclass(frozen=True)
class LoanPlan:
    """Installment plan fixed at adjustment creation."""

    total_loan_amount: Decimal
    installment_amount: Decimal
    total_installments: int
    recurring_end_date: date


@dataclass(frozen=True)
class AmortizationState:
    """Running position of one loan/advance."""

    total_loan_amount: Decimal
    installment_amount: Decimal
    total_installments: int
    current_installment: int = 0
    remaining_balance: Decimal | None = None

    def __post_init__(self) -> None:
        if self.remaining_balance is None:
            object.__setattr__(self, "remaining_balance", self.total_loan_amount)
        if self.remaining_balance < ZERO:
            raise ValueError("remaining_balance cannot be negative")
        if not 0 <= self.current_installment <= self.total_installments:
            raise ValueError(
                f"current_installment {self.current_installment} outside "
                f"0..{self.total_installments}"
            )

    @property
    def is_fully_paid(self) -> bool:
        return self.current_installment >= self.total_installments

    @property
    def next_charge(self) -> Decimal:
        """Amount the next installment deducts; zero once fully paid."""
        if self.is_fully_paid:
            return ZERO
        return min(self.installment_amount, self.remaining_balance)


def plan_loan(total_loan_amount: Decimal, installment_amount: Decimal, effective_date: date) -> LoanPlan:
    """
    Build the installment plan for a new loan/advance.

    Preconditions:
        - total_loan_amount > 0 and installment_amount > 0.
    Postconditions:
        - total_installments = ceil(total / installment).
        - recurring_end_date = effective_date + total_installments months.
    Raises:
        ValueError: on non-positive amounts.
    """
    if total_loan_amount <= ZERO:
        raise ValueError(f"total_loan_amount must be positive: {total_loan_amount}")
    if installment_amount <= ZERO:
        raise ValueError(f"installment_amount must be positive: {installment_amount}")

    count = math.ceil(total_loan_amount / installment_amount)
    return LoanPlan(
        total_loan_amount=total_loan_amount,
        installment_amount=installment_amount,
        total_installments=count,
        recurring_end_date=add_months(effective_date, count),
    )


def apply_installment(state: AmortizationState, adjustment_id: str = "") -> AmortizationState:
    """
    Process one installment.

    Postconditions:
        - current_installment incremented by one.
        - remaining_balance = max(0, total - current x installment).
    Raises:
        AlreadyAmortizedError: if every installment was already processed.
    """
    if state.is_fully_paid:
        logger.warning(
            "installment_rejected_fully_paid",
            extra={"adjustment_id": adjustment_id, "total_installments": state.total_installments},
        )
        raise AlreadyAmortizedError(adjustment_id, state.total_installments)

    current = state.current_installment + 1
    remaining = max(ZERO, state.total_loan_amount - current * state.installment_amount)
    new_state = replace(state, current_installment=current, remaining_balance=remaining)
    logger.info(
        "installment_processed",
        extra={
            "adjustment_id": adjustment_id,
            "current_installment": current,
            "total_installments": state.total_installments,
            "remaining_balance": str(remaining),
        },
    )
    return new_state
