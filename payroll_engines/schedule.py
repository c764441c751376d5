"""
Recurrence schedule for payroll adjustments.

Decides whether a one-off or recurring adjustment falls due in a given pay
period.  Pure; the caller supplies the adjustment's dates.
"""

from __future__ import annotations

from datetime import date
from enum import Enum

from payroll_kernel.domain.values import PayPeriod


class RecurringFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


_STEP_MONTHS = {
    RecurringFrequency.MONTHLY: 1,
    RecurringFrequency.QUARTERLY: 3,
    RecurringFrequency.YEARLY: 12,
}


def occurs_in(
    period: PayPeriod,
    *,
    pay_period: PayPeriod | None,
    effective_date: date,
    is_recurring: bool,
    frequency: RecurringFrequency | str | None = None,
    end_date: date | None = None,
) -> bool:
    """
    True when the adjustment is charged in ``period``.

    One-off adjustments fall due in their ``pay_period`` (or the month of
    ``effective_date`` when no pay period was recorded).  Recurring ones
    start in the month of ``effective_date``, repeat every 1/3/12 months,
    and stop once the period begins after ``end_date``.  Loan and advance
    charges are additionally bounded by their installment count.
    """
    if not is_recurring:
        return period == (pay_period or PayPeriod.of(effective_date))

    start = PayPeriod.of(effective_date)
    if period < start:
        return False
    if end_date is not None and period.first_day > end_date:
        return False
    step = _STEP_MONTHS[RecurringFrequency(frequency or RecurringFrequency.MONTHLY)]
    return period.months_since(start) % step == 0
