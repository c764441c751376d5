"""
Proration Engine - scale a period's base pay by the share actually worked.

Pure functions with no I/O.  Holidays and unpaid-leave counts are provided
as parameters by the caller.

Units are either calendar days or working days (Monday-Friday minus
holidays).  The worked span is the intersection of the pay window with the
employee's employment dates, less unpaid leave days.

Usage:
    from datetime import date
    from payroll_engines.proration import ProrateMethod, calculate_proration

    result = calculate_proration(
        period_start=date(2024, 3, 1),
        period_end=date(2024, 3, 31),
        hire_date=date(2024, 3, 18),
        method=ProrateMethod.CALENDAR_DAYS,
    )
    result.apply(Decimal("10000000"))   # 14/31 of the salary
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.proration")


class ProrateMethod(str, Enum):
    """Unit used to measure a pay window."""

    CALENDAR_DAYS = "calendar_days"
    WORKING_DAYS = "working_days"


@dataclass(frozen=True)
class ProrationResult:
    """
    Outcome of a proration calculation.

    ``apply()`` multiplies before dividing so no precision is lost to a
    rounded factor.
    """

    worked_units: int
    total_units: int
    method: ProrateMethod
    reasons: tuple[str, ...] = ()

    @property
    def is_prorated(self) -> bool:
        return self.worked_units != self.total_units

    @property
    def factor(self) -> Decimal:
        """Display factor, six places."""
        if self.total_units == 0:
            return Decimal("0")
        return (Decimal(self.worked_units) / Decimal(self.total_units)).quantize(
            Decimal("0.000001")
        )

    @property
    def reason(self) -> str | None:
        return "; ".join(self.reasons) if self.reasons else None

    def apply(self, amount: Decimal) -> Decimal:
        if not self.is_prorated:
            return amount
        if self.total_units == 0:
            return Decimal("0")
        return amount * Decimal(self.worked_units) / Decimal(self.total_units)


FULL_PERIOD = ProrationResult(worked_units=1, total_units=1, method=ProrateMethod.CALENDAR_DAYS)


def count_working_days(start: date, end: date, holidays: Collection[date] = ()) -> int:
    """
    Count Monday-Friday days in ``[start, end]`` that are not holidays.

    Postconditions: returns 0 when ``end < start``.
    """
    count = 0
    day = start
    while day <= end:
        if day.weekday() < 5 and day not in holidays:
            count += 1
        day += timedelta(days=1)
    return count


def count_units(start: date, end: date, method: ProrateMethod, holidays: Collection[date] = ()) -> int:
    if end < start:
        return 0
    if method == ProrateMethod.CALENDAR_DAYS:
        return (end - start).days + 1
    return count_working_days(start, end, holidays)


def calculate_proration(
    period_start: date,
    period_end: date,
    hire_date: date | None = None,
    termination_date: date | None = None,
    unpaid_leave_days: int = 0,
    method: ProrateMethod = ProrateMethod.WORKING_DAYS,
    holidays: Collection[date] = (),
) -> ProrationResult:
    """
    Compute the worked share of a pay window.

    Preconditions:
        - ``period_start <= period_end``.
        - ``unpaid_leave_days >= 0``.
    Postconditions:
        - ``0 <= worked_units <= total_units``.
        - ``reasons`` names each cause of proration (join, resign, leave).

    Raises:
        ValueError: if the window is inverted or leave days are negative.
    """
    if period_end < period_start:
        raise ValueError(f"Pay window end {period_end} precedes start {period_start}")
    if unpaid_leave_days < 0:
        raise ValueError(f"unpaid_leave_days cannot be negative: {unpaid_leave_days}")

    method = ProrateMethod(method)
    total = count_units(period_start, period_end, method, holidays)

    start = period_start
    end = period_end
    reasons: list[str] = []
    if hire_date is not None and hire_date > period_start:
        start = hire_date
        reasons.append(f"joined {hire_date.isoformat()}")
    if termination_date is not None and termination_date < period_end:
        end = termination_date
        reasons.append(f"resigned {termination_date.isoformat()}")

    worked = count_units(start, end, method, holidays)
    if unpaid_leave_days:
        worked -= unpaid_leave_days
        reasons.append(f"unpaid leave {unpaid_leave_days} day(s)")
    worked = max(0, min(worked, total))

    result = ProrationResult(
        worked_units=worked,
        total_units=total,
        method=method,
        reasons=tuple(reasons),
    )
    if result.is_prorated:
        logger.debug(
            "proration_applied",
            extra={
                "worked_units": worked,
                "total_units": total,
                "method": method.value,
                "reason": result.reason,
            },
        )
    return result
