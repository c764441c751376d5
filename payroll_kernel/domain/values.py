"""
Value objects shared by engines and modules.

PayPeriod
    A payroll month expressed as a ``(year, month)`` pair, plus the date
    arithmetic payroll needs: calendar bounds, cutoff-based attendance
    window, month offsets for installment schedules.

RoundingPolicy
    The company's rounding rule for money (nearest / up / down to N
    decimal places).  Amounts stay ``Decimal`` end to end.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal

from payroll_kernel.exceptions import InvalidPeriodError

ZERO = Decimal("0")

_ROUNDING_MODES = {
    "nearest": ROUND_HALF_UP,
    "up": ROUND_CEILING,
    "down": ROUND_FLOOR,
}


def add_months(d: date, months: int) -> date:
    """Shift ``d`` by whole months, clamping the day to the target month's length."""
    index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


@dataclass(frozen=True, order=True)
class PayPeriod:
    """A payroll month."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or self.year < 1:
            raise InvalidPeriodError(self.year, self.month)

    @classmethod
    def of(cls, d: date) -> PayPeriod:
        return cls(d.year, d.month)

    @classmethod
    def parse(cls, value: str) -> PayPeriod:
        """Parse ``"YYYY-MM"``."""
        year, _, month = value.partition("-")
        return cls(int(year), int(month))

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def last_day(self) -> date:
        return date(self.year, self.month, calendar.monthrange(self.year, self.month)[1])

    def shift(self, months: int) -> PayPeriod:
        return PayPeriod.of(add_months(self.first_day, months))

    def previous(self) -> PayPeriod:
        return self.shift(-1)

    def months_since(self, other: PayPeriod) -> int:
        """Whole months from ``other`` to ``self`` (negative if ``other`` is later)."""
        return (self.year - other.year) * 12 + (self.month - other.month)

    def contains(self, d: date) -> bool:
        return d.year == self.year and d.month == self.month

    def cutoff_window(self, cutoff_day: int) -> tuple[date, date]:
        """
        Attendance window ending on the cutoff day of this month.

        Runs from the day after the previous month's cutoff through this
        month's cutoff, each clamped to the month's length.  A cutoff on or
        past the last day of the month yields the plain calendar month.
        """
        if cutoff_day >= 31:
            return self.first_day, self.last_day
        prev = self.previous()
        prev_cutoff = date(prev.year, prev.month, min(cutoff_day, prev.last_day.day))
        end = date(self.year, self.month, min(cutoff_day, self.last_day.day))
        return prev_cutoff + timedelta(days=1), end


@dataclass(frozen=True)
class RoundingPolicy:
    """
    Company rounding rule.

    Contract:
        ``method`` is one of nearest / up / down; ``precision`` is the number
        of decimal places kept (0 for whole rupiah).
    Guarantees:
        ``apply()`` returns a Decimal quantized to ``precision`` places, or
        the input unchanged when rounding is disabled.
    """

    enabled: bool = True
    method: str = "nearest"
    precision: int = 0

    def __post_init__(self) -> None:
        if self.method not in _ROUNDING_MODES:
            raise ValueError(
                f"rounding_method must be one of {sorted(_ROUNDING_MODES)}, got {self.method!r}"
            )
        if self.precision < 0:
            raise ValueError(f"rounding_precision must be >= 0, got {self.precision}")

    @property
    def quantum(self) -> Decimal:
        return Decimal(10) ** -self.precision

    def apply(self, amount: Decimal) -> Decimal:
        if not self.enabled:
            return amount
        return amount.quantize(self.quantum, rounding=_ROUNDING_MODES[self.method])
