"""
Pure domain layer.

Value objects and state-machine definitions with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (SystemClock is the one sanctioned time boundary)
"""

from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.values import PayPeriod, RoundingPolicy
from payroll_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "PayPeriod",
    "RoundingPolicy",
    "Guard",
    "Transition",
    "Workflow",
]
