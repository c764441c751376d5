"""
Shared fixtures for module tests.

Services are built over the per-test ``session`` with the deterministic
clock.  Every fixture is opt-in; tests declare the parent entities they
depend on (company, employees, seeded tax tables) in their signature.
"""

from uuid import uuid4

import pytest

from payroll_modules.adjustments.service import AdjustmentService
from payroll_modules.allowances.models import Allowance
from payroll_modules.allowances.repository import SqlAllowanceRepository
from payroll_modules.employees.directory import NullWorkCalendar
from payroll_modules.payroll.service import PayrollService
from payroll_modules.settings.service import SettingsResolver


@pytest.fixture
def settings_resolver(session, deterministic_clock):
    return SettingsResolver(session, clock=deterministic_clock)


@pytest.fixture
def adjustment_service(session, deterministic_clock):
    return AdjustmentService(session, clock=deterministic_clock)


@pytest.fixture
def allowance_repository(session):
    return SqlAllowanceRepository(session)


@pytest.fixture
def make_payroll_service(session, deterministic_clock, seeded_tax_tables):
    """Factory for a PayrollService; pass ``calendar=`` to inject holidays, leave or overtime."""

    def _make(calendar=None) -> PayrollService:
        return PayrollService(
            session,
            clock=deterministic_clock,
            calendar=calendar or NullWorkCalendar(),
        )

    return _make


@pytest.fixture
def payroll_service(make_payroll_service) -> PayrollService:
    return make_payroll_service()


@pytest.fixture
def add_allowance(allowance_repository, company_id, test_actor_id):
    """Persist an allowance for the test company."""

    def _add(name: str, **fields) -> Allowance:
        return allowance_repository.add(
            Allowance(id=uuid4(), company_id=company_id, name=name, **fields),
            test_actor_id,
        )

    return _add
