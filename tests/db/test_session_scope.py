"""
Tests for the process-wide engine and session_scope.

Runs against a file-backed SQLite database so that each scope gets its own
connection and what one scope commits is visible to the next.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from payroll_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.exceptions import InvalidPeriodError
from payroll_modules.employees.directory import SqlEmployeeDirectory
from payroll_modules.employees.models import Employee
from payroll_modules.payroll.orm import PayrollRecordModel
from payroll_modules.payroll.service import PayrollService
from payroll_modules.settings.repositories import seed_tax_tables

ACTOR_ID = uuid4()


@pytest.fixture
def file_engine(tmp_path):
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'payroll.db'}")
    create_tables(engine)
    yield engine
    reset_engine()


def _add_employee(session, company_id):
    return SqlEmployeeDirectory(session).add_employee(
        Employee(
            id=uuid4(),
            company_id=company_id,
            employee_number="EMP-0001",
            name="Siti Rahayu",
            basic_salary=Decimal("10000000"),
            ptkp_status="TK/0",
            hire_date=date(2020, 1, 1),
        ),
        ACTOR_ID,
    )


class TestEngineAccessors:

    def test_sessions_bind_to_initialized_engine(self, file_engine):
        assert get_engine() is file_engine
        session = get_session()
        try:
            assert session.get_bind() is file_engine
        finally:
            session.close()

    def test_uninitialized_engine_raises(self, file_engine):
        reset_engine()
        with pytest.raises(RuntimeError, match="not initialized"):
            get_session()


class TestSessionScope:

    def test_committed_work_is_visible_to_next_scope(self, file_engine, tax_tables, deterministic_clock):
        with session_scope() as session:
            company_id = SqlEmployeeDirectory(session).add_company("PT Maju Bersama", ACTOR_ID)
            _add_employee(session, company_id)
            seed_tax_tables(session, tax_tables, created_by_id=ACTOR_ID)

        with session_scope() as session:
            result = PayrollService(session, clock=deterministic_clock).generate(
                company_id, PayPeriod(2024, 3), ACTOR_ID
            )
            assert result.generated == 1

        with session_scope() as session:
            count = session.scalars(select(func.count()).select_from(PayrollRecordModel)).one()
            assert count == 1

    def test_failure_rolls_back_the_scope(self, file_engine, captured_logs):
        company_id = uuid4()

        with pytest.raises(InvalidPeriodError):
            with session_scope() as session:
                SqlEmployeeDirectory(session).add_company("PT Gagal", ACTOR_ID, company_id=company_id)
                PayrollService(session).generate(company_id, PayPeriod(2024, 13), ACTOR_ID)

        with session_scope() as session:
            assert not SqlEmployeeDirectory(session).company_exists(company_id)
        assert any(r["message"] == "transaction_rolled_back" for r in captured_logs())
