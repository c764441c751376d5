"""Tests for allowance applicability and lookup."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from payroll_engines.aggregation import AllowanceBase
from payroll_kernel.domain.values import PayPeriod
from payroll_modules.allowances.models import Allowance, AllowanceFrequency, AllowanceStatus

MARCH = PayPeriod(2024, 3)
CUTOFF = 25
CALENDAR_MARCH = MARCH.cutoff_window(31)
COMPANY = uuid4()


def _allowance(**fields) -> Allowance:
    values = dict(id=uuid4(), company_id=COMPANY, name="Transport", amount=Decimal("500000"))
    values.update(fields)
    return Allowance(**values)


class TestAllowanceApplicability:

    def test_open_ended_monthly_applies(self):
        assert _allowance().applies_to(*CALENDAR_MARCH)

    def test_monthly_starting_mid_month_applies(self):
        assert _allowance(effective_date=date(2024, 3, 15)).applies_to(*CALENDAR_MARCH)

    def test_monthly_not_yet_effective(self):
        assert not _allowance(effective_date=date(2024, 4, 1)).applies_to(*CALENDAR_MARCH)

    def test_monthly_already_ended(self):
        assert not _allowance(end_date=date(2024, 2, 29)).applies_to(*CALENDAR_MARCH)

    def test_one_time_applies_only_in_its_month(self):
        bonus = _allowance(frequency=AllowanceFrequency.ONE_TIME, effective_date=date(2024, 3, 10))

        assert bonus.applies_to(*CALENDAR_MARCH)
        assert not bonus.applies_to(*PayPeriod(2024, 4).cutoff_window(31))

    def test_monthly_starting_after_cutoff_waits_for_next_period(self):
        allowance = _allowance(effective_date=date(2024, 3, 28))

        assert not allowance.applies_to(*MARCH.cutoff_window(CUTOFF))
        assert allowance.applies_to(*PayPeriod(2024, 4).cutoff_window(CUTOFF))

    def test_one_time_after_cutoff_paid_next_period(self):
        bonus = _allowance(frequency=AllowanceFrequency.ONE_TIME, effective_date=date(2024, 3, 28))

        assert not bonus.applies_to(*MARCH.cutoff_window(CUTOFF))
        assert bonus.applies_to(*PayPeriod(2024, 4).cutoff_window(CUTOFF))

    def test_monthly_ended_before_window_opens(self):
        # March's window opens on 26 February
        assert not _allowance(end_date=date(2024, 2, 25)).applies_to(*MARCH.cutoff_window(CUTOFF))
        assert _allowance(end_date=date(2024, 2, 27)).applies_to(*MARCH.cutoff_window(CUTOFF))

    def test_one_time_without_date_never_applies(self):
        assert not _allowance(frequency=AllowanceFrequency.ONE_TIME).applies_to(*CALENDAR_MARCH)

    def test_inactive_never_applies(self):
        assert not _allowance(status=AllowanceStatus.INACTIVE).applies_to(*CALENDAR_MARCH)

    def test_template_has_no_employee(self):
        assert _allowance().is_template
        assert not _allowance(employee_id=uuid4()).is_template


class TestAllowanceValidation:

    def test_fixed_needs_amount(self):
        with pytest.raises(ValueError, match="fixed allowance"):
            _allowance(amount=None)

    def test_percentage_needs_percentage(self):
        with pytest.raises(ValueError, match="percentage allowance"):
            _allowance(calculation_base=AllowanceBase.BASIC_SALARY, amount=None)

    def test_inverted_window_rejected(self):
        with pytest.raises(ValueError, match="end_date"):
            _allowance(effective_date=date(2024, 3, 1), end_date=date(2024, 2, 1))

    def test_to_input_carries_flags(self):
        allowance = _allowance(
            calculation_base=AllowanceBase.GROSS_SALARY,
            amount=None,
            percentage=Decimal("0.05"),
            is_taxable=False,
            is_bpjs_object=False,
            is_prorated=False,
        )
        engine_input = allowance.to_input()

        assert engine_input.calculation_base == AllowanceBase.GROSS_SALARY
        assert engine_input.percentage == Decimal("0.05")
        assert not engine_input.is_taxable
        assert not engine_input.is_bpjs_object
        assert not engine_input.is_prorated
        assert engine_input.reference_id == str(allowance.id)


class TestAllowanceRepository:

    def test_templates_and_own_allowances_selected(
        self, allowance_repository, add_allowance, make_employee, company_id
    ):
        alice = make_employee()
        bob = make_employee()
        add_allowance("Meal", amount=Decimal("300000"))
        add_allowance("Transport", amount=Decimal("500000"), employee_id=alice.id)
        add_allowance("Housing", amount=Decimal("2000000"), employee_id=bob.id)
        add_allowance("Phone", amount=Decimal("100000"), status=AllowanceStatus.INACTIVE)

        names = [a.name for a in allowance_repository.for_period(company_id, alice.id, MARCH, CUTOFF)]

        assert names == ["Meal", "Transport"]

    def test_period_filter_applied(self, allowance_repository, add_allowance, make_employee, company_id):
        employee = make_employee()
        add_allowance(
            "Holiday bonus",
            amount=Decimal("1000000"),
            employee_id=employee.id,
            frequency=AllowanceFrequency.ONE_TIME,
            effective_date=date(2024, 4, 5),
        )

        assert allowance_repository.for_period(company_id, employee.id, MARCH, CUTOFF) == []
        april = allowance_repository.for_period(company_id, employee.id, PayPeriod(2024, 4), CUTOFF)
        assert [a.name for a in april] == ["Holiday bonus"]

    def test_persisted_allowance_round_trips(self, add_allowance, make_employee):
        employee = make_employee()
        saved = add_allowance(
            "Position",
            calculation_base=AllowanceBase.BASIC_SALARY,
            percentage=Decimal("0.10"),
            employee_id=employee.id,
            is_prorated=False,
        )

        assert saved.calculation_base == AllowanceBase.BASIC_SALARY
        assert saved.percentage == Decimal("0.10")
        assert saved.amount is None
        assert saved.is_prorated is False
