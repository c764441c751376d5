"""
Tests for PayrollService.

Validates:
- Calculation preview (progressive worked example, TER defaults, proration,
  overtime, holidays, net-pay gross-up) and its determinism
- Generation: eligibility, per-employee isolation, duplicate protection
- Lifecycle: validate -> submit -> approve -> mark_paid, reject/revise,
  invalid actions, validation failures
- Loan amortization committed atomically with payroll approval
- Paid-record immutability
- Structured log events
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select

from payroll_engines.aggregation import OvertimeHours
from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.exceptions import (
    AlreadyAmortizedError,
    CompanyNotFoundError,
    ContributionCapExceededError,
    EmployeeNotFoundError,
    ImmutabilityError,
    InvalidTransitionError,
    NegativeNetPayError,
    PayrollRecordNotFoundError,
    RejectionReasonRequiredError,
)
from payroll_modules.adjustments.models import AdjustmentStatus, AdjustmentType
from payroll_modules.employees.directory import StaticWorkCalendar
from payroll_modules.employees.models import EmploymentStatus, EmploymentType, PayType
from payroll_modules.payroll.models import PayrollStatus
from payroll_modules.payroll.orm import PayrollRecordModel

MARCH = PayPeriod(2024, 3)
APRIL = PayPeriod(2024, 4)


def _record_count(session) -> int:
    return session.scalars(select(func.count()).select_from(PayrollRecordModel)).one()


def _generate_one(payroll_service, company_id, actor_id, period=MARCH) -> UUID:
    result = payroll_service.generate(company_id, period, actor_id)
    assert result.errors == 0, result.details
    return result.details[0].payroll_id


def _walk(payroll_service, payroll_id, actor_id, *actions):
    record = None
    for action in actions:
        record = payroll_service.transition(payroll_id, action, actor_id)
    return record


@pytest.fixture
def progressive_company(settings_resolver, company_id, test_actor_id):
    """Company on the annualized progressive method, no position cost, health contribution only."""
    settings_resolver.update(
        company_id,
        {
            "use_effective_rate_method": False,
            "position_cost_rate": "0",
            "bpjs_kes_max_salary": None,
            "bpjs_jht_employee_rate": "0",
            "bpjs_jp_employee_rate": "0",
        },
        test_actor_id,
    )
    return company_id


# =============================================================================
# Calculation preview
# =============================================================================


class TestCalculate:

    def test_progressive_worked_example(self, session, payroll_service, progressive_company, make_employee, add_allowance):
        employee = make_employee()
        add_allowance("Transport", amount=Decimal("500000"), employee_id=employee.id)

        breakdown = payroll_service.calculate(employee.id, MARCH)

        assert breakdown.gross_salary == Decimal("10500000")
        assert breakdown.contribution("bpjs_kes").employee_share == Decimal("105000")
        assert breakdown.total_employee_contributions == Decimal("105000")
        assert breakdown.taxable_base == Decimal("10395000")
        assert breakdown.annual_taxable_income == Decimal("70740000")
        assert breakdown.tax_rate == Decimal("0.15")
        assert breakdown.tax_amount == Decimal("384250")
        assert breakdown.net_salary == Decimal("10010750")
        assert breakdown.tax_method == "progressive"
        assert _record_count(session) == 0

    def test_ter_with_statutory_defaults(self, payroll_service, make_employee):
        employee = make_employee()

        breakdown = payroll_service.calculate(employee.id, MARCH)

        assert breakdown.total_employee_contributions == Decimal("400000")
        assert breakdown.total_employer_contributions == Decimal("1024000")
        assert breakdown.position_cost == Decimal("500000")
        assert breakdown.taxable_base == Decimal("9100000")
        assert breakdown.ter_category == "TER_A"
        assert breakdown.tax_rate == Decimal("0.0175")
        assert breakdown.tax_amount == Decimal("159250")
        assert breakdown.net_salary == Decimal("9440750")
        assert breakdown.window_start == date(2024, 2, 26)
        assert breakdown.window_end == date(2024, 3, 25)

    def test_repeated_calculation_is_deterministic(self, payroll_service, make_employee, add_allowance):
        employee = make_employee(ptkp_status="K/2")
        add_allowance("Meal", amount=Decimal("750000"))

        assert payroll_service.calculate(employee.id, MARCH) == payroll_service.calculate(employee.id, MARCH)

    def test_mid_window_hire_is_prorated(self, payroll_service, make_employee):
        employee = make_employee(hire_date=date(2024, 3, 11))

        breakdown = payroll_service.calculate(employee.id, MARCH)

        assert breakdown.prorated_basic == Decimal("5238095")
        assert breakdown.proration_reason is not None

    def test_holidays_and_leave_come_from_calendar(self, make_payroll_service, make_employee):
        hired = make_employee(hire_date=date(2024, 3, 11))
        on_leave = make_employee()
        service = make_payroll_service(
            StaticWorkCalendar(holidays={date(2024, 3, 11)}, unpaid_leave={on_leave.id: 2})
        )

        assert service.calculate(hired.id, MARCH).prorated_basic == Decimal("5000000")
        assert service.calculate(on_leave.id, MARCH).prorated_basic == Decimal("9047619")

    def test_overtime_from_calendar(self, make_payroll_service, make_employee):
        employee = make_employee(basic_salary=Decimal("17300000"))
        service = make_payroll_service(
            StaticWorkCalendar(overtime={employee.id: OvertimeHours(weekday=Decimal("2"))})
        )

        breakdown = service.calculate(employee.id, MARCH)

        assert breakdown.overtime_pay == Decimal("300000")
        assert breakdown.gross_salary == Decimal("17600000")

    def test_net_pay_employee_is_grossed_up(self, payroll_service, make_employee):
        employee = make_employee(pay_type=PayType.NET)

        breakdown = payroll_service.calculate(employee.id, MARCH)

        assert breakdown.tax_allowance > 0
        assert breakdown.tax_amount == breakdown.tax_allowance
        assert breakdown.net_salary == (
            breakdown.gross_salary - breakdown.tax_allowance - breakdown.total_employee_contributions
        )

    def test_approved_earning_is_included(self, payroll_service, adjustment_service, make_employee, test_actor_id):
        employee = make_employee()
        bonus = adjustment_service.create_adjustment(
            employee.id, AdjustmentType.BONUS, Decimal("2000000"), date(2024, 3, 10), test_actor_id
        )
        adjustment_service.approve_adjustment(bonus.id, test_actor_id)

        breakdown = payroll_service.calculate(employee.id, MARCH)

        assert breakdown.total_earnings == Decimal("2000000")
        assert breakdown.gross_salary == Decimal("12000000")
        # earnings are not part of the contribution wage
        assert breakdown.contribution_base == Decimal("10000000")

    def test_unknown_employee(self, payroll_service):
        with pytest.raises(EmployeeNotFoundError):
            payroll_service.calculate(uuid4(), MARCH)


# =============================================================================
# Generation
# =============================================================================


class TestGenerate:

    def test_generates_one_calculated_record_per_employee(self, session, payroll_service, make_employee, company_id, test_actor_id):
        first = make_employee()
        second = make_employee(basic_salary=Decimal("15000000"), ptkp_status="K/1")

        result = payroll_service.generate(company_id, MARCH, test_actor_id)

        assert result.generated == 2
        assert result.errors == 0
        assert {d.employee_id for d in result.details} == {first.id, second.id}
        assert _record_count(session) == 2
        record = payroll_service.get(result.details[0].payroll_id)
        assert record.status == PayrollStatus.CALCULATED
        assert record.period == MARCH
        assert record.calculated_at is not None
        assert record.net_salary == result.details[0].net_salary

    def test_rerun_reports_duplicates(self, session, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        make_employee()
        payroll_service.generate(company_id, MARCH, test_actor_id)

        rerun = payroll_service.generate(company_id, MARCH, test_actor_id)

        assert rerun.generated == 0
        assert [d.code for d in rerun.details] == ["DUPLICATE_PAYROLL", "DUPLICATE_PAYROLL"]
        assert _record_count(session) == 2

    def test_next_period_is_not_a_duplicate(self, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_service.generate(company_id, MARCH, test_actor_id)

        assert payroll_service.generate(company_id, APRIL, test_actor_id).generated == 1

    def test_only_eligible_employees(self, payroll_service, make_employee, company_id, test_actor_id):
        active = make_employee()
        leaver = make_employee(
            employment_status=EmploymentStatus.RESIGNED, termination_date=date(2024, 3, 8)
        )
        make_employee(employment_type=EmploymentType.FREELANCE)
        make_employee(employment_type=EmploymentType.INTERNSHIP)
        make_employee(hire_date=date(2024, 4, 1))
        make_employee(employment_status=EmploymentStatus.TERMINATED, termination_date=date(2024, 1, 31))
        make_employee(employment_status=EmploymentStatus.INACTIVE)

        result = payroll_service.generate(company_id, MARCH, test_actor_id)

        assert {d.employee_id for d in result.details} == {active.id, leaver.id}
        leaver_record = next(
            payroll_service.get(d.payroll_id) for d in result.details if d.employee_id == leaver.id
        )
        assert leaver_record.prorated_basic < leaver_record.basic_salary

    def test_failure_is_isolated_per_employee(self, session, payroll_service, make_employee, company_id, test_actor_id):
        good = make_employee()
        broken = make_employee(ptkp_status="X/9")

        result = payroll_service.generate(company_id, MARCH, test_actor_id)

        assert result.generated == 1
        failure = next(d for d in result.details if not d.success)
        assert failure.employee_id == broken.id
        assert failure.code == "MISSING_PTKP"
        assert failure.payroll_id is None
        assert next(d for d in result.details if d.success).employee_id == good.id
        assert _record_count(session) == 1

    def test_unknown_company(self, payroll_service):
        with pytest.raises(CompanyNotFoundError):
            payroll_service.generate(uuid4(), MARCH, uuid4())

    def test_company_without_employees(self, payroll_service, company_id, test_actor_id):
        result = payroll_service.generate(company_id, MARCH, test_actor_id)
        assert result.details == ()
        assert result.generated == 0


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:

    def test_happy_path_to_paid(self, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)

        validated = payroll_service.transition(payroll_id, "validate", test_actor_id)
        assert validated.status == PayrollStatus.VALIDATED
        submitted = payroll_service.transition(payroll_id, "submit", test_actor_id)
        assert submitted.status == PayrollStatus.SUBMITTED
        approved = payroll_service.transition(payroll_id, "approve", test_actor_id)
        assert approved.status == PayrollStatus.APPROVED
        assert approved.approved_by_id == test_actor_id
        assert approved.approved_at is not None
        paid = payroll_service.transition(payroll_id, "mark_paid", test_actor_id)
        assert paid.status == PayrollStatus.PAID
        assert paid.paid_at is not None

    @pytest.mark.parametrize("action", ["approve", "submit", "mark_paid", "revise", "explode"])
    def test_action_not_allowed_from_calculated(self, payroll_service, make_employee, company_id, test_actor_id, action):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            payroll_service.transition(payroll_id, action, test_actor_id)

        assert exc_info.value.current_state == "calculated"
        assert payroll_service.get(payroll_id).status == PayrollStatus.CALCULATED

    def test_paid_record_accepts_no_action(self, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve", "mark_paid")

        for action in ("calculate", "reject", "revise", "mark_paid"):
            with pytest.raises(InvalidTransitionError):
                payroll_service.transition(payroll_id, action, test_actor_id, reason="late correction")

    def test_reject_requires_reason(self, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit")

        with pytest.raises(RejectionReasonRequiredError):
            payroll_service.transition(payroll_id, "reject", test_actor_id, reason="  ")
        assert payroll_service.get(payroll_id).status == PayrollStatus.SUBMITTED

    def test_reject_revise_recalculate(self, payroll_service, adjustment_service, make_employee, company_id, test_actor_id):
        employee = make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        before = payroll_service.get(payroll_id)
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit")

        rejected = payroll_service.transition(payroll_id, "reject", test_actor_id, reason=" missing bonus ")
        assert rejected.status == PayrollStatus.REJECTED
        assert rejected.rejection_reason == "missing bonus"

        bonus = adjustment_service.create_adjustment(
            employee.id, "bonus", Decimal("1000000"), date(2024, 3, 20), test_actor_id
        )
        adjustment_service.approve_adjustment(bonus.id, test_actor_id)

        assert payroll_service.revise(payroll_id, test_actor_id).status == PayrollStatus.DRAFT
        recalculated = payroll_service.recalculate(payroll_id, test_actor_id)

        assert recalculated.status == PayrollStatus.CALCULATED
        assert recalculated.total_earnings == Decimal("1000000")
        assert recalculated.gross_salary == before.gross_salary + Decimal("1000000")

    def test_unknown_record(self, payroll_service, test_actor_id):
        with pytest.raises(PayrollRecordNotFoundError):
            payroll_service.transition(uuid4(), "validate", test_actor_id)
        with pytest.raises(PayrollRecordNotFoundError):
            payroll_service.get(uuid4())


class TestValidation:

    def test_negative_net_pay_blocks_validation(self, payroll_service, adjustment_service, make_employee, company_id, test_actor_id):
        employee = make_employee(basic_salary=Decimal("1000000"))
        penalty = adjustment_service.create_adjustment(
            employee.id, AdjustmentType.PENALTY, Decimal("5000000"), date(2024, 3, 1), test_actor_id
        )
        adjustment_service.approve_adjustment(penalty.id, test_actor_id)
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        assert payroll_service.get(payroll_id).net_salary < 0

        with pytest.raises(NegativeNetPayError):
            payroll_service.transition(payroll_id, "validate", test_actor_id)
        assert payroll_service.get(payroll_id).status == PayrollStatus.CALCULATED

    def test_contribution_above_capped_maximum_blocks_validation(
        self, payroll_service, settings_resolver, make_employee, company_id, test_actor_id
    ):
        make_employee(basic_salary=Decimal("20000000"))
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        assert payroll_service.get(payroll_id).contribution_shares["bpjs_kes"][0] == Decimal("120000")

        settings_resolver.update(company_id, {"bpjs_kes_max_salary": "5000000"}, test_actor_id)

        with pytest.raises(ContributionCapExceededError) as exc_info:
            payroll_service.transition(payroll_id, "validate", test_actor_id)
        assert exc_info.value.contribution == "bpjs_kes"
        assert exc_info.value.limit == Decimal("50000")


# =============================================================================
# Adjustments consumed on approval
# =============================================================================


class TestApprovalProcessesAdjustments:

    @pytest.fixture
    def approved_loan(self, adjustment_service, make_employee, test_actor_id):
        def _approved(total, installment):
            employee = make_employee()
            loan = adjustment_service.create_adjustment(
                employee.id, AdjustmentType.LOAN, None, date(2024, 3, 1), test_actor_id,
                total_loan_amount=Decimal(total), installment_amount=Decimal(installment),
            )
            return adjustment_service.approve_adjustment(loan.id, test_actor_id)

        return _approved

    def test_approval_amortizes_loan_installment(self, payroll_service, adjustment_service, approved_loan, company_id, test_actor_id):
        loan = approved_loan("3000000", "1000000")
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        record = payroll_service.get(payroll_id)
        assert record.total_deductions == Decimal("1000000")
        assert [c.installment_number for c in record.charges] == [1]
        assert adjustment_service.get(loan.id).current_installment == 0

        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve")

        amortized = adjustment_service.get(loan.id)
        assert amortized.current_installment == 1
        assert amortized.remaining_balance == Decimal("2000000")
        assert amortized.status == AdjustmentStatus.APPROVED

        april = payroll_service.generate(company_id, APRIL, test_actor_id)
        assert payroll_service.get(april.details[0].payroll_id).charges[0].installment_number == 2

    def test_pending_loan_is_not_deducted(self, payroll_service, adjustment_service, make_employee, company_id, test_actor_id):
        employee = make_employee()
        loan = adjustment_service.create_adjustment(
            employee.id, AdjustmentType.LOAN, None, date(2024, 3, 1), test_actor_id,
            total_loan_amount=Decimal("3000000"), installment_amount=Decimal("1000000"),
        )
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)

        assert payroll_service.get(payroll_id).charges == ()
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve")
        assert adjustment_service.get(loan.id).current_installment == 0

    def test_loan_repaid_in_full_over_its_installments(self, payroll_service, adjustment_service, approved_loan, company_id, test_actor_id):
        loan = approved_loan("2500000", "1000000")

        deducted = Decimal("0")
        for month in (3, 4, 5):
            payroll_id = _generate_one(payroll_service, company_id, test_actor_id, PayPeriod(2024, month))
            record = _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve")
            deducted += record.total_deductions

        repaid = adjustment_service.get(loan.id)
        assert deducted == Decimal("2500000")
        assert repaid.current_installment == repaid.total_installments == 3
        assert repaid.remaining_balance == Decimal("0")
        assert repaid.status == AdjustmentStatus.PROCESSED

        june_id = _generate_one(payroll_service, company_id, test_actor_id, PayPeriod(2024, 6))
        assert payroll_service.get(june_id).total_deductions == Decimal("0")

    def test_approval_rolls_back_when_loan_already_paid(self, payroll_service, adjustment_service, approved_loan, company_id, test_actor_id):
        loan = approved_loan("1000000", "1000000")
        march_id = _generate_one(payroll_service, company_id, test_actor_id)
        april_id = _generate_one(payroll_service, company_id, test_actor_id, APRIL)
        assert payroll_service.get(april_id).charges[0].installment_number == 1

        _walk(payroll_service, march_id, test_actor_id, "validate", "submit", "approve")
        _walk(payroll_service, april_id, test_actor_id, "validate", "submit")

        with pytest.raises(AlreadyAmortizedError):
            payroll_service.transition(april_id, "approve", test_actor_id)

        record = payroll_service.get(april_id)
        assert record.status == PayrollStatus.SUBMITTED
        assert record.approved_by_id is None
        assert adjustment_service.get(loan.id).current_installment == 1

    def test_one_off_settled_recurring_kept(self, payroll_service, adjustment_service, make_employee, company_id, test_actor_id):
        employee = make_employee()
        bonus = adjustment_service.create_adjustment(
            employee.id, AdjustmentType.BONUS, Decimal("1000000"), date(2024, 3, 5), test_actor_id
        )
        dues = adjustment_service.create_adjustment(
            employee.id, AdjustmentType.DEDUCTION, Decimal("50000"), date(2024, 3, 1), test_actor_id,
            is_recurring=True,
        )
        adjustment_service.bulk_approve([bonus.id, dues.id], test_actor_id)
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)

        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve")

        assert adjustment_service.get(bonus.id).status == AdjustmentStatus.PROCESSED
        assert adjustment_service.get(dues.id).status == AdjustmentStatus.APPROVED


# =============================================================================
# Immutability
# =============================================================================


class TestPaidRecordImmutability:

    def test_paid_record_cannot_be_modified(self, session, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve", "mark_paid")

        model = session.get(PayrollRecordModel, payroll_id)
        model.net_salary = Decimal("1")
        with pytest.raises(ImmutabilityError):
            session.flush()
        session.rollback()

    def test_paid_record_cannot_be_deleted(self, session, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)
        _walk(payroll_service, payroll_id, test_actor_id, "validate", "submit", "approve", "mark_paid")

        session.delete(session.get(PayrollRecordModel, payroll_id))
        with pytest.raises(ImmutabilityError):
            session.flush()
        session.rollback()


# =============================================================================
# Logging
# =============================================================================


class TestLogging:

    def test_generation_events(self, captured_logs, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        make_employee(ptkp_status="X/9")

        payroll_service.generate(company_id, MARCH, test_actor_id)

        logs = captured_logs()
        completed = next(r for r in logs if r["message"] == "payroll_generation_completed")
        assert completed["generated"] == 1
        assert completed["errors"] == 1
        assert completed["company_id"] == str(company_id)
        failed = next(r for r in logs if r["message"] == "payroll_generation_employee_failed")
        assert failed["error_code"] == "MISSING_PTKP"

    def test_transition_event(self, captured_logs, payroll_service, make_employee, company_id, test_actor_id):
        make_employee()
        payroll_id = _generate_one(payroll_service, company_id, test_actor_id)

        payroll_service.transition(payroll_id, "validate", test_actor_id)

        event = next(r for r in captured_logs() if r["message"] == "payroll_transitioned")
        assert event["from_status"] == "calculated"
        assert event["to_status"] == "validated"
        assert event["payroll_id"] == str(payroll_id)
        assert event["actor_id"] == str(test_actor_id)
