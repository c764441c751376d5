"""
Tests for loan/advance amortization.

Covers:
- Installment plan sizing and end date
- Installment processing and final partial installment
- Over-amortization guard
- Conservation property: installments sum to the loan amount
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from payroll_engines.amortization import AmortizationState, apply_installment, plan_loan
from payroll_kernel.exceptions import AlreadyAmortizedError


class TestPlanLoan:

    def test_even_split(self):
        plan = plan_loan(Decimal("3000000"), Decimal("1000000"), date(2024, 1, 15))
        assert plan.total_installments == 3
        assert plan.recurring_end_date == date(2024, 4, 15)

    def test_remainder_adds_installment(self):
        plan = plan_loan(Decimal("2500000"), Decimal("1000000"), date(2024, 1, 31))
        assert plan.total_installments == 3
        # End-of-month effective date clamps to the target month's length.
        assert plan.recurring_end_date == date(2024, 4, 30)

    @pytest.mark.parametrize("total,installment", [("0", "100"), ("100", "0"), ("-5", "1")])
    def test_non_positive_amounts_rejected(self, total, installment):
        with pytest.raises(ValueError):
            plan_loan(Decimal(total), Decimal(installment), date(2024, 1, 1))


class TestApplyInstallment:

    def setup_method(self):
        self.state = AmortizationState(
            total_loan_amount=Decimal("2500000"),
            installment_amount=Decimal("1000000"),
            total_installments=3,
        )

    def test_initial_state(self):
        assert self.state.remaining_balance == Decimal("2500000")
        assert self.state.next_charge == Decimal("1000000")
        assert not self.state.is_fully_paid

    def test_final_installment_charges_remainder(self):
        state = apply_installment(apply_installment(self.state, "loan-1"), "loan-1")
        assert state.current_installment == 2
        assert state.remaining_balance == Decimal("500000")
        assert state.next_charge == Decimal("500000")

    def test_fully_paid(self):
        state = self.state
        for _ in range(3):
            state = apply_installment(state, "loan-1")
        assert state.is_fully_paid
        assert state.remaining_balance == Decimal("0")
        assert state.next_charge == Decimal("0")

    def test_over_amortization_raises(self):
        state = self.state
        for _ in range(3):
            state = apply_installment(state, "loan-1")
        with pytest.raises(AlreadyAmortizedError) as exc_info:
            apply_installment(state, "loan-1")
        assert exc_info.value.code == "ALREADY_AMORTIZED"
        assert exc_info.value.total_installments == 3

    def test_state_rejects_out_of_range_counter(self):
        with pytest.raises(ValueError):
            AmortizationState(Decimal("100"), Decimal("50"), 2, current_installment=3)


class TestAmortizationProperties:

    @given(
        installment=st.integers(min_value=1, max_value=50_000_000),
        full_installments=st.integers(min_value=0, max_value=59),
        last_share=st.integers(min_value=1, max_value=100),
    )
    @settings(max_examples=200, deadline=None)
    def test_installments_sum_to_loan(self, installment, full_installments, last_share):
        total = installment * full_installments + max(1, installment * last_share // 100)
        plan = plan_loan(Decimal(total), Decimal(installment), date(2024, 1, 1))
        state = AmortizationState(
            total_loan_amount=plan.total_loan_amount,
            installment_amount=plan.installment_amount,
            total_installments=plan.total_installments,
        )
        charged = Decimal("0")
        while not state.is_fully_paid:
            charged += state.next_charge
            state = apply_installment(state)
            assert state.remaining_balance >= 0
        assert charged == Decimal(total)
        assert state.current_installment == plan.total_installments
