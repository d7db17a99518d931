"""Tests for cash-value life insurance: FIFO / MEC withdrawals, loans, the 7-pay test and income streams."""

import pytest

from taxmodels import LifeInsuranceDetails
from taxengine.life_insurance import (
    calculate_death_benefit_taxation,
    calculate_income_stream,
    calculate_loan_taxation,
    calculate_withdrawal_taxation,
    classify_life_insurance_policy,
    determine_mec_status,
)


@pytest.fixture
def policy():
    return LifeInsuranceDetails(total_premiums_paid=100_000, current_cash_value=150_000, policy_face_amount=500_000)


class TestWithdrawals:

    def test_withdrawal_within_basis_is_tax_free(self, policy):
        result = calculate_withdrawal_taxation(policy, 40_000)
        assert result.taxable_amount == 0.0
        assert result.kind == "basis-only"

    def test_prior_withdrawals_reduce_basis(self):
        details = LifeInsuranceDetails(total_premiums_paid=100_000, current_cash_value=150_000,
                                       prior_withdrawals=80_000)
        result = calculate_withdrawal_taxation(details, 40_000)
        assert result.tax_free_amount == 20_000
        assert result.taxable_amount == 20_000

    def test_mec_pays_gains_first(self):
        details = LifeInsuranceDetails(total_premiums_paid=100_000, current_cash_value=150_000, is_mec=True)
        result = calculate_withdrawal_taxation(details, 30_000)
        assert result.taxable_amount == 30_000
        assert result.kind == "mec-gains"

    def test_term_policy_has_nothing_to_withdraw(self):
        result = calculate_withdrawal_taxation(LifeInsuranceDetails(policy_type="term"), 5_000)
        assert result.taxable_amount == 0.0
        assert result.tax_free_amount == 0.0


class TestLoans:

    def test_loan_on_active_policy_is_tax_free(self, policy):
        assert calculate_loan_taxation(policy, 25_000).taxable_amount == 0.0

    def test_lapse_makes_loans_over_basis_taxable(self):
        details = LifeInsuranceDetails(total_premiums_paid=100_000, existing_loans=90_000, policy_lapsed=True)
        assert calculate_loan_taxation(details, 20_000).taxable_amount == pytest.approx(10_000)

    def test_combination_borrows_to_basis_then_withdraws(self):
        details = LifeInsuranceDetails(total_premiums_paid=100_000, current_cash_value=150_000,
                                       existing_loans=90_000, prior_withdrawals=95_000)
        result = calculate_income_stream(details, "combination", 30_000)
        # 10,000 borrowed; 20,000 withdrawn against 5,000 of remaining basis
        assert result.taxable_amount == pytest.approx(15_000)
        assert result.tax_free_amount == pytest.approx(15_000)

    def test_unknown_access_method_falls_back_to_withdrawal(self, policy):
        assert calculate_income_stream(policy, "surrender", 10_000).kind == "basis-only"


class TestMecStatus:

    def test_fails_seven_pay_test(self):
        details = LifeInsuranceDetails(policy_face_amount=100_000, premium_payments=(6_000, 6_000))
        assert determine_mec_status(details)["is_mec"] is True

    def test_passes_seven_pay_test(self):
        details = LifeInsuranceDetails(policy_face_amount=100_000, premium_payments=(5_000, 5_000))
        status = determine_mec_status(details)
        assert status["is_mec"] is False
        assert status["cumulative_premiums"] == 10_000


def test_death_benefit_is_tax_free():
    assert calculate_death_benefit_taxation(250_000).taxable_amount == 0.0


def test_mec_classification_notes_lifo():
    assert "LIFO" in classify_life_insurance_policy("universal-life", is_mec=True)["mec_impact"]
