"""Tests for annuity taxation: TEFRA classification, FIFO basis recovery, exclusion ratio and RMDs."""

import pytest

from taxmodels import AnnuityDetails
from taxengine.annuity import (
    annuity_distribution_schedule,
    calculate_annuity_rmd,
    calculate_annuity_taxation,
    classify_annuity,
    get_annuity_tax_strategies,
)

PRE_TEFRA = "1980-03-01"
POST_TEFRA = "2000-01-01"


class TestPreTefra:

    def test_distribution_inside_basis_is_tax_free_and_unpenalized(self):
        details = AnnuityDetails(purchase_date=PRE_TEFRA, basis_amount=30_000, current_value=60_000)
        result = calculate_annuity_taxation(details, 50, 10_000)
        assert result.is_pre_tefra is True
        assert result.non_taxable_amount == 10_000
        assert result.taxable_amount == 0.0
        assert result.penalty_rate == 0.10
        assert result.penalty_amount == 0.0
        assert result.basis_remaining == 20_000

    def test_distribution_past_basis_is_taxable_and_penalized_before_59_half(self):
        details = AnnuityDetails(purchase_date=PRE_TEFRA, basis_amount=30_000, basis_remaining=4_000)
        result = calculate_annuity_taxation(details, 50, 10_000)
        assert result.non_taxable_amount == 4_000
        assert result.taxable_amount == 6_000
        assert result.penalty_amount == pytest.approx(600.0)

    def test_cumulative_recovery_never_exceeds_basis(self):
        details = AnnuityDetails(purchase_date=PRE_TEFRA, basis_amount=30_000, current_value=80_000)
        results, final = annuity_distribution_schedule(details, 62, [10_000] * 6)
        assert sum(r.non_taxable_amount for r in results) == pytest.approx(30_000)
        assert final.basis_remaining == 0.0
        assert results[3].taxable_amount == 10_000

    def test_tefra_boundary(self):
        assert classify_annuity("1982-08-13")["is_pre_tefra"] is True
        assert classify_annuity("1982-08-14")["is_pre_tefra"] is False

    def test_unreadable_date_is_post_tefra(self):
        assert classify_annuity("not a date")["is_pre_tefra"] is False


class TestPostTefra:

    def test_exclusion_ratio_on_current_value(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=50_000, current_value=100_000)
        result = calculate_annuity_taxation(details, 65, 10_000)
        assert result.exclusion_ratio == pytest.approx(0.5)
        assert result.non_taxable_amount == pytest.approx(5_000)
        assert result.taxable_amount == pytest.approx(5_000)
        assert result.penalty_amount == 0.0

    def test_immediate_annuity_uses_expected_return(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=40_000, annuity_type="immediate",
                                 expected_return=160_000)
        assert calculate_annuity_taxation(details, 70, 8_000).non_taxable_amount == pytest.approx(2_000)

    def test_qualified_contract_fully_taxable_without_penalty(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=0, is_qualified=True)
        result = calculate_annuity_taxation(details, 50, 12_000)
        assert result.taxable_amount == 12_000
        assert result.penalty_amount == 0.0


class TestAnnuityRmd:

    def test_non_qualified_has_no_rmd(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=10_000, current_value=100_000)
        assert calculate_annuity_rmd(details, 80).required is False

    def test_qualified_deferred_at_75(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=0, current_value=246_000, is_qualified=True)
        rmd = calculate_annuity_rmd(details, 75)
        assert rmd.required is True
        assert rmd.factor == 24.6
        assert rmd.amount == pytest.approx(10_000)

    def test_much_younger_spouse_lengthens_factor(self):
        details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=0, current_value=100_000, is_qualified=True)
        rmd = calculate_annuity_rmd(details, 75, spouse_age=60)
        assert rmd.factor == pytest.approx(26.6)
        assert rmd.table_used == "Joint Life Expectancy"


def test_young_non_qualified_owner_gets_timing_strategy():
    details = AnnuityDetails(purchase_date=POST_TEFRA, basis_amount=50_000, current_value=100_000)
    types = [s["type"] for s in get_annuity_tax_strategies(details, 50)]
    assert types[0] == "timing"
    assert "pro-rata" in types
    assert "exchange" in types
