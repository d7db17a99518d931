"""Tests for income-source validation, classification, capital gain netting and Social Security taxation."""

import pytest

from taxmodels import (
    AnnuityIncome,
    EarnedIncome,
    IncomeSource,
    OrdinaryIncome,
    PreferentialIncome,
    QualifiedRetirementIncome,
    RothIncome,
    TaxExemptIncome,
    TaxpayerProfile,
)
from taxengine.income_calculator import (
    calculate_roth_taxation,
    calculate_social_security_taxation,
    classify_income_sources,
    net_capital_gains,
    validate_income_source,
)


@pytest.fixture
def taxpayer_50():
    return TaxpayerProfile(age=50)


class TestValidation:

    def test_negative_wages_contribute_nothing(self, taxpayer_50):
        classified = classify_income_sources((EarnedIncome(id="w", type="wages", amount=-5_000),), taxpayer_50)
        assert classified.wages == 0.0
        assert len(classified.warnings) == 1

    def test_capital_losses_may_be_negative(self):
        assert validate_income_source(OrdinaryIncome(id="st", type="short-term-capital-gains", amount=-2_000)) is None

    def test_type_must_match_variant(self):
        assert "not valid" in validate_income_source(EarnedIncome(id="p", type="pension", amount=1_000))

    def test_bare_income_source_is_unsupported(self, taxpayer_50):
        classified = classify_income_sources((IncomeSource(id="x", type="lottery", amount=9_000),), taxpayer_50)
        assert classified.total_income == 0.0
        assert "unsupported" in classified.warnings[0]


class TestClassification:

    def test_characters_are_separated(self, taxpayer_50):
        sources = (
            EarnedIncome(id="w", type="wages", amount=1_000, frequency="monthly"),
            OrdinaryIncome(id="i", type="interest", amount=2_000),
            PreferentialIncome(id="q", type="qualified-dividends", amount=3_000),
            TaxExemptIncome(id="m", type="private-activity-bond-interest", amount=4_000),
            OrdinaryIncome(id="off", type="interest", amount=50_000, enabled=False),
        )
        classified = classify_income_sources(sources, taxpayer_50)
        assert classified.wages == 12_000
        assert classified.ordinary == 2_000
        assert classified.qualified_dividends == 3_000
        assert classified.tax_exempt_interest == 4_000
        assert classified.private_activity_bond_interest == 4_000
        assert classified.investment_income == 5_000
        assert classified.total_income == 21_000

    def test_early_ira_withdrawal_is_penalized(self, taxpayer_50):
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=10_000)
        classified = classify_income_sources((ira,), taxpayer_50)
        assert classified.penalties == pytest.approx(1_000)
        assert classified.penalty_details[0].source_id == "ira"

    def test_penalty_exempt_withdrawal(self, taxpayer_50):
        ira = QualifiedRetirementIncome(id="72t", type="traditional-ira", amount=10_000, penalty_exempt=True)
        assert classify_income_sources((ira,), taxpayer_50).penalties == 0.0

    def test_annuity_without_details_is_fully_taxable(self, taxpayer_50):
        classified = classify_income_sources((AnnuityIncome(id="a", type="annuity", amount=8_000),), taxpayer_50)
        assert classified.ordinary == 8_000
        assert "no contract details" in classified.warnings[0]


class TestRoth:

    def test_no_contribution_history_is_tax_free(self):
        roth = RothIncome(id="r", type="roth-ira", amount=8_000)
        result = calculate_roth_taxation(roth, 50)
        assert result.taxable_amount == 0.0
        assert result.penalty_amount == 0.0

    def test_early_earnings_are_penalized(self):
        roth = RothIncome(id="r", type="roth-ira", amount=8_000, total_contributions=5_000)
        result = calculate_roth_taxation(roth, 50)
        assert result.earnings_withdrawn == 3_000
        assert result.taxable_amount == 0.0
        assert result.penalty_amount == pytest.approx(300)

    def test_five_year_rule_not_met_taxes_earnings(self):
        roth = RothIncome(id="r", type="roth-ira", amount=8_000, total_contributions=5_000, five_year_rule_met=False)
        result = calculate_roth_taxation(roth, 65)
        assert result.taxable_amount == 3_000
        assert result.penalty_amount == 0.0


class TestCapitalGainNetting:

    def test_net_loss_is_limited(self):
        result = net_capital_gains(-10_000, 2_000, 3_000)
        assert result["loss_deduction"] == 3_000
        assert result["carryover"] == 5_000

    def test_long_term_loss_absorbed_by_short_term_gain(self):
        assert net_capital_gains(5_000, -2_000, 3_000)["ordinary_gain"] == 3_000

    def test_short_term_loss_absorbed_by_long_term_gain(self):
        result = net_capital_gains(-2_000, 5_000, 3_000)
        assert result["preferential_gain"] == 3_000
        assert result["ordinary_gain"] == 0.0


class TestSocialSecurity:

    THRESHOLDS = (25_000, 34_000)

    def test_below_base_amount(self):
        result = calculate_social_security_taxation(20_000, 10_000, self.THRESHOLDS)
        assert result.taxable_amount == 0.0
        assert result.tier == "none"

    def test_fifty_percent_tier(self):
        result = calculate_social_security_taxation(20_000, 20_000, self.THRESHOLDS)
        assert result.provisional_income == 30_000
        assert result.taxable_amount == pytest.approx(2_500)
        assert result.taxation_percentage == 50

    def test_eighty_five_percent_cap(self):
        result = calculate_social_security_taxation(20_000, 50_000, self.THRESHOLDS)
        assert result.taxable_amount == pytest.approx(17_000)
        assert result.tier == "85%"
