"""Tests for Michigan income tax, the retirement deduction and the Homestead Property Tax Credit."""

import pytest

from taxmodels import HousingInfo, SpouseProfile, TaxpayerProfile
from taxengine.michigan import (
    calculate_michigan_homestead_credit,
    calculate_michigan_property_tax_exemptions,
    calculate_michigan_state_tax,
    michigan_retirement_deduction,
)


def _homeowner(**housing):
    defaults = dict(ownership="own", michigan_resident_6_months=True,
                    property_taxes_paid=3_000, property_taxable_value=100_000)
    defaults.update(housing)
    return TaxpayerProfile(age=70, housing=HousingInfo(**defaults))


class TestRetirementDeduction:

    def test_born_1945_or_earlier_deducts_everything(self):
        assert michigan_retirement_deduction(120_000, 1944, joint=False) == 120_000

    def test_capped_cohort(self):
        assert michigan_retirement_deduction(80_000, 1950, joint=False) == 46_138
        assert michigan_retirement_deduction(80_000, 1950, joint=True) == 80_000

    def test_born_1967_or_later_gets_nothing(self):
        assert michigan_retirement_deduction(50_000, 1970, joint=False) == 0.0

    def test_joint_return_uses_older_spouse(self):
        taxpayer = TaxpayerProfile(age=60, filing_status="married_filing_jointly", birth_year=1965)
        spouse = SpouseProfile(age=82, birth_year=1943)
        result = calculate_michigan_state_tax(100_000, 0, 100_000, "married_filing_jointly", taxpayer, spouse)
        assert result.retirement_deduction == 100_000
        assert result.net_tax == 0.0


class TestIncomeTax:

    def test_flat_rate_after_exemption(self):
        taxpayer = TaxpayerProfile(age=40, birth_year=1985)
        result = calculate_michigan_state_tax(60_000, 0, 0, "single", taxpayer)
        assert result.taxable_income == 54_400
        assert result.net_tax == pytest.approx(54_400 * 0.0425)
        assert result.marginal_rate == 0.0425

    def test_taxable_social_security_is_removed(self):
        taxpayer = TaxpayerProfile(age=40, birth_year=1985)
        result = calculate_michigan_state_tax(60_000, 20_000, 0, "single", taxpayer)
        assert result.agi == 40_000

    def test_credits_never_make_tax_negative(self):
        taxpayer = TaxpayerProfile(age=40, birth_year=1985)
        result = calculate_michigan_state_tax(10_000, 0, 0, "single", taxpayer, other_credits=5_000)
        assert result.net_tax == 0.0


class TestHomesteadCredit:

    def test_renter_is_ineligible(self):
        result = calculate_michigan_homestead_credit(_homeowner(ownership="rent"), 20_000)
        assert result.eligible is False
        assert result.reason == "Must own primary residence"

    def test_short_residency_is_ineligible(self):
        result = calculate_michigan_homestead_credit(_homeowner(michigan_resident_6_months=False), 20_000)
        assert result.reason == "Must be Michigan resident for 6+ months"

    def test_missing_property_data(self):
        result = calculate_michigan_homestead_credit(_homeowner(property_taxes_paid=0), 20_000)
        assert result.reason == "Property tax information required"

    def test_low_income_credit_is_capped(self):
        # 3,000 - 3.5% of 20,000 = 2,300 at 100%, capped at 1,500
        result = calculate_michigan_homestead_credit(_homeowner(), 20_000)
        assert result.eligible is True
        assert result.credit_rate == 1.0
        assert result.credit == 1_500

    def test_top_band(self):
        result = calculate_michigan_homestead_credit(_homeowner(), 38_000)
        assert result.credit_rate == 0.10
        assert result.credit == pytest.approx((3_000 - 38_000 * 0.035) * 0.10)

    def test_income_over_last_band(self):
        result = calculate_michigan_homestead_credit(_homeowner(), 40_000)
        assert result.eligible is False
        assert result.reason.startswith("Income too high")


def test_property_tax_exemptions_for_senior_veteran():
    taxpayer = TaxpayerProfile(age=70, is_veteran=True)
    assert [e["type"] for e in calculate_michigan_property_tax_exemptions(taxpayer)] == ["senior", "veteran"]
