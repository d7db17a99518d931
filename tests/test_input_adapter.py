"""Tests for building engine inputs from camelCase form payloads."""

import pytest

from taxmodels import (
    AnnuityIncome,
    EarnedIncome,
    IncomeSource,
    LifeInsuranceIncome,
    QualifiedRetirementIncome,
    RothIncome,
)
from taxutils.input_adapter import (
    build_income_source,
    build_settings,
    build_spouse_profile,
    build_taxpayer_profile,
    get_tax_inputs,
    to_snake_case,
)
from taxengine.tax_engine import calculate_comprehensive_taxes


@pytest.mark.parametrize("key, expected", [
    ("accountValue", "account_value"),
    ("isMEC", "is_mec"),
    ("michiganResident6Months", "michigan_resident_6_months"),
    ("tax_year", "tax_year"),
    ("rmd-table", "rmd_table"),
])
def test_to_snake_case(key, expected):
    assert to_snake_case(key) == expected


class TestIncomeSources:

    def test_wages_with_currency_string(self):
        source = build_income_source({"id": "w1", "type": "wages", "amount": "$50,000", "owner": "taxpayer"})
        assert isinstance(source, EarnedIncome)
        assert source.amount == 50_000

    def test_balance_aliases(self):
        source = build_income_source({
            "type": "traditional-ira", "amount": 1_000,
            "currentBalance": "250,000", "priorYearEndBalance": 240_000, "extraField": "dropped",
        })
        assert isinstance(source, QualifiedRetirementIncome)
        assert source.account_value == 250_000
        assert source.prior_year_value == 240_000
        assert source.id == "traditional-ira"

    def test_annuity_details(self):
        source = build_income_source({
            "id": "a1", "type": "annuity", "amount": 6_000,
            "annuityDetails": {"purchaseDate": "1980-05-01", "basisAmount": "$40,000", "currentValue": 90_000},
        })
        assert isinstance(source, AnnuityIncome)
        assert source.details.basis_amount == 40_000
        assert source.details.purchase_date == "1980-05-01"

    def test_life_insurance_access_method_from_details(self):
        source = build_income_source({
            "id": "li", "type": "life-insurance", "amount": 5_000,
            "lifeInsuranceDetails": {"accessMethod": "loan", "totalPremiumsPaid": 30_000,
                                     "premiumPayments": ["$10,000", 10_000]},
        })
        assert isinstance(source, LifeInsuranceIncome)
        assert source.access_method == "loan"
        assert source.details.premium_payments == (10_000, 10_000)

    def test_roth_details_are_flattened(self):
        source = build_income_source({
            "id": "r", "type": "roth-ira", "amount": 8_000,
            "rothDetails": {"totalContributions": 5_000, "fiveYearRuleMet": False},
        })
        assert isinstance(source, RothIncome)
        assert source.total_contributions == 5_000
        assert source.five_year_rule_met is False

    def test_unknown_type_is_a_bare_source(self):
        source = build_income_source({"id": "x", "type": "lottery", "amount": 9_000})
        assert type(source) is IncomeSource


class TestHousehold:

    def test_taxpayer_with_housing(self):
        taxpayer = build_taxpayer_profile({
            "age": 70, "filingStatus": "single", "stateOfResidence": "MI",
            "housing": {"ownership": "own", "michiganResident6Months": True, "propertyTaxesPaid": "$3,000"},
        })
        assert taxpayer.state == "MI"
        assert taxpayer.housing.michigan_resident_6_months is True
        assert taxpayer.housing.property_taxes_paid == 3_000

    def test_spouse_needs_an_age(self):
        assert build_spouse_profile({}) is None
        assert build_spouse_profile({"age": None}) is None
        assert build_spouse_profile({"age": 62}).age == 62

    def test_settings(self):
        settings = build_settings({"taxYear": 2026, "tcjaSunsetting": False, "inflationRate": "2.5%",
                                   "medicare": {"taxpayer": True}})
        assert settings.tax_year == 2026
        assert settings.tcja_sunsetting is False
        assert settings.inflation_rate == pytest.approx(0.025)
        assert settings.medicare.taxpayer is True


def test_payload_runs_through_the_engine():
    payload = {
        "taxpayer": {"age": 40, "filingStatus": "single", "state": "FL"},
        "incomeSources": [{"id": "job", "type": "wages", "amount": "$50,000"}],
        "appSettings": {"taxYear": 2025},
        "ficaEnabled": False,
    }
    result = calculate_comprehensive_taxes(**get_tax_inputs(payload))
    assert result.summary.federal_tax == pytest.approx(3_968)
    assert result.fica is None


def test_package_level_payload_entry_point():
    from taxengine import calculate_taxes_from_payload

    payload = {
        "taxpayer": {"age": 40, "filingStatus": "single", "state": "FL"},
        "incomeSources": [{"id": "job", "type": "wages", "amount": "$50,000"}],
        "appSettings": {"taxYear": 2025},
    }
    assert calculate_taxes_from_payload(payload) == calculate_comprehensive_taxes(**get_tax_inputs(payload))
