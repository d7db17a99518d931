"""Tests for RMD factors, per-account requirements and synthetic estimated-RMD income."""

import pytest

from taxmodels import AppSettings, QualifiedRetirementIncome, SpouseProfile, TaxpayerProfile
from taxengine.accounts_income import apply_estimated_rmds, compute_rmds
from taxengine.rmd_tables import get_rmd_factor, get_simplified_rmd_factor, lookup_rmd_factor, rmd_start_age
from taxengine.tax_engine import calculate_comprehensive_taxes


class TestFactors:

    @pytest.mark.parametrize("age, factor", [
        (72, 0.0), (73, 27.4), (75, 25.2), (80, 20.8), (85, 17.4), (90, 15.0),
    ])
    def test_simplified_bands(self, age, factor):
        assert get_simplified_rmd_factor(age) == pytest.approx(factor)

    @pytest.mark.parametrize("table", ["simplified", "uniform"])
    def test_rmd_grows_with_age(self, table):
        value = 200_000
        assert value / lookup_rmd_factor(80, table) >= value / lookup_rmd_factor(73, table)

    def test_secure_2_start_age_for_1960_births(self):
        assert get_rmd_factor(74, birth_year=1960) == 0.0
        assert get_rmd_factor(75, birth_year=1960) == 24.6

    def test_uniform_table_at_84(self):
        assert get_rmd_factor(84) == 16.8

    def test_inherited_account_stays_on_pre_2022_table(self):
        assert get_rmd_factor(70, inherited_continuing=True) == 27.4
        assert get_rmd_factor(84, use_pre_2022_table=True) == 15.5

    @pytest.mark.parametrize("birth_year, start", [(1950, 72), (1955, 73), (1962, 75), (None, 73)])
    def test_start_age_by_cohort(self, birth_year, start):
        assert rmd_start_age(birth_year) == start

    def test_past_the_table(self):
        assert get_rmd_factor(125) == 2.0


class TestComputeRmds:

    def test_current_value_fallback_is_estimated(self):
        taxpayer = TaxpayerProfile(age=75)
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0, account_value=200_000)
        summary = compute_rmds((ira,), taxpayer, None, AppSettings())
        assert summary.total_required == pytest.approx(200_000 / 25.2)
        assert summary.is_estimated is True
        assert summary.shortfall == pytest.approx(summary.total_required)

    def test_prior_year_value_is_used_when_given(self):
        taxpayer = TaxpayerProfile(age=75)
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0,
                                        account_value=200_000, prior_year_value=180_000)
        summary = compute_rmds((ira,), taxpayer, None, AppSettings())
        assert summary.total_required == pytest.approx(180_000 / 25.2)
        assert summary.is_estimated is False

    def test_actual_rmd_overrides_factor(self):
        taxpayer = TaxpayerProfile(age=75)
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=5_000, account_value=200_000,
                                        rmd_method="actual", actual_rmd=5_000)
        summary = compute_rmds((ira,), taxpayer, None, AppSettings())
        assert summary.total_required == 5_000
        assert summary.shortfall == 0.0
        assert summary.is_estimated is False

    def test_under_start_age_has_no_requirement(self):
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0, account_value=200_000)
        assert compute_rmds((ira,), TaxpayerProfile(age=70), None, AppSettings()).total_required == 0.0

    def test_shortfall_is_tracked_per_owner(self):
        taxpayer = TaxpayerProfile(age=75, filing_status="married_filing_jointly")
        spouse = SpouseProfile(age=75)
        sources = (
            QualifiedRetirementIncome(id="mine", type="traditional-ira", amount=20_000, account_value=252_000),
            QualifiedRetirementIncome(id="theirs", type="traditional-ira", amount=0, account_value=252_000,
                                      owner="spouse"),
        )
        summary = compute_rmds(sources, taxpayer, spouse, AppSettings())
        # The taxpayer's extra withdrawal does not cover the spouse's requirement
        assert dict(summary.shortfall_by_owner) == {"spouse": pytest.approx(10_000)}


class TestEstimatedRmdIncome:

    def test_only_the_shortfall_is_added(self):
        taxpayer = TaxpayerProfile(age=75, state="MI")
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=4_000, account_value=252_000)
        settings = AppSettings(rmd_enabled=True)
        result = calculate_comprehensive_taxes(taxpayer, income_sources=(ira,), settings=settings)

        synthetic = [s for s in result.adjusted_sources if s.type == "estimated-rmd"]
        assert len(synthetic) == 1
        assert synthetic[0].taxable_amount == pytest.approx(6_000)
        assert synthetic[0].penalty == 0.0
        assert result.summary.agi == pytest.approx(10_000)

    def test_reapplying_replaces_stale_entries(self):
        taxpayer = TaxpayerProfile(age=75)
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0, account_value=252_000)
        summary = compute_rmds((ira,), taxpayer, None, AppSettings())
        once = apply_estimated_rmds((ira,), summary)
        twice = apply_estimated_rmds(once, compute_rmds(once, taxpayer, None, AppSettings()))
        assert [s.type for s in twice].count("estimated-rmd") == 1
        assert sum(s.amount for s in twice) == pytest.approx(10_000)

    def test_disabled_setting_reports_without_adding_income(self):
        taxpayer = TaxpayerProfile(age=75)
        ira = QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0, account_value=252_000)
        result = calculate_comprehensive_taxes(taxpayer, income_sources=(ira,))
        assert result.rmd.shortfall == pytest.approx(10_000)
        assert result.summary.agi == 0.0
