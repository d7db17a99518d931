"""Tests for filing-status normalization, table selection and the indexed constants."""

import numpy as np
import pytest

from taxutils.tax_utils import (
    FILING_STATUSES,
    ORDINARY_BRACKETS,
    TaxTableError,
    get_indexed_federal_constants,
    normalize_filing_status,
    resolve_table_year,
    validate_brackets,
)


@pytest.mark.parametrize("raw, expected", [
    ("married-jointly", "married_filing_jointly"),
    ("marriedFilingJointly", "married_filing_jointly"),
    ("MFJ", "married_filing_jointly"),
    ("married_separately", "married_separate"),
    ("hoh", "head_of_household"),
    ("Qualifying Surviving Spouse", "qualifying_widow"),
    ("bogus", "single"),
    (None, "single"),
])
def test_normalize_filing_status(raw, expected):
    assert normalize_filing_status(raw) == expected


class TestTableSelection:

    def test_stored_year(self):
        assert resolve_table_year(2025) == (2025, False, 1.0)

    def test_sunset_only_from_2026(self):
        assert resolve_table_year(2026, tcja_sunsetting=True)[1] is True
        assert resolve_table_year(2026, tcja_sunsetting=False)[1] is False

    def test_projection_needs_inflation(self):
        with pytest.raises(TaxTableError):
            resolve_table_year(2030)
        table_year, _, factor = resolve_table_year(2028, inflation_rate=0.03)
        assert table_year == max(ORDINARY_BRACKETS)
        assert factor == pytest.approx(1.03 ** 2)

    def test_before_first_table(self):
        with pytest.raises(TaxTableError):
            resolve_table_year(2019)


class TestValidateBrackets:

    def test_stored_tables_are_valid(self):
        for year, by_status in ORDINARY_BRACKETS.items():
            for status, brackets in by_status.items():
                validate_brackets(brackets, f"{year}/{status}")

    @pytest.mark.parametrize("brackets", [
        (),
        ((100, np.inf, 0.1),),
        ((0, 10_000, 0.1), (12_000, np.inf, 0.2)),
        ((0, 10_000, 0.2), (10_000, np.inf, 0.1)),
        ((0, 10_000, 0.1), (10_000, 20_000, 0.2)),
    ])
    def test_malformed_tables_raise(self, brackets):
        with pytest.raises(TaxTableError):
            validate_brackets(brackets)


class TestIndexedConstants:

    @pytest.mark.parametrize("status", FILING_STATUSES)
    def test_every_status_resolves(self, status):
        constants = get_indexed_federal_constants(2025, status)
        assert constants["ord_list"][0][0] == 0
        assert constants["ord_list"][-1][1] == np.inf

    def test_qualifying_widow_uses_joint_tables(self):
        widow = get_indexed_federal_constants(2025, "qualifying_widow")
        joint = get_indexed_federal_constants(2025, "married_filing_jointly")
        assert widow["ord_list"] == joint["ord_list"]
        assert widow["std_deduction"] == joint["std_deduction"]

    def test_each_call_returns_fresh_lists(self):
        first = get_indexed_federal_constants(2025, "single")
        first["irmaa_thresholds"].append(1)
        first["ord_list"].clear()
        second = get_indexed_federal_constants(2025, "single")
        assert len(second["irmaa_thresholds"]) == 5
        assert len(second["ord_list"]) == 7

    def test_projected_year_is_inflated(self):
        constants = get_indexed_federal_constants(2028, "single", tcja_sunsetting=False, inflation_rate=0.02)
        assert constants["std_deduction"] == pytest.approx(16_100 * 1.02 ** 2)
        assert constants["senior_deduction"]["amount"] == 6_000

    def test_sunset_schedule(self):
        constants = get_indexed_federal_constants(2026, "single", tcja_sunsetting=True)
        assert constants["std_deduction"] == 8_000
        assert constants["senior_deduction"] is None
        assert constants["ord_dict"]["15_percent"] == [12_000, 48_000]
