"""Tests for bracket-fill planning targets and the single-year Roth conversion sizer."""

import numpy as np
import pytest

from taxengine.roth_optimizer import optimal_roth_conversion
from taxengine.tax_planning import get_tax_planning_targets
from taxutils.tax_utils import get_indexed_federal_constants


class TestPlanningTargets:

    def test_current_law_keys(self, single_constants_2025):
        tax_target, irmaa_target = get_tax_planning_targets(single_constants_2025, "fill_12_percent", "fill_IRMAA_1")
        assert tax_target == 47_150
        assert irmaa_target == 106_000

    def test_unknown_keys_impose_no_ceiling(self, single_constants_2025):
        tax_target, irmaa_target = get_tax_planning_targets(single_constants_2025, "fill_13_percent", "fill_IRMAA_9")
        assert tax_target == np.inf
        assert irmaa_target == np.inf

    def test_top_bracket_has_no_key(self, single_constants_2025):
        tax_target, _ = get_tax_planning_targets(single_constants_2025, "fill_37_percent", "fill_IRMAA_1")
        assert tax_target == np.inf

    def test_sunset_schedule_keys(self):
        constants = get_indexed_federal_constants(2026, "single", tcja_sunsetting=True)
        assert get_tax_planning_targets(constants, "fill_15_percent", "fill_IRMAA_1")[0] == 48_000
        assert get_tax_planning_targets(constants, "fill_22_percent", "fill_IRMAA_1")[0] == np.inf


class TestRothConversion:

    def test_bracket_room_rounded_to_thousand(self, single_constants_2025):
        conversion = optimal_roth_conversion(30_000, 80_000, 100_000, single_constants_2025,
                                             "fill_12_percent", "fill_IRMAA_1")
        assert conversion == 17_000

    def test_irmaa_room_binds(self, single_constants_2025):
        conversion = optimal_roth_conversion(30_000, 100_000, 100_000, single_constants_2025,
                                             "fill_12_percent", "fill_IRMAA_1")
        # 6,000 would put MAGI exactly on the threshold, which is already tier 1
        assert conversion == 5_000

    def test_magi_stays_below_irmaa_threshold(self, single_constants_2025):
        conversion = optimal_roth_conversion(30_000, 105_500, 100_000, single_constants_2025,
                                             "fill_22_percent", "fill_IRMAA_1")
        assert 0 < conversion
        assert 105_500 + conversion < 106_000

    def test_rounds_down_never_up(self, single_constants_2025):
        conversion = optimal_roth_conversion(29_350, 50_000, 100_000, single_constants_2025,
                                             "fill_12_percent", "fill_IRMAA_1")
        assert conversion == 17_000

    def test_balance_binds(self, single_constants_2025):
        conversion = optimal_roth_conversion(0, 0, 12_345, single_constants_2025,
                                             "fill_22_percent", "fill_IRMAA_1")
        assert conversion == 12_345

    def test_small_remainder_is_not_rounded(self, single_constants_2025):
        conversion = optimal_roth_conversion(46_700, 60_000, 100_000, single_constants_2025,
                                             "fill_12_percent", "fill_IRMAA_1")
        assert conversion == pytest.approx(450)

    def test_no_balance(self, single_constants_2025):
        assert optimal_roth_conversion(0, 0, 0, single_constants_2025, "fill_12_percent", "fill_IRMAA_1") == 0.0

    def test_already_over_ceiling(self, single_constants_2025):
        assert optimal_roth_conversion(60_000, 70_000, 50_000, single_constants_2025,
                                       "fill_12_percent", "fill_IRMAA_1") == 0.0
