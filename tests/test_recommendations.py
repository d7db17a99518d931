"""Tests for rule-based recommendations and the strategy-search summary item."""

import pytest

from taxmodels import (
    AnnuityDetails,
    AnnuityIncome,
    AppSettings,
    DeductionSet,
    EarnedIncome,
    ItemizedDeductions,
    MarginalAnalysisResult,
    QualifiedRetirementIncome,
    RecommendationItem,
    TaxpayerProfile,
)
from taxengine.recommendations import (
    generate_tax_recommendations,
    recommendations_from_strategy_search,
    sort_recommendations,
)
from taxengine.strategy_engine import (
    PlanningHorizon,
    PlanningYear,
    SingleYearShiftGenerator,
    StrategyCandidate,
    StrategyEvaluation,
    StrategySearchResult,
    run_strategy_search,
)
from taxengine.tax_engine import calculate_comprehensive_taxes


def _analysis(**overrides):
    """Marginal analysis with nothing nearby; tests switch on the rule they exercise."""
    values = dict(
        marginal_rate=0.22,
        current_bracket_rate=0.22,
        next_bracket_rate=0.24,
        next_bracket_threshold=100_525,
        distance_to_next_threshold=1_000,
        amount_to_next_rate_hike=1_000,
        next_effective_marginal_rate=0.24,
        rate_hike_source="Tax Bracket (22% → 24%)",
        irmaa_cliff_distance=None,
        amt_crossover_distance=None,
    )
    values.update(overrides)
    return MarginalAnalysisResult(**values)


def _ids(items):
    return [item.id for item in items]


class TestHouseholdRules:

    def test_quiet_household_gets_nothing(self, single_worker_no_state, wages_50k):
        result = calculate_comprehensive_taxes(single_worker_no_state, income_sources=wages_50k)
        assert generate_tax_recommendations(result, _analysis()) == []

    def test_irmaa_cliff(self):
        taxpayer = TaxpayerProfile(age=70, state="FL")
        sources = (QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=100_000),)
        result = calculate_comprehensive_taxes(taxpayer, income_sources=sources)
        items = generate_tax_recommendations(result, _analysis(irmaa_cliff_distance=6_000))

        assert _ids(items) == ["irmaa-cliff"]
        assert items[0].priority == "high"
        assert items[0].projected_savings == pytest.approx(12 * (74.0 + 13.7))
        assert "$6,000" in items[0].description

    def test_irmaa_ignored_without_medicare(self, single_worker_no_state, wages_50k):
        result = calculate_comprehensive_taxes(single_worker_no_state, income_sources=wages_50k)
        assert generate_tax_recommendations(result, _analysis(irmaa_cliff_distance=2_000)) == []

    def test_bracket_room(self, single_worker_no_state, wages_50k):
        result = calculate_comprehensive_taxes(single_worker_no_state, income_sources=wages_50k)
        analysis = _analysis(current_bracket_rate=0.12, next_bracket_rate=0.22, next_bracket_threshold=47_150,
                             distance_to_next_threshold=12_150, marginal_rate=0.12)
        (item,) = generate_tax_recommendations(result, analysis)
        assert item.id == "bracket-room"
        assert item.category == "Roth Conversion"
        assert item.projected_savings == pytest.approx(1_215)

    def test_early_withdrawal_penalty(self):
        sources = (QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=10_000),)
        result = calculate_comprehensive_taxes(TaxpayerProfile(age=50, state="FL"), income_sources=sources)
        (item,) = generate_tax_recommendations(result, _analysis())
        assert item.id == "early-withdrawal-penalty"
        assert item.projected_savings == pytest.approx(1_000)
        assert item.considerations == ("ira: $1,000",)

    def test_rmd_shortfall(self):
        sources = (QualifiedRetirementIncome(id="ira", type="traditional-ira", amount=0, account_value=252_000),)
        result = calculate_comprehensive_taxes(TaxpayerProfile(age=75, state="FL"), income_sources=sources)
        items = generate_tax_recommendations(result, _analysis())
        (item,) = [i for i in items if i.id == "rmd-shortfall"]
        assert item.projected_savings == pytest.approx(2_500)
        assert "Required amounts are estimated from the simplified table" in item.considerations

    def test_deduction_bunching(self, single_worker_no_state, wages_50k):
        deductions = DeductionSet(itemized=ItemizedDeductions(salt=8_000, charitable_giving=4_000))
        result = calculate_comprehensive_taxes(single_worker_no_state, income_sources=wages_50k,
                                               deductions=deductions)
        (item,) = generate_tax_recommendations(result, _analysis())
        assert item.id == "deduction-bunching"
        assert item.priority == "low"

    def test_amt_crossover_nearby(self, single_worker_no_state, wages_50k):
        result = calculate_comprehensive_taxes(single_worker_no_state, income_sources=wages_50k)
        (item,) = generate_tax_recommendations(result, _analysis(amt_crossover_distance=3_000))
        assert item.id == "amt-crossover"


class TestProductStrategies:

    def _annuity(self):
        details = AnnuityDetails(purchase_date="2005-03-01", basis_amount=60_000, current_value=100_000)
        return (AnnuityIncome(id="fa", type="annuity", amount=5_000, details=details),)

    def test_annuity_strategies_need_the_taxpayer(self):
        taxpayer = TaxpayerProfile(age=50, state="FL")
        sources = self._annuity()
        result = calculate_comprehensive_taxes(taxpayer, income_sources=sources)

        without = generate_tax_recommendations(result, _analysis(), sources)
        with_taxpayer = generate_tax_recommendations(result, _analysis(), sources, taxpayer=taxpayer)

        product_ids = {"fa-timing", "fa-pro-rata", "fa-exchange"}
        assert not product_ids & set(_ids(without))
        assert product_ids <= set(_ids(with_taxpayer))
        assert [i.category for i in with_taxpayer if i.id in product_ids] == ["Retirement Planning"] * 3


def test_sort_by_priority_then_savings():
    items = [
        RecommendationItem(title="a", description="", priority="low", projected_savings=9_000),
        RecommendationItem(title="b", description="", priority="high", projected_savings=10),
        RecommendationItem(title="c", description="", priority="high", projected_savings=500),
        RecommendationItem(title="d", description="", priority="medium"),
    ]
    assert [i.title for i in sort_recommendations(items)] == ["c", "b", "d", "a"]


class TestStrategySearchSummary:

    def _horizon(self, shiftable_amount):
        working = PlanningYear(0, 2025, TaxpayerProfile(age=40, state="MI"), None,
                               (EarnedIncome(id="job", type="wages", amount=90_000),), None, AppSettings(tax_year=2025))
        sabbatical = PlanningYear(1, 2026, TaxpayerProfile(age=41, state="MI"), None, (), None,
                                  AppSettings(tax_year=2026, tcja_sunsetting=False))
        return PlanningHorizon(years=(working, sabbatical), shiftable_amount=shiftable_amount)

    def test_best_strategy_becomes_an_item(self):
        (item,) = recommendations_from_strategy_search(run_strategy_search(self._horizon(40_000)))
        assert item.id == "strategy-search-best"
        assert item.priority == "high"
        assert item.category == "Income Timing"
        assert item.considerations == ("2026: $40,000",)
        assert item.year == 2025

    def test_nothing_to_recommend_without_savings(self):
        assert recommendations_from_strategy_search(run_strategy_search(self._horizon(0))) == []

    def _evaluation(self, name, allocations, cumulative_savings):
        candidate = StrategyCandidate(name=name, description="Shift income", category="Income Timing",
                                      allocations=allocations)
        return StrategyEvaluation(candidate=candidate, yearly_tax=(0.0, 0.0), yearly_marginal_rate=(0.0, 0.0),
                                  cumulative_tax=0.0, cumulative_savings=cumulative_savings)

    def test_every_saving_candidate_in_rank_order(self):
        baseline = self._evaluation("All in 2025", (40_000, 0.0), 0.0)
        ranked = (
            self._evaluation("late", (0.0, 40_000), 5_000),
            self._evaluation("split", (20_000, 20_000), 400),
            self._evaluation("tilted", (30_000, 10_000), 100),
            self._evaluation("same as baseline", (40_000, 0.0), 0.0),
            self._evaluation("worse", (35_000, 5_000), -50),
        )
        search = StrategySearchResult(horizon=self._horizon(40_000), baseline=baseline, ranked=ranked)

        items = recommendations_from_strategy_search(search)

        assert [i.title for i in items] == ["late", "split", "tilted"]
        assert [i.priority for i in items] == ["high", "medium", "low"]
        assert _ids(items) == ["strategy-search-best", "strategy-search-2", "strategy-search-3"]
        assert items[1].considerations == ("2025: $20,000", "2026: $20,000")

    def test_items_follow_the_search_ranking(self):
        search = run_strategy_search(self._horizon(40_000), generator=SingleYearShiftGenerator())
        items = recommendations_from_strategy_search(search)
        expected = [e.candidate.name for e in search.ranked if e.cumulative_savings > 0]
        assert len(expected) >= 2
        assert [i.title for i in items] == expected
        assert [i.projected_savings for i in items] == sorted((i.projected_savings for i in items), reverse=True)
