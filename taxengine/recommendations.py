# taxengine/recommendations.py
"""
Rule-based planning suggestions built from one year's TaxResult and its
marginal analysis, plus a summary item for a multi-year strategy search.
"""
from typing import List, Optional, Sequence
import logging

from taxmodels import (
    AnnuityIncome,
    AppSettings,
    IncomeSource,
    LifeInsuranceIncome,
    MarginalAnalysisResult,
    RecommendationItem,
    SpouseProfile,
    TaxpayerProfile,
    TaxResult,
)
from taxengine.accounts_income import resolve_owner_age
from taxengine.annuity import get_annuity_tax_strategies
from taxengine.life_insurance import get_life_insurance_tax_strategies
from taxengine.tax_engine import calculate_irmaa
from taxutils.currency import format_currency_output, format_percent_output
from taxutils.tax_utils import get_indexed_federal_constants
from taxconfig.analysis_assumptions import irmaa_cliff_warning_distance, bracket_room_minimum

logger = logging.getLogger(__name__)

# --- Categories and priorities ---
TAX_OPTIMIZATION = "Tax Optimization"
INCOME_TIMING = "Income Timing"
DEDUCTION_STRATEGY = "Deduction Strategy"
RETIREMENT_PLANNING = "Retirement Planning"
MEDICARE_PLANNING = "Medicare Planning"
CAPITAL_GAINS = "Capital Gains Strategy"
ROTH_CONVERSION = "Roth Conversion"
ESTATE_PLANNING = "Estate Planning"

RECOMMENDATION_CATEGORIES = (
    TAX_OPTIMIZATION, INCOME_TIMING, DEDUCTION_STRATEGY, RETIREMENT_PLANNING,
    MEDICARE_PLANNING, CAPITAL_GAINS, ROTH_CONVERSION, ESTATE_PLANNING,
)
PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

LOW_BRACKET_CEILING = 0.12          # Roth room is suggested from the 12% bracket down
MISSED_RMD_EXCISE_RATE = 0.25
ITEMIZE_GAP = 5_000                 # Within this of the standard deduction, bunching may help
SIGNIFICANT_STRATEGY_SAVINGS = 1_000    # Multi-year savings at or above this are high priority
MODEST_STRATEGY_SAVINGS = 250


# --- 1. Internal Helper Functions ---

def _irmaa_step_cost(tax_result: TaxResult, settings: AppSettings) -> float:
    """Extra annual surcharge if MAGI reaches the next IRMAA threshold."""
    irmaa = tax_result.irmaa
    if irmaa.next_threshold is None or irmaa.persons_covered == 0:
        return 0.0
    constants = get_indexed_federal_constants(
        tax_result.tax_year, tax_result.filing_status, settings.tcja_sunsetting, settings.inflation_rate
    )
    next_tier = calculate_irmaa(irmaa.next_threshold, constants, irmaa.persons_covered)
    return next_tier.annual_surcharge - irmaa.annual_surcharge


def _irmaa_recommendation(tax_result, marginal_analysis, settings) -> Optional[RecommendationItem]:
    distance = marginal_analysis.irmaa_cliff_distance
    if distance is None or tax_result.irmaa.persons_covered == 0 or distance > irmaa_cliff_warning_distance:
        return None
    step_cost = _irmaa_step_cost(tax_result, settings)
    return RecommendationItem(
        id="irmaa-cliff",
        title="Medicare IRMAA Threshold Nearby",
        description=(
            f"MAGI is {format_currency_output(distance)} below the next IRMAA tier; crossing it adds "
            f"{format_currency_output(step_cost)} in annual Medicare surcharges."
        ),
        projected_savings=step_cost,
        year=tax_result.tax_year,
        category=MEDICARE_PLANNING,
        priority="high",
        action="Keep additional income (conversions, gains, IRA withdrawals) under the threshold this year.",
        considerations=(
            "IRMAA is based on income from 2 years prior",
            "One dollar over the threshold triggers the full tier surcharge",
            "Tax-exempt interest counts toward IRMAA MAGI",
        ),
    )


def _bracket_room_recommendation(tax_result, marginal_analysis) -> Optional[RecommendationItem]:
    room = marginal_analysis.distance_to_next_threshold
    current = marginal_analysis.current_bracket_rate
    if marginal_analysis.next_bracket_threshold is None or room < bracket_room_minimum or current > LOW_BRACKET_CEILING:
        return None
    step_up = max(0.0, marginal_analysis.next_bracket_rate - current)
    return RecommendationItem(
        id="bracket-room",
        title=f"Room Left in the {format_percent_output(current, 0)} Bracket",
        description=(
            f"{format_currency_output(room)} of ordinary income fits before the "
            f"{format_percent_output(marginal_analysis.next_bracket_rate, 0)} bracket."
        ),
        projected_savings=room * step_up,
        year=tax_result.tax_year,
        category=ROTH_CONVERSION,
        priority="medium",
        action=f"Consider a Roth conversion of up to {format_currency_output(room)} this year.",
        considerations=(
            "Conversions raise AGI and can affect Social Security taxation and IRMAA",
            f"Next rate hike in {format_currency_output(marginal_analysis.amount_to_next_rate_hike)} "
            f"({marginal_analysis.rate_hike_source})",
            "Pay the conversion tax from non-retirement funds where possible",
        ),
    )


def _amt_recommendation(tax_result, marginal_analysis) -> Optional[RecommendationItem]:
    amt = tax_result.federal.amt
    if amt.applies:
        return RecommendationItem(
            id="amt-exposure",
            title="Alternative Minimum Tax Applies",
            description=f"AMT adds {format_currency_output(amt.additional_tax)} over the regular tax.",
            projected_savings=amt.additional_tax,
            year=tax_result.tax_year,
            category=TAX_OPTIMIZATION,
            priority="high",
            action="Review SALT, miscellaneous deductions and private activity bond interest.",
            considerations=tuple(f"{a.description}: {format_currency_output(a.amount)}" for a in amt.adjustments),
        )
    crossover = marginal_analysis.amt_crossover_distance
    if crossover is not None and crossover <= bracket_room_minimum:
        return RecommendationItem(
            id="amt-crossover",
            title="Close to the Alternative Minimum Tax",
            description=f"About {format_currency_output(crossover)} of added income would trigger AMT.",
            year=tax_result.tax_year,
            category=TAX_OPTIMIZATION,
            priority="low",
            action="Model additional income carefully before recognizing it this year.",
        )
    return None


def _niit_recommendation(tax_result) -> Optional[RecommendationItem]:
    niit = tax_result.federal.niit
    if not niit.applies:
        return None
    return RecommendationItem(
        id="niit-exposure",
        title="Net Investment Income Tax",
        description=(
            f"{format_currency_output(niit.excess_amount)} of income over the "
            f"{format_currency_output(niit.threshold)} threshold costs {format_currency_output(niit.tax)} in NIIT."
        ),
        projected_savings=niit.tax,
        year=tax_result.tax_year,
        category=CAPITAL_GAINS,
        priority="medium",
        action="Consider harvesting losses or deferring gains to stay under the threshold.",
        considerations=(
            "Municipal bond interest is outside net investment income",
            "Installment sales spread gains across years",
        ),
    )


def _penalty_recommendation(tax_result) -> Optional[RecommendationItem]:
    penalties = tax_result.federal.penalties
    if penalties <= 0:
        return None
    return RecommendationItem(
        id="early-withdrawal-penalty",
        title="Early Withdrawal Penalties",
        description=f"Distributions before age 59½ add {format_currency_output(penalties)} in penalties.",
        projected_savings=penalties,
        year=tax_result.tax_year,
        category=RETIREMENT_PLANNING,
        priority="high",
        action="Draw from taxable accounts or Roth contributions first, or use a 72(t) schedule.",
        considerations=tuple(
            f"{d.source_id}: {format_currency_output(d.penalty)}" for d in tax_result.federal.penalty_details
        ),
    )


def _rmd_recommendation(tax_result) -> Optional[RecommendationItem]:
    rmd = tax_result.rmd
    if rmd.shortfall <= 0:
        return None
    return RecommendationItem(
        id="rmd-shortfall",
        title="Required Minimum Distribution Shortfall",
        description=(
            f"Withdrawals are {format_currency_output(rmd.shortfall)} short of the "
            f"{format_currency_output(rmd.total_required)} required this year."
        ),
        projected_savings=rmd.shortfall * MISSED_RMD_EXCISE_RATE,
        year=tax_result.tax_year,
        category=RETIREMENT_PLANNING,
        priority="high",
        action="Take the remaining distribution before December 31.",
        considerations=(
            f"Missed RMDs carry a {format_percent_output(MISSED_RMD_EXCISE_RATE, 0)} excise tax",
            "A qualified charitable distribution can satisfy the RMD tax-free",
        ) + (("Required amounts are estimated from the simplified table",) if rmd.is_estimated else ()),
    )


def _deduction_recommendation(tax_result) -> Optional[RecommendationItem]:
    federal = tax_result.federal
    gap = federal.standard_deduction - federal.itemized_deduction
    if federal.using_itemized or federal.itemized_deduction <= 0 or gap > ITEMIZE_GAP:
        return None
    return RecommendationItem(
        id="deduction-bunching",
        title="Bunch Itemized Deductions",
        description=f"Itemized deductions fall {format_currency_output(gap)} short of the standard deduction.",
        year=tax_result.tax_year,
        category=DEDUCTION_STRATEGY,
        priority="low",
        action="Group two years of charitable gifts into one year, e.g. through a donor-advised fund.",
    )


def _product_recommendations(income_sources, taxpayer, spouse, marginal_rate, tax_year) -> List[RecommendationItem]:
    items = []
    for source in income_sources:
        if not source.enabled or getattr(source, "details", None) is None:
            continue
        owner_age = resolve_owner_age(source.owner, taxpayer, spouse)
        if owner_age is None:
            logger.warning(f"No age for owner '{source.owner}' of '{source.id}'; skipping product strategies.")
            continue

        if isinstance(source, AnnuityIncome):
            for s in get_annuity_tax_strategies(source.details, owner_age, marginal_rate):
                items.append(RecommendationItem(
                    id=f"{source.id}-{s['type']}",
                    title=s["title"],
                    description=s["description"],
                    year=tax_year,
                    category=RETIREMENT_PLANNING,
                    priority=s["priority"],
                ))
        elif isinstance(source, LifeInsuranceIncome):
            for s in get_life_insurance_tax_strategies(source.details, owner_age, marginal_rate):
                items.append(RecommendationItem(
                    id=f"{source.id}-{s['strategy'].lower().replace(' ', '-')}",
                    title=s["strategy"],
                    description=s["description"],
                    year=tax_year,
                    category=ESTATE_PLANNING,
                    priority=s["priority"],
                    considerations=(s["tax_implication"],),
                ))
    return items


# --- 2. Public API ---

def sort_recommendations(items: Sequence[RecommendationItem]) -> List[RecommendationItem]:
    """Highest priority first; within a priority, largest projected savings first."""
    return sorted(items, key=lambda r: (-PRIORITY_ORDER.get(r.priority, 0), -r.projected_savings))


def generate_tax_recommendations(
    tax_result: TaxResult,
    marginal_analysis: MarginalAnalysisResult,
    income_sources: Sequence[IncomeSource] = (),
    taxpayer: Optional[TaxpayerProfile] = None,
    spouse: Optional[SpouseProfile] = None,
    settings: Optional[AppSettings] = None,
) -> List[RecommendationItem]:
    """
    Builds sorted recommendations for one tax year.

    Annuity and life-insurance strategies need the taxpayer (for owner ages);
    without it only the household-level rules run.
    """
    settings = settings if settings is not None else AppSettings(tax_year=tax_result.tax_year)

    candidates = [
        _irmaa_recommendation(tax_result, marginal_analysis, settings),
        _bracket_room_recommendation(tax_result, marginal_analysis),
        _amt_recommendation(tax_result, marginal_analysis),
        _niit_recommendation(tax_result),
        _penalty_recommendation(tax_result),
        _rmd_recommendation(tax_result),
        _deduction_recommendation(tax_result),
    ]
    items = [c for c in candidates if c is not None]

    if taxpayer is not None:
        items.extend(_product_recommendations(
            income_sources, taxpayer, spouse, marginal_analysis.marginal_rate, tax_result.tax_year
        ))

    return sort_recommendations(items)


def _strategy_priority(savings: float) -> str:
    if savings >= SIGNIFICANT_STRATEGY_SAVINGS:
        return "high"
    if savings >= MODEST_STRATEGY_SAVINGS:
        return "medium"
    return "low"


def recommendations_from_strategy_search(search_result) -> List[RecommendationItem]:
    """
    One item per ranked allocation that beats the baseline, kept in rank order
    (best first). Candidates that save nothing are dropped.
    """
    years = search_result.horizon.years
    items: List[RecommendationItem] = []
    for evaluation in search_result.ranked:
        if evaluation is search_result.baseline or evaluation.cumulative_savings <= 0:
            continue
        candidate = evaluation.candidate
        schedule = tuple(
            f"{year.tax_year}: {format_currency_output(amount)}"
            for year, amount in zip(years, candidate.allocations) if amount > 0
        )
        rank = len(items) + 1
        items.append(RecommendationItem(
            id="strategy-search-best" if rank == 1 else f"strategy-search-{rank}",
            title=candidate.name,
            description=(
                f"{candidate.description}. Saves {format_currency_output(evaluation.cumulative_savings)} over "
                f"{len(years)} years versus recognizing everything in {years[0].tax_year}."
            ),
            projected_savings=evaluation.cumulative_savings,
            year=years[0].tax_year,
            category=candidate.category if candidate.category in RECOMMENDATION_CATEGORIES else INCOME_TIMING,
            priority=_strategy_priority(evaluation.cumulative_savings),
            action="Follow the yearly schedule and re-run the analysis as income changes.",
            considerations=schedule,
        ))
    return items
