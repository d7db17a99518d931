# marginal_analysis.py
#
# Marginal and incremental rate analysis by re-running the orchestrator with
# extra ordinary income. Every probe is a new TaxScenario; the caller's source
# tuple is never touched.
#

from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional, Sequence, Tuple
import logging
import numpy as np

from taxmodels import (
    AppSettings,
    DeductionSet,
    EarnedIncome,
    IncomeSource,
    MarginalAnalysisResult,
    OrdinaryIncome,
    QualifiedRetirementIncome,
    SpouseProfile,
    TaxpayerProfile,
    TaxResult,
)
from taxengine.brackets import find_next_tax_bracket
from taxengine.tax_engine import calculate_comprehensive_taxes
from taxutils.tax_utils import get_indexed_federal_constants
from taxconfig.analysis_assumptions import (
    probe_amount as default_probe_amount,
    scan_step,
    scan_cap,
    significant_rate_increase,
    bisection_precision,
)

logger = logging.getLogger(__name__)

PROBE_SOURCE_ID = "marginal-probe"
PROBE_PREFERRED_TYPE = "traditional-ira"
ORDINARY_CHARACTER_VARIANTS = (EarnedIncome, OrdinaryIncome, QualifiedRetirementIncome)


# ----------------------------------------------------------------------
# Probe construction
# ----------------------------------------------------------------------

def _probe_target_index(sources: Tuple[IncomeSource, ...]) -> Optional[int]:
    for i, source in enumerate(sources):
        if source.enabled and source.type == PROBE_PREFERRED_TYPE:
            return i

    best_index, best_amount = None, 0.0
    for i, source in enumerate(sources):
        if not source.enabled or not isinstance(source, ORDINARY_CHARACTER_VARIANTS):
            continue
        if source.type == "short-term-capital-gains" or source.type not in type(source).ALLOWED_TYPES:
            continue
        if best_index is None or source.annual_amount > best_amount:
            best_index, best_amount = i, source.annual_amount
    return best_index


def add_probe_income(income_sources: Sequence[IncomeSource], amount: float) -> Tuple[IncomeSource, ...]:
    """
    Returns a new source tuple with `amount` of extra annual ordinary income.

    The probe lands on the first enabled traditional IRA, otherwise on the largest
    enabled ordinary-character source, otherwise on a new synthetic 'other' source.
    """
    sources = tuple(income_sources)
    if amount == 0:
        return sources

    target = _probe_target_index(sources)
    if target is None:
        probe = OrdinaryIncome(id=PROBE_SOURCE_ID, type="other", amount=amount, name="Marginal probe")
        return sources + (probe,)

    source = sources[target]
    delta = amount / 12 if source.frequency == "monthly" else amount
    return sources[:target] + (replace(source, amount=source.amount + delta),) + sources[target + 1:]


@dataclass(frozen=True)
class TaxScenario:
    """One complete set of orchestrator inputs."""
    taxpayer: TaxpayerProfile
    spouse: Optional[SpouseProfile]
    income_sources: Tuple[IncomeSource, ...]
    deductions: Optional[DeductionSet] = None
    settings: Optional[AppSettings] = None
    fica_enabled: bool = False

    def with_extra_income(self, amount: float) -> "TaxScenario":
        return replace(self, income_sources=add_probe_income(self.income_sources, amount))

    def compute(self) -> TaxResult:
        return calculate_comprehensive_taxes(
            self.taxpayer, self.spouse, self.income_sources, self.deductions, self.settings, self.fica_enabled
        )


def _household_cost(result: TaxResult, include_irmaa: bool) -> float:
    cost = result.summary.total_tax
    if include_irmaa:
        cost += result.irmaa.annual_surcharge
    return cost


class _ProbeRunner:
    """Memoizes orchestrator results by extra-income offset for one scenario."""

    def __init__(self, scenario: TaxScenario, base_result: Optional[TaxResult] = None,
                 probe_amount: float = default_probe_amount, include_irmaa: bool = True):
        self.scenario = scenario
        self.probe_amount = probe_amount
        self.include_irmaa = include_irmaa
        self._results: Dict[float, TaxResult] = {}
        if base_result is not None:
            self._results[0.0] = base_result

    def result_at(self, offset: float) -> TaxResult:
        key = float(offset)
        if key not in self._results:
            self._results[key] = self.scenario.with_extra_income(key).compute()
        return self._results[key]

    def rate_at(self, offset: float) -> float:
        if self.probe_amount <= 0:
            return 0.0
        base = _household_cost(self.result_at(offset), self.include_irmaa)
        probed = _household_cost(self.result_at(offset + self.probe_amount), self.include_irmaa)
        return (probed - base) / self.probe_amount


def _bisect(predicate: Callable[[float], bool], low: float, high: float, precision: float) -> float:
    """Smallest offset (within `precision`) where `predicate` holds; predicate(high) must be True."""
    while high - low > precision:
        mid = float(np.floor((low + high) / 2))
        if predicate(mid):
            high = mid
        else:
            low = mid
    return high


# ----------------------------------------------------------------------
# Marginal rate
# ----------------------------------------------------------------------

def calculate_marginal_rate(
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    income_sources: Sequence[IncomeSource],
    deductions: Optional[DeductionSet] = None,
    settings: Optional[AppSettings] = None,
    fica_enabled: bool = False,
    probe_amount: float = default_probe_amount,
    base_result: Optional[TaxResult] = None,
    include_irmaa: bool = False,
) -> float:
    """Change in total tax per dollar of extra ordinary income."""
    scenario = TaxScenario(taxpayer, spouse, tuple(income_sources), deductions, settings, fica_enabled)
    runner = _ProbeRunner(scenario, base_result, probe_amount, include_irmaa)
    return runner.rate_at(0.0)


# ----------------------------------------------------------------------
# Rate hikes
# ----------------------------------------------------------------------

def _pct(rate: float) -> str:
    return f"{round(rate * 100, 1):g}%"


def identify_rate_hike_cause(base: TaxResult, test: TaxResult) -> str:
    """Names what changed between the base result and a result past the hike."""
    reasons = []

    base_bracket = base.federal.marginal_bracket_rate
    test_bracket = test.federal.marginal_bracket_rate
    if test_bracket != base_bracket:
        reasons.append(f"Tax Bracket ({_pct(base_bracket)} → {_pct(test_bracket)})")

    base_ss, test_ss = base.social_security, test.social_security
    if test_ss.taxable_amount > base_ss.taxable_amount and test_ss.tier != base_ss.tier:
        if test_ss.tier == "50%":
            reasons.append("Social Security (50% Taxable)")
        elif test_ss.tier == "85%":
            reasons.append("Social Security (85% Taxable)")
        else:
            reasons.append("Social Security Effect")

    if test.irmaa.annual_surcharge > base.irmaa.annual_surcharge:
        reasons.append(f"IRMAA Tier {test.irmaa.tier}")

    if test.federal.senior_deduction < base.federal.senior_deduction:
        reasons.append("OBBB Phase-Out")

    if test.federal.niit.applies and not base.federal.niit.applies:
        reasons.append("NIIT (3.8%)")

    if test.federal.amt.applies and not base.federal.amt.applies:
        reasons.append("AMT")

    if test.federal.additional_medicare.applies and not base.federal.additional_medicare.applies:
        reasons.append("Additional Medicare (0.9%)")

    if not reasons:
        return "Tax Map Effect"
    return " + ".join(reasons)


def _distance_to_taxation(result: TaxResult) -> float:
    """Deduction left before the first dollar becomes taxable."""
    return max(0.0, result.federal.deduction_used - result.summary.agi)


def find_next_rate_hike(
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    income_sources: Sequence[IncomeSource],
    deductions: Optional[DeductionSet] = None,
    settings: Optional[AppSettings] = None,
    fica_enabled: bool = False,
    base_result: Optional[TaxResult] = None,
) -> Dict[str, object]:
    """
    Scans forward in `scan_step` increments (up to `scan_cap`) for the first point
    where the effective marginal rate, IRMAA surcharges included, rises by at least
    `significant_rate_increase`, then bisects to `bisection_precision`.

    The rate at offset x is measured over [x, x + probe], so the threshold itself
    sits one probe above the first offset that registers the hike.

    Returns:
        dict with amount_to_next_rate_hike, current_rate, next_rate, reason, rate_increase.
        Falls back to the next tax bracket when no hike is found within the cap.
    """
    settings = settings if settings is not None else AppSettings()
    scenario = TaxScenario(taxpayer, spouse, tuple(income_sources), deductions, settings, fica_enabled)
    runner = _ProbeRunner(scenario, base_result)
    base = runner.result_at(0.0)
    base_rate = runner.rate_at(0.0)

    def _is_hike(offset: float) -> bool:
        return runner.rate_at(offset) - base_rate >= significant_rate_increase

    previous = 0.0
    for additional in np.arange(scan_step, scan_cap + scan_step, scan_step):
        additional = float(additional)
        if not _is_hike(additional):
            previous = additional
            continue

        logger.debug(f"Rate hike registered between +${previous:,.0f} and +${additional:,.0f}")
        onset = _bisect(_is_hike, previous, additional, bisection_precision)
        hike_point = onset + runner.probe_amount
        next_rate = max(runner.rate_at(onset), runner.rate_at(hike_point))
        reason = identify_rate_hike_cause(base, runner.result_at(hike_point))
        return {
            "amount_to_next_rate_hike": hike_point,
            "current_rate": base_rate,
            "next_rate": next_rate,
            "reason": reason,
            "rate_increase": next_rate - base_rate,
        }

    logger.debug(f"No rate hike within +${scan_cap:,.0f}; falling back to the next bracket")
    constants = get_indexed_federal_constants(
        settings.tax_year, base.filing_status, settings.tcja_sunsetting, settings.inflation_rate
    )
    bracket_info = find_next_tax_bracket(base.summary.taxable_income, constants)
    distance = bracket_info["distance"]
    if base.summary.taxable_income <= 0:
        distance = _distance_to_taxation(base)
    return {
        "amount_to_next_rate_hike": distance,
        "current_rate": base_rate,
        "next_rate": bracket_info["next_rate"],
        "reason": f"Tax Bracket ({_pct(bracket_info['current_rate'])} → {_pct(bracket_info['next_rate'])})",
        "rate_increase": bracket_info["next_rate"] - bracket_info["current_rate"],
    }


# ----------------------------------------------------------------------
# Cliffs
# ----------------------------------------------------------------------

def find_amt_crossover_distance(
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    income_sources: Sequence[IncomeSource],
    deductions: Optional[DeductionSet] = None,
    settings: Optional[AppSettings] = None,
    fica_enabled: bool = False,
    base_result: Optional[TaxResult] = None,
) -> Optional[float]:
    """
    Smallest extra ordinary income at which AMT exceeds regular tax.

    Returns 0.0 when AMT already applies and None when it never does within `scan_cap`.
    """
    scenario = TaxScenario(taxpayer, spouse, tuple(income_sources), deductions, settings, fica_enabled)
    runner = _ProbeRunner(scenario, base_result)
    if runner.result_at(0.0).federal.amt.applies:
        return 0.0

    def _amt_applies(offset: float) -> bool:
        return runner.result_at(offset).federal.amt.applies

    previous = 0.0
    for additional in np.arange(scan_step, scan_cap + scan_step, scan_step):
        additional = float(additional)
        if _amt_applies(additional):
            logger.debug(f"AMT crossover between +${previous:,.0f} and +${additional:,.0f}")
            return _bisect(_amt_applies, previous, additional, bisection_precision)
        previous = additional
    return None


def irmaa_cliff_distance(tax_result: TaxResult) -> Optional[float]:
    """Distance from MAGI to the next IRMAA threshold; None at the top tier."""
    next_threshold = tax_result.irmaa.next_threshold
    if next_threshold is None:
        return None
    return max(0.0, next_threshold - tax_result.irmaa.magi)


# ----------------------------------------------------------------------
# Combined analysis
# ----------------------------------------------------------------------

def get_comprehensive_marginal_analysis(
    tax_result: TaxResult,
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    income_sources: Sequence[IncomeSource],
    settings: Optional[AppSettings] = None,
    deductions: Optional[DeductionSet] = None,
    fica_enabled: bool = False,
) -> MarginalAnalysisResult:
    """
    Marginal rate, bracket position, next rate hike and the IRMAA / AMT cliffs
    for the household whose current result is `tax_result`.

    `tax_result` must come from the same inputs; it is used as the base of every probe.
    """
    settings = settings if settings is not None else AppSettings()
    sources = tuple(income_sources)

    marginal_rate = calculate_marginal_rate(
        taxpayer, spouse, sources, deductions, settings, fica_enabled, base_result=tax_result
    )

    constants = get_indexed_federal_constants(
        settings.tax_year, tax_result.filing_status, settings.tcja_sunsetting, settings.inflation_rate
    )
    bracket_info = find_next_tax_bracket(tax_result.summary.taxable_income, constants)
    distance_to_next = bracket_info["distance"]
    if tax_result.summary.taxable_income <= 0:
        distance_to_next = _distance_to_taxation(tax_result)

    hike = find_next_rate_hike(taxpayer, spouse, sources, deductions, settings, fica_enabled, base_result=tax_result)
    amt_distance = find_amt_crossover_distance(
        taxpayer, spouse, sources, deductions, settings, fica_enabled, base_result=tax_result
    )

    return MarginalAnalysisResult(
        marginal_rate=marginal_rate,
        current_bracket_rate=bracket_info["current_rate"],
        next_bracket_rate=bracket_info["next_rate"],
        next_bracket_threshold=bracket_info["next_threshold"],
        distance_to_next_threshold=distance_to_next,
        amount_to_next_rate_hike=hike["amount_to_next_rate_hike"],
        next_effective_marginal_rate=hike["next_rate"],
        rate_hike_source=hike["reason"],
        irmaa_cliff_distance=irmaa_cliff_distance(tax_result),
        amt_crossover_distance=amt_distance,
    )
