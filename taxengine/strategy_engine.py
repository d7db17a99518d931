# strategy_engine.py
#
# Multi-year income-shifting search. A candidate says how much of a shiftable
# amount (a Roth conversion by default) lands in each year of the horizon; the
# evaluator re-runs the full tax computation per year and the ranker orders
# candidates by cumulative savings against taking everything in year one.
#

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from itertools import combinations
from typing import Dict, Iterator, List, Optional, Sequence, Tuple
import logging
import multiprocessing as mp
import numpy as np
import pandas as pd

from taxmodels import (
    AnnuityIncome,
    AppSettings,
    DeductionSet,
    IncomeSource,
    LifeInsuranceIncome,
    OrdinaryIncome,
    SpouseProfile,
    TaxpayerProfile,
    TaxResult,
)
from taxengine.accounts_income import resolve_owner_age
from taxengine.annuity import calculate_annuity_taxation
from taxengine.marginal_analysis import TaxScenario, calculate_marginal_rate
from taxengine.roth_optimizer import optimal_roth_conversion
from taxutils.currency import format_currency_output
from taxutils.tax_utils import get_indexed_federal_constants
from taxconfig.planning_assumptions import (
    planning_horizon_years,
    default_inflation_rate,
    default_income_growth,
    shift_chunk,
    max_candidates as default_max_candidates,
    default_tax_strategy,
    default_irmaa_strategy,
)

logger = logging.getLogger(__name__)

SHIFT_SOURCE_ID = "strategy-shift"
NON_GROWING_TYPES = ("short-term-capital-gains", "long-term-capital-gains")


# ----------------------------------------------------------------------
# Planning horizon
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class PlanningYear:
    index: int
    tax_year: int
    taxpayer: TaxpayerProfile
    spouse: Optional[SpouseProfile]
    income_sources: Tuple[IncomeSource, ...]
    deductions: Optional[DeductionSet]
    settings: AppSettings
    fica_enabled: bool = False

    def scenario(self, shifted_amount: float = 0.0, shift_type: str = "roth-conversion") -> TaxScenario:
        """Inputs for this year with `shifted_amount` of extra ordinary income."""
        sources = self.income_sources
        if shifted_amount > 0:
            shift = OrdinaryIncome(id=SHIFT_SOURCE_ID, type=shift_type, amount=shifted_amount, name="Shifted income")
            sources = sources + (shift,)
        return TaxScenario(self.taxpayer, self.spouse, sources, self.deductions, self.settings, self.fica_enabled)


@dataclass(frozen=True)
class PlanningHorizon:
    years: Tuple[PlanningYear, ...]
    shiftable_amount: float
    shift_type: str = "roth-conversion"

    def __len__(self) -> int:
        return len(self.years)


def _carry_forward(source: IncomeSource, owner_age: Optional[int]) -> IncomeSource:
    """Contract state after this year's distribution (annuity basis, policy withdrawals and loans)."""
    if isinstance(source, AnnuityIncome) and source.details is not None and source.enabled:
        taxation = calculate_annuity_taxation(source.details, owner_age if owner_age is not None else 65,
                                              source.annual_amount)
        if taxation.is_pre_tefra:
            return replace(source, details=replace(source.details, basis_remaining=taxation.basis_remaining))
    if isinstance(source, LifeInsuranceIncome) and source.details is not None and source.enabled:
        amount = max(0.0, source.annual_amount)
        if source.access_method == "loan":
            return replace(source, details=replace(source.details, existing_loans=source.details.existing_loans + amount))
        if source.access_method == "withdrawal":
            return replace(source, details=replace(source.details,
                                                   prior_withdrawals=source.details.prior_withdrawals + amount))
    return source


def project_horizon(
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    income_sources: Sequence[IncomeSource],
    shiftable_amount: float,
    deductions: Optional[DeductionSet] = None,
    settings: Optional[AppSettings] = None,
    years: int = planning_horizon_years,
    income_growth: float = default_income_growth,
    fica_enabled: bool = False,
    shift_type: str = "roth-conversion",
) -> PlanningHorizon:
    """
    Rolls the household forward one year at a time: ages advance, the tax year
    increments, amounts grow by `income_growth` (capital gains excepted) and
    contract basis carries over. Tax tables past the newest year on file are
    projected with the settings' inflation rate (or the planning default).
    """
    settings = settings if settings is not None else AppSettings()
    if settings.inflation_rate is None:
        settings = replace(settings, inflation_rate=default_inflation_rate)

    planning_years: List[PlanningYear] = []
    sources = tuple(income_sources)
    for i in range(years):
        year_taxpayer = replace(
            taxpayer,
            age=taxpayer.age + i,
            spouse_age=taxpayer.spouse_age + i if taxpayer.spouse_age is not None else None,
        )
        year_spouse = replace(spouse, age=spouse.age + i) if spouse is not None else None
        year_settings = replace(settings, tax_year=settings.tax_year + i)

        growth = (1.0 + income_growth) ** i
        year_sources = tuple(
            s if s.type in NON_GROWING_TYPES else replace(s, amount=s.amount * growth)
            for s in sources
        )
        planning_years.append(PlanningYear(
            index=i,
            tax_year=year_settings.tax_year,
            taxpayer=year_taxpayer,
            spouse=year_spouse,
            income_sources=year_sources,
            deductions=deductions,
            settings=year_settings,
            fica_enabled=fica_enabled,
        ))

        # Contract state follows this year's (grown) distribution; the base amount is kept for regrowth
        sources = tuple(
            replace(_carry_forward(grown, resolve_owner_age(grown.owner, year_taxpayer, year_spouse)), amount=base.amount)
            for base, grown in zip(sources, year_sources)
        )

    return PlanningHorizon(years=tuple(planning_years), shiftable_amount=max(0.0, shiftable_amount),
                           shift_type=shift_type)


# ----------------------------------------------------------------------
# Candidates and evaluation
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StrategyCandidate:
    name: str
    description: str
    category: str
    allocations: Tuple[float, ...]


@dataclass(frozen=True)
class StrategyEvaluation:
    candidate: StrategyCandidate
    yearly_tax: Tuple[float, ...]
    yearly_marginal_rate: Tuple[float, ...]
    cumulative_tax: float
    cumulative_savings: float = 0.0
    first_year_savings: float = 0.0


class StrategyEvaluator:
    """
    Scores candidates by re-running the orchestrator for every horizon year.

    Yearly cost is total tax plus the IRMAA surcharge (when `include_irmaa`).
    Results are memoized per horizon and (year, shifted amount). With `processes > 1`,
    `evaluate_all` fans candidates out over a multiprocessing.Pool.
    """

    def __init__(self, processes: int = 1, include_irmaa: bool = True):
        self.processes = max(1, int(processes))
        self.include_irmaa = include_irmaa
        # id(horizon) -> (horizon, {(index, amount): result}); holding the horizon keeps its id from being reused
        self._results: Dict[int, Tuple[PlanningHorizon, Dict[Tuple[int, float], TaxResult]]] = {}

    def _horizon_cache(self, horizon: PlanningHorizon) -> Dict[Tuple[int, float], TaxResult]:
        entry = self._results.get(id(horizon))
        if entry is None or entry[0] is not horizon:
            entry = (horizon, {})
            self._results[id(horizon)] = entry
        return entry[1]

    def year_result(self, horizon: PlanningHorizon, index: int, amount: float) -> TaxResult:
        cache = self._horizon_cache(horizon)
        key = (index, round(amount, 2))
        if key not in cache:
            scenario = horizon.years[index].scenario(amount, horizon.shift_type)
            cache[key] = scenario.compute()
        return cache[key]

    def year_cost(self, horizon: PlanningHorizon, index: int, amount: float) -> float:
        result = self.year_result(horizon, index, amount)
        cost = result.summary.total_tax
        if self.include_irmaa:
            cost += result.irmaa.annual_surcharge
        return cost

    def evaluate(self, horizon: PlanningHorizon, candidate: StrategyCandidate) -> StrategyEvaluation:
        yearly_tax = []
        yearly_rate = []
        for index, amount in enumerate(candidate.allocations):
            year = horizon.years[index]
            result = self.year_result(horizon, index, amount)
            yearly_tax.append(self.year_cost(horizon, index, amount))
            scenario = year.scenario(amount, horizon.shift_type)
            yearly_rate.append(calculate_marginal_rate(
                scenario.taxpayer, scenario.spouse, scenario.income_sources, scenario.deductions,
                scenario.settings, scenario.fica_enabled, base_result=result,
            ))
        return StrategyEvaluation(
            candidate=candidate,
            yearly_tax=tuple(yearly_tax),
            yearly_marginal_rate=tuple(yearly_rate),
            cumulative_tax=float(np.sum(yearly_tax)),
        )

    def evaluate_all(self, horizon: PlanningHorizon, candidates: Sequence[StrategyCandidate]) -> List[StrategyEvaluation]:
        if self.processes > 1 and len(candidates) > 1:
            with mp.Pool(self.processes) as pool:
                return pool.map(_evaluate_candidate, [(horizon, c, self.include_irmaa) for c in candidates])
        return [self.evaluate(horizon, c) for c in candidates]


def _evaluate_candidate(args) -> StrategyEvaluation:
    horizon, candidate, include_irmaa = args
    return StrategyEvaluator(include_irmaa=include_irmaa).evaluate(horizon, candidate)


def baseline_candidate(horizon: PlanningHorizon) -> StrategyCandidate:
    """Everything in the first year."""
    allocations = (horizon.shiftable_amount,) + (0.0,) * (len(horizon) - 1)
    return StrategyCandidate(
        name=f"All in {horizon.years[0].tax_year}",
        description=f"Recognize {format_currency_output(horizon.shiftable_amount)} in {horizon.years[0].tax_year}",
        category="Baseline",
        allocations=allocations,
    )


class CumulativeSavingsRanker:
    """Most cumulative savings first; ties (to the cent) go to the larger first-year saving."""

    def rank(self, evaluations: Sequence[StrategyEvaluation]) -> List[StrategyEvaluation]:
        return sorted(
            evaluations,
            key=lambda e: (-round(e.cumulative_savings, 2), -round(e.first_year_savings, 2)),
        )


# ----------------------------------------------------------------------
# Candidate generators
# ----------------------------------------------------------------------

class StrategyCandidateGenerator(ABC):
    """Produces allocation candidates; each candidate's allocations sum to the shiftable amount."""

    @abstractmethod
    def generate(self, horizon: PlanningHorizon, evaluator: StrategyEvaluator) -> Iterator[StrategyCandidate]:
        ...


def _chunks(amount: float, chunk: float) -> Tuple[int, float]:
    """Number of chunks and the (even) chunk size that exactly covers `amount`."""
    if amount <= 0:
        return 0, 0.0
    count = max(1, int(np.ceil(amount / chunk)))
    return count, amount / count


class SingleYearShiftGenerator(StrategyCandidateGenerator):
    """Whole amount in each single year, plus an even spread."""

    def generate(self, horizon, evaluator):
        n_years = len(horizon)
        amount = horizon.shiftable_amount
        for i, year in enumerate(horizon.years):
            allocations = tuple(amount if j == i else 0.0 for j in range(n_years))
            yield StrategyCandidate(
                name=f"All in {year.tax_year}",
                description=f"Recognize {format_currency_output(amount)} in {year.tax_year}",
                category="Income Timing",
                allocations=allocations,
            )
        if n_years > 1:
            yield StrategyCandidate(
                name="Even spread",
                description=f"Recognize {format_currency_output(amount / n_years)} per year for {n_years} years",
                category="Income Timing",
                allocations=(amount / n_years,) * n_years,
            )


class ExhaustiveShiftGenerator(StrategyCandidateGenerator):
    """Every way of placing whole chunks across the years, up to `limit` candidates."""

    def __init__(self, chunk: float = shift_chunk, limit: int = default_max_candidates):
        self.chunk = chunk
        self.limit = limit

    def generate(self, horizon, evaluator):
        n_years = len(horizon)
        count, size = _chunks(horizon.shiftable_amount, self.chunk)
        if count == 0:
            yield baseline_candidate(horizon)
            return

        # Stars and bars: choose n_years - 1 divider positions among count + n_years - 1 slots
        produced = 0
        for dividers in combinations(range(count + n_years - 1), n_years - 1):
            bounds = (-1,) + dividers + (count + n_years - 1,)
            allocations = tuple((bounds[k + 1] - bounds[k] - 1) * size for k in range(n_years))
            yield StrategyCandidate(
                name="Split " + " / ".join(format_currency_output(a) for a in allocations),
                description="Chunked allocation across the horizon",
                category="Income Timing",
                allocations=allocations,
            )
            produced += 1
            if produced >= self.limit:
                logger.debug(f"Exhaustive generator stopped at {self.limit} candidates")
                return


class GreedyShiftGenerator(StrategyCandidateGenerator):
    """Places one chunk at a time in the year where it adds the least tax."""

    def __init__(self, chunk: float = shift_chunk):
        self.chunk = chunk

    def generate(self, horizon, evaluator):
        count, size = _chunks(horizon.shiftable_amount, self.chunk)
        allocations = [0.0] * len(horizon)
        for _ in range(count):
            costs = [
                evaluator.year_cost(horizon, i, allocations[i] + size) - evaluator.year_cost(horizon, i, allocations[i])
                for i in range(len(horizon))
            ]
            cheapest = int(np.argmin(costs))
            allocations[cheapest] += size
            logger.debug(f"Greedy chunk to year {horizon.years[cheapest].tax_year} at marginal cost {costs[cheapest]:,.2f}")
        yield StrategyCandidate(
            name="Greedy lowest marginal cost",
            description=f"{format_currency_output(size)} chunks placed where each adds the least tax",
            category="Income Timing",
            allocations=tuple(allocations),
        )


class BracketFillGenerator(StrategyCandidateGenerator):
    """Fills the chosen bracket (and IRMAA ceiling) each year; any remainder lands in the last year."""

    def __init__(self, tax_strategy: str = default_tax_strategy, irmaa_strategy: str = default_irmaa_strategy):
        self.tax_strategy = tax_strategy
        self.irmaa_strategy = irmaa_strategy

    def generate(self, horizon, evaluator):
        remaining = horizon.shiftable_amount
        allocations = []
        for i, year in enumerate(horizon.years):
            base = evaluator.year_result(horizon, i, 0.0)
            constants = get_indexed_federal_constants(
                year.tax_year, base.filing_status, year.settings.tcja_sunsetting, year.settings.inflation_rate
            )
            conversion = optimal_roth_conversion(
                base.summary.taxable_income, base.magi, remaining, constants, self.tax_strategy, self.irmaa_strategy
            )
            allocations.append(conversion)
            remaining -= conversion
        if remaining > 0 and allocations:
            allocations[-1] += remaining
        yield StrategyCandidate(
            name=f"Bracket fill ({self.tax_strategy}, {self.irmaa_strategy})",
            description="Convert up to the bracket ceiling each year without crossing the IRMAA tier",
            category="Roth Conversion",
            allocations=tuple(allocations),
        )


# ----------------------------------------------------------------------
# Search
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class StrategySearchResult:
    horizon: PlanningHorizon
    baseline: StrategyEvaluation
    ranked: Tuple[StrategyEvaluation, ...]

    @property
    def best(self) -> StrategyEvaluation:
        return self.ranked[0] if self.ranked else self.baseline

    def to_frame(self) -> pd.DataFrame:
        """One row per candidate per year."""
        rows = []
        for rank, evaluation in enumerate((self.baseline,) + self.ranked):
            for index, year in enumerate(self.horizon.years):
                rows.append({
                    "rank": rank,
                    "candidate": evaluation.candidate.name,
                    "tax_year": year.tax_year,
                    "allocation": evaluation.candidate.allocations[index],
                    "total_tax": evaluation.yearly_tax[index],
                    "marginal_rate": evaluation.yearly_marginal_rate[index],
                    "cumulative_tax": evaluation.cumulative_tax,
                    "cumulative_savings": evaluation.cumulative_savings,
                })
        return pd.DataFrame(rows)


def run_strategy_search(
    horizon: PlanningHorizon,
    generator: Optional[StrategyCandidateGenerator] = None,
    evaluator: Optional[StrategyEvaluator] = None,
    ranker: Optional[CumulativeSavingsRanker] = None,
    max_candidates: int = default_max_candidates,
) -> StrategySearchResult:
    """
    Generates, evaluates and ranks candidates against the all-in-year-one baseline.

    Duplicate allocations are evaluated once; generation stops at `max_candidates`.
    Rank 0 of `to_frame()` is the baseline itself.
    """
    generator = generator if generator is not None else GreedyShiftGenerator()
    evaluator = evaluator if evaluator is not None else StrategyEvaluator()
    ranker = ranker if ranker is not None else CumulativeSavingsRanker()

    baseline = evaluator.evaluate(horizon, baseline_candidate(horizon))

    candidates: List[StrategyCandidate] = []
    seen = set()
    for candidate in generator.generate(horizon, evaluator):
        key = tuple(round(a, 2) for a in candidate.allocations)
        if key in seen:
            continue
        seen.add(key)
        candidates.append(candidate)
        if len(candidates) >= max_candidates:
            break
    logger.debug(f"Evaluating {len(candidates)} strategy candidates over {len(horizon)} years")

    evaluations = [
        replace(
            e,
            cumulative_savings=baseline.cumulative_tax - e.cumulative_tax,
            first_year_savings=baseline.yearly_tax[0] - e.yearly_tax[0],
        )
        for e in evaluator.evaluate_all(horizon, candidates)
    ]
    return StrategySearchResult(horizon=horizon, baseline=baseline, ranked=tuple(ranker.rank(evaluations)))
