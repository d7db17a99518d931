# income_calculator.py
#
# Sorts a household's income sources into their tax characters (earned, ordinary,
# preferential, tax-exempt, Social Security, tax-free) and applies the per-source
# rules: annuity and life-insurance basis recovery, Roth qualification and the
# 10% early-withdrawal penalty.
#

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from taxmodels import (
    AdjustedSource,
    AnnuityIncome,
    EarnedIncome,
    INCOME_VARIANTS,
    IncomeSource,
    LifeInsuranceIncome,
    OrdinaryIncome,
    PenaltyDetail,
    PreferentialIncome,
    QualifiedRetirementIncome,
    RothIncome,
    SocialSecurityIncome,
    SocialSecurityResult,
    SpouseProfile,
    TaxExemptIncome,
    TaxpayerProfile,
)
from taxengine.accounts_income import resolve_owner_age
from taxengine.annuity import calculate_annuity_taxation
from taxengine.life_insurance import calculate_income_stream
from taxengine.surtaxes import NII_TYPES
from taxutils.tax_utils import MI_RETIREMENT_INCOME_TYPES

logger = logging.getLogger(__name__)

EARLY_WITHDRAWAL_AGE = 59.5
EARLY_WITHDRAWAL_PENALTY_RATE = 0.10
SELF_EMPLOYMENT_TYPES = ("self-employment", "business")
PENALTY_FREE_TYPES = ("estimated-rmd",)


@dataclass(frozen=True)
class RothTaxation:
    taxable_amount: float
    tax_free_amount: float
    penalty_amount: float
    contributions_withdrawn: float
    earnings_withdrawn: float


@dataclass(frozen=True)
class ClassifiedIncome:
    """Annual totals per tax character, after per-source rules."""
    wages: float = 0.0
    self_employment: float = 0.0
    ordinary: float = 0.0                  # Non-earned ordinary income, excluding short-term gains
    short_term_gains: float = 0.0          # Signed
    long_term_gains: float = 0.0           # Signed
    qualified_dividends: float = 0.0
    social_security: float = 0.0
    tax_exempt_interest: float = 0.0
    private_activity_bond_interest: float = 0.0
    investment_income: float = 0.0         # NII excluding capital gains, which are added after netting
    state_retirement_income: float = 0.0
    tax_free: float = 0.0
    total_income: float = 0.0
    penalties: float = 0.0
    penalty_details: Tuple[PenaltyDetail, ...] = ()
    adjusted_sources: Tuple[AdjustedSource, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def earned(self) -> float:
        return self.wages + self.self_employment


# ----------------------------------------------------------------------
# Validation
# ----------------------------------------------------------------------

def validate_income_source(source: IncomeSource) -> Optional[str]:
    """Returns a warning message when the source cannot be used, otherwise None."""
    if not isinstance(source, INCOME_VARIANTS):
        return f"Income source '{source.id}' is of unsupported kind {type(source).__name__}; it contributes $0."
    allowed = type(source).ALLOWED_TYPES
    if source.type not in allowed:
        return (f"Income source '{source.id}' has type '{source.type}', which is not valid for "
                f"{type(source).__name__}; it contributes $0.")
    if source.amount is None or source.amount != source.amount:
        return f"Income source '{source.id}' has no usable amount; it contributes $0."
    if source.amount < 0 and not source.allows_negative():
        return f"Income source '{source.id}' has a negative amount ({source.amount:,.2f}); it contributes $0."
    return None


# ----------------------------------------------------------------------
# Per-source rules
# ----------------------------------------------------------------------

def calculate_roth_taxation(source: RothIncome, owner_age: Optional[float]) -> RothTaxation:
    """
    Contributions come out first and are always tax- and penalty-free.

    Earnings are taxable unless the five-year rule is met, and carry the 10%
    penalty whenever the owner is under 59½. A source with no contribution
    history is treated as a return of contributions.
    """
    amount = max(0.0, source.annual_amount)
    if source.total_contributions is None:
        return RothTaxation(0.0, amount, 0.0, amount, 0.0)

    contributions = min(amount, max(0.0, source.total_contributions))
    earnings = amount - contributions
    over_age = owner_age is not None and owner_age >= EARLY_WITHDRAWAL_AGE

    # Five-year accounts are treated as qualified even before 59½; the penalty still applies
    taxable = 0.0 if source.five_year_rule_met else earnings
    penalty = 0.0 if over_age else earnings * EARLY_WITHDRAWAL_PENALTY_RATE

    return RothTaxation(taxable, amount - taxable, penalty, contributions, earnings)


def net_capital_gains(short_term: float, long_term: float, loss_limit: float) -> Dict[str, float]:
    """
    Nets short- and long-term results against each other.

    Returns ordinary_gain (net short-term gain), preferential_gain (net long-term
    gain) and loss_deduction (the deductible part of a net loss, at most `loss_limit`).
    """
    if short_term >= 0 and long_term >= 0:
        return {"ordinary_gain": short_term, "preferential_gain": long_term, "loss_deduction": 0.0, "carryover": 0.0}

    net = short_term + long_term
    if net <= 0:
        deduction = min(-net, loss_limit)
        return {"ordinary_gain": 0.0, "preferential_gain": 0.0, "loss_deduction": deduction, "carryover": -net - deduction}

    if long_term < 0:
        # Long-term loss absorbed by short-term gain
        return {"ordinary_gain": net, "preferential_gain": 0.0, "loss_deduction": 0.0, "carryover": 0.0}
    return {"ordinary_gain": 0.0, "preferential_gain": net, "loss_deduction": 0.0, "carryover": 0.0}


def calculate_social_security_taxation(
    benefits: float,
    other_income: float,
    ss_tax_thresholds: Tuple[float, float],
) -> SocialSecurityResult:
    """
    IRS Worksheet 1: provisional income = other income + half of benefits,
    taxed in two tiers against statutory (non-indexed) thresholds, capped at 85%.
    """
    benefits = max(0.0, benefits)
    provisional = other_income + 0.5 * benefits
    if benefits <= 0:
        return SocialSecurityResult(0.0, provisional, 0.0, "none", 0)

    base, adjusted = ss_tax_thresholds
    if provisional <= base:
        return SocialSecurityResult(benefits, provisional, 0.0, "none", 0)

    if provisional <= adjusted:
        taxable = min(0.5 * (provisional - base), 0.5 * benefits)
        return SocialSecurityResult(benefits, provisional, taxable, "50%", 50)

    tier_one = min(0.5 * (adjusted - base), 0.5 * benefits)
    taxable = min(0.85 * (provisional - adjusted) + tier_one, 0.85 * benefits)
    return SocialSecurityResult(benefits, provisional, taxable, "85%", 85)


# ----------------------------------------------------------------------
# Classification
# ----------------------------------------------------------------------

def classify_income_sources(
    income_sources: Sequence[IncomeSource],
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile] = None,
) -> ClassifiedIncome:
    """
    Validates and classifies every enabled source.

    Args:
        income_sources: Any mix of IncomeSource variants.
        taxpayer, spouse: Used for owner ages (penalties, annuity and Roth rules).

    Returns:
        ClassifiedIncome with annual totals, per-source splits, penalties and warnings.
    """
    totals: Dict[str, float] = {
        "wages": 0.0, "self_employment": 0.0, "ordinary": 0.0, "short_term_gains": 0.0,
        "long_term_gains": 0.0, "qualified_dividends": 0.0, "social_security": 0.0,
        "tax_exempt_interest": 0.0, "private_activity_bond_interest": 0.0,
        "investment_income": 0.0, "state_retirement_income": 0.0, "tax_free": 0.0,
        "total_income": 0.0, "penalties": 0.0,
    }
    adjusted: List[AdjustedSource] = []
    penalties: List[PenaltyDetail] = []
    warnings: List[str] = []

    def _warn(message: str) -> None:
        logger.warning(message)
        warnings.append(message)

    def _penalize(source: IncomeSource, owner_age, amount: float, penalty: float) -> None:
        if penalty <= 0:
            return
        totals["penalties"] += penalty
        penalties.append(PenaltyDetail(source.id, source.type, source.owner, owner_age, amount, penalty))

    for source in income_sources:
        if not source.enabled:
            continue

        problem = validate_income_source(source)
        if problem:
            _warn(problem)
            continue

        amount = source.annual_amount
        owner_age = resolve_owner_age(source.owner, taxpayer, spouse)
        totals["total_income"] += max(0.0, amount)

        if isinstance(source, EarnedIncome):
            key = "self_employment" if source.type in SELF_EMPLOYMENT_TYPES else "wages"
            totals[key] += amount
            adjusted.append(AdjustedSource(source.id, source.type, "earned", amount, amount, 0.0))

        elif isinstance(source, OrdinaryIncome):
            if source.type == "short-term-capital-gains":
                totals["short_term_gains"] += amount
            else:
                totals["ordinary"] += amount
                if source.type in NII_TYPES:
                    totals["investment_income"] += amount
                if source.type in MI_RETIREMENT_INCOME_TYPES:
                    totals["state_retirement_income"] += amount
            adjusted.append(AdjustedSource(source.id, source.type, "ordinary", amount, amount, 0.0))

        elif isinstance(source, PreferentialIncome):
            if source.type == "long-term-capital-gains":
                totals["long_term_gains"] += amount
            else:
                totals["qualified_dividends"] += amount
                totals["investment_income"] += amount
            adjusted.append(AdjustedSource(source.id, source.type, "preferential", amount, amount, 0.0))

        elif isinstance(source, TaxExemptIncome):
            totals["tax_exempt_interest"] += amount
            if source.type == "private-activity-bond-interest":
                totals["private_activity_bond_interest"] += amount
            adjusted.append(AdjustedSource(source.id, source.type, "tax-exempt", amount, 0.0, amount))

        elif isinstance(source, SocialSecurityIncome):
            totals["social_security"] += amount
            adjusted.append(AdjustedSource(source.id, source.type, "social-security", amount, 0.0, amount))

        elif isinstance(source, QualifiedRetirementIncome):
            totals["ordinary"] += amount
            totals["state_retirement_income"] += amount
            penalty = 0.0
            if (owner_age is not None and owner_age < EARLY_WITHDRAWAL_AGE
                    and not source.penalty_exempt and source.type not in PENALTY_FREE_TYPES):
                penalty = amount * EARLY_WITHDRAWAL_PENALTY_RATE
                _penalize(source, owner_age, amount, penalty)
            adjusted.append(AdjustedSource(source.id, source.type, "ordinary", amount, amount, 0.0, penalty))

        elif isinstance(source, RothIncome):
            roth = calculate_roth_taxation(source, owner_age)
            totals["ordinary"] += roth.taxable_amount
            totals["tax_free"] += roth.tax_free_amount
            _penalize(source, owner_age, roth.earnings_withdrawn, roth.penalty_amount)
            adjusted.append(AdjustedSource(source.id, source.type, "tax-free", amount, roth.taxable_amount,
                                           roth.tax_free_amount, roth.penalty_amount))

        elif isinstance(source, AnnuityIncome):
            if source.details is None:
                _warn(f"Annuity '{source.id}' has no contract details; treating the full amount as taxable.")
                taxable, tax_free, penalty, notes = amount, 0.0, 0.0, "No contract details"
            else:
                taxation = calculate_annuity_taxation(source.details, owner_age if owner_age is not None else 65, amount)
                taxable, tax_free, penalty = taxation.taxable_amount, taxation.non_taxable_amount, taxation.penalty_amount
                notes = "Pre-TEFRA (FIFO)" if taxation.is_pre_tefra else "Post-TEFRA (exclusion ratio)"
                if source.details.is_qualified:
                    notes = "Qualified annuity"
            totals["ordinary"] += taxable
            totals["tax_free"] += tax_free
            totals["state_retirement_income"] += taxable
            _penalize(source, owner_age, taxable, penalty)
            adjusted.append(AdjustedSource(source.id, source.type, "ordinary", amount, taxable, tax_free, penalty, notes))

        elif isinstance(source, LifeInsuranceIncome):
            if source.details is None:
                _warn(f"Life insurance '{source.id}' has no policy details; treating the full amount as taxable.")
                taxable, tax_free, notes = amount, 0.0, "No policy details"
            else:
                taxation = calculate_income_stream(source.details, source.access_method, amount)
                taxable, tax_free, notes = taxation.taxable_amount, taxation.tax_free_amount, taxation.notes
            totals["ordinary"] += taxable
            totals["tax_free"] += tax_free
            adjusted.append(AdjustedSource(source.id, source.type, "ordinary", amount, taxable, tax_free, 0.0, notes))

    return ClassifiedIncome(
        **totals,
        penalty_details=tuple(penalties),
        adjusted_sources=tuple(adjusted),
        warnings=tuple(warnings),
    )
