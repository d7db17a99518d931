# taxengine/annuity.py
"""
Annuity distribution taxation.

Contracts bought before TEFRA (August 14, 1982) recover basis first (FIFO);
later contracts exclude a fixed share of each payment (exclusion ratio).
Qualified annuities are fully taxable and follow the RMD rules instead.
"""
from dataclasses import dataclass, replace
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from taxmodels import AnnuityDetails
from taxengine.rmd_tables import UNIFORM_LIFETIME_TABLE_2022

logger = logging.getLogger(__name__)

TEFRA_DATE = date(1982, 8, 14)
EARLY_WITHDRAWAL_AGE = 59.5
EARLY_WITHDRAWAL_PENALTY_RATE = 0.10
ANNUITY_RMD_START_AGE = 73
SPOUSE_AGE_GAP_YEARS = 10
SPOUSE_FACTOR_ADJUSTMENT = 2.0


@dataclass(frozen=True)
class AnnuityTaxation:
    is_pre_tefra: bool
    taxable_amount: float
    non_taxable_amount: float
    penalty_amount: float
    basis_remaining: float
    exclusion_ratio: Optional[float]
    penalty_rate: float


@dataclass(frozen=True)
class AnnuityRmd:
    required: bool
    amount: float = 0.0
    factor: Optional[float] = None
    table_used: str = ""
    reason: str = ""


def _parse_purchase_date(purchase_date) -> Optional[date]:
    if isinstance(purchase_date, date):
        return purchase_date
    try:
        return date.fromisoformat(str(purchase_date)[:10])
    except ValueError:
        logger.warning(f"Unreadable annuity purchase date {purchase_date!r}; treating contract as post-TEFRA.")
        return None


def classify_annuity(purchase_date) -> Dict[str, object]:
    """Pre-TEFRA contracts are those purchased strictly before 1982-08-14."""
    parsed = _parse_purchase_date(purchase_date)
    is_pre_tefra = parsed is not None and parsed < TEFRA_DATE
    return {
        "is_pre_tefra": is_pre_tefra,
        "classification": "Pre-TEFRA" if is_pre_tefra else "Post-TEFRA",
        "taxation_method": "FIFO (First In, First Out)" if is_pre_tefra else "Pro-Rata",
    }


def exclusion_ratio(details: AnnuityDetails) -> float:
    """Basis over expected return (immediate annuities) or current value, clamped to [0, 1]."""
    if details.annuity_type == "immediate" and details.expected_return:
        denominator = details.expected_return
    else:
        denominator = details.current_value

    if not denominator or denominator <= 0:
        return 0.0
    return min(1.0, max(0.0, details.basis_amount / denominator))


def calculate_annuity_taxation(details: AnnuityDetails, owner_age: float, distribution: float) -> AnnuityTaxation:
    """
    Splits one distribution into taxable and non-taxable parts.

    Args:
        details: Contract data. `basis_remaining` (defaults to `basis_amount`) is the
            unrecovered basis for pre-TEFRA contracts.
        owner_age: Age of the contract owner at distribution.
        distribution: Gross amount received.

    Returns:
        AnnuityTaxation. The 10% penalty applies to the taxable portion of
        non-qualified contracts when the owner is under 59½.
    """
    distribution = max(0.0, distribution)
    is_pre_tefra = classify_annuity(details.purchase_date)["is_pre_tefra"]
    basis_remaining = details.basis_remaining if details.basis_remaining is not None else details.basis_amount
    basis_remaining = max(0.0, basis_remaining)
    ratio: Optional[float] = None

    if details.is_qualified:
        taxable, non_taxable = distribution, 0.0
    elif is_pre_tefra:
        non_taxable = min(distribution, basis_remaining)
        taxable = distribution - non_taxable
        basis_remaining -= non_taxable
    else:
        ratio = exclusion_ratio(details)
        non_taxable = distribution * ratio
        taxable = distribution - non_taxable

    penalty_rate = EARLY_WITHDRAWAL_PENALTY_RATE if owner_age < EARLY_WITHDRAWAL_AGE and not details.is_qualified else 0.0

    return AnnuityTaxation(
        is_pre_tefra=is_pre_tefra,
        taxable_amount=taxable,
        non_taxable_amount=non_taxable,
        penalty_amount=taxable * penalty_rate,
        basis_remaining=basis_remaining,
        exclusion_ratio=ratio,
        penalty_rate=penalty_rate,
    )


def annuity_distribution_schedule(
    details: AnnuityDetails,
    owner_age: float,
    distributions: Sequence[float],
) -> Tuple[List[AnnuityTaxation], AnnuityDetails]:
    """
    Taxes a series of yearly distributions, carrying unrecovered basis forward.

    Returns the per-year results and the contract as it stands after the last one.
    """
    results = []
    current = details
    age = owner_age
    for amount in distributions:
        taxation = calculate_annuity_taxation(current, age, amount)
        results.append(taxation)
        if taxation.is_pre_tefra:
            current = replace(current, basis_remaining=taxation.basis_remaining)
        age += 1
    return results, current


def calculate_annuity_rmd(details: AnnuityDetails, owner_age: int, spouse_age: Optional[int] = None) -> AnnuityRmd:
    """Uniform Lifetime RMD for qualified, non-immediate contracts from age 73."""
    if not details.is_qualified:
        return AnnuityRmd(required=False, reason="Non-qualified annuity")
    if owner_age < ANNUITY_RMD_START_AGE:
        return AnnuityRmd(required=False, reason=f"Under age {ANNUITY_RMD_START_AGE}")
    if details.annuity_type == "immediate":
        return AnnuityRmd(required=False, reason="Immediate annuity (payments already started)")

    table = UNIFORM_LIFETIME_TABLE_2022
    factor = table.get(int(owner_age), table[max(table)])
    table_used = "Uniform Lifetime"
    if spouse_age is not None and owner_age - spouse_age > SPOUSE_AGE_GAP_YEARS:
        # Approximates the Joint Life table
        factor += SPOUSE_FACTOR_ADJUSTMENT
        table_used = "Joint Life Expectancy"

    return AnnuityRmd(
        required=True,
        amount=max(0.0, details.current_value) / factor,
        factor=factor,
        table_used=table_used,
    )


def get_annuity_tax_strategies(details: AnnuityDetails, owner_age: float, marginal_rate: float = 0.0) -> List[Dict[str, str]]:
    strategies = []
    is_pre_tefra = classify_annuity(details.purchase_date)["is_pre_tefra"]

    if not details.is_qualified and owner_age < EARLY_WITHDRAWAL_AGE:
        strategies.append({
            "type": "timing",
            "title": "Delay Distributions Until Age 59½",
            "description": "Avoid the 10% early withdrawal penalty on earnings",
            "priority": "high",
        })

    if is_pre_tefra and details.basis_amount > 0:
        strategies.append({
            "type": "basis-recovery",
            "title": "Maximize Tax-Free Basis Recovery",
            "description": f"Distributions recover ${details.basis_amount:,.0f} of basis tax-free before any gain",
            "priority": "medium",
        })

    if not is_pre_tefra and not details.is_qualified:
        ratio = exclusion_ratio(details)
        strategies.append({
            "type": "pro-rata",
            "title": "Pro-Rata Distribution Planning",
            "description": f"{ratio * 100:.1f}% of each distribution is tax-free"
                           + (f"; the rest is taxed near {marginal_rate * 100:.0f}%" if marginal_rate > 0 else ""),
            "priority": "low",
        })

    if details.is_qualified and 70 <= owner_age < ANNUITY_RMD_START_AGE:
        strategies.append({
            "type": "rmd-planning",
            "title": "Prepare for Required Minimum Distributions",
            "description": f"RMDs begin at age {ANNUITY_RMD_START_AGE} for qualified annuities",
            "priority": "medium",
        })

    if not details.is_qualified and details.annuity_type == "deferred":
        strategies.append({
            "type": "exchange",
            "title": "Consider 1035 Exchange",
            "description": "Tax-free exchange to a contract with better features",
            "priority": "low",
        })

    return strategies
