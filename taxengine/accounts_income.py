# taxengine/accounts_income.py
"""
Required minimum distributions for qualified retirement accounts.

`compute_rmds` works out what each owner must take this year; `apply_estimated_rmds`
adds synthetic 'estimated-rmd' income for any part of that requirement the
household has not already planned as a manual withdrawal.
"""
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from taxmodels import (
    AccountRmd,
    AppSettings,
    IncomeSource,
    QualifiedRetirementIncome,
    RmdSummary,
    SpouseProfile,
    TaxpayerProfile,
)
from taxengine.rmd_tables import RMD_START_AGE, lookup_rmd_factor

logger = logging.getLogger(__name__)

ESTIMATED_RMD_TYPE = "estimated-rmd"


def resolve_spouse_age(taxpayer: TaxpayerProfile, spouse: Optional[SpouseProfile]) -> Optional[int]:
    if spouse is not None:
        return spouse.age
    return taxpayer.spouse_age


def resolve_owner_age(owner: str, taxpayer: TaxpayerProfile, spouse: Optional[SpouseProfile]) -> Optional[int]:
    """Joint and unrecognised owners are treated as the taxpayer."""
    if owner == "spouse":
        return resolve_spouse_age(taxpayer, spouse)
    return taxpayer.age


def resolve_owner_birth_year(owner: str, taxpayer: TaxpayerProfile, spouse: Optional[SpouseProfile],
                             tax_year: int) -> Optional[int]:
    if owner == "spouse":
        if spouse is not None and spouse.birth_year is not None:
            return spouse.birth_year
        age = resolve_spouse_age(taxpayer, spouse)
        return tax_year - age if age is not None else None
    if taxpayer.birth_year is not None:
        return taxpayer.birth_year
    return tax_year - taxpayer.age


def _owner_key(owner: str) -> str:
    return "spouse" if owner == "spouse" else "taxpayer"


def compute_rmds(
    income_sources: Sequence[IncomeSource],
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile],
    settings: AppSettings,
) -> RmdSummary:
    """
    Compute this year's required distributions per qualified account.

    Accounts with rmd_method='actual' and an actual_rmd use that figure; all others
    divide the prior-year value (or the current value when none is given) by the
    age factor. Shortfall is tracked per owner against that owner's own manual
    qualified withdrawals.

    Returns:
        RmdSummary with one AccountRmd per account that has a requirement.
    """
    accounts: List[AccountRmd] = []
    required_by_owner: Dict[str, float] = {}
    withdrawn_by_owner: Dict[str, float] = {}

    for source in income_sources:
        if not isinstance(source, QualifiedRetirementIncome) or not source.enabled:
            continue
        if source.type == ESTIMATED_RMD_TYPE:
            continue

        owner = _owner_key(source.owner)
        withdrawn_by_owner[owner] = withdrawn_by_owner.get(owner, 0.0) + max(0.0, source.annual_amount)

        owner_age = resolve_owner_age(source.owner, taxpayer, spouse)
        if owner_age is None:
            logger.warning(f"No age known for owner '{source.owner}' of account '{source.id}'; skipping its RMD.")
            continue

        if source.rmd_method == "actual" and source.actual_rmd is not None:
            if owner_age < RMD_START_AGE:
                continue
            required = max(0.0, source.actual_rmd)
            accounts.append(AccountRmd(source.id, owner, owner_age, source.account_value, 0.0, required, False))
            required_by_owner[owner] = required_by_owner.get(owner, 0.0) + required
            continue

        # Without a prior-year balance the current value stands in and the RMD is an estimate
        is_estimated = not source.prior_year_value
        value_for_rmd = source.prior_year_value or source.account_value
        if not value_for_rmd or value_for_rmd <= 0:
            continue

        birth_year = resolve_owner_birth_year(source.owner, taxpayer, spouse, settings.tax_year)
        factor = lookup_rmd_factor(owner_age, settings.rmd_table, birth_year)
        if factor <= 0:
            continue

        required = value_for_rmd / factor
        accounts.append(AccountRmd(source.id, owner, owner_age, value_for_rmd, factor, required, is_estimated))
        required_by_owner[owner] = required_by_owner.get(owner, 0.0) + required

    shortfall_by_owner: List[Tuple[str, float]] = []
    for owner in ("taxpayer", "spouse"):
        if owner not in required_by_owner:
            continue
        shortfall = max(0.0, required_by_owner[owner] - withdrawn_by_owner.get(owner, 0.0))
        if shortfall > 0:
            shortfall_by_owner.append((owner, shortfall))

    return RmdSummary(
        accounts=tuple(accounts),
        total_required=sum(required_by_owner.values()),
        qualified_withdrawals=sum(withdrawn_by_owner.values()),
        shortfall=sum(amount for _, amount in shortfall_by_owner),
        shortfall_by_owner=tuple(shortfall_by_owner),
        is_estimated=any(a.is_estimated for a in accounts),
    )


def apply_estimated_rmds(income_sources: Sequence[IncomeSource], summary: RmdSummary) -> Tuple[IncomeSource, ...]:
    """
    Returns a new source tuple with stale 'estimated-rmd' entries replaced by one
    per owner with an outstanding shortfall. The input is left untouched.
    """
    kept = tuple(s for s in income_sources if s.type != ESTIMATED_RMD_TYPE)
    synthesized = tuple(
        QualifiedRetirementIncome(
            id=f"{ESTIMATED_RMD_TYPE}-{owner}",
            type=ESTIMATED_RMD_TYPE,
            amount=shortfall,
            owner=owner,
            name=f"Estimated RMD ({owner})",
            penalty_exempt=True,
        )
        for owner, shortfall in summary.shortfall_by_owner
    )
    return kept + synthesized
