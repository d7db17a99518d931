# taxengine/brackets.py
"""
Bracket engine: stacks ordinary income on the ordinary schedule and preferential
income (LTCG / qualified dividends) on top of it at capital-gains rates.
"""
from typing import Dict, List, Optional, Sequence, Tuple, Union
import numpy as np

from taxmodels import BracketSlice, BracketTaxResult
from taxutils.tax_utils import Bracket, get_indexed_federal_constants, TaxFilingStatus


def _resolve_constants(filing_status: TaxFilingStatus, tax_year: int, constants: Optional[Dict]) -> Dict:
    if constants is not None:
        return constants
    return get_indexed_federal_constants(tax_year, filing_status)


def compute_bracket_tax(
    taxable_ordinary: float,
    taxable_preferential: float,
    filing_status: TaxFilingStatus = "single",
    tax_year: int = 2025,
    constants: Optional[Dict[str, Union[float, List, Dict]]] = None,
) -> BracketTaxResult:
    """
    Calculates the Federal income tax on a stacked ordinary + preferential amount.

    Args:
        taxable_ordinary: Taxable ordinary income (after deductions).
        taxable_preferential: Taxable LTCG + qualified dividends, stacked on top of ordinary.
        filing_status, tax_year: Used to look up the schedules when `constants` is not supplied.
        constants: A dict from get_indexed_federal_constants (preferred; avoids a second lookup).

    Returns:
        BracketTaxResult with one BracketSlice per bracket touched.
    """
    constants = _resolve_constants(filing_status, tax_year, constants)
    ordinary = max(0.0, taxable_ordinary)
    preferential = max(0.0, taxable_preferential)

    breakdown: List[BracketSlice] = []

    # 1. Ordinary income fills the ordinary brackets from zero
    ord_tax = 0.0
    remaining_taxable = ordinary
    for low, high, rate in constants["ord_list"]:
        if remaining_taxable <= 0:
            break
        bracket_income = min(remaining_taxable, high - low) if np.isfinite(high) else remaining_taxable
        tax_in_bracket = bracket_income * rate
        ord_tax += tax_in_bracket
        remaining_taxable -= bracket_income
        breakdown.append(BracketSlice("ordinary", rate, low, low + bracket_income, bracket_income, tax_in_bracket))

    # 2. Preferential income sits on [ordinary, ordinary + preferential]
    pref_tax = 0.0
    stack_top = ordinary + preferential
    for low, high, rate in constants["cg_list"]:
        if preferential <= 0:
            break
        bracket_start = max(low, ordinary)
        bracket_end = min(high, stack_top) if np.isfinite(high) else stack_top
        taxable_in_cg_bracket = bracket_end - bracket_start
        if taxable_in_cg_bracket <= 0:
            continue
        tax_in_bracket = taxable_in_cg_bracket * rate
        pref_tax += tax_in_bracket
        breakdown.append(BracketSlice("preferential", rate, bracket_start, bracket_end,
                                      taxable_in_cg_bracket, tax_in_bracket))

    return BracketTaxResult(
        tax=ord_tax + pref_tax,
        ordinary_tax=ord_tax,
        preferential_tax=pref_tax,
        breakdown=tuple(breakdown),
    )


def get_marginal_bracket(taxable_income: float, brackets: Sequence[Bracket]) -> Bracket:
    """Returns the (low, high, rate) bracket that the next dollar of `taxable_income` falls in."""
    for low, high, rate in brackets:
        if taxable_income < high:
            return (low, high, rate)
    return tuple(brackets[-1])


def find_next_tax_bracket(taxable_income: float, constants: Dict) -> Dict[str, Optional[float]]:
    """
    Locates the current and next ordinary bracket for `taxable_income`.

    With no taxable income the household sits in a virtual 0% bracket whose
    ceiling is the start of the 10% bracket (reached after the deduction is used up).
    """
    brackets: List[Tuple[float, float, float]] = list(constants["ord_list"])

    if taxable_income <= 0:
        first_low, _, first_rate = brackets[0]
        return {
            "current_rate": 0.0,
            "next_rate": first_rate,
            "current_floor": 0.0,
            "next_threshold": first_low,
            "distance": 0.0,
        }

    low, high, rate = get_marginal_bracket(taxable_income, brackets)
    if not np.isfinite(high):
        return {
            "current_rate": rate,
            "next_rate": rate,
            "current_floor": low,
            "next_threshold": None,
            "distance": 0.0,
        }

    next_rate = next(r for lo, _, r in brackets if lo >= high)
    return {
        "current_rate": rate,
        "next_rate": next_rate,
        "current_floor": low,
        "next_threshold": high,
        "distance": max(0.0, high - taxable_income),
    }
