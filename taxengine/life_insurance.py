# taxengine/life_insurance.py
"""
Cash-value life insurance taxation: withdrawals (FIFO, or LIFO for MECs),
policy loans, death benefits, the 7-pay MEC test and access-strategy income streams.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional
import logging

from taxmodels import LifeInsuranceDetails

logger = logging.getLogger(__name__)

SEVEN_PAY_LIMIT_FACTOR = 0.10  # Approximate 7-pay limit as a share of face amount
SEVEN_PAY_YEARS = 7
ACCESS_METHODS = ("withdrawal", "loan", "combination")

POLICY_CLASSIFICATIONS: Dict[str, Dict[str, str]] = {
    "term": {
        "tax_characteristics": "No cash value, premiums not deductible, death benefit tax-free",
        "cash_value_treatment": "N/A - No cash value",
        "common_uses": "Pure insurance protection",
    },
    "whole-life": {
        "tax_characteristics": "Tax-deferred cash value growth, tax-free loans and basis withdrawals",
        "cash_value_treatment": "FIFO taxation (basis first, then gains)",
        "common_uses": "Permanent protection with cash accumulation",
    },
    "universal-life": {
        "tax_characteristics": "Tax-deferred cash value growth, flexible premiums and death benefit",
        "cash_value_treatment": "FIFO taxation (basis first, then gains)",
        "common_uses": "Flexible permanent protection with investment component",
    },
    "variable-life": {
        "tax_characteristics": "Tax-deferred investment growth, investment risk on policyholder",
        "cash_value_treatment": "FIFO taxation (basis first, then gains)",
        "common_uses": "Investment-oriented permanent protection",
    },
}


@dataclass(frozen=True)
class LifeInsuranceTaxation:
    taxable_amount: float
    tax_free_amount: float
    kind: str
    notes: str = ""


def _policy_gain(details: LifeInsuranceDetails) -> float:
    return max(0.0, details.current_cash_value - details.total_premiums_paid)


def calculate_withdrawal_taxation(details: LifeInsuranceDetails, amount: float) -> LifeInsuranceTaxation:
    """
    Standard contracts return basis first (premiums less prior withdrawals);
    MECs pay out gains first.
    """
    amount = max(0.0, amount)
    if details.policy_type == "term":
        return LifeInsuranceTaxation(0.0, 0.0, "none", "Term life insurance has no cash value to withdraw")

    if details.is_mec:
        gains = _policy_gain(details)
        taxable = min(amount, gains)
        kind = "mec-gains" if amount <= gains else "mec-mixed"
        return LifeInsuranceTaxation(taxable, amount - taxable, kind,
                                     "MEC withdrawal - gains taxed first as ordinary income")

    basis = max(0.0, details.total_premiums_paid - details.prior_withdrawals)
    tax_free = min(amount, basis)
    if amount <= basis:
        return LifeInsuranceTaxation(0.0, amount, "basis-only", "Withdrawal from basis - tax-free return of premiums")
    return LifeInsuranceTaxation(amount - tax_free, tax_free, "mixed",
                                 "Withdrawal exceeds basis - gains portion taxed as ordinary income")


def calculate_loan_taxation(details: LifeInsuranceDetails, amount: float, policy_lapsed: Optional[bool] = None) -> LifeInsuranceTaxation:
    """Loans are tax-free while in force; on lapse, loans in excess of premiums become taxable."""
    amount = max(0.0, amount)
    lapsed = details.policy_lapsed if policy_lapsed is None else policy_lapsed
    if not lapsed:
        return LifeInsuranceTaxation(0.0, amount, "active-policy",
                                     "Policy loan while policy is in force - generally not taxable")

    total_loans = details.existing_loans + amount
    taxable = max(0.0, total_loans - details.total_premiums_paid)
    return LifeInsuranceTaxation(taxable, min(total_loans, details.total_premiums_paid), "lapsed-policy",
                                 "Policy lapsed with outstanding loans - loan forgiveness may be taxable income")


def calculate_death_benefit_taxation(benefit: float, payment_method: str = "lump-sum") -> LifeInsuranceTaxation:
    benefit = max(0.0, benefit)
    if payment_method == "lump-sum":
        return LifeInsuranceTaxation(0.0, benefit, "lump-sum",
                                     "Death benefit paid as lump sum - generally tax-free to beneficiary")
    return LifeInsuranceTaxation(0.0, benefit, "installments",
                                 "Death benefit paid in installments - principal tax-free, interest may be taxable")


def determine_mec_status(details: LifeInsuranceDetails) -> Dict[str, object]:
    """Simplified 7-pay test: cumulative early premiums against 10% of face."""
    seven_pay_limit = details.policy_face_amount * SEVEN_PAY_LIMIT_FACTOR
    cumulative = 0.0
    failed = False
    for payment in details.premium_payments[:SEVEN_PAY_YEARS]:
        cumulative += payment
        if cumulative > seven_pay_limit:
            failed = True
            break

    return {
        "is_mec": failed,
        "seven_pay_limit": seven_pay_limit,
        "cumulative_premiums": cumulative,
        "notes": ("Policy failed 7-pay test and is classified as MEC" if failed
                  else "Policy passes 7-pay test and maintains life insurance tax benefits"),
    }


def calculate_income_stream(details: LifeInsuranceDetails, access_method: str, amount: float) -> LifeInsuranceTaxation:
    """
    Taxes one year of cash-value access.

    'combination' borrows up to the basis not already covered by loans and
    withdraws the rest.
    """
    amount = max(0.0, amount)
    if access_method == "withdrawal":
        return calculate_withdrawal_taxation(details, amount)
    if access_method == "loan":
        return calculate_loan_taxation(details, amount)
    if access_method == "combination":
        loan_room = max(0.0, details.total_premiums_paid - details.existing_loans)
        loan_portion = min(amount, loan_room)
        withdrawal_portion = amount - loan_portion
        taxable = 0.0
        if withdrawal_portion > 0:
            taxable = calculate_withdrawal_taxation(details, withdrawal_portion).taxable_amount
        return LifeInsuranceTaxation(taxable, amount - taxable, "combination",
                                     "Loans up to basis, then withdrawals")

    logger.warning(f"Unknown life insurance access method '{access_method}'; treating as withdrawal.")
    return calculate_withdrawal_taxation(details, amount)


def get_life_insurance_tax_strategies(details: LifeInsuranceDetails, owner_age: float = 0, marginal_rate: float = 0.0) -> List[Dict[str, str]]:
    strategies = []
    gains = _policy_gain(details)

    if details.total_premiums_paid > 0 and not details.is_mec:
        strategies.append({
            "strategy": "Access Basis First",
            "description": f"Withdraw up to ${details.total_premiums_paid:,.0f} tax-free (return of premiums)",
            "tax_implication": "Tax-free",
            "priority": "high",
        })
    if details.current_cash_value > 0 and not details.is_mec:
        strategies.append({
            "strategy": "Policy Loans",
            "description": "Use policy loans for tax-free access to cash value",
            "tax_implication": "Tax-free as long as the policy remains in force",
            "priority": "high",
        })
    if details.is_mec:
        strategies.append({
            "strategy": "MEC Management",
            "description": "Time withdrawals carefully; gains come out first",
            "tax_implication": f"Gains taxed first as ordinary income (about {marginal_rate * 100:.0f}% at the margin)",
            "priority": "medium",
        })
    strategies.append({
        "strategy": "Death Benefit Planning",
        "description": "Maintain the policy for a tax-free death benefit to beneficiaries",
        "tax_implication": "Tax-free to beneficiaries",
        "priority": "high",
    })
    if gains > 0:
        strategies.append({
            "strategy": "1035 Exchange",
            "description": "Consider a tax-free exchange to another life insurance or annuity product",
            "tax_implication": "Tax-deferred exchange",
            "priority": "medium",
        })
    return strategies


def classify_life_insurance_policy(policy_type: str, is_mec: bool = False) -> Dict[str, object]:
    classification = POLICY_CLASSIFICATIONS.get(policy_type, POLICY_CLASSIFICATIONS["whole-life"])
    return {
        "policy_type": policy_type,
        **classification,
        "is_mec": is_mec,
        "mec_impact": "LIFO taxation applies (gains first)" if is_mec else "Standard FIFO taxation",
    }
