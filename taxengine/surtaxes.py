# taxengine/surtaxes.py
"""
Taxes layered on top of the regular bracket tax: Net Investment Income Tax,
Additional Medicare Tax, FICA / self-employment tax and the Alternative Minimum Tax.
"""
from typing import Dict, List, Optional

from taxmodels import AMTAdjustment, AMTResult, FICAResult, ItemizedDeductions, SurtaxResult
from taxutils.tax_utils import (
    get_indexed_federal_constants,
    normalize_filing_status,
    TaxFilingStatus,
    NIIT_RATE,
    NIIT_THRESHOLD,
    ADDITIONAL_MEDICARE_RATE,
    ADDITIONAL_MEDICARE_THRESHOLD,
    SOCIAL_SECURITY_RATE,
    MEDICARE_RATE,
    SE_NET_EARNINGS_FACTOR,
    AMT_PHASEOUT_RATE,
    AMT_RATE_LOW,
    AMT_RATE_HIGH,
)

# Income types that count as net investment income
NII_TYPES = frozenset({
    "interest", "dividends", "qualified-dividends", "long-term-capital-gains",
    "short-term-capital-gains", "rental", "royalties", "passive-business",
})


def _threshold_for(filing_status: str, table: Dict[str, float]) -> float:
    status = normalize_filing_status(filing_status)
    if status == "qualifying_widow":
        status = "married_filing_jointly"
    return table.get(status, table["single"])


# --- 1. Net Investment Income Tax ---

def calculate_niit(
    magi: float,
    net_investment_income: float,
    filing_status: TaxFilingStatus,
    constants: Optional[Dict] = None,
) -> SurtaxResult:
    """3.8% of the lesser of NII and the MAGI excess over the filing-status threshold."""
    if constants is not None:
        threshold, rate = constants["niit_threshold"], constants["niit_rate"]
    else:
        threshold, rate = _threshold_for(filing_status, NIIT_THRESHOLD), NIIT_RATE

    nii = max(0.0, net_investment_income)
    excess = max(0.0, magi - threshold)
    taxable = min(nii, excess)
    tax = taxable * rate if excess > 0 else 0.0

    return SurtaxResult(
        applies=tax > 0,
        tax=tax,
        threshold=threshold,
        excess_amount=excess,
        rate=rate,
        base_amount=nii,
    )


# --- 2. Additional Medicare Tax ---

def calculate_additional_medicare_tax(
    earned_income: float,
    filing_status: TaxFilingStatus,
    constants: Optional[Dict] = None,
) -> SurtaxResult:
    """0.9% on wages and self-employment income above the filing-status threshold."""
    if constants is not None:
        threshold, rate = constants["additional_medicare_threshold"], constants["additional_medicare_rate"]
    else:
        threshold, rate = _threshold_for(filing_status, ADDITIONAL_MEDICARE_THRESHOLD), ADDITIONAL_MEDICARE_RATE

    earned = max(0.0, earned_income)
    excess = max(0.0, earned - threshold)
    tax = excess * rate

    return SurtaxResult(
        applies=tax > 0,
        tax=tax,
        threshold=threshold,
        excess_amount=excess,
        rate=rate,
        base_amount=earned,
    )


# --- 3. FICA / Self-Employment ---

def calculate_fica_taxes(
    wages: float,
    self_employment_income: float = 0.0,
    tax_year: int = 2025,
    constants: Optional[Dict] = None,
) -> FICAResult:
    """
    Employee-side Social Security and Medicare on wages, plus SE tax on net earnings.

    SE income is first reduced to net earnings (92.35%) and pays both halves of
    each rate. Social Security applies only to the wage base left after wages.
    Half of the SE tax is reported as `se_deduction` for the above-the-line adjustment.
    """
    if constants is None:
        constants = get_indexed_federal_constants(tax_year, "single")
    wage_base = constants["ss_wage_base"]

    wages = max(0.0, wages)
    se_income = max(0.0, self_employment_income)

    ss_wages = min(wages, wage_base)
    social_security_tax = ss_wages * SOCIAL_SECURITY_RATE
    medicare_tax = wages * MEDICARE_RATE

    net_earnings = se_income * SE_NET_EARNINGS_FACTOR
    remaining_base = max(0.0, wage_base - ss_wages)
    se_ss_tax = min(net_earnings, remaining_base) * SOCIAL_SECURITY_RATE * 2
    se_medicare_tax = net_earnings * MEDICARE_RATE * 2
    self_employment_tax = se_ss_tax + se_medicare_tax

    return FICAResult(
        social_security_tax=social_security_tax,
        medicare_tax=medicare_tax,
        self_employment_tax=self_employment_tax,
        se_deduction=self_employment_tax / 2,
        wages=wages,
        self_employment_income=se_income,
        total=social_security_tax + medicare_tax + self_employment_tax,
    )


# --- 4. Alternative Minimum Tax ---

def _amt_adjustments(deductions: Optional[ItemizedDeductions], private_activity_bond_interest: float) -> List[AMTAdjustment]:
    adjustments = []
    if deductions is not None:
        if deductions.salt > 0:
            adjustments.append(AMTAdjustment("State and Local Tax Deduction", deductions.salt))
        if deductions.miscellaneous > 0:
            adjustments.append(AMTAdjustment("Miscellaneous Itemized Deductions", deductions.miscellaneous))
    if private_activity_bond_interest > 0:
        adjustments.append(AMTAdjustment("Private Activity Bond Interest", private_activity_bond_interest))
    return adjustments


def calculate_amt(
    agi: float,
    deductions: Optional[ItemizedDeductions],
    private_activity_bond_interest: float,
    regular_tax: float,
    filing_status: TaxFilingStatus,
    constants: Optional[Dict] = None,
    tax_year: int = 2025,
) -> AMTResult:
    """
    Parallel minimum tax on AGI plus the add-back preference items.

    Args:
        agi: Federal AGI.
        deductions: Itemized deductions (SALT and miscellaneous are added back).
        private_activity_bond_interest: Tax-exempt interest that is an AMT preference.
        regular_tax: Regular bracket tax to compare against.
        constants: Indexed constants; looked up from `tax_year` when omitted.
    """
    if constants is None:
        constants = get_indexed_federal_constants(tax_year, normalize_filing_status(filing_status))

    adjustments = _amt_adjustments(deductions, max(0.0, private_activity_bond_interest))
    amt_income = agi + sum(a.amount for a in adjustments)

    # Exemption phases out at 25 cents per dollar over the threshold
    phaseout_threshold = constants["amt_phaseout_threshold"]
    base_exemption = constants["amt_exemption"]
    excess = max(0.0, amt_income - phaseout_threshold)
    exemption = max(0.0, base_exemption - excess * AMT_PHASEOUT_RATE)

    amt_taxable_income = max(0.0, amt_income - exemption)
    rate_threshold = constants["amt_rate_threshold"]
    if amt_taxable_income <= rate_threshold:
        amt_tax = amt_taxable_income * AMT_RATE_LOW
    else:
        amt_tax = rate_threshold * AMT_RATE_LOW + (amt_taxable_income - rate_threshold) * AMT_RATE_HIGH

    applies = amt_tax > regular_tax
    effective_amt_rate = amt_tax / amt_income if amt_income > 0 else 0.0

    return AMTResult(
        amt_income=amt_income,
        exemption=exemption,
        amt_taxable_income=amt_taxable_income,
        amt_tax=amt_tax,
        regular_tax=regular_tax,
        applies=applies,
        additional_tax=amt_tax - regular_tax if applies else 0.0,
        final_tax=max(regular_tax, amt_tax),
        effective_amt_rate=effective_amt_rate,
        threshold=phaseout_threshold,
        excess_amount=excess,
        adjustments=tuple(adjustments),
    )
