# taxengine/michigan.py
"""
Michigan income tax, retirement income deduction and Homestead Property Tax Credit.
All Michigan parameters are non-indexed constants from taxutils.tax_utils.
"""
from typing import Dict, List, Optional
import numpy as np

from taxmodels import HomesteadCreditResult, SpouseProfile, StateTaxResult, TaxpayerProfile
from taxutils.tax_utils import (
    MI_TAX_RATE,
    MI_PERSONAL_EXEMPTION,
    MI_RETIREMENT_DEDUCTION_COHORTS,
    MI_HOMESTEAD_CREDIT_BANDS,
    MI_HOMESTEAD_INCOME_SHARE,
    MI_HOMESTEAD_MINIMUM_CREDIT,
    MI_HOMESTEAD_MAXIMUM_CREDIT,
    TaxFilingStatus,
)

SENIOR_EXEMPTION_AGE = 65


def _household_birth_year(taxpayer: TaxpayerProfile, spouse: Optional[SpouseProfile], tax_year: int,
                          joint: bool) -> int:
    """Oldest filer's birth year; joint returns qualify through either spouse."""
    birth_year = taxpayer.birth_year if taxpayer.birth_year is not None else tax_year - taxpayer.age
    if joint:
        if spouse is not None:
            spouse_birth = spouse.birth_year if spouse.birth_year is not None else tax_year - spouse.age
            birth_year = min(birth_year, spouse_birth)
        elif taxpayer.spouse_age is not None:
            birth_year = min(birth_year, tax_year - taxpayer.spouse_age)
    return birth_year


def michigan_retirement_deduction(retirement_income: float, birth_year: int, joint: bool) -> float:
    """Retirement income deduction capped by birth cohort (full for 1945 and earlier, none from 1967)."""
    if retirement_income <= 0:
        return 0.0
    for last_birth_year, single_cap, joint_cap in MI_RETIREMENT_DEDUCTION_COHORTS:
        if birth_year <= last_birth_year:
            cap = joint_cap if joint else single_cap
            return min(retirement_income, cap) if np.isfinite(cap) else retirement_income
    return 0.0


def calculate_michigan_state_tax(
    federal_agi: float,
    social_security_benefits: float,
    retirement_income: float,
    filing_status: TaxFilingStatus,
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile] = None,
    tax_year: int = 2025,
    total_income: Optional[float] = None,
    other_credits: float = 0.0,
) -> StateTaxResult:
    """
    Calculates Michigan income tax net of the Homestead credit and other state credits.

    Args:
        federal_agi: Federal AGI (includes taxable Social Security).
        social_security_benefits: Taxable Social Security removed from MI AGI.
        retirement_income: Pension, IRA, 401(k) and annuity income eligible for the deduction.
        total_income: Household resources for the Homestead credit; defaults to federal AGI.
        other_credits: Other non-refundable state credits.

    Returns:
        StateTaxResult; net tax never goes below zero.
    """
    joint = filing_status == "married_filing_jointly"
    mi_agi = max(0.0, federal_agi - social_security_benefits)

    birth_year = _household_birth_year(taxpayer, spouse, tax_year, joint)
    retirement_deduction = min(michigan_retirement_deduction(retirement_income, birth_year, joint), mi_agi)

    personal_exemption = MI_PERSONAL_EXEMPTION["married_filing_jointly" if joint else "single"]
    taxable_income = max(0.0, mi_agi - retirement_deduction - personal_exemption)
    gross_tax = taxable_income * MI_TAX_RATE

    homestead = calculate_michigan_homestead_credit(taxpayer, total_income if total_income is not None else federal_agi)
    credits = homestead.credit + max(0.0, other_credits)
    net_tax = max(0.0, gross_tax - credits)

    return StateTaxResult(
        state="MI",
        agi=mi_agi,
        retirement_deduction=retirement_deduction,
        personal_exemption=personal_exemption,
        taxable_income=taxable_income,
        gross_tax=gross_tax,
        homestead_credit=homestead,
        other_credits=max(0.0, other_credits),
        net_tax=net_tax,
        marginal_rate=MI_TAX_RATE if taxable_income > 0 else 0.0,
    )


def calculate_michigan_homestead_credit(taxpayer: TaxpayerProfile, total_income: float) -> HomesteadCreditResult:
    """
    Homestead Property Tax Credit.

    Eligibility is checked in order (ownership, 6-month residency, property tax data,
    income band); the first failure is returned with its reason.
    """
    housing = taxpayer.housing
    if housing is None or housing.ownership != "own":
        return HomesteadCreditResult(eligible=False, reason="Must own primary residence")
    if not housing.michigan_resident_6_months:
        return HomesteadCreditResult(eligible=False, reason="Must be Michigan resident for 6+ months")

    taxes_paid = housing.property_taxes_paid or 0.0
    taxable_value = housing.property_taxable_value or 0.0
    if taxes_paid <= 0 or taxable_value <= 0:
        return HomesteadCreditResult(eligible=False, reason="Property tax information required")

    for income_ceiling, rate in MI_HOMESTEAD_CREDIT_BANDS:
        if total_income <= income_ceiling:
            credit_rate = rate
            break
    else:
        return HomesteadCreditResult(
            eligible=False,
            reason=f"Income too high (over ${MI_HOMESTEAD_CREDIT_BANDS[-1][0]:,.0f})",
        )

    max_creditable = min(taxes_paid, taxable_value * MI_HOMESTEAD_INCOME_SHARE)
    income_share = total_income * MI_HOMESTEAD_INCOME_SHARE

    credit = 0.0
    if taxes_paid > income_share:
        credit = min((taxes_paid - income_share) * credit_rate, max_creditable)

    # Low-income floor
    if total_income <= MI_HOMESTEAD_CREDIT_BANDS[0][0] and credit < MI_HOMESTEAD_MINIMUM_CREDIT:
        credit = min(MI_HOMESTEAD_MINIMUM_CREDIT, taxes_paid)

    credit = min(credit, MI_HOMESTEAD_MAXIMUM_CREDIT)

    return HomesteadCreditResult(
        eligible=True,
        credit=credit,
        credit_rate=credit_rate,
        max_creditable_property_tax=max_creditable,
        income_threshold_for_property_tax=income_share,
    )


def calculate_michigan_property_tax_exemptions(taxpayer: TaxpayerProfile, age: Optional[int] = None) -> List[Dict[str, object]]:
    age = taxpayer.age if age is None else age
    exemptions = []

    if age >= SENIOR_EXEMPTION_AGE:
        exemptions.append({
            "type": "senior",
            "name": "Senior Property Tax Exemption",
            "description": "Available for homeowners 65+ with income limitations",
            "potential_saving": "Up to $1,200 annually",
            "requirements": (
                "Age 65 or older",
                "Own and occupy primary residence",
                "Meet income requirements",
                "Apply with local assessor",
            ),
        })

    if taxpayer.is_veteran:
        exemptions.append({
            "type": "veteran",
            "name": "Disabled Veteran Property Tax Exemption",
            "description": "For qualifying disabled veterans",
            "potential_saving": "Varies by disability rating",
            "requirements": (
                "Honorably discharged veteran",
                "Service-connected disability",
                "Own and occupy primary residence",
                "Apply with local assessor",
            ),
        })

    return exemptions
