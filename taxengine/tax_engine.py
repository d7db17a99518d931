"""
Comprehensive U.S. household tax calculator.
Assembles AGI, deductions and the taxable-income split from classified income
sources, then runs the bracket engine, the surtaxes, the state module and the
Medicare IRMAA lookup against one set of indexed constants from taxutils.tax_utils.
"""
from typing import Dict, List, Optional, Sequence, Tuple, Union
import logging

from taxmodels import (
    AppSettings,
    DeductionSet,
    FederalTaxResult,
    HomesteadCreditResult,
    IncomeSource,
    IrmaaResult,
    ItemizedDeductions,
    MedicareEnrollment,
    SpouseProfile,
    StateTaxResult,
    TaxpayerProfile,
    TaxResult,
    TaxSummary,
)
from taxengine.accounts_income import apply_estimated_rmds, compute_rmds, resolve_spouse_age
from taxengine.brackets import compute_bracket_tax, find_next_tax_bracket
from taxengine.income_calculator import (
    calculate_social_security_taxation,
    classify_income_sources,
    net_capital_gains,
)
from taxengine.michigan import calculate_michigan_state_tax
from taxengine.surtaxes import (
    calculate_additional_medicare_tax,
    calculate_amt,
    calculate_fica_taxes,
    calculate_niit,
)
from taxutils.input_adapter import get_tax_inputs
from taxutils.tax_utils import (
    get_indexed_federal_constants,
    normalize_filing_status,
    TaxFilingStatus,
)

logger = logging.getLogger(__name__)

MEDICARE_AGE = 65
MEDICAL_EXPENSE_AGI_FLOOR = 0.075

# --- 1. Internal Helper Functions ---

def _count_65_plus(taxpayer_age: int, spouse_age: Optional[int], joint: bool) -> int:
    """Persons qualifying for the age-65 extras; a spouse only counts on a joint return."""
    count = 1 if taxpayer_age >= MEDICARE_AGE else 0
    if joint and spouse_age is not None and spouse_age >= MEDICARE_AGE:
        count += 1
    return count


def _senior_deduction(magi: float, eligible_persons: int, constants: Dict) -> float:
    """$6,000 per person 65+, reduced 6% of MAGI over the phase-out start and gone at the elimination point."""
    provision = constants.get("senior_deduction")
    if provision is None or eligible_persons == 0:
        return 0.0
    if magi >= provision["elimination"]:
        return 0.0

    deduction = provision["amount"] * eligible_persons
    if magi > provision["phaseout_start"]:
        deduction -= (magi - provision["phaseout_start"]) * provision["phaseout_rate"]
    return max(0.0, deduction)


def _itemized_total(itemized: Optional[ItemizedDeductions], agi: float) -> float:
    """Schedule A total; medical expenses count only above 7.5% of AGI."""
    if itemized is None:
        return 0.0
    medical = max(0.0, itemized.medical_expenses - agi * MEDICAL_EXPENSE_AGI_FLOOR)
    return (
        max(0.0, itemized.salt)
        + max(0.0, itemized.mortgage_interest)
        + max(0.0, itemized.charitable_giving)
        + medical
        + max(0.0, itemized.other_deductions)
    )


def _medicare_persons(
    taxpayer: TaxpayerProfile,
    spouse_age: Optional[int],
    enrollment: MedicareEnrollment,
    spouse_on_household: bool,
) -> int:
    """Explicit enrollment flags win; otherwise enrollment is inferred from age 65+."""
    taxpayer_enrolled = enrollment.taxpayer
    if taxpayer_enrolled is None:
        taxpayer_enrolled = taxpayer.age >= MEDICARE_AGE

    spouse_enrolled = False
    if spouse_on_household:
        spouse_enrolled = enrollment.spouse
        if spouse_enrolled is None:
            spouse_enrolled = spouse_age is not None and spouse_age >= MEDICARE_AGE

    return int(bool(taxpayer_enrolled)) + int(bool(spouse_enrolled))


def calculate_irmaa(
    magi: float,
    constants: Dict[str, Union[float, List, Dict]],
    persons_covered: int,
) -> IrmaaResult:
    """
    Medicare Part B and D income-related surcharges.

    The tier is found against the indexed MAGI thresholds; surcharges and base
    premium are monthly figures scaled by 12 and by the number of persons covered.
    """
    tiers = constants["irmaa_thresholds"]
    tier_index = 0
    for i, threshold in enumerate(tiers):
        if magi < threshold:
            tier_index = i
            break
    else:
        tier_index = len(tiers)  # Highest tier

    next_threshold = tiers[tier_index] if tier_index < len(tiers) else None

    part_b_surcharge_mo = constants["part_b_surcharges"][tier_index]
    part_d_surcharge_mo = constants["part_d_surcharges"][tier_index]
    base_part_b_mo = constants["base_part_b"]

    return IrmaaResult(
        magi=magi,
        tier=tier_index,
        persons_covered=persons_covered,
        part_b_surcharge_monthly=part_b_surcharge_mo,
        part_d_surcharge_monthly=part_d_surcharge_mo,
        annual_surcharge=12 * persons_covered * (part_b_surcharge_mo + part_d_surcharge_mo),
        annual_part_b_premium=12 * persons_covered * (base_part_b_mo + part_b_surcharge_mo),
        next_threshold=next_threshold,
    )


def _no_state_tax(state: str) -> StateTaxResult:
    return StateTaxResult(
        state=state,
        agi=0.0,
        retirement_deduction=0.0,
        personal_exemption=0.0,
        taxable_income=0.0,
        gross_tax=0.0,
        homestead_credit=HomesteadCreditResult(eligible=False, reason=f"No state tax model for '{state}'"),
        other_credits=0.0,
        net_tax=0.0,
        marginal_rate=0.0,
    )


# --- 2. Main Orchestrator Function ---

def calculate_comprehensive_taxes(
    taxpayer: TaxpayerProfile,
    spouse: Optional[SpouseProfile] = None,
    income_sources: Sequence[IncomeSource] = (),
    deductions: Optional[DeductionSet] = None,
    settings: Optional[AppSettings] = None,
    fica_enabled: bool = False,
) -> TaxResult:
    """
    Calculates all annual taxes (federal, surtaxes, state, optional FICA) and the
    Medicare IRMAA position for one household and tax year.

    Args:
        taxpayer: Primary filer; carries filing status, state and housing data.
        spouse: Optional spouse profile (ages also fall back to taxpayer.spouse_age).
        income_sources: Any mix of IncomeSource variants. Never modified.
        deductions: Itemized deductions, above-the-line adjustments and state credits.
        settings: Tax year, TCJA sunset switch, automatic RMDs, Medicare enrollment.
        fica_enabled: Include payroll and self-employment tax.

    Returns:
        TaxResult: a fresh, fully itemized result. Invalid inputs are zeroed and
        listed in `warnings`; only a missing or malformed tax table raises TaxTableError.
    """
    settings = settings if settings is not None else AppSettings()
    deductions = deductions if deductions is not None else DeductionSet()
    warnings: List[str] = []

    def _warn(message: str) -> None:
        logger.warning(message)
        warnings.append(message)

    # 1. Filing status and indexed constants
    filing_status: TaxFilingStatus = normalize_filing_status(taxpayer.filing_status)
    if filing_status == "single" and str(taxpayer.filing_status).strip().lower() not in ("single", "s"):
        warnings.append(f"Unknown filing status '{taxpayer.filing_status}'; computed as single.")

    joint = filing_status == "married_filing_jointly"
    spouse_on_household = filing_status in ("married_filing_jointly", "married_separate")
    if spouse is not None and not spouse_on_household:
        _warn(f"Spouse profile ignored for filing status '{filing_status}'.")
    spouse_age = resolve_spouse_age(taxpayer, spouse)

    constants = get_indexed_federal_constants(
        settings.tax_year, filing_status, settings.tcja_sunsetting, settings.inflation_rate
    )

    # 2. Required minimum distributions
    rmd_summary = compute_rmds(income_sources, taxpayer, spouse, settings)
    if settings.rmd_enabled:
        sources: Tuple[IncomeSource, ...] = apply_estimated_rmds(income_sources, rmd_summary)
    else:
        sources = tuple(income_sources)

    # 3. Classify every enabled source
    classified = classify_income_sources(sources, taxpayer, spouse)
    warnings.extend(classified.warnings)

    # 4. Capital gain netting
    gains = net_capital_gains(classified.short_term_gains, classified.long_term_gains, constants["capital_loss_limit"])
    ordinary_income = classified.earned + classified.ordinary + gains["ordinary_gain"]
    preferential_income = gains["preferential_gain"] + classified.qualified_dividends

    # 5. Payroll tax, AGI and taxable Social Security
    fica = None
    if fica_enabled:
        fica = calculate_fica_taxes(classified.wages, classified.self_employment, constants=constants)
    adjustments = max(0.0, deductions.above_the_line) + (fica.se_deduction if fica else 0.0)

    income_before_ss = ordinary_income + preferential_income - gains["loss_deduction"] - adjustments
    social_security = calculate_social_security_taxation(
        classified.social_security,
        income_before_ss + classified.tax_exempt_interest,
        constants["ss_tax_thresholds"],
    )
    agi = max(0.0, income_before_ss + social_security.taxable_amount)
    magi = agi + classified.tax_exempt_interest

    # 6. Deduction: larger of standard (with 65+ extras) and itemized
    persons_65 = _count_65_plus(taxpayer.age, spouse_age if joint else None, joint)
    senior_deduction = _senior_deduction(agi, persons_65, constants)
    standard_deduction = constants["std_deduction"] + persons_65 * constants["extra_std_deduction"] + senior_deduction
    itemized_deduction = _itemized_total(deductions.itemized, agi)
    using_itemized = itemized_deduction > standard_deduction
    deduction_used = itemized_deduction if using_itemized else standard_deduction

    # 7. Taxable income split (preferential income sits on top)
    taxable_income = max(0.0, agi - deduction_used)
    preferential_taxable = min(preferential_income, taxable_income)
    ordinary_taxable = taxable_income - preferential_taxable

    # 8. Federal income tax and surtaxes
    brackets = compute_bracket_tax(ordinary_taxable, preferential_taxable, filing_status, constants=constants)
    regular_tax = brackets.tax
    amt = calculate_amt(
        agi,
        deductions.itemized if using_itemized else None,
        classified.private_activity_bond_interest,
        regular_tax,
        filing_status,
        constants=constants,
    )
    net_investment_income = classified.investment_income + gains["ordinary_gain"] + gains["preferential_gain"]
    niit = calculate_niit(agi, net_investment_income, filing_status, constants=constants)
    additional_medicare = calculate_additional_medicare_tax(classified.earned, filing_status, constants=constants)

    federal_tax = amt.final_tax + niit.tax + additional_medicare.tax

    # 9. State income tax (dispatch based on state of residence)
    state_code = (taxpayer.state or "").strip().upper()
    if state_code == "MI":
        state = calculate_michigan_state_tax(
            agi,
            social_security.taxable_amount,
            classified.state_retirement_income,
            filing_status,
            taxpayer,
            spouse,
            tax_year=settings.tax_year,
            total_income=classified.total_income,
            other_credits=deductions.state_other_credits,
        )
    else:
        _warn(
            f"State Tax Calculations Not Available for '{state_code}'. "
            "Defaulting to $0 state income taxes."
        )
        state = _no_state_tax(state_code)

    # 10. Medicare IRMAA
    persons_covered = _medicare_persons(taxpayer, spouse_age, settings.medicare, spouse_on_household)
    irmaa = calculate_irmaa(magi, constants, persons_covered)

    # 11. Totals
    fica_total = fica.total if fica else 0.0
    total_tax = federal_tax + classified.penalties + state.net_tax + fica_total
    total_income = classified.total_income
    effective_tax_rate = total_tax / total_income if total_income > 0 else 0.0

    federal = FederalTaxResult(
        brackets=brackets,
        regular_tax=regular_tax,
        amt=amt,
        niit=niit,
        additional_medicare=additional_medicare,
        penalties=classified.penalties,
        penalty_details=classified.penalty_details,
        standard_deduction=standard_deduction,
        itemized_deduction=itemized_deduction,
        deduction_used=deduction_used,
        using_itemized=using_itemized,
        senior_deduction=senior_deduction,
        ordinary_taxable_income=ordinary_taxable,
        preferential_taxable_income=preferential_taxable,
        capital_loss_deduction=gains["loss_deduction"],
        marginal_bracket_rate=find_next_tax_bracket(taxable_income, constants)["current_rate"],
        federal_tax=federal_tax,
    )

    return TaxResult(
        summary=TaxSummary(
            total_income=total_income,
            agi=agi,
            taxable_income=taxable_income,
            federal_tax=federal_tax,
            state_tax=state.net_tax,
            total_tax=total_tax,
            effective_tax_rate=effective_tax_rate,
        ),
        federal=federal,
        state=state,
        fica=fica,
        social_security=social_security,
        irmaa=irmaa,
        rmd=rmd_summary,
        adjusted_sources=classified.adjusted_sources,
        warnings=tuple(warnings),
        tax_year=settings.tax_year,
        filing_status=filing_status,
        magi=magi,
        earned_income=classified.earned,
        net_investment_income=net_investment_income,
    )


def calculate_taxes_from_payload(payload: Dict) -> TaxResult:
    """Runs the orchestrator on a plain scenario dictionary (form post or JSON)."""
    return calculate_comprehensive_taxes(**get_tax_inputs(payload))
