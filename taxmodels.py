# taxmodels.py
"""
Value objects passed into and returned from the tax engine.

Everything here is a frozen dataclass with tuple collections, so a probe or a
planning year is built with `dataclasses.replace` and never by mutation.
"""
from dataclasses import dataclass, field
from typing import ClassVar, FrozenSet, Optional, Tuple

SIGNED_INCOME_TYPES = frozenset({"short-term-capital-gains", "long-term-capital-gains"})

# ---------------------------------------------------------------------------
# Household
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HousingInfo:
    ownership: str = "own"                  # 'own' or 'rent'
    michigan_resident_6_months: bool = True
    property_taxes_paid: float = 0.0
    property_taxable_value: float = 0.0


@dataclass(frozen=True)
class TaxpayerProfile:
    age: int
    filing_status: str = "single"
    state: str = "MI"
    spouse_age: Optional[int] = None
    birth_year: Optional[int] = None
    housing: Optional[HousingInfo] = None
    is_veteran: bool = False


@dataclass(frozen=True)
class SpouseProfile:
    age: int
    birth_year: Optional[int] = None


# ---------------------------------------------------------------------------
# Income sources (one variant per tax character)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IncomeSource:
    id: str
    type: str
    amount: float
    owner: str = "taxpayer"                 # 'taxpayer', 'spouse' or 'joint'
    enabled: bool = True
    name: str = ""
    frequency: str = "annual"               # 'annual' or 'monthly'

    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset()

    @property
    def annual_amount(self) -> float:
        if self.frequency == "monthly":
            return self.amount * 12
        return self.amount

    def allows_negative(self) -> bool:
        """Only capital gains may carry a signed loss."""
        return self.type in SIGNED_INCOME_TYPES


@dataclass(frozen=True)
class EarnedIncome(IncomeSource):
    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"wages", "self-employment", "business"})


@dataclass(frozen=True)
class OrdinaryIncome(IncomeSource):
    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({
        "interest", "dividends", "short-term-capital-gains", "pension", "rental",
        "royalties", "passive-business", "roth-conversion", "other",
    })


@dataclass(frozen=True)
class PreferentialIncome(IncomeSource):
    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"long-term-capital-gains", "qualified-dividends"})


@dataclass(frozen=True)
class TaxExemptIncome(IncomeSource):
    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"municipal-bond-interest", "private-activity-bond-interest"})


@dataclass(frozen=True)
class SocialSecurityIncome(IncomeSource):
    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"social-security"})


@dataclass(frozen=True)
class QualifiedRetirementIncome(IncomeSource):
    account_value: float = 0.0
    prior_year_value: Optional[float] = None
    rmd_method: str = "estimated"           # 'estimated' or 'actual'
    actual_rmd: Optional[float] = None
    penalty_exempt: bool = False

    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({
        "traditional-ira", "traditional-401k", "401k", "403b", "457",
        "sep-ira", "simple-ira", "estimated-rmd",
    })


@dataclass(frozen=True)
class RothIncome(IncomeSource):
    total_contributions: Optional[float] = None
    five_year_rule_met: bool = True

    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"roth-ira"})


@dataclass(frozen=True)
class AnnuityDetails:
    purchase_date: str                      # ISO date, e.g. '1995-06-01'
    basis_amount: float
    current_value: float = 0.0
    annuity_type: str = "deferred"          # 'immediate' or 'deferred'
    is_qualified: bool = False
    expected_return: Optional[float] = None
    basis_remaining: Optional[float] = None


@dataclass(frozen=True)
class AnnuityIncome(IncomeSource):
    details: Optional[AnnuityDetails] = None

    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"annuity"})


@dataclass(frozen=True)
class LifeInsuranceDetails:
    policy_type: str = "whole-life"         # 'whole-life', 'universal-life', 'variable-life', 'term'
    total_premiums_paid: float = 0.0
    current_cash_value: float = 0.0
    is_mec: bool = False
    existing_loans: float = 0.0
    prior_withdrawals: float = 0.0
    policy_face_amount: float = 0.0
    premium_payments: Tuple[float, ...] = ()
    policy_lapsed: bool = False


@dataclass(frozen=True)
class LifeInsuranceIncome(IncomeSource):
    details: Optional[LifeInsuranceDetails] = None
    access_method: str = "withdrawal"       # 'withdrawal', 'loan' or 'combination'

    ALLOWED_TYPES: ClassVar[FrozenSet[str]] = frozenset({"life-insurance"})


INCOME_VARIANTS: Tuple[type, ...] = (
    EarnedIncome, OrdinaryIncome, PreferentialIncome, TaxExemptIncome, SocialSecurityIncome,
    QualifiedRetirementIncome, RothIncome, AnnuityIncome, LifeInsuranceIncome,
)


# ---------------------------------------------------------------------------
# Deductions and settings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ItemizedDeductions:
    salt: float = 0.0
    mortgage_interest: float = 0.0
    charitable_giving: float = 0.0
    medical_expenses: float = 0.0
    other_deductions: float = 0.0
    miscellaneous: float = 0.0              # Not deductible for regular tax; AMT add-back only


@dataclass(frozen=True)
class DeductionSet:
    itemized: Optional[ItemizedDeductions] = None
    above_the_line: float = 0.0
    state_other_credits: float = 0.0


@dataclass(frozen=True)
class MedicareEnrollment:
    # None means "infer from age >= 65"
    taxpayer: Optional[bool] = None
    spouse: Optional[bool] = None


@dataclass(frozen=True)
class AppSettings:
    tax_year: int = 2025
    tcja_sunsetting: bool = True
    rmd_enabled: bool = False
    rmd_table: str = "simplified"           # 'simplified' or 'uniform'
    medicare: MedicareEnrollment = field(default_factory=MedicareEnrollment)
    inflation_rate: Optional[float] = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BracketSlice:
    kind: str                               # 'ordinary' or 'preferential'
    rate: float
    low: float
    high: float
    taxable_amount: float
    tax_in_bracket: float


@dataclass(frozen=True)
class BracketTaxResult:
    tax: float
    ordinary_tax: float
    preferential_tax: float
    breakdown: Tuple[BracketSlice, ...] = ()


@dataclass(frozen=True)
class SurtaxResult:
    applies: bool
    tax: float
    threshold: float
    excess_amount: float
    rate: float
    base_amount: float                      # NII for NIIT, earned income for Additional Medicare


@dataclass(frozen=True)
class AMTAdjustment:
    description: str
    amount: float


@dataclass(frozen=True)
class AMTResult:
    amt_income: float
    exemption: float
    amt_taxable_income: float
    amt_tax: float
    regular_tax: float
    applies: bool
    additional_tax: float
    final_tax: float
    effective_amt_rate: float
    threshold: float
    excess_amount: float
    adjustments: Tuple[AMTAdjustment, ...] = ()

    @property
    def tax(self) -> float:
        return self.additional_tax


@dataclass(frozen=True)
class FICAResult:
    social_security_tax: float
    medicare_tax: float
    self_employment_tax: float
    se_deduction: float
    wages: float
    self_employment_income: float
    total: float


@dataclass(frozen=True)
class SocialSecurityResult:
    benefits: float
    provisional_income: float
    taxable_amount: float
    tier: str
    taxation_percentage: int


@dataclass(frozen=True)
class PenaltyDetail:
    source_id: str
    source_type: str
    owner: str
    owner_age: Optional[float]
    amount: float
    penalty: float


@dataclass(frozen=True)
class AdjustedSource:
    source_id: str
    type: str
    character: str                          # 'earned', 'ordinary', 'preferential', 'tax-exempt', 'social-security', 'tax-free'
    gross_amount: float
    taxable_amount: float
    tax_free_amount: float
    penalty: float = 0.0
    notes: str = ""


@dataclass(frozen=True)
class AccountRmd:
    source_id: str
    owner: str
    owner_age: int
    value_for_rmd: float
    factor: float
    required_amount: float
    is_estimated: bool


@dataclass(frozen=True)
class RmdSummary:
    accounts: Tuple[AccountRmd, ...] = ()
    total_required: float = 0.0
    qualified_withdrawals: float = 0.0
    shortfall: float = 0.0
    shortfall_by_owner: Tuple[Tuple[str, float], ...] = ()
    is_estimated: bool = False


@dataclass(frozen=True)
class HomesteadCreditResult:
    eligible: bool
    credit: float = 0.0
    reason: str = ""
    credit_rate: float = 0.0
    max_creditable_property_tax: float = 0.0
    income_threshold_for_property_tax: float = 0.0


@dataclass(frozen=True)
class StateTaxResult:
    state: str
    agi: float
    retirement_deduction: float
    personal_exemption: float
    taxable_income: float
    gross_tax: float
    homestead_credit: HomesteadCreditResult
    other_credits: float
    net_tax: float
    marginal_rate: float


@dataclass(frozen=True)
class IrmaaResult:
    magi: float
    tier: int
    persons_covered: int
    part_b_surcharge_monthly: float
    part_d_surcharge_monthly: float
    annual_surcharge: float
    annual_part_b_premium: float
    next_threshold: Optional[float]


@dataclass(frozen=True)
class FederalTaxResult:
    brackets: BracketTaxResult
    regular_tax: float
    amt: AMTResult
    niit: SurtaxResult
    additional_medicare: SurtaxResult
    penalties: float
    penalty_details: Tuple[PenaltyDetail, ...]
    standard_deduction: float
    itemized_deduction: float
    deduction_used: float
    using_itemized: bool
    senior_deduction: float
    ordinary_taxable_income: float
    preferential_taxable_income: float
    capital_loss_deduction: float
    marginal_bracket_rate: float
    federal_tax: float


@dataclass(frozen=True)
class TaxSummary:
    total_income: float
    agi: float
    taxable_income: float
    federal_tax: float
    state_tax: float
    total_tax: float
    effective_tax_rate: float


@dataclass(frozen=True)
class TaxResult:
    summary: TaxSummary
    federal: FederalTaxResult
    state: StateTaxResult
    fica: Optional[FICAResult]
    social_security: SocialSecurityResult
    irmaa: IrmaaResult
    rmd: RmdSummary
    adjusted_sources: Tuple[AdjustedSource, ...]
    warnings: Tuple[str, ...]
    tax_year: int
    filing_status: str
    magi: float = 0.0
    earned_income: float = 0.0
    net_investment_income: float = 0.0


@dataclass(frozen=True)
class MarginalAnalysisResult:
    marginal_rate: float
    current_bracket_rate: float
    next_bracket_rate: float
    next_bracket_threshold: Optional[float]
    distance_to_next_threshold: float
    amount_to_next_rate_hike: float
    next_effective_marginal_rate: float
    rate_hike_source: str
    irmaa_cliff_distance: Optional[float] = None
    amt_crossover_distance: Optional[float] = None


@dataclass(frozen=True)
class RecommendationItem:
    title: str
    description: str
    projected_savings: float = 0.0
    year: Optional[int] = None
    category: str = "Tax Optimization"
    priority: str = "medium"
    action: str = ""
    considerations: Tuple[str, ...] = ()
    id: str = ""
