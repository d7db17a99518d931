# taxutils/tax_utils.py
import logging
import re
import numpy as np
from typing import List, Tuple, Dict, Literal, Optional, Union

logger = logging.getLogger(__name__)

# Define the acceptable set of filing statuses for type hinting
TaxFilingStatus = Literal[
    "single", "married_filing_jointly", "married_separate", "head_of_household", "qualifying_widow"
]
FILING_STATUSES: Tuple[str, ...] = (
    "single", "married_filing_jointly", "married_separate", "head_of_household", "qualifying_widow"
)

SUNSET_YEAR = 2026  # First year the pre-TCJA schedule can apply
Bracket = Tuple[float, float, float]


class TaxTableError(ValueError):
    """Raised when no usable rate table exists for a requested year or the table is malformed."""


# =============================================================================
# 0. Filing Status Normalization
# =============================================================================

_FILING_STATUS_ALIASES: Dict[str, str] = {
    "single": "single",
    "s": "single",
    "marriedfilingjointly": "married_filing_jointly",
    "marriedjointly": "married_filing_jointly",
    "marriedjoint": "married_filing_jointly",
    "joint": "married_filing_jointly",
    "mfj": "married_filing_jointly",
    "marriedfilingseparately": "married_separate",
    "marriedseparately": "married_separate",
    "marriedseparate": "married_separate",
    "separate": "married_separate",
    "mfs": "married_separate",
    "headofhousehold": "head_of_household",
    "hoh": "head_of_household",
    "qualifyingwidow": "qualifying_widow",
    "qualifyingwidower": "qualifying_widow",
    "qualifyingsurvivingspouse": "qualifying_widow",
    "qw": "qualifying_widow",
    "qss": "qualifying_widow",
}


def normalize_filing_status(filing_status: Optional[str]) -> TaxFilingStatus:
    """
    Maps UI spellings ('married-jointly', 'marriedFilingJointly', 'MFJ', 'hoh', ...)
    onto the canonical keys used by every table in this module.
    Unknown values fall back to 'single' with a warning.
    """
    if not isinstance(filing_status, str) or not filing_status.strip():
        logger.warning(f"Missing filing status {filing_status!r}, defaulting to 'single'.")
        return "single"

    key = re.sub(r"[^a-z]", "", filing_status.lower())
    normalized = _FILING_STATUS_ALIASES.get(key)
    if normalized is None:
        logger.warning(f"Unknown filing status '{filing_status}', defaulting to 'single'.")
        return "single"
    return normalized


# =============================================================================
# 1. Federal Ordinary Income Tax Brackets
# =============================================================================

ORDINARY_BRACKETS: Dict[int, Dict[str, Tuple[Bracket, ...]]] = {
    2024: {
        "single": (
            (0, 11_000, 0.10), (11_000, 44_725, 0.12), (44_725, 95_375, 0.22),
            (95_375, 182_050, 0.24), (182_050, 231_250, 0.32), (231_250, 578_125, 0.35),
            (578_125, np.inf, 0.37),
        ),
        "married_filing_jointly": (
            (0, 22_000, 0.10), (22_000, 89_450, 0.12), (89_450, 190_750, 0.22),
            (190_750, 364_200, 0.24), (364_200, 462_500, 0.32), (462_500, 693_750, 0.35),
            (693_750, np.inf, 0.37),
        ),
        "head_of_household": (
            (0, 15_700, 0.10), (15_700, 59_850, 0.12), (59_850, 95_350, 0.22),
            (95_350, 182_050, 0.24), (182_050, 231_250, 0.32), (231_250, 578_100, 0.35),
            (578_100, np.inf, 0.37),
        ),
        "married_separate": (
            (0, 11_000, 0.10), (11_000, 44_725, 0.12), (44_725, 95_375, 0.22),
            (95_375, 182_100, 0.24), (182_100, 231_250, 0.32), (231_250, 346_875, 0.35),
            (346_875, np.inf, 0.37),
        ),
    },
    2025: {
        "single": (
            (0, 11_600, 0.10), (11_600, 47_150, 0.12), (47_150, 100_525, 0.22),
            (100_525, 191_950, 0.24), (191_950, 243_725, 0.32), (243_725, 609_350, 0.35),
            (609_350, np.inf, 0.37),
        ),
        "married_filing_jointly": (
            (0, 23_200, 0.10), (23_200, 94_300, 0.12), (94_300, 201_050, 0.22),
            (201_050, 383_900, 0.24), (383_900, 487_450, 0.32), (487_450, 731_200, 0.35),
            (731_200, np.inf, 0.37),
        ),
        "head_of_household": (
            (0, 16_550, 0.10), (16_550, 63_100, 0.12), (63_100, 100_500, 0.22),
            (100_500, 191_950, 0.24), (191_950, 243_700, 0.32), (243_700, 609_350, 0.35),
            (609_350, np.inf, 0.37),
        ),
        "married_separate": (
            (0, 11_600, 0.10), (11_600, 47_150, 0.12), (47_150, 100_525, 0.22),
            (100_525, 191_950, 0.24), (191_950, 243_725, 0.32), (243_725, 365_600, 0.35),
            (365_600, np.inf, 0.37),
        ),
    },
    2026: {
        "single": (
            (0, 12_400, 0.10), (12_400, 50_400, 0.12), (50_400, 105_700, 0.22),
            (105_700, 201_775, 0.24), (201_775, 256_225, 0.32), (256_225, 640_600, 0.35),
            (640_600, np.inf, 0.37),
        ),
        "married_filing_jointly": (
            (0, 24_800, 0.10), (24_800, 100_800, 0.12), (100_800, 211_400, 0.22),
            (211_400, 403_550, 0.24), (403_550, 512_450, 0.32), (512_450, 768_700, 0.35),
            (768_700, np.inf, 0.37),
        ),
        "head_of_household": (
            (0, 17_700, 0.10), (17_700, 67_450, 0.12), (67_450, 105_700, 0.22),
            (105_700, 201_750, 0.24), (201_750, 256_200, 0.32), (256_200, 640_600, 0.35),
            (640_600, np.inf, 0.37),
        ),
        "married_separate": (
            (0, 12_400, 0.10), (12_400, 50_400, 0.12), (50_400, 105_700, 0.22),
            (105_700, 201_775, 0.24), (201_775, 256_225, 0.32), (256_225, 384_350, 0.35),
            (384_350, np.inf, 0.37),
        ),
    },
}

# Pre-TCJA schedule that returns if the individual provisions sunset after 2025
SUNSET_ORDINARY_BRACKETS_2026: Dict[str, Tuple[Bracket, ...]] = {
    "single": (
        (0, 12_000, 0.10), (12_000, 48_000, 0.15), (48_000, 116_000, 0.25),
        (116_000, 200_000, 0.28), (200_000, 250_000, 0.33), (250_000, 500_000, 0.35),
        (500_000, np.inf, 0.396),
    ),
    "married_filing_jointly": (
        (0, 24_000, 0.10), (24_000, 96_000, 0.15), (96_000, 195_000, 0.25),
        (195_000, 250_000, 0.28), (250_000, 300_000, 0.33), (300_000, 500_000, 0.35),
        (500_000, np.inf, 0.396),
    ),
    "head_of_household": (
        (0, 17_000, 0.10), (17_000, 65_000, 0.15), (65_000, 116_000, 0.25),
        (116_000, 200_000, 0.28), (200_000, 250_000, 0.33), (250_000, 500_000, 0.35),
        (500_000, np.inf, 0.396),
    ),
    "married_separate": (
        (0, 12_000, 0.10), (12_000, 48_000, 0.15), (48_000, 97_500, 0.25),
        (97_500, 125_000, 0.28), (125_000, 150_000, 0.33), (150_000, 250_000, 0.35),
        (250_000, np.inf, 0.396),
    ),
}

# =============================================================================
# 2. Federal Preferential Income Tax Brackets (Capital Gains / QDivs)
# =============================================================================
CAPGAINS_BRACKETS: Dict[int, Dict[str, Tuple[Bracket, ...]]] = {
    2024: {
        "single": ((0, 47_025, 0.0), (47_025, 518_900, 0.15), (518_900, np.inf, 0.20)),
        "married_filing_jointly": ((0, 94_050, 0.0), (94_050, 583_750, 0.15), (583_750, np.inf, 0.20)),
        "married_separate": ((0, 47_025, 0.0), (47_025, 291_850, 0.15), (291_850, np.inf, 0.20)),
        "head_of_household": ((0, 63_000, 0.0), (63_000, 551_350, 0.15), (551_350, np.inf, 0.20)),
    },
    2025: {
        "single": ((0, 48_350, 0.0), (48_350, 533_400, 0.15), (533_400, np.inf, 0.20)),
        "married_filing_jointly": ((0, 96_700, 0.0), (96_700, 600_050, 0.15), (600_050, np.inf, 0.20)),
        "married_separate": ((0, 48_350, 0.0), (48_350, 300_000, 0.15), (300_000, np.inf, 0.20)),
        "head_of_household": ((0, 64_750, 0.0), (64_750, 566_700, 0.15), (566_700, np.inf, 0.20)),
    },
    2026: {
        "single": ((0, 49_450, 0.0), (49_450, 545_500, 0.15), (545_500, np.inf, 0.20)),
        "married_filing_jointly": ((0, 98_900, 0.0), (98_900, 613_700, 0.15), (613_700, np.inf, 0.20)),
        "married_separate": ((0, 49_450, 0.0), (49_450, 306_850, 0.15), (306_850, np.inf, 0.20)),
        "head_of_household": ((0, 66_200, 0.0), (66_200, 579_600, 0.15), (579_600, np.inf, 0.20)),
    },
}

# =============================================================================
# 3. Federal Deduction, Exemption, and Surcharge Thresholds
# =============================================================================
STANDARD_DEDUCTION: Dict[int, Dict[str, float]] = {
    2024: {"single": 14_600, "married_filing_jointly": 29_200, "married_separate": 14_600, "head_of_household": 21_900},
    2025: {"single": 15_000, "married_filing_jointly": 30_000, "married_separate": 15_000, "head_of_household": 22_500},
    2026: {"single": 16_100, "married_filing_jointly": 32_200, "married_separate": 16_100, "head_of_household": 24_150},
}
SUNSET_STANDARD_DEDUCTION_2026: Dict[str, float] = {
    "single": 8_000, "married_filing_jointly": 16_000, "married_separate": 8_000, "head_of_household": 12_000,
}

# Per qualifying person; married filers get the lower amount for each spouse
EXTRA_STD_DEDUCTION_65: Dict[str, float] = {
    "single": 2000, "head_of_household": 2000, "married_filing_jointly": 1600, "married_separate": 1600,
}

# One Big Beautiful Bill Act senior deduction
SENIOR_DEDUCTION_YEARS = range(2025, 2029)
SENIOR_DEDUCTION_AMOUNT = 6000
SENIOR_DEDUCTION_PHASEOUT_RATE = 0.06
SENIOR_DEDUCTION_PHASEOUT_START: Dict[str, float] = {
    "single": 75_000, "married_filing_jointly": 150_000, "married_separate": 75_000, "head_of_household": 75_000,
}
SENIOR_DEDUCTION_ELIMINATION: Dict[str, float] = {
    "single": 175_000, "married_filing_jointly": 250_000, "married_separate": 175_000, "head_of_household": 175_000,
}

NIIT_RATE = 0.038
NIIT_THRESHOLD: Dict[str, float] = {
    "single": 200_000, "married_filing_jointly": 250_000, "married_separate": 125_000, "head_of_household": 200_000,
}

CAPITAL_LOSS_LIMIT: Dict[str, float] = {
    "single": 3000, "married_filing_jointly": 3000, "married_separate": 1500, "head_of_household": 3000,
}

# =============================================================================
# 4. Payroll Taxes (FICA / Self-Employment / Additional Medicare)
# =============================================================================
SOCIAL_SECURITY_RATE = 0.062
MEDICARE_RATE = 0.0145
SE_NET_EARNINGS_FACTOR = 0.9235
ADDITIONAL_MEDICARE_RATE = 0.009
ADDITIONAL_MEDICARE_THRESHOLD: Dict[str, float] = {
    "single": 200_000, "married_filing_jointly": 250_000, "married_separate": 125_000, "head_of_household": 200_000,
}
SS_WAGE_BASE: Dict[int, float] = {2024: 168_600, 2025: 176_100, 2026: 184_500}

# =============================================================================
# 5. Alternative Minimum Tax
# =============================================================================
AMT_EXEMPTION: Dict[str, float] = {
    "single": 85_700, "married_filing_jointly": 133_300, "married_separate": 66_650, "head_of_household": 85_700,
}
AMT_PHASEOUT_THRESHOLD: Dict[str, float] = {
    "single": 609_350, "married_filing_jointly": 1_218_700, "married_separate": 609_350, "head_of_household": 609_350,
}
AMT_PHASEOUT_RATE = 0.25
AMT_RATE_LOW = 0.26
AMT_RATE_HIGH = 0.28
AMT_RATE_THRESHOLD: Dict[str, float] = {
    "single": 220_700, "married_filing_jointly": 220_700, "married_separate": 110_350, "head_of_household": 220_700,
}

# =============================================================================
# 6. Fixed / Non-Indexed Federal Tax Parameters
# =============================================================================

# Social Security Taxation Thresholds (Statutory and NOT indexed): (base amount, adjusted base amount)
SS_TAX_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "single": (25_000, 34_000),
    "head_of_household": (25_000, 34_000),
    "married_filing_jointly": (32_000, 44_000),
    "married_separate": (0, 0),
}

# =============================================================================
# 7. Medicare IRMAA (MAGI tiers and monthly surcharges)
# =============================================================================
IRMAA_THRESHOLDS: Dict[int, Dict[str, List[float]]] = {
    2024: {
        "single": [103_000, 129_000, 161_000, 193_000, 500_000],
        "married_filing_jointly": [206_000, 258_000, 322_000, 386_000, 750_000],
    },
    2025: {
        "single": [106_000, 133_000, 167_000, 200_000, 500_000],
        "married_filing_jointly": [212_000, 266_000, 334_000, 400_000, 750_000],
    },
    2026: {
        "single": [109_000, 137_000, 171_000, 205_000, 500_000],
        "married_filing_jointly": [218_000, 274_000, 342_000, 410_000, 750_000],
    },
}
BASE_PART_B: Dict[int, float] = {2024: 174.70, 2025: 185.00, 2026: 202.90}
PART_B_SURCHARGES_MONTHLY: Dict[int, List[float]] = {
    2024: [0.00, 69.90, 174.70, 279.50, 384.30, 419.30],
    2025: [0.00, 74.00, 185.00, 296.00, 407.00, 444.30],
    2026: [0.00, 81.20, 202.90, 324.60, 446.30, 487.00],
}
PART_D_SURCHARGES_MONTHLY: Dict[int, List[float]] = {
    2024: [0.00, 12.90, 33.30, 53.80, 74.20, 81.00],
    2025: [0.00, 13.70, 35.40, 57.20, 78.90, 86.20],
    2026: [0.00, 14.50, 37.50, 60.40, 83.30, 91.00],
}

# =============================================================================
# 8. State Tax Parameters (Michigan, non-indexed)
# =============================================================================
MI_TAX_RATE = 0.0425
MI_PERSONAL_EXEMPTION: Dict[str, float] = {"single": 5_600, "married_filing_jointly": 11_200}
# Retirement income deduction caps by birth cohort: (last birth year in cohort, single cap, joint cap)
MI_RETIREMENT_DEDUCTION_COHORTS: List[Tuple[float, float, float]] = [
    (1945, np.inf, np.inf),
    (1958, 46_138, 92_277),
    (1962, 46_138, 92_277),
    (1966, 46_138, 92_277),
    (np.inf, 0.0, 0.0),
]
MI_RETIREMENT_INCOME_TYPES = ("traditional-ira", "traditional-401k", "401k", "403b", "457",
                              "sep-ira", "simple-ira", "estimated-rmd", "pension", "annuity")

# Homestead credit: (household income ceiling, share of excess property tax credited)
MI_HOMESTEAD_CREDIT_BANDS: List[Tuple[float, float]] = [
    (21_000, 1.00), (23_000, 0.90), (25_000, 0.80), (27_000, 0.70), (29_000, 0.60),
    (31_000, 0.50), (33_000, 0.40), (35_000, 0.30), (37_000, 0.20), (39_000, 0.10),
]
MI_HOMESTEAD_INCOME_SHARE = 0.035
MI_HOMESTEAD_MINIMUM_CREDIT = 1200
MI_HOMESTEAD_MAXIMUM_CREDIT = 1500


# =============================================================================
# 9. Core Utility Functions (Returns all indexed Federal values)
# =============================================================================

def validate_brackets(brackets, name: str = "brackets") -> None:
    """Raises TaxTableError unless the schedule is contiguous from 0, open-ended and non-decreasing in rate."""
    if not brackets:
        raise TaxTableError(f"{name}: empty bracket table")

    expected_low = 0.0
    last_rate = -1.0
    for low, high, rate in brackets:
        if not np.isclose(low, expected_low):
            raise TaxTableError(f"{name}: bracket starting at {low} does not continue from {expected_low}")
        if high <= low:
            raise TaxTableError(f"{name}: bracket ({low}, {high}) has no width")
        if rate < last_rate:
            raise TaxTableError(f"{name}: rate {rate} is lower than the preceding rate {last_rate}")
        expected_low = high
        last_rate = rate

    if np.isfinite(brackets[-1][1]):
        raise TaxTableError(f"{name}: top bracket must be open-ended")


def _table_status(filing_status: str) -> str:
    """Qualifying widow(er)s use the joint schedules."""
    return "married_filing_jointly" if filing_status == "qualifying_widow" else filing_status


def resolve_table_year(tax_year: int, tcja_sunsetting: bool = True,
                       inflation_rate: Optional[float] = None) -> Tuple[int, bool, float]:
    """
    Decides which stored table serves `tax_year`.

    Returns (table_year, use_sunset_schedule, inflation_factor). Years past the newest
    table are projected by compounding `inflation_rate`; without a rate they are rejected.
    """
    oldest, newest = min(ORDINARY_BRACKETS), max(ORDINARY_BRACKETS)
    if tax_year < oldest:
        raise TaxTableError(f"No tax table for {tax_year}; earliest supported year is {oldest}")

    use_sunset = bool(tcja_sunsetting) and tax_year >= SUNSET_YEAR

    if tax_year <= newest:
        return tax_year, use_sunset, 1.0

    if inflation_rate is None:
        raise TaxTableError(
            f"No tax table for {tax_year}; supply an inflation rate to project from {newest}"
        )
    inflation_factor = (1.0 + inflation_rate) ** (tax_year - newest)
    return newest, use_sunset, inflation_factor


def get_indexed_federal_constants(
    tax_year: int,
    filing_status: TaxFilingStatus,
    tcja_sunsetting: bool = True,
    inflation_rate: Optional[float] = None,
) -> Dict[str, Union[float, int, bool, List, Dict]]:
    """
    Returns a dictionary of all Federal tax brackets, deductions, and thresholds
    that apply to `tax_year` for one filing status.

    The dictionary is built fresh on every call; the module-level tables are never handed out.
    """
    table_year, use_sunset, inflation_factor = resolve_table_year(tax_year, tcja_sunsetting, inflation_rate)
    status = _table_status(filing_status)

    # Get Base Data
    if use_sunset:
        base_ord_brackets = SUNSET_ORDINARY_BRACKETS_2026.get(status)
        base_std_deduction = SUNSET_STANDARD_DEDUCTION_2026.get(status)
    else:
        base_ord_brackets = ORDINARY_BRACKETS[table_year].get(status)
        base_std_deduction = STANDARD_DEDUCTION[table_year].get(status)
    base_cg_brackets = CAPGAINS_BRACKETS[table_year].get(status)

    if base_ord_brackets is None or base_cg_brackets is None or base_std_deduction is None:
        raise TaxTableError(f"No {table_year} table entry for filing status '{filing_status}'")

    validate_brackets(base_ord_brackets, f"{table_year} ordinary/{status}")
    validate_brackets(base_cg_brackets, f"{table_year} capital gains/{status}")

    irmaa_by_status = IRMAA_THRESHOLDS[table_year]
    base_irmaa = irmaa_by_status.get(status, irmaa_by_status["single"])

    # Build Indexed Brackets and Tiers
    def _index_brackets(base_brackets):
        """Helper to index bracket bounds."""
        indexed_list = []
        indexed_dict = {}
        for low, high, rate in base_brackets:
            inflated_low = low * inflation_factor
            inflated_high = high * inflation_factor if np.isfinite(high) else np.inf
            indexed_list.append((inflated_low, inflated_high, rate))
            indexed_dict[f"{round(rate * 100, 1):g}_percent"] = [inflated_low, inflated_high]
        return indexed_list, indexed_dict

    ord_list, ord_dict = _index_brackets(base_ord_brackets)
    cg_list, _ = _index_brackets(base_cg_brackets)

    senior_deduction = None
    if tax_year in SENIOR_DEDUCTION_YEARS and not use_sunset:
        senior_deduction = {
            "amount": SENIOR_DEDUCTION_AMOUNT,
            "phaseout_start": SENIOR_DEDUCTION_PHASEOUT_START.get(status, SENIOR_DEDUCTION_PHASEOUT_START["single"]),
            "elimination": SENIOR_DEDUCTION_ELIMINATION.get(status, SENIOR_DEDUCTION_ELIMINATION["single"]),
            "phaseout_rate": SENIOR_DEDUCTION_PHASEOUT_RATE,
        }

    # Return Comprehensive Dictionary
    return {
        "tax_year": tax_year,
        "table_year": table_year,
        "sunset": use_sunset,
        "filing_status": filing_status,
        "inflation_factor": inflation_factor,
        "ord_list": ord_list,
        "ord_dict": ord_dict,  # For planning targets
        "cg_list": cg_list,
        "std_deduction": base_std_deduction * inflation_factor,
        "extra_std_deduction": EXTRA_STD_DEDUCTION_65.get(status, EXTRA_STD_DEDUCTION_65["single"]) * inflation_factor,
        "senior_deduction": senior_deduction,
        "niit_rate": NIIT_RATE,
        "niit_threshold": NIIT_THRESHOLD.get(status, NIIT_THRESHOLD["single"]),
        "additional_medicare_rate": ADDITIONAL_MEDICARE_RATE,
        "additional_medicare_threshold": ADDITIONAL_MEDICARE_THRESHOLD.get(status, ADDITIONAL_MEDICARE_THRESHOLD["single"]),
        "ss_wage_base": SS_WAGE_BASE[table_year] * inflation_factor,
        "ss_tax_thresholds": SS_TAX_THRESHOLDS.get(status, SS_TAX_THRESHOLDS["single"]),
        "capital_loss_limit": CAPITAL_LOSS_LIMIT.get(status, CAPITAL_LOSS_LIMIT["single"]),
        "amt_exemption": AMT_EXEMPTION.get(status, AMT_EXEMPTION["single"]) * inflation_factor,
        "amt_phaseout_threshold": AMT_PHASEOUT_THRESHOLD.get(status, AMT_PHASEOUT_THRESHOLD["single"]) * inflation_factor,
        "amt_rate_threshold": AMT_RATE_THRESHOLD.get(status, AMT_RATE_THRESHOLD["single"]) * inflation_factor,
        "irmaa_thresholds": [t * inflation_factor for t in base_irmaa],
        "base_part_b": BASE_PART_B[table_year] * inflation_factor,
        "part_b_surcharges": list(PART_B_SURCHARGES_MONTHLY[table_year]),
        "part_d_surcharges": list(PART_D_SURCHARGES_MONTHLY[table_year]),
    }
