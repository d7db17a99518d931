# taxengine/rmd_tables.py

"""
RMD divisor lookup supporting:
- the simplified age-band factors used for estimated RMDs (default)
- the 2022+ IRS Uniform Lifetime Table
- the pre-2022 Uniform Lifetime Table (inherited accounts already in payout)
- SECURE Act 1.0/2.0 start ages (72 → 73 → 75) for the full tables
"""

from typing import Dict

RMD_START_AGE = 73

# =============================================================================
# 2022+ IRS UNIFORM LIFETIME TABLE (AGES 72–120)
# =============================================================================
UNIFORM_LIFETIME_TABLE_2022: Dict[int, float] = {
    72: 27.4, 73: 26.5, 74: 25.5, 75: 24.6, 76: 23.7, 77: 22.9,
    78: 22.0, 79: 21.1, 80: 20.2, 81: 19.4, 82: 18.5, 83: 17.7,
    84: 16.8, 85: 16.0, 86: 15.2, 87: 14.4, 88: 13.7, 89: 12.9,
    90: 12.2, 91: 11.5, 92: 10.8, 93: 10.1, 94: 9.5, 95: 8.9,
    96: 8.4, 97: 7.8, 98: 7.3, 99: 6.8, 100: 6.4, 101: 6.0,
    102: 5.6, 103: 5.2, 104: 4.9, 105: 4.6, 106: 4.3, 107: 4.1,
    108: 3.9, 109: 3.7, 110: 3.5, 111: 3.4, 112: 3.3, 113: 3.1,
    114: 3.0, 115: 2.9, 116: 2.8, 117: 2.7, 118: 2.5, 119: 2.3,
    120: 2.0,
}

# =============================================================================
# PRE-2022 IRS UNIFORM LIFETIME TABLE (AGES 70–115)
# =============================================================================
UNIFORM_LIFETIME_TABLE_PRE2022: Dict[int, float] = {
    70: 27.4, 71: 26.5, 72: 25.6, 73: 24.7, 74: 23.8, 75: 22.9,
    76: 22.0, 77: 21.2, 78: 20.3, 79: 19.5, 80: 18.7, 81: 17.9,
    82: 17.1, 83: 16.3, 84: 15.5, 85: 14.8, 86: 14.1, 87: 13.4,
    88: 12.7, 89: 12.0, 90: 11.4, 91: 10.8, 92: 10.2, 93: 9.6,
    94: 9.1, 95: 8.6, 96: 8.1, 97: 7.6, 98: 7.1, 99: 6.7,
    100: 6.3, 101: 5.9, 102: 5.5, 103: 5.2, 104: 4.9, 105: 4.5,
    106: 4.2, 107: 3.9, 108: 3.7, 109: 3.4, 110: 3.1, 111: 2.9,
    112: 2.6, 113: 2.4, 114: 2.1, 115: 1.9,
}

# =============================================================================
# SIMPLIFIED AGE BANDS: (first age, last age, factor at first age, yearly step)
# =============================================================================
SIMPLIFIED_RMD_BANDS = (
    (73, 75, 27.4, 1.1),
    (76, 80, 24.0, 0.8),
    (81, 85, 20.2, 0.7),
)
SIMPLIFIED_RMD_FLOOR_FACTOR = 15.0


def get_simplified_rmd_factor(age: int) -> float:
    """
    Age-band divisor used for estimated RMDs. Returns 0.0 below the start age.

    Ages past the last band use a flat 15.0.
    """
    if age < RMD_START_AGE:
        return 0.0
    for first_age, last_age, start_factor, step in SIMPLIFIED_RMD_BANDS:
        if first_age <= age <= last_age:
            return start_factor - (age - first_age) * step
    return SIMPLIFIED_RMD_FLOOR_FACTOR


def rmd_start_age(birth_year: int | None = None) -> int:
    """SECURE 2.0 start age: 75 from the 1960 cohort, 73 for 1951-1959, 72 before that."""
    if birth_year is None:
        return RMD_START_AGE
    if birth_year >= 1960:
        return 75
    if birth_year >= 1951:
        return 73
    return 72


def get_rmd_factor(
    age: int,
    birth_year: int | None = None,
    inherited_continuing: bool = False,
    use_pre_2022_table: bool = False,
) -> float:
    """
    Uniform Lifetime divisor, or 0.0 before the owner's start age.

    Inherited accounts whose decedent had already begun distributions skip the
    start-age check and stay on the pre-2022 table; `use_pre_2022_table` forces
    that table for anyone else. Ages past the table use its last divisor.
    """
    if not inherited_continuing and age < rmd_start_age(birth_year):
        return 0.0

    table = UNIFORM_LIFETIME_TABLE_PRE2022 if (inherited_continuing or use_pre_2022_table) else UNIFORM_LIFETIME_TABLE_2022
    if age in table:
        return table[age]
    return table[min(table)] if age < min(table) else table[max(table)]


def lookup_rmd_factor(age: int, table: str = "simplified", birth_year: int | None = None) -> float:
    """Dispatches to the simplified bands or the full Uniform Lifetime table."""
    if table == "uniform":
        return get_rmd_factor(age, birth_year=birth_year)
    return get_simplified_rmd_factor(age)


__all__ = [
    "RMD_START_AGE",
    "UNIFORM_LIFETIME_TABLE_2022",
    "UNIFORM_LIFETIME_TABLE_PRE2022",
    "get_simplified_rmd_factor",
    "rmd_start_age",
    "get_rmd_factor",
    "lookup_rmd_factor",
]
