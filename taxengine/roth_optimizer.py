# roth_optimizer.py

from typing import Dict

import numpy as np

from taxengine.tax_planning import get_tax_planning_targets

MINIMUM_ROUNDED_CONVERSION = 1000
# A MAGI equal to an IRMAA threshold already falls in the higher tier
IRMAA_THRESHOLD_MARGIN = 0.01


def optimal_roth_conversion(
    taxable_income: float,
    agi: float,
    available_balance: float,
    constants: Dict,
    tax_strategy: str,
    irmaa_strategy: str,
) -> float:
    """
    Calculates the Roth conversion that fills a strategic bracket ceiling
    while keeping MAGI strictly below the chosen IRMAA threshold.

    Args:
        taxable_income: Federal taxable income BEFORE this conversion (bracket room).
        agi: MAGI before this conversion (IRMAA room).
        available_balance: Traditional funds available to convert.

    Returns:
        The whole balance when it fits; otherwise the room rounded down to the
        thousand (amounts under 1,000 are left unrounded).
    """
    if available_balance <= 0:
        return 0.0

    tax_target, irmaa_target = get_tax_planning_targets(constants, tax_strategy, irmaa_strategy)

    # Room is the space between current income and each ceiling
    room_in_tax_bracket = max(0.0, tax_target - taxable_income)
    room_in_irmaa_threshold = max(0.0, irmaa_target - agi - IRMAA_THRESHOLD_MARGIN)
    room = min(room_in_tax_bracket, room_in_irmaa_threshold)

    if available_balance <= room:
        return float(available_balance)
    if room < MINIMUM_ROUNDED_CONVERSION:
        return float(room)
    return float(np.floor(room / MINIMUM_ROUNDED_CONVERSION) * MINIMUM_ROUNDED_CONVERSION)
