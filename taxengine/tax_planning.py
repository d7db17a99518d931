# tax_planning.py
#
# Planning ceilings for bracket-fill and IRMAA-aware income shifting.
#

from typing import Dict, List, Tuple, Union
import numpy as np


def get_tax_planning_targets(
    constants: Dict[str, Union[float, List, Dict]],
    tax_strategy: str,
    irmaa_strategy: str,
) -> Tuple[float, float]:
    """
    Determines the target taxable-income ceiling and IRMAA MAGI threshold for
    the user-selected strategies.

    Bracket keys follow the schedule in force ('fill_12_percent' under current
    law, 'fill_15_percent' / 'fill_25_percent' under the sunset schedule).
    Unknown keys impose no ceiling.
    """
    # Bracket ceilings from the constants dictionary (upper bound is index 1)
    fill_targets = {
        f"fill_{key}": bounds[1]
        for key, bounds in constants["ord_dict"].items()
        if np.isfinite(bounds[1])
    }

    # IRMAA thresholds are a 0-indexed list of 5 tiers
    fill_thresholds = {
        f"fill_IRMAA_{tier}": threshold
        for tier, threshold in enumerate(constants["irmaa_thresholds"], start=1)
    }

    tax_target = fill_targets.get(tax_strategy, float("inf"))
    irmaa_target = fill_thresholds.get(irmaa_strategy, float("inf"))
    return tax_target, irmaa_target
