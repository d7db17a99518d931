# taxconfig/planning_assumptions.py
# Defaults for the multi-year strategy search; callers can override each one

planning_horizon_years = 5
default_inflation_rate = 0.025      # Projects tax tables past the newest year on file
default_income_growth = 0.02

# Shiftable amount is moved in chunks of this size
shift_chunk = 10_000
max_candidates = 500

# Bracket-fill strategy defaults (keys from get_tax_planning_targets)
default_tax_strategy = "fill_22_percent"
default_irmaa_strategy = "fill_IRMAA_1"
