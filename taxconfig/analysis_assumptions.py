# taxconfig/analysis_assumptions.py
# Knobs for the marginal-rate probes. Amounts are dollars of extra ordinary income.

# Marginal rate
probe_amount = 1_000

# Forward scan for the next rate hike / AMT crossover
scan_step = 1_000
scan_cap = 200_000
significant_rate_increase = 0.005   # 0.5 percentage points
bisection_precision = 100

# Recommendation triggers
irmaa_cliff_warning_distance = 10_000
bracket_room_minimum = 5_000
