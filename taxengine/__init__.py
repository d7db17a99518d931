# taxengine/__init__.py

# The orchestrator runs every sub-calculator for one household and tax year.
from .tax_engine import calculate_comprehensive_taxes, calculate_taxes_from_payload

# Marginal-rate probes and the multi-year search build on the orchestrator.
from .marginal_analysis import calculate_marginal_rate, get_comprehensive_marginal_analysis
from .strategy_engine import project_horizon, run_strategy_search
from .recommendations import generate_tax_recommendations
