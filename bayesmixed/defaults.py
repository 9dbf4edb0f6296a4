"""
Default settings shared across bayesmixed.

Single source of truth for sampler settings, convergence thresholds and
Pareto-k cut points. Import from here, never repeat the literals.
"""

# Sampler
DEFAULT_WARMUP_ITERATIONS = 1000
DEFAULT_SAMPLING_ITERATIONS = 1000
DEFAULT_NUM_CHAINS = 4
DEFAULT_TARGET_ACCEPT = 0.8
DEFAULT_MAX_TREE_DEPTH = 10
DEFAULT_MAX_DELTA_ENERGY = 1000.0
DEFAULT_INIT_RADIUS = 2.0

# Dual averaging (Hoffman & Gelman 2014, section 3.2)
DUAL_AVERAGING_GAMMA = 0.05
DUAL_AVERAGING_T0 = 10.0
DUAL_AVERAGING_KAPPA = 0.75

# Windowed mass-matrix adaptation (Stan defaults)
ADAPT_INIT_BUFFER = 75
ADAPT_TERM_BUFFER = 50
ADAPT_BASE_WINDOW = 25

# Convergence diagnostics
DEFAULT_RHAT_THRESHOLD = 1.01
DEFAULT_ESS_PER_CHAIN = 400
DEFAULT_MAX_LAG = 20

# PSIS-LOO Pareto-k cut points
PARETO_K_GOOD = 0.5
PARETO_K_BAD = 0.7
