"""
Leave-one-out cross-validation by Pareto-smoothed importance sampling.

Usage:
    from bayesmixed.loo import loo

    res = loo(post)
    res.elpd_loo, res.se, res.pareto_k
"""

from bayesmixed.loo.solvers import loo
from bayesmixed.loo.solution import LooSolution
from bayesmixed.loo._psis import psis_smooth, gpd_fit

__all__ = [
    "loo",
    "LooSolution",
    "psis_smooth",
    "gpd_fit",
]
