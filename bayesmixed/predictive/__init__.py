"""
Posterior predictive simulation and checks.

Usage:
    from bayesmixed.predictive import posterior_predictive, ppc

    rep = posterior_predictive(post, n_draws=500, seed=1)
    check = ppc(rep, ds.response, np.std)
    check.p_value
"""

from bayesmixed.predictive.solvers import (
    posterior_predictive,
    pointwise_log_likelihood,
    ppc,
)
from bayesmixed.predictive.solution import PredictiveSolution, PPCSolution

__all__ = [
    "posterior_predictive",
    "pointwise_log_likelihood",
    "ppc",
    "PredictiveSolution",
    "PPCSolution",
]
