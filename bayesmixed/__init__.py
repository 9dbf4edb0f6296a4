"""
bayesmixed: Bayesian hierarchical Gaussian regression.

Fits pooled, varying-intercept and varying-intercept-and-slope models
with NUTS, gates the posterior with convergence diagnostics, simulates
the posterior predictive and compares models by PSIS-LOO.

Submodules:
    model: Model specification, priors and the log posterior
    sampling: NUTS sampler and posterior containers
    diagnostics: Split R-hat, ESS, autocorrelation
    predictive: Posterior predictive simulation and checks
    loo: Pareto-smoothed importance-sampling LOO
    compare: Model ranking by expected log predictive density
    persistence: Saving, loading and memoizing fits
"""

__version__ = "0.1.0"

from bayesmixed.data import Dataset
from bayesmixed.model import ModelSpec, Term, default_priors, resolve_prior
from bayesmixed.sampling import fit, SamplerConfig, PosteriorSolution
from bayesmixed.diagnostics import diagnose
from bayesmixed.predictive import posterior_predictive, pointwise_log_likelihood, ppc
from bayesmixed.loo import loo
from bayesmixed.compare import compare, pointwise_diff
from bayesmixed.persistence import save_posterior, load_posterior, FitCache

__all__ = [
    "__version__",
    "Dataset",
    "ModelSpec",
    "Term",
    "default_priors",
    "resolve_prior",
    "fit",
    "SamplerConfig",
    "PosteriorSolution",
    "diagnose",
    "posterior_predictive",
    "pointwise_log_likelihood",
    "ppc",
    "loo",
    "compare",
    "pointwise_diff",
    "save_posterior",
    "load_posterior",
    "FitCache",
]
