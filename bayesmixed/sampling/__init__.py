"""
Posterior sampling with the No-U-Turn Sampler.

Usage:
    from bayesmixed.sampling import fit, SamplerConfig

    post = fit(dataset, spec, config=SamplerConfig.build(num_chains=4), seed=1)
    post.sample_set.beta          # (chains, draws, p)
    post.diagnostics.converged
    print(post.summary())
"""

from bayesmixed.sampling.design import SamplerConfig, SamplingDesign
from bayesmixed.sampling._common import Chain, AdaptationInfo, PosteriorParams
from bayesmixed.sampling.solvers import fit
from bayesmixed.sampling.solution import PosteriorSolution, PosteriorSampleSet

__all__ = [
    "fit",
    "SamplerConfig",
    "SamplingDesign",
    "Chain",
    "AdaptationInfo",
    "PosteriorParams",
    "PosteriorSolution",
    "PosteriorSampleSet",
]
