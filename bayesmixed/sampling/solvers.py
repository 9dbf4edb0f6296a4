"""
Solver dispatch for posterior sampling.

Public API:
    fit() - sample the posterior of a ModelSpec on a Dataset with NUTS
"""

from __future__ import annotations

import threading
import warnings

from numpy.typing import ArrayLike

from bayesmixed.core.exceptions import ConvergenceWarning, SamplingDivergence
from bayesmixed.data import Dataset
from bayesmixed.diagnostics.solvers import diagnose
from bayesmixed.model.spec import ModelSpec
from bayesmixed.sampling.backends.cpu import CPUNUTSBackend
from bayesmixed.sampling.design import SamplerConfig, SamplingDesign
from bayesmixed.sampling.solution import PosteriorSolution


def fit(
    dataset: Dataset,
    spec: ModelSpec,
    *,
    config: SamplerConfig | None = None,
    seed: int | None = None,
    inits: ArrayLike | None = None,
    cancel_event: threading.Event | None = None,
    timeout: float | None = None,
    max_workers: int | None = None,
) -> PosteriorSolution:
    """
    Sample the posterior of a hierarchical Gaussian regression with NUTS.

    Chains run concurrently; for a fixed seed and config the draws are
    identical across runs. Convergence diagnostics are always computed;
    divergences and threshold failures produce warnings (SamplingDivergence,
    ConvergenceWarning) and are recorded on the solution, never raised.

    Args:
        dataset: Observations.
        spec: Model specification with a prior for every parameter class.
        config: Sampler settings. Default SamplerConfig.build().
        seed: Root seed; per-chain streams are spawned from it.
        inits: Unconstrained initial points, (num_chains, d) or (d,).
            Default: uniform in (-init_radius, init_radius).
        cancel_event: Setting this event stops all chains at their next
            iteration boundary.
        timeout: Wall-clock budget in seconds.
        max_workers: Thread pool size. Default: one thread per chain.

    Returns:
        PosteriorSolution with the sample set, sampler statistics,
        diagnostics and summary().

    Raises:
        ValidationError: Invalid config, missing or inadmissible priors,
            unknown terms. Raised before sampling starts.
        NonFiniteDensity: Log density or gradient not finite at a chain's
            initial point.
        SamplingCancelled: cancel_event was set.
        SamplingTimeout: timeout elapsed.

    Examples:
        >>> ds = Dataset.from_arrays(response=y, covariates={'age': age},
        ...                          groups=county, group_name='county')
        >>> spec = ModelSpec.varying_intercept('age', grouping_factor='county',
        ...                                    priors=default_priors(ds))
        >>> post = fit(ds, spec, seed=1)
        >>> print(post.summary())
    """
    design = SamplingDesign.for_fit(
        dataset,
        spec,
        config=config,
        seed=seed,
        inits=inits,
        cancel_event=cancel_event,
        timeout=timeout,
        max_workers=max_workers,
    )

    result = CPUNUTSBackend().solve(design)
    for msg in result.warnings:
        warnings.warn(msg, SamplingDivergence, stacklevel=2)

    params = result.params
    diagnostics = diagnose(
        params.draws,
        names=params.parameter_names,
        divergent=[c.divergent for c in params.chains],
        warn=False,
    )
    for msg in diagnostics.warnings:
        warnings.warn(f"Model '{spec.name}': {msg}", ConvergenceWarning, stacklevel=2)

    return PosteriorSolution(
        _result=result,
        _dataset=dataset,
        _spec=spec,
        _config=design.config,
        _diagnostics=diagnostics,
        _layout=design.log_density.layout,
    )
