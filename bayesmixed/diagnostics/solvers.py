"""
Solver dispatch for convergence diagnostics.

Public API:
    diagnose() - R-hat, ESS, autocorrelation and divergences with a
                 pass/fail gate that warns but never raises
"""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike

from bayesmixed.core.exceptions import ConvergenceWarning, DimensionError
from bayesmixed.core.result import Result
from bayesmixed.core.compute.timing import Timer
from bayesmixed.core.validation import check_positive, check_positive_int
from bayesmixed.defaults import (
    DEFAULT_MAX_LAG,
    DEFAULT_RHAT_THRESHOLD,
    DEFAULT_ESS_PER_CHAIN,
)
from bayesmixed.diagnostics._common import DiagnosticsParams
from bayesmixed.diagnostics._convergence import (
    as_chain_array,
    split_rhat,
    effective_sample_size,
    autocorrelation,
)
from bayesmixed.diagnostics.solution import DiagnosticsSolution


def diagnose(
    draws: ArrayLike,
    *,
    names: Sequence[str] | None = None,
    divergent: ArrayLike | None = None,
    max_lag: int = DEFAULT_MAX_LAG,
    rhat_threshold: float = DEFAULT_RHAT_THRESHOLD,
    ess_per_chain: float = DEFAULT_ESS_PER_CHAIN,
    warn: bool = True,
) -> DiagnosticsSolution:
    """
    Compute convergence diagnostics for posterior draws.

    A parameter fails when its split R-hat exceeds rhat_threshold or its
    ESS falls below ess_per_chain × n_chains (NaN fails both). Failures
    emit a ConvergenceWarning and set converged=False; the draws remain
    usable.

    Args:
        draws: (n_chains, n_draws) or (n_chains, n_draws, n_params).
        names: Parameter names; defaults to 'x[0]', 'x[1]', ...
        divergent: Optional per-draw divergence flags, same leading shape.
        max_lag: Largest autocorrelation lag reported.
        rhat_threshold: Largest acceptable split R-hat.
        ess_per_chain: Required ESS per chain.
        warn: Emit ConvergenceWarning on failure. Messages are recorded
            on the result either way.

    Returns:
        DiagnosticsSolution with per-parameter R-hat, ESS and
        autocorrelation, and summary().

    Examples:
        >>> diag = diagnose(posterior.sample_set.draws,
        ...                 names=posterior.sample_set.parameter_names)
        >>> diag.converged
        True
        >>> print(diag.summary())
    """
    timer = Timer()
    timer.start()

    chains = as_chain_array(draws)
    n_chains, n_draws, k = chains.shape
    max_lag = check_positive_int(max_lag, 'max_lag')
    rhat_threshold = check_positive(rhat_threshold, 'rhat_threshold')
    ess_per_chain = check_positive(ess_per_chain, 'ess_per_chain')

    if names is None:
        names = tuple(f"x[{i}]" for i in range(k))
    else:
        names = tuple(names)
        if len(names) != k:
            raise DimensionError(
                f"names: got {len(names)} names for {k} parameters"
            )

    n_divergent = 0
    if divergent is not None:
        div = np.asarray(divergent, dtype=bool)
        if div.shape != (n_chains, n_draws):
            raise DimensionError(
                f"divergent: expected shape {(n_chains, n_draws)}, got {div.shape}"
            )
        n_divergent = int(div.sum())

    with timer.section('rhat'):
        rhat = split_rhat(chains)
    with timer.section('ess'):
        ess = effective_sample_size(chains)
    with timer.section('autocorrelation'):
        acf = autocorrelation(chains, max_lag)

    ess_threshold = ess_per_chain * n_chains
    rhat_fail = tuple(
        n for n, r in zip(names, rhat) if not (np.isfinite(r) and r <= rhat_threshold)
    )
    ess_fail = tuple(
        n for n, e in zip(names, ess) if not (np.isfinite(e) and e >= ess_threshold)
    )
    converged = not rhat_fail and not ess_fail

    timer.stop()

    warn_list = []
    if rhat_fail:
        finite = rhat[np.isfinite(rhat)]
        max_rhat = float(finite.max()) if finite.size else float('nan')
        warn_list.append(
            f"R-hat above {rhat_threshold:g} for {len(rhat_fail)} parameter(s): "
            f"{_preview(rhat_fail)} (max R-hat {max_rhat:.3f})"
        )
    if ess_fail:
        finite = ess[np.isfinite(ess)]
        min_ess = float(finite.min()) if finite.size else float('nan')
        warn_list.append(
            f"ESS below {ess_threshold:g} for {len(ess_fail)} parameter(s): "
            f"{_preview(ess_fail)} (min ESS {min_ess:.0f})"
        )
    params = DiagnosticsParams(
        parameter_names=names,
        rhat=rhat,
        ess=ess,
        autocorrelation=acf,
        n_chains=n_chains,
        n_draws=n_draws,
        n_divergent=n_divergent,
        rhat_threshold=rhat_threshold,
        ess_threshold=float(ess_threshold),
        rhat_failures=rhat_fail,
        ess_failures=ess_fail,
        converged=converged,
    )
    result = Result(
        params=params,
        info={
            'method': 'split_rhat+geyer_ess',
            'max_lag': acf.shape[1] - 1,
            'ess_per_chain': ess_per_chain,
        },
        timing=timer.result(),
        backend_name='cpu_diagnostics',
        warnings=tuple(warn_list),
    )
    solution = DiagnosticsSolution(_result=result)
    if warn:
        for msg in warn_list:
            warnings.warn(msg, ConvergenceWarning, stacklevel=2)
    return solution


def _preview(names: tuple[str, ...], limit: int = 5) -> str:
    shown = ', '.join(names[:limit])
    if len(names) > limit:
        shown += f", ... ({len(names) - limit} more)"
    return shown
