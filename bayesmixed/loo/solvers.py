"""
Solver dispatch for PSIS-LOO.

Public API:
    loo() - Pareto-smoothed importance-sampling leave-one-out estimate
"""

from __future__ import annotations

import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from numpy.typing import ArrayLike
from scipy.special import logsumexp

from bayesmixed.core.exceptions import UnreliableLooEstimate, ValidationError
from bayesmixed.core.result import Result
from bayesmixed.core.compute.timing import Timer
from bayesmixed.core.validation import check_array, check_2d, check_positive_int
from bayesmixed.data import Dataset
from bayesmixed.defaults import PARETO_K_BAD
from bayesmixed.loo._common import LooParams
from bayesmixed.loo._psis import loo_pointwise
from bayesmixed.loo.solution import LooSolution
from bayesmixed.predictive.solvers import pointwise_log_likelihood
from bayesmixed.sampling.solution import PosteriorSolution

_MIN_DRAWS = 10


def loo(
    posterior_or_log_lik: PosteriorSolution | ArrayLike,
    *,
    dataset: Dataset | None = None,
    model_name: str | None = None,
    max_workers: int | None = None,
) -> LooSolution:
    """
    Estimate leave-one-out predictive accuracy with PSIS.

    Each observation's importance ratios 1 / p(y_i | θ_s) are Pareto
    smoothed; observations with k̂ >= 0.7 are flagged and counted in an
    UnreliableLooEstimate warning, and their elpd is still computed.

    Args:
        posterior_or_log_lik: A fitted PosteriorSolution, or a pointwise
            log-likelihood matrix (S, n).
        dataset: Observations to evaluate with a PosteriorSolution (same
            group levels as training). Default: the training data.
        model_name: Label for comparison tables. Default: the model name,
            or 'model' for a bare matrix.
        max_workers: Threads over observation chunks. Default: serial.

    Returns:
        LooSolution with elpd_loo, se, p_loo, looic, Pareto k̂ and the
        pointwise values.

    Raises:
        DimensionError: The log-likelihood matrix is not 2D.
        ValidationError: Fewer than 10 draws or non-finite entries.

    Examples:
        >>> res = loo(post)
        >>> res.elpd_loo, res.se
        >>> print(res.summary())
    """
    timer = Timer()
    timer.start()

    fingerprint = None
    if isinstance(posterior_or_log_lik, PosteriorSolution):
        post = posterior_or_log_lik
        with timer.section('log_likelihood'):
            log_lik = pointwise_log_likelihood(post, dataset)
        fingerprint = (post.dataset if dataset is None else dataset).fingerprint()
        name = model_name or post.name
    else:
        if dataset is not None:
            raise ValidationError("dataset is only used with a PosteriorSolution")
        log_lik = check_array(posterior_or_log_lik, 'log_lik')
        name = model_name or 'model'

    check_2d(log_lik, 'log_lik')
    if not np.all(np.isfinite(log_lik)):
        raise ValidationError("log_lik: contains NaN or Inf")
    S, n = log_lik.shape
    if S < _MIN_DRAWS:
        raise ValidationError(f"log_lik: need at least {_MIN_DRAWS} draws, got {S}")
    if max_workers is not None:
        max_workers = check_positive_int(max_workers, 'max_workers')

    with timer.section('psis'):
        if max_workers is None or max_workers == 1 or n < 2:
            elpd_i, k_hat = loo_pointwise(log_lik)
        else:
            chunks = np.array_split(np.arange(n), min(max_workers, n))
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                parts = list(pool.map(lambda idx: loo_pointwise(log_lik[:, idx]), chunks))
            elpd_i = np.concatenate([p[0] for p in parts])
            k_hat = np.concatenate([p[1] for p in parts])

    lppd_i = logsumexp(log_lik, axis=0) - np.log(S)
    elpd_loo = float(elpd_i.sum())
    lppd = float(lppd_i.sum())
    se = float(np.sqrt(n) * np.std(elpd_i, ddof=1)) if n > 1 else float('nan')
    unreliable = k_hat >= PARETO_K_BAD

    timer.stop()

    warn_list = []
    n_bad = int(unreliable.sum())
    if n_bad:
        warn_list.append(
            f"Model '{name}': {n_bad} of {n} observation(s) have Pareto k-hat "
            f">= {PARETO_K_BAD}; their LOO estimates are unreliable"
        )

    params = LooParams(
        elpd_loo_i=elpd_i,
        pareto_k=k_hat,
        lppd_i=lppd_i,
        elpd_loo=elpd_loo,
        se=se,
        p_loo=lppd - elpd_loo,
        looic=-2.0 * elpd_loo,
        lppd=lppd,
        unreliable=unreliable,
        n_observations=n,
        n_samples=S,
        data_fingerprint=fingerprint,
        model_name=name,
    )
    result = Result(
        params=params,
        info={'method': 'psis_loo', 'n_samples': S, 'n_observations': n},
        timing=timer.result(),
        backend_name='cpu_psis',
        warnings=tuple(warn_list),
    )
    for msg in warn_list:
        warnings.warn(msg, UnreliableLooEstimate, stacklevel=2)
    return LooSolution(_result=result)
