"""
Solver dispatch for model comparison.

Public API:
    compare()        - rank models by PSIS-LOO elpd
    pointwise_diff() - elementwise elpd_i(a) - elpd_i(b)
"""

from __future__ import annotations

from typing import Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.exceptions import IncomparableModels, ValidationError
from bayesmixed.core.result import Result
from bayesmixed.core.compute.timing import timed
from bayesmixed.compare._common import ComparisonParams
from bayesmixed.compare.solution import ComparisonSolution
from bayesmixed.loo.solution import LooSolution


def compare(
    loos: Mapping[str, LooSolution] | Sequence[LooSolution],
) -> ComparisonSolution:
    """
    Rank models by expected log predictive density.

    Args:
        loos: name → LooSolution, or a sequence of LooSolutions named by
            their model_name. At least two models, all evaluated on the
            same observations in the same order.

    Returns:
        ComparisonSolution ranked by elpd_loo, best first. elpd_diff and
        se_diff are relative to the best model; se_diff uses the
        pointwise differences, not the individual standard errors.

    Raises:
        ValidationError: Fewer than two models, duplicate names, or
            entries that are not LooSolutions.
        IncomparableModels: Observation counts or data fingerprints differ.

    Examples:
        >>> table = compare({'pooled': loo(p0), 'intercept': loo(p1)})
        >>> table.best
        'intercept'
    """
    named = _named(loos)
    if len(named) < 2:
        raise ValidationError(f"loos: need at least 2 models, got {len(named)}")
    names = tuple(named)
    results = [named[m] for m in names]
    _check_comparable(names, results)

    with timed() as timer:
        elpd = np.array([r.elpd_loo for r in results])
        order = np.argsort(-elpd, kind='stable')
        best = results[order[0]]

        pointwise = np.stack([results[i].elpd_loo_i for i in order])
        n = pointwise.shape[1]
        diffs = pointwise - best.elpd_loo_i
        if n > 1:
            se_diff = np.sqrt(n) * np.std(diffs, axis=1, ddof=1)
        else:
            se_diff = np.full(len(order), np.nan)
        se_diff[0] = 0.0

    params = ComparisonParams(
        models=tuple(names[i] for i in order),
        elpd_loo=elpd[order],
        se=np.array([results[i].se for i in order]),
        elpd_diff=elpd[order] - elpd[order[0]],
        se_diff=se_diff,
        p_loo=np.array([results[i].p_loo for i in order]),
        n_unreliable=np.array([results[i].n_unreliable for i in order]),
        pointwise=pointwise,
    )
    result = Result(
        params=params,
        info={'method': 'elpd_loo', 'n_models': len(names), 'n_observations': n},
        timing=timer.result(),
        backend_name='cpu_compare',
        warnings=tuple(w for r in results for w in r.warnings),
    )
    return ComparisonSolution(_result=result)


def pointwise_diff(a: LooSolution, b: LooSolution) -> NDArray:
    """
    Elementwise elpd_loo_i(a) - elpd_loo_i(b).

    Raises:
        IncomparableModels: Observation counts or data fingerprints differ.
    """
    _check_comparable((a.model_name, b.model_name), [a, b])
    return a.elpd_loo_i - b.elpd_loo_i


def _named(loos) -> dict[str, LooSolution]:
    if isinstance(loos, Mapping):
        items = list(loos.items())
    else:
        items = [(getattr(r, 'model_name', None), r) for r in loos]
    named: dict[str, LooSolution] = {}
    for name, res in items:
        if not isinstance(res, LooSolution):
            raise ValidationError(
                f"loos: expected LooSolution for '{name}', got {type(res).__name__}"
            )
        if name in named:
            raise ValidationError(
                f"loos: duplicate model name '{name}'; pass a mapping to rename"
            )
        named[str(name)] = res
    return named


def _check_comparable(names: Sequence[str], results: Sequence[LooSolution]) -> None:
    n_obs = tuple(r.n_observations for r in results)
    if len(set(n_obs)) > 1:
        detail = ', '.join(f"{m}: {k}" for m, k in zip(names, n_obs))
        raise IncomparableModels(
            f"Models were evaluated on different numbers of observations ({detail})",
            n_obs=n_obs,
        )
    prints = {r.data_fingerprint for r in results if r.data_fingerprint is not None}
    if len(prints) > 1:
        raise IncomparableModels(
            "Models were evaluated on different datasets (fingerprints differ); "
            "pointwise elpd values cannot be paired",
            n_obs=n_obs,
        )
