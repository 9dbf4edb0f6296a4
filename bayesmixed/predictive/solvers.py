"""
Solver dispatch for posterior predictive simulation.

Public API:
    posterior_predictive()     - simulate responses for training or new rows
    pointwise_log_likelihood() - log p(y_i | θ_s) matrix (S, n)
    ppc()                      - posterior predictive check for any statistic
"""

from __future__ import annotations

from typing import Callable, Mapping

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bayesmixed.core.exceptions import DimensionError, ValidationError
from bayesmixed.core.result import Result
from bayesmixed.core.compute.timing import Timer
from bayesmixed.core.validation import (
    check_array, check_finite, check_1d, check_consistent_length,
    check_positive_int,
)
from bayesmixed.data import Dataset, INTERCEPT
from bayesmixed.model._log_density import LogDensity
from bayesmixed.predictive._common import PredictiveParams, PPCParams
from bayesmixed.predictive.solution import PredictiveSolution, PPCSolution
from bayesmixed.sampling.solution import PosteriorSolution


def posterior_predictive(
    posterior: PosteriorSolution,
    covariates: Mapping[str, ArrayLike] | None = None,
    groups: ArrayLike | None = None,
    *,
    n_draws: int | None = None,
    seed: int | None = None,
) -> PredictiveSolution:
    """
    Simulate responses from the posterior predictive distribution.

    For each retained posterior draw the linear predictor is built from
    the fixed effects and the row's group effect, and Gaussian noise with
    that draw's σ is added. A row whose group label was not seen in
    training gets a fresh effect b ~ N(0, Σ_draw), shared by all rows of
    that label within a draw, never a training group's offset.

    Args:
        posterior: Fitted posterior.
        covariates: New covariate values by name (every model covariate).
            Default: the training covariates.
        groups: Group label per new row. Required with covariates.
        n_draws: Number of posterior draws to use, chosen uniformly
            without replacement. Default: all draws.
        seed: Seed for draw selection and simulation.

    Returns:
        PredictiveSolution with y_rep (n_draws, n_rows).

    Raises:
        ValidationError: n_draws exceeds the available draws, missing
            covariates or groups.
        DimensionError: Inconsistent row counts.
    """
    timer = Timer()
    timer.start()

    dataset = posterior.dataset
    spec = posterior.spec
    layout = posterior.layout
    rng = np.random.default_rng(seed)

    with timer.section('design'):
        X, Zr, labels = _prediction_rows(dataset, spec, covariates, groups)
        codes = dataset.group_index(labels)
        known_labels = tuple(str(l) for l in labels)

    flat = posterior.sample_set.flat()
    total = flat.shape[0]
    if n_draws is None:
        idx = np.arange(total)
    else:
        n_draws = check_positive_int(n_draws, 'n_draws')
        if n_draws > total:
            raise ValidationError(
                f"n_draws: requested {n_draws} but the posterior has {total} draws"
            )
        idx = np.sort(rng.choice(total, size=n_draws, replace=False))
    draws = flat[idx]
    S = len(idx)

    with timer.section('simulate'):
        beta = draws[:, layout.beta]
        sigma = draws[:, layout.log_sigma]
        mu = beta @ X.T

        new_levels: tuple[str, ...] = ()
        if layout.q:
            b = draws[:, layout.z].reshape(S, layout.n_groups, layout.q)
            unseen = codes < 0
            if np.any(unseen):
                new = np.unique(np.asarray(labels)[unseen])
                new_levels = tuple(str(l) for l in new)
                tau = draws[:, layout.log_tau]
                L = layout.corr_cholesky_from_constrained(draws[:, layout.corr])
                e = rng.standard_normal((S, len(new), layout.q))
                # b_new = diag(τ) L e per draw and unseen level
                b_new = tau[:, None, :] * np.einsum('skl,sul->suk', L, e)
                b = np.concatenate([b, b_new], axis=1)
                codes = codes.copy()
                codes[unseen] = layout.n_groups + np.searchsorted(
                    new, np.asarray(labels)[unseen]
                )
            mu = mu + np.einsum('snk,nk->sn', b[:, codes, :], Zr)

        y_rep = mu + sigma[:, None] * rng.standard_normal(mu.shape)

    timer.stop()

    params = PredictiveParams(
        y_rep=y_rep,
        draw_indices=idx,
        group_labels=known_labels,
        new_levels=new_levels,
        linear_predictor=mu,
    )
    result = Result(
        params=params,
        info={
            'model': spec.name,
            'n_draws': S,
            'n_rows': X.shape[0],
            'seed': seed,
            'in_sample': covariates is None,
        },
        timing=timer.result(),
        backend_name='cpu_predictive',
    )
    return PredictiveSolution(_result=result)


def _prediction_rows(
    dataset: Dataset,
    spec,
    covariates: Mapping[str, ArrayLike] | None,
    groups: ArrayLike | None,
) -> tuple[NDArray, NDArray, NDArray]:
    """Fixed design, random design and group labels of the rows to predict."""
    if covariates is None:
        if groups is not None:
            raise ValidationError("groups given without covariates")
        X = dataset.design_matrix(spec.fixed_terms)
        Zr = (
            dataset.design_matrix(spec.random_terms)
            if spec.random_terms else np.zeros((dataset.n_observations, 0))
        )
        return X, Zr, dataset.group_levels[dataset.group_codes]

    if groups is None:
        raise ValidationError("groups is required when covariates are given")
    missing = [c for c in spec.covariates if c not in covariates]
    if missing:
        raise ValidationError(
            f"covariates: missing {missing} required by model '{spec.name}'"
        )
    cols = {}
    for name in spec.covariates:
        col = check_array(covariates[name], f"covariates['{name}']")
        check_1d(col, f"covariates['{name}']")
        check_finite(col, f"covariates['{name}']")
        cols[name] = col
    labels = np.asarray(groups)
    if labels.ndim != 1:
        raise DimensionError(f"groups: expected 1D labels, got shape {labels.shape}")
    check_consistent_length(
        *cols.values(), labels,
        names=(*(f"covariates['{n}']" for n in cols), 'groups'),
    )
    m = labels.shape[0]

    def column(term: str) -> NDArray:
        return np.ones(m) if term == INTERCEPT else cols[term]

    X = np.column_stack([column(t) for t in spec.fixed_terms])
    if spec.random_terms:
        Zr = np.column_stack([column(t) for t in spec.random_terms])
    else:
        Zr = np.zeros((m, 0))
    return X, Zr, labels


def pointwise_log_likelihood(
    posterior: PosteriorSolution,
    dataset: Dataset | None = None,
) -> NDArray:
    """
    log p(y_i | θ_s) for every retained draw and observation.

    Args:
        posterior: Fitted posterior.
        dataset: Observations to evaluate; must share the training group
            levels. Default: the training data.

    Returns:
        Array (S, n), rows chain-major in draw order.
    """
    flat = posterior.sample_set.flat()
    if dataset is None:
        return posterior.log_density.pointwise_log_likelihood(flat)
    if not np.array_equal(dataset.group_levels, posterior.dataset.group_levels):
        raise ValidationError(
            "dataset: group levels differ from the training data; use "
            "posterior_predictive() for new groups"
        )
    return LogDensity(dataset, posterior.spec).pointwise_log_likelihood(flat)


def ppc(
    predictive: PredictiveSolution,
    observed: ArrayLike,
    statistic: Callable[[NDArray], float | ArrayLike],
    *,
    name: str | None = None,
) -> PPCSolution:
    """
    Posterior predictive check for a caller-supplied summary statistic.

    Evaluates T on the observed data and on every replicated dataset and
    reports p = P(T(y_rep) >= T(y)).

    Args:
        predictive: Output of posterior_predictive() on the same rows.
        observed: Observed responses (n_rows,).
        statistic: y → scalar or fixed-length vector, e.g. np.mean or
            lambda y: np.quantile(y, [0.1, 0.9]).
        name: Label for the statistic. Default: its __name__.

    Examples:
        >>> rep = posterior_predictive(post, seed=1)
        >>> ppc(rep, ds.response, np.std).p_value
    """
    y = check_array(observed, 'observed')
    check_1d(y, 'observed')
    y_rep = predictive.y_rep
    if y.shape[0] != y_rep.shape[1]:
        raise DimensionError(
            f"observed: has {y.shape[0]} rows, predictive draws have {y_rep.shape[1]}"
        )
    if not callable(statistic):
        raise ValidationError("statistic must be callable")

    t_obs = np.atleast_1d(np.asarray(statistic(y), dtype=np.float64))
    t_rep = np.stack([
        np.atleast_1d(np.asarray(statistic(row), dtype=np.float64)) for row in y_rep
    ])
    if t_rep.shape[1:] != t_obs.shape:
        raise DimensionError(
            f"statistic: returned shape {t_rep.shape[1:]} on replicates but "
            f"{t_obs.shape} on observed data"
        )
    p_value = np.mean(t_rep >= t_obs, axis=0)

    label = name or getattr(statistic, '__name__', 'statistic')
    params = PPCParams(
        statistic_name=label,
        observed=t_obs,
        replicated=t_rep,
        p_value=p_value,
    )
    result = Result(
        params=params,
        info={'n_draws': y_rep.shape[0]},
        timing=None,
        backend_name='cpu_predictive',
    )
    return PPCSolution(_result=result)
