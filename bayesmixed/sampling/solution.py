"""
Solution wrappers for posterior sampling.

PosteriorSampleSet gives structured access to constrained draws;
PosteriorSolution wraps Result[PosteriorParams] together with the
dataset, model and sampler settings that produced it, and provides an
R-style summary().
"""

from __future__ import annotations

from functools import cached_property
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.result import Result
from bayesmixed.data import Dataset
from bayesmixed.diagnostics.solution import DiagnosticsSolution
from bayesmixed.model._log_density import LogDensity
from bayesmixed.model._parameterization import ParameterLayout
from bayesmixed.model.spec import ModelSpec
from bayesmixed.sampling._common import PosteriorParams, Chain
from bayesmixed.sampling.design import SamplerConfig

if TYPE_CHECKING:
    import pandas as pd


class PosteriorSampleSet:
    """
    Post-warmup constrained draws of all chains.

    draws has shape (n_chains, n_draws, d); draw order within each chain
    is the sampling order.
    """

    def __init__(self, draws: NDArray, layout: ParameterLayout):
        self._draws = draws
        self._layout = layout

    @property
    def draws(self) -> NDArray:
        return self._draws

    @property
    def layout(self) -> ParameterLayout:
        return self._layout

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self._layout.constrained_names()

    @property
    def n_chains(self) -> int:
        return int(self._draws.shape[0])

    @property
    def n_draws(self) -> int:
        return int(self._draws.shape[1])

    @property
    def n_samples(self) -> int:
        """Total retained draws over all chains."""
        return self.n_chains * self.n_draws

    def flat(self) -> NDArray:
        """Draws stacked over chains, shape (n_chains * n_draws, d)."""
        return self._draws.reshape(-1, self._draws.shape[-1])

    # --- Structured accessors ---

    @property
    def beta(self) -> NDArray:
        """Fixed effects (C, D, p), columns in fixed_terms order."""
        return self._draws[..., self._layout.beta]

    @property
    def sigma(self) -> NDArray:
        """Residual standard deviation (C, D)."""
        return self._draws[..., self._layout.log_sigma]

    @property
    def tau(self) -> NDArray:
        """Group-effect standard deviations (C, D, q)."""
        return self._draws[..., self._layout.log_tau]

    @property
    def corr_cholesky(self) -> NDArray:
        """Correlation Cholesky factors (C, D, q, q)."""
        return self._layout.corr_cholesky_from_constrained(
            self._draws[..., self._layout.corr]
        )

    @property
    def correlation(self) -> NDArray:
        """Group-effect correlation matrices (C, D, q, q)."""
        L = self.corr_cholesky
        return L @ np.swapaxes(L, -1, -2)

    @property
    def group_effects(self) -> NDArray:
        """Group offsets b (C, D, J, q), rows in group_levels order."""
        lay = self._layout
        return self._draws[..., lay.z].reshape(
            self._draws.shape[:2] + (lay.n_groups, lay.q)
        )

    def __getitem__(self, name: str) -> NDArray:
        """Draws (C, D) of one parameter by name, e.g. 'beta[age]'."""
        try:
            i = self.parameter_names.index(name)
        except ValueError:
            raise KeyError(
                f"No parameter '{name}'. Available: {list(self.parameter_names)}"
            ) from None
        return self._draws[..., i]

    def to_dataframe(self) -> 'pd.DataFrame':
        """One row per draw, one column per parameter, plus chain and draw."""
        import pandas as pd

        C, D, _ = self._draws.shape
        df = pd.DataFrame(self.flat(), columns=list(self.parameter_names))
        df.insert(0, 'draw', np.tile(np.arange(D), C))
        df.insert(0, 'chain', np.repeat(np.arange(C), D))
        return df

    def __repr__(self) -> str:
        return (
            f"PosteriorSampleSet(chains={self.n_chains}, draws={self.n_draws}, "
            f"params={len(self.parameter_names)})"
        )


class PosteriorSolution:
    """
    Solution wrapper for a fitted posterior.

    Provides the sample set, per-chain sampler statistics, the convergence
    diagnostics computed at fit time, and an R-style summary().
    """

    def __init__(
        self,
        _result: Result[PosteriorParams],
        _dataset: Dataset,
        _spec: ModelSpec,
        _config: SamplerConfig,
        _diagnostics: DiagnosticsSolution,
        _layout: ParameterLayout,
    ):
        self._result = _result
        self._dataset = _dataset
        self._spec = _spec
        self._config = _config
        self._diagnostics = _diagnostics
        self._layout = _layout

    @property
    def params(self) -> PosteriorParams:
        return self._result.params

    @property
    def result(self) -> Result[PosteriorParams]:
        return self._result

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def spec(self) -> ModelSpec:
        return self._spec

    @property
    def config(self) -> SamplerConfig:
        return self._config

    @property
    def layout(self) -> ParameterLayout:
        return self._layout

    @property
    def name(self) -> str:
        return self._spec.name

    @cached_property
    def sample_set(self) -> PosteriorSampleSet:
        return PosteriorSampleSet(self.params.draws, self._layout)

    @cached_property
    def log_density(self) -> LogDensity:
        return LogDensity(self._dataset, self._spec)

    @property
    def chains(self) -> tuple[Chain, ...]:
        return self.params.chains

    @property
    def diagnostics(self) -> DiagnosticsSolution:
        return self._diagnostics

    @property
    def converged(self) -> bool:
        return self._diagnostics.converged

    @property
    def n_divergent(self) -> int:
        return self.params.n_divergent

    @property
    def divergent(self) -> NDArray:
        """Per-draw divergence flags (C, D)."""
        return np.stack([c.divergent for c in self.chains])

    @property
    def seed(self) -> int | None:
        return self._result.info.get('seed')

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings + self._diagnostics.warnings

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    # --- Posterior summaries ---

    @property
    def fixef(self) -> dict[str, float]:
        """Posterior means of the fixed effects."""
        means = self.sample_set.beta.reshape(-1, self._layout.p).mean(axis=0)
        return dict(zip(self._spec.fixed_terms, means))

    @property
    def ranef(self) -> dict[str, NDArray]:
        """Posterior mean group effects, keyed by group label, (q,) each."""
        if not self._layout.q:
            return {}
        means = self.sample_set.group_effects.reshape(
            -1, self._layout.n_groups, self._layout.q
        ).mean(axis=0)
        return dict(zip(self._layout.group_levels, means))

    def posterior_summary(self) -> NDArray:
        """(d, 4) array of mean, sd, 2.5% and 97.5% per parameter."""
        flat = self.sample_set.flat()
        lo, hi = np.quantile(flat, [0.025, 0.975], axis=0)
        return np.column_stack([flat.mean(axis=0), flat.std(axis=0, ddof=1), lo, hi])

    def summary(self) -> str:
        """R-style posterior summary with convergence columns."""
        ds = self._dataset
        stats = self.posterior_summary()
        diag = self._diagnostics
        names = self.sample_set.parameter_names
        lines = [
            f"Bayesian hierarchical regression: {self._spec!r}",
            f"NUTS, {self._config.num_chains} chain(s), "
            f"{self._config.warmup_iterations} warmup + "
            f"{self._config.sampling_iterations} draws each",
            "",
            f"Number of obs: {ds.n_observations}, groups: "
            f"{ds.group_name}: {ds.n_groups}",
            "",
            f" {'':<28s} {'Mean':>10s} {'SD':>10s} {'2.5%':>10s} "
            f"{'97.5%':>10s} {'R-hat':>7s} {'ESS':>8s}",
        ]
        for i, name in enumerate(names):
            mean, sd, lo, hi = stats[i]
            lines.append(
                f" {name:<28s} {mean:10.4f} {sd:10.4f} {lo:10.4f} {hi:10.4f} "
                f"{diag.rhat[i]:7.3f} {diag.ess[i]:8.0f}"
            )
        lines.append("")
        lines.append(f"Divergent transitions: {self.n_divergent}")
        if not diag.converged:
            lines.append("")
            lines.append("WARNING: convergence thresholds not met:")
            for w in diag.warnings:
                lines.append(f"  {w}")
        return '\n'.join(lines)

    def __repr__(self) -> str:
        status = 'converged' if self.converged else 'NOT converged'
        return (
            f"PosteriorSolution('{self.name}', chains={self._config.num_chains}, "
            f"draws={self._config.sampling_iterations}, {status}, "
            f"divergent={self.n_divergent})"
        )
