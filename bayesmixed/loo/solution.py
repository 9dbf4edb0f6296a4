"""
Solution wrapper for PSIS-LOO.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.result import Result
from bayesmixed.defaults import PARETO_K_GOOD, PARETO_K_BAD
from bayesmixed.loo._common import LooParams

if TYPE_CHECKING:
    import pandas as pd


class LooSolution:
    """Leave-one-out estimate with Pareto k̂ diagnostics."""

    def __init__(self, _result: Result[LooParams]):
        self._result = _result

    @property
    def params(self) -> LooParams:
        return self._result.params

    @property
    def model_name(self) -> str:
        return self.params.model_name

    @property
    def elpd_loo(self) -> float:
        return self.params.elpd_loo

    @property
    def se(self) -> float:
        return self.params.se

    @property
    def p_loo(self) -> float:
        return self.params.p_loo

    @property
    def looic(self) -> float:
        return self.params.looic

    @property
    def lppd(self) -> float:
        return self.params.lppd

    @property
    def elpd_loo_i(self) -> NDArray:
        return self.params.elpd_loo_i

    @property
    def pareto_k(self) -> NDArray:
        return self.params.pareto_k

    @property
    def unreliable(self) -> NDArray:
        return self.params.unreliable

    @property
    def n_unreliable(self) -> int:
        return int(self.params.unreliable.sum())

    @property
    def n_observations(self) -> int:
        return self.params.n_observations

    @property
    def data_fingerprint(self) -> str | None:
        return self.params.data_fingerprint

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def k_table(self) -> dict[str, int]:
        """Observation counts per Pareto k̂ band."""
        k = self.pareto_k
        return {
            'good': int(np.sum(k < PARETO_K_GOOD)),
            'ok': int(np.sum((k >= PARETO_K_GOOD) & (k < PARETO_K_BAD))),
            'bad': int(np.sum(k >= PARETO_K_BAD)),
        }

    def to_dataframe(self) -> 'pd.DataFrame':
        """One row per observation: elpd_loo_i, lppd_i, pareto_k, unreliable."""
        import pandas as pd

        p = self.params
        return pd.DataFrame(
            {
                'elpd_loo_i': p.elpd_loo_i,
                'lppd_i': p.lppd_i,
                'pareto_k': p.pareto_k,
                'unreliable': p.unreliable,
            },
            index=pd.RangeIndex(p.n_observations, name='observation'),
        )

    def summary(self) -> str:
        p = self.params
        table = self.k_table()
        n = p.n_observations
        lines = [
            f"PSIS-LOO: {p.model_name}",
            "=" * 50,
            f"Computed from {p.n_samples} posterior draws and {n} observations",
            "",
            f" {'':<10s} {'Estimate':>10s} {'SE':>10s}",
            f" {'elpd_loo':<10s} {p.elpd_loo:10.2f} {p.se:10.2f}",
            f" {'p_loo':<10s} {p.p_loo:10.2f}",
            f" {'looic':<10s} {p.looic:10.2f} {2 * p.se:10.2f}",
            "",
            "Pareto k diagnostic values:",
            f" {'(-Inf, 0.5)':<14s} (good) {table['good']:6d} {100 * table['good'] / n:6.1f}%",
            f" {'[0.5, 0.7)':<14s} (ok)   {table['ok']:6d} {100 * table['ok'] / n:6.1f}%",
            f" {'[0.7, Inf)':<14s} (bad)  {table['bad']:6d} {100 * table['bad'] / n:6.1f}%",
        ]
        if table['bad']:
            lines.append("")
            lines.append(
                f"WARNING: {table['bad']} observation(s) with k-hat >= {PARETO_K_BAD}"
            )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return (
            f"LooSolution('{self.model_name}', elpd_loo={self.elpd_loo:.2f}, "
            f"se={self.se:.2f}, unreliable={self.n_unreliable})"
        )
