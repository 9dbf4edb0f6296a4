"""
Solution wrappers for posterior predictive simulation and checks.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.result import Result
from bayesmixed.predictive._common import PredictiveParams, PPCParams


class PredictiveSolution:
    """Posterior predictive draws (n_draws, n_rows)."""

    def __init__(self, _result: Result[PredictiveParams]):
        self._result = _result

    @property
    def params(self) -> PredictiveParams:
        return self._result.params

    @property
    def y_rep(self) -> NDArray:
        return self.params.y_rep

    @property
    def draw_indices(self) -> NDArray:
        return self.params.draw_indices

    @property
    def new_levels(self) -> tuple[str, ...]:
        return self.params.new_levels

    @property
    def n_draws(self) -> int:
        return int(self.y_rep.shape[0])

    @property
    def n_rows(self) -> int:
        return int(self.y_rep.shape[1])

    def mean(self) -> NDArray:
        """Posterior predictive mean per row."""
        return self.y_rep.mean(axis=0)

    def interval(self, prob: float = 0.9) -> NDArray:
        """Central predictive interval per row, shape (n_rows, 2)."""
        if not 0.0 < prob < 1.0:
            raise ValueError(f"prob must lie in (0, 1), got {prob}")
        tail = (1.0 - prob) / 2.0
        return np.quantile(self.y_rep, [tail, 1.0 - tail], axis=0).T

    def summary(self) -> str:
        lo_hi = self.interval(0.9)
        mean = self.mean()
        lines = [
            "Posterior predictive simulation",
            "=" * 50,
            f"Draws: {self.n_draws}, rows: {self.n_rows}",
        ]
        if self.new_levels:
            lines.append(
                f"New group levels (effects drawn from the population): "
                f"{', '.join(self.new_levels)}"
            )
        lines.append("")
        lines.append(f" {'row':>6s} {'group':>12s} {'mean':>10s} {'5%':>10s} {'95%':>10s}")
        shown = min(self.n_rows, 10)
        for i in range(shown):
            lines.append(
                f" {i:6d} {self.params.group_labels[i]:>12s} {mean[i]:10.4f} "
                f"{lo_hi[i, 0]:10.4f} {lo_hi[i, 1]:10.4f}"
            )
        if self.n_rows > shown:
            lines.append(f" ... {self.n_rows - shown} more rows")
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return f"PredictiveSolution(draws={self.n_draws}, rows={self.n_rows})"


class PPCSolution:
    """Observed vs replicated summary statistic with its predictive p-value."""

    def __init__(self, _result: Result[PPCParams]):
        self._result = _result

    @property
    def params(self) -> PPCParams:
        return self._result.params

    @property
    def observed(self) -> NDArray:
        return self.params.observed

    @property
    def replicated(self) -> NDArray:
        return self.params.replicated

    @property
    def p_value(self) -> NDArray | float:
        """P(T(y_rep) >= T(y)); a float for scalar statistics."""
        p = self.params.p_value
        return float(p[0]) if p.shape == (1,) else p

    def summary(self) -> str:
        p = self.params
        lines = [
            f"Posterior predictive check: {p.statistic_name}",
            "=" * 50,
            f" {'':>4s} {'T(y)':>10s} {'mean T(yrep)':>13s} {'P(T(yrep) >= T(y))':>20s}",
        ]
        rep_mean = p.replicated.mean(axis=0)
        for i in range(len(p.observed)):
            lines.append(
                f" {i:4d} {p.observed[i]:10.4f} {rep_mean[i]:13.4f} {p.p_value[i]:20.3f}"
            )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return f"PPCSolution('{self.params.statistic_name}', p={self.params.p_value})"
