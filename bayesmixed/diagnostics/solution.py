"""
Solution wrapper for convergence diagnostics.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.result import Result
from bayesmixed.diagnostics._common import DiagnosticsParams

if TYPE_CHECKING:
    import pandas as pd


class DiagnosticsSolution:
    """Per-parameter R-hat, ESS and autocorrelation with a pass/fail flag."""

    def __init__(self, _result: Result[DiagnosticsParams]):
        self._result = _result

    @property
    def params(self) -> DiagnosticsParams:
        return self._result.params

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self.params.parameter_names

    @property
    def rhat(self) -> NDArray:
        return self.params.rhat

    @property
    def ess(self) -> NDArray:
        return self.params.ess

    @property
    def autocorrelation(self) -> NDArray:
        """(n_params, max_lag + 1), averaged over chains."""
        return self.params.autocorrelation

    @property
    def converged(self) -> bool:
        return self.params.converged

    @property
    def n_divergent(self) -> int:
        return self.params.n_divergent

    @property
    def failures(self) -> tuple[str, ...]:
        """Parameters failing either threshold, in parameter order."""
        failed = set(self.params.rhat_failures) | set(self.params.ess_failures)
        return tuple(n for n in self.parameter_names if n in failed)

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def __getitem__(self, name: str) -> dict[str, float]:
        i = self.parameter_names.index(name)
        return {'rhat': float(self.rhat[i]), 'ess': float(self.ess[i])}

    def _lag1(self) -> NDArray:
        acf = self.autocorrelation
        if acf.shape[1] > 1:
            return acf[:, 1]
        return np.full(acf.shape[0], np.nan)

    def to_dataframe(self) -> 'pd.DataFrame':
        import pandas as pd

        return pd.DataFrame(
            {
                'rhat': self.rhat,
                'ess': self.ess,
                'acf_lag1': self._lag1(),
            },
            index=pd.Index(self.parameter_names, name='parameter'),
        )

    def summary(self) -> str:
        p = self.params
        lines = [
            "MCMC convergence diagnostics",
            "=" * 50,
            f"Chains: {p.n_chains}, draws per chain: {p.n_draws}, "
            f"divergent transitions: {p.n_divergent}",
            f"Thresholds: R-hat <= {p.rhat_threshold:g}, ESS >= {p.ess_threshold:g}",
            "",
            f" {'Parameter':<28s} {'R-hat':>8s} {'ESS':>10s} {'ACF(1)':>8s}",
        ]
        failed = set(self.failures)
        lag1 = self._lag1()
        for i, name in enumerate(p.parameter_names):
            acf1 = lag1[i]
            flag = ' *' if name in failed else ''
            lines.append(
                f" {name:<28s} {p.rhat[i]:8.3f} {p.ess[i]:10.0f} {acf1:8.3f}{flag}"
            )
        lines.append("")
        if p.converged:
            lines.append("All parameters within thresholds.")
        else:
            lines.append(
                f"WARNING: {len(failed)} parameter(s) outside thresholds (marked *)"
            )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        status = 'converged' if self.converged else 'NOT converged'
        return (
            f"DiagnosticsSolution({status}, params={len(self.parameter_names)}, "
            f"failures={len(self.failures)})"
        )
