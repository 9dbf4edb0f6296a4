"""
Solution wrapper for model comparison.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from numpy.typing import NDArray

from bayesmixed.core.result import Result
from bayesmixed.compare._common import ComparisonParams

if TYPE_CHECKING:
    import pandas as pd


class ComparisonSolution:
    """Models ranked by elpd_loo, best first."""

    def __init__(self, _result: Result[ComparisonParams]):
        self._result = _result

    @property
    def params(self) -> ComparisonParams:
        return self._result.params

    @property
    def models(self) -> tuple[str, ...]:
        return self.params.models

    @property
    def best(self) -> str:
        return self.params.models[0]

    @property
    def elpd_diff(self) -> NDArray:
        return self.params.elpd_diff

    @property
    def se_diff(self) -> NDArray:
        return self.params.se_diff

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def rank(self, model: str) -> int:
        """1-based rank of a model."""
        return self.params.models.index(model) + 1

    def pointwise_diff(self, model: str, reference: str | None = None) -> NDArray:
        """elpd_loo_i(model) - elpd_loo_i(reference); reference defaults to the best."""
        p = self.params
        ref = p.models.index(reference or self.best)
        return p.pointwise[p.models.index(model)] - p.pointwise[ref]

    def to_dataframe(self) -> 'pd.DataFrame':
        import pandas as pd

        p = self.params
        return pd.DataFrame(
            {
                'rank': range(1, len(p.models) + 1),
                'elpd_loo': p.elpd_loo,
                'se': p.se,
                'elpd_diff': p.elpd_diff,
                'se_diff': p.se_diff,
                'p_loo': p.p_loo,
                'n_unreliable': p.n_unreliable,
            },
            index=pd.Index(p.models, name='model'),
        )

    def summary(self) -> str:
        p = self.params
        width = max(12, max(len(m) for m in p.models))
        lines = [
            "Model comparison (PSIS-LOO)",
            "=" * 50,
            f" {'model':<{width}s} {'elpd_diff':>10s} {'se_diff':>8s} "
            f"{'elpd_loo':>10s} {'se':>8s} {'p_loo':>8s} {'k>=0.7':>7s}",
        ]
        for i, model in enumerate(p.models):
            lines.append(
                f" {model:<{width}s} {p.elpd_diff[i]:10.2f} {p.se_diff[i]:8.2f} "
                f"{p.elpd_loo[i]:10.2f} {p.se[i]:8.2f} {p.p_loo[i]:8.2f} "
                f"{int(p.n_unreliable[i]):7d}"
            )
        return '\n'.join(lines)

    def __repr__(self) -> str:
        return f"ComparisonSolution(best='{self.best}', models={len(self.models)})"
