"""
Common data types for model comparison.
"""

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class ComparisonParams:
    """
    Parameter payload for a ranked model comparison.

    Per-model arrays are in rank order (best first).

    Attributes:
        models: Model names.
        elpd_loo: Total LOO elpd per model.
        se: Standard error of each elpd_loo.
        elpd_diff: elpd_loo minus the best model's (0 for the best).
        se_diff: √n · sd of the pointwise differences to the best model.
        p_loo: Effective number of parameters per model.
        n_unreliable: Observations with k̂ >= 0.7 per model.
        pointwise: elpd_loo_i per model (n_models, n).
    """
    models: tuple[str, ...]
    elpd_loo: NDArray
    se: NDArray
    elpd_diff: NDArray
    se_diff: NDArray
    p_loo: NDArray
    n_unreliable: NDArray
    pointwise: NDArray
