"""
Common data types for PSIS-LOO.
"""

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class LooParams:
    """
    Parameter payload for leave-one-out cross-validation.

    Attributes:
        elpd_loo_i: Pointwise LOO expected log predictive density (n,).
        pareto_k: Pareto shape estimate per observation (n,).
        lppd_i: Pointwise in-sample log predictive density (n,).
        elpd_loo: Sum of elpd_loo_i.
        se: Standard error √n · sd(elpd_loo_i).
        p_loo: Effective number of parameters, lppd - elpd_loo.
        looic: -2 elpd_loo.
        lppd: Sum of lppd_i.
        unreliable: k̂ >= 0.7 mask (n,).
        n_observations: n.
        n_samples: Posterior draws S.
        data_fingerprint: Fingerprint of the evaluated dataset, or None
            when built from a bare log-likelihood matrix.
        model_name: Label used by the comparator.
    """
    elpd_loo_i: NDArray
    pareto_k: NDArray
    lppd_i: NDArray
    elpd_loo: float
    se: float
    p_loo: float
    looic: float
    lppd: float
    unreliable: NDArray
    n_observations: int
    n_samples: int
    data_fingerprint: str | None
    model_name: str
