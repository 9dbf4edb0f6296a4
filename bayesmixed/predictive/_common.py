"""
Common data types for posterior predictive simulation.
"""

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class PredictiveParams:
    """
    Parameter payload for posterior predictive draws.

    Attributes:
        y_rep: Simulated responses (n_draws, n_rows).
        draw_indices: Flat posterior draw index (chain-major) behind
            each simulated row of y_rep.
        group_labels: Group label of each predicted row.
        new_levels: Labels not seen in training; their effects were
            drawn from the group-effect distribution per draw.
        linear_predictor: Mean response per draw and row (n_draws, n_rows).
    """
    y_rep: NDArray
    draw_indices: NDArray
    group_labels: tuple[str, ...]
    new_levels: tuple[str, ...]
    linear_predictor: NDArray


@dataclass(frozen=True)
class PPCParams:
    """
    Parameter payload for a posterior predictive check.

    Attributes:
        statistic_name: Name of the summary statistic.
        observed: T(y) on the observed data (k,).
        replicated: T(y_rep) per draw (n_draws, k).
        p_value: P(T(y_rep) >= T(y)) per component (k,).
    """
    statistic_name: str
    observed: NDArray
    replicated: NDArray
    p_value: NDArray
