"""
Common data types for convergence diagnostics.
"""

from dataclasses import dataclass

from numpy.typing import NDArray


@dataclass(frozen=True)
class DiagnosticsParams:
    """
    Parameter payload for convergence diagnostics.

    Per-parameter arrays follow parameter_names order.
    """
    parameter_names: tuple[str, ...]
    rhat: NDArray                      # (k,)
    ess: NDArray                       # (k,)
    autocorrelation: NDArray           # (k, max_lag + 1)
    n_chains: int
    n_draws: int
    n_divergent: int
    rhat_threshold: float
    ess_threshold: float               # per-chain threshold × n_chains
    rhat_failures: tuple[str, ...]
    ess_failures: tuple[str, ...]
    converged: bool
