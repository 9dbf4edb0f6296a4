"""
Common data types for posterior sampling.

Contains the frozen payloads that go inside Result[P] envelopes.
Each payload is a pure data container: no methods beyond trivial
shape accessors, no computation.

References:
    Hoffman, M. D., & Gelman, A. (2014). The No-U-Turn Sampler.
    Journal of Machine Learning Research, 15, 1593-1623.
    Betancourt, M. (2017). A Conceptual Introduction to Hamiltonian
    Monte Carlo. arXiv:1701.02434.
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray


@dataclass(frozen=True)
class AdaptationInfo:
    """Warmup outcome for one chain.

    Attributes:
        step_size: Final adapted leapfrog step size.
        inv_mass_diag: Final diagonal inverse mass matrix (d,).
        init_step_size: Step size from the initial heuristic.
        initial_point: Unconstrained point the chain started from (d,).
    """
    step_size: float
    inv_mass_diag: NDArray
    init_step_size: float
    initial_point: NDArray


@dataclass(frozen=True)
class Chain:
    """
    Post-warmup output of one Markov chain.

    Per-draw arrays all have length n_draws. Draws are on the
    unconstrained scale; PosteriorSampleSet constrains them.
    """
    chain_id: int
    draws: NDArray                 # (n_draws, d) unconstrained
    log_density: NDArray           # (n_draws,)
    step_size: NDArray             # (n_draws,)
    tree_depth: NDArray            # (n_draws,) int
    n_leapfrog: NDArray            # (n_draws,) int
    divergent: NDArray             # (n_draws,) bool
    accept_stat: NDArray           # (n_draws,)
    energy: NDArray                # (n_draws,)
    adaptation: AdaptationInfo
    seed_entropy: int | None = None
    spawn_key: tuple[int, ...] = field(default_factory=tuple)

    @property
    def n_draws(self) -> int:
        return int(self.draws.shape[0])

    @property
    def n_divergent(self) -> int:
        return int(np.sum(self.divergent))


@dataclass(frozen=True)
class PosteriorParams:
    """
    Parameter payload for a fitted posterior.

    Attributes:
        chains: One Chain per chain, all the same length.
        draws: Constrained draws (n_chains, n_draws, d).
        parameter_names: Names of the constrained parameters (d,).
        unconstrained_names: Names of the unconstrained coordinates (d,).
        n_divergent: Post-warmup divergent transitions over all chains.
    """
    chains: tuple[Chain, ...]
    draws: NDArray
    parameter_names: tuple[str, ...]
    unconstrained_names: tuple[str, ...]
    n_divergent: int
