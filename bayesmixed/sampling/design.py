"""
Design classes for posterior sampling.

SamplerConfig holds the tunable sampler settings; SamplingDesign bundles
everything a backend needs for one fit (log density, config, seeds,
initial points, cancellation). Both are immutable and validated at
construction.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, asdict
from typing import Any

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bayesmixed.core.compute.timing import Deadline
from bayesmixed.core.exceptions import DimensionError, ValidationError
from bayesmixed.core.validation import (
    check_positive_int, check_positive, check_probability,
)
from bayesmixed.data import Dataset
from bayesmixed.defaults import (
    DEFAULT_WARMUP_ITERATIONS,
    DEFAULT_SAMPLING_ITERATIONS,
    DEFAULT_NUM_CHAINS,
    DEFAULT_TARGET_ACCEPT,
    DEFAULT_MAX_TREE_DEPTH,
    DEFAULT_MAX_DELTA_ENERGY,
    DEFAULT_INIT_RADIUS,
)
from bayesmixed.model._log_density import LogDensity
from bayesmixed.model.spec import ModelSpec


@dataclass(frozen=True)
class SamplerConfig:
    """
    NUTS settings.

    Attributes:
        warmup_iterations: Adaptation iterations per chain (discarded).
        sampling_iterations: Retained draws per chain (at least 4, so the
            split-chain diagnostics are defined).
        num_chains: Independent chains.
        target_accept_probability: Dual-averaging target in (0, 1).
        max_tree_depth: Maximum trajectory doublings per iteration.
        max_delta_energy: Energy error beyond which a transition diverges.
        adapt_mass_matrix: Adapt a diagonal inverse mass matrix in warmup.
        init_radius: Random inits are uniform in (-init_radius, init_radius).
    """
    warmup_iterations: int = DEFAULT_WARMUP_ITERATIONS
    sampling_iterations: int = DEFAULT_SAMPLING_ITERATIONS
    num_chains: int = DEFAULT_NUM_CHAINS
    target_accept_probability: float = DEFAULT_TARGET_ACCEPT
    max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH
    max_delta_energy: float = DEFAULT_MAX_DELTA_ENERGY
    adapt_mass_matrix: bool = True
    init_radius: float = DEFAULT_INIT_RADIUS

    @classmethod
    def build(
        cls,
        *,
        warmup_iterations: int = DEFAULT_WARMUP_ITERATIONS,
        sampling_iterations: int = DEFAULT_SAMPLING_ITERATIONS,
        num_chains: int = DEFAULT_NUM_CHAINS,
        target_accept_probability: float = DEFAULT_TARGET_ACCEPT,
        max_tree_depth: int = DEFAULT_MAX_TREE_DEPTH,
        max_delta_energy: float = DEFAULT_MAX_DELTA_ENERGY,
        adapt_mass_matrix: bool = True,
        init_radius: float = DEFAULT_INIT_RADIUS,
    ) -> SamplerConfig:
        """
        Create a validated config.

        Raises:
            ValidationError: Non-positive counts, a target acceptance
                outside (0, 1), or non-positive energy/init bounds.
        """
        return cls(
            warmup_iterations=check_positive_int(warmup_iterations, 'warmup_iterations'),
            sampling_iterations=check_positive_int(
                sampling_iterations, 'sampling_iterations', minimum=4
            ),
            num_chains=check_positive_int(num_chains, 'num_chains'),
            target_accept_probability=check_probability(
                target_accept_probability, 'target_accept_probability'
            ),
            max_tree_depth=check_positive_int(max_tree_depth, 'max_tree_depth'),
            max_delta_energy=check_positive(max_delta_energy, 'max_delta_energy'),
            adapt_mass_matrix=bool(adapt_mass_matrix),
            init_radius=check_positive(init_radius, 'init_radius'),
        )

    def validate(self) -> SamplerConfig:
        """Re-run build() validation on a directly constructed config."""
        return SamplerConfig.build(**asdict(self))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SamplingDesign:
    """
    Frozen design for one posterior fit.

    Attributes:
        dataset: Observations.
        spec: Model specification.
        log_density: Log posterior on the unconstrained scale.
        config: Sampler settings.
        seed: Root seed (None draws fresh OS entropy).
        chain_seeds: One SeedSequence per chain, spawned from the root.
        inits: Optional (num_chains, d) unconstrained initial points.
        cancel_event: Set by the caller to cancel cooperatively.
        deadline: Wall-clock budget, checked between iterations.
        max_workers: Thread pool size for chains (None = num_chains).
    """
    dataset: Dataset
    spec: ModelSpec
    log_density: LogDensity
    config: SamplerConfig
    seed: int | None
    chain_seeds: tuple[np.random.SeedSequence, ...]
    inits: NDArray | None
    cancel_event: threading.Event | None
    deadline: Deadline | None
    max_workers: int | None

    @classmethod
    def for_fit(
        cls,
        dataset: Dataset,
        spec: ModelSpec,
        *,
        config: SamplerConfig | None = None,
        seed: int | None = None,
        inits: ArrayLike | None = None,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
        max_workers: int | None = None,
    ) -> SamplingDesign:
        """
        Validate everything that can be checked before sampling.

        Raises:
            ValidationError: Bad config, missing priors, unknown terms.
            DimensionError: inits of the wrong shape.
        """
        if not isinstance(dataset, Dataset):
            raise ValidationError(
                f"dataset must be a Dataset, got {type(dataset).__name__}"
            )
        if not isinstance(spec, ModelSpec):
            raise ValidationError(
                f"spec must be a ModelSpec, got {type(spec).__name__}"
            )
        config = SamplerConfig.build() if config is None else config.validate()
        log_density = LogDensity(dataset, spec)

        if seed is not None:
            seed = check_positive_int(seed, 'seed', minimum=0)
        root = np.random.SeedSequence(seed)
        chain_seeds = tuple(root.spawn(config.num_chains))

        inits_arr = None
        if inits is not None:
            inits_arr = np.asarray(inits, dtype=np.float64)
            if inits_arr.ndim == 1:
                inits_arr = np.tile(inits_arr, (config.num_chains, 1))
            expected = (config.num_chains, log_density.dim)
            if inits_arr.shape != expected:
                raise DimensionError(
                    f"inits: expected shape {expected} (chains, unconstrained "
                    f"dimension) or ({log_density.dim},), got {inits_arr.shape}"
                )

        deadline = None
        if timeout is not None:
            deadline = Deadline(check_positive(timeout, 'timeout'))
        if max_workers is not None:
            max_workers = check_positive_int(max_workers, 'max_workers')

        return cls(
            dataset=dataset,
            spec=spec,
            log_density=log_density,
            config=config,
            seed=seed,
            chain_seeds=chain_seeds,
            inits=inits_arr,
            cancel_event=cancel_event,
            deadline=deadline,
            max_workers=max_workers,
        )

    @property
    def dim(self) -> int:
        return self.log_density.dim
