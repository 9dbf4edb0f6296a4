"""
CPU backend for NUTS posterior sampling.

Chains are independent and run concurrently on a thread pool. Each chain
owns its generator (spawned from one SeedSequence), so draws are
identical for a fixed seed regardless of how the pool schedules chains.
numpy releases the GIL inside its kernels, which is where a chain spends
its time.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

import numpy as np

from bayesmixed.core.result import Result
from bayesmixed.core.compute.timing import Timer
from bayesmixed.sampling._common import PosteriorParams
from bayesmixed.sampling._nuts import run_chain
from bayesmixed.sampling.design import SamplingDesign


class _EitherEvent:
    """is_set() when the caller's event or the pool's abort flag is set."""

    def __init__(self, user_event: threading.Event | None, abort: threading.Event):
        self._user = user_event
        self._abort = abort

    def is_set(self) -> bool:
        return self._abort.is_set() or (self._user is not None and self._user.is_set())


class CPUNUTSBackend:
    """
    CPU backend running multinomial NUTS chains on a thread pool.

    If any chain fails (non-finite initial density, cancellation,
    timeout), the remaining chains are stopped at their next iteration
    boundary and the first failure is re-raised; no partial posterior
    is returned.
    """

    @property
    def name(self) -> str:
        return 'cpu_nuts'

    def solve(self, design: SamplingDesign) -> Result[PosteriorParams]:
        """Run all chains and return Result[PosteriorParams]."""
        timer = Timer()
        timer.start()

        config = design.config
        layout = design.log_density.layout
        abort = threading.Event()
        cancel = _EitherEvent(design.cancel_event, abort)
        workers = design.max_workers or config.num_chains

        def _run(chain_id: int):
            init = None if design.inits is None else design.inits[chain_id]
            return run_chain(
                design.log_density,
                design.dim,
                chain_id=chain_id,
                seed_sequence=design.chain_seeds[chain_id],
                n_warmup=config.warmup_iterations,
                n_samples=config.sampling_iterations,
                target_accept=config.target_accept_probability,
                max_tree_depth=config.max_tree_depth,
                max_delta_energy=config.max_delta_energy,
                adapt_mass_matrix=config.adapt_mass_matrix,
                init=init,
                init_radius=config.init_radius,
                cancel_event=cancel,
                deadline=design.deadline,
            )

        results = [None] * config.num_chains
        first_error: BaseException | None = None
        with timer.section('chains'):
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(_run, c): c for c in range(config.num_chains)}
                for future in as_completed(futures):
                    try:
                        results[futures[future]] = future.result()
                    except Exception as e:
                        if first_error is None:
                            first_error = e
                            abort.set()
        if first_error is not None:
            raise first_error

        chains = tuple(chain for chain, _ in results)
        for chain, chain_timing in results:
            for section, seconds in chain_timing.items():
                timer.add(f'chain_{chain.chain_id}_{section}', seconds)

        with timer.section('constrain'):
            unconstrained = np.stack([c.draws for c in chains])
            constrained = layout.constrain_draws(unconstrained)

        n_divergent = sum(c.n_divergent for c in chains)
        timer.stop()

        warnings_list = []
        if n_divergent:
            total = config.num_chains * config.sampling_iterations
            warnings_list.append(
                f"{n_divergent} of {total} post-warmup transitions diverged; "
                f"consider a higher target_accept_probability or a "
                f"reparameterized model"
            )

        params = PosteriorParams(
            chains=chains,
            draws=constrained,
            parameter_names=layout.constrained_names(),
            unconstrained_names=layout.unconstrained_names(),
            n_divergent=n_divergent,
        )
        return Result(
            params=params,
            info={
                'method': 'nuts',
                'n_chains': config.num_chains,
                'n_warmup': config.warmup_iterations,
                'n_draws': config.sampling_iterations,
                'seed': design.seed,
                'seed_entropy': design.chain_seeds[0].entropy,
                'step_size': [c.adaptation.step_size for c in chains],
                'mean_accept_stat': [float(np.mean(c.accept_stat)) for c in chains],
                'max_tree_depth_hits': int(sum(
                    np.sum(c.tree_depth >= config.max_tree_depth) for c in chains
                )),
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warnings_list),
        )
