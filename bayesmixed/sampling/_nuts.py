"""
No-U-Turn Sampler with multinomial trajectory sampling.

One transition samples a momentum, then doubles the trajectory forward or
backward in time until the generalized no-U-turn criterion fires, a
divergence occurs, or max_tree_depth doublings have been made. The next
state is drawn from the whole trajectory in proportion to exp(-H):
uniformly-progressive within each new subtree, biased-progressive when a
subtree is merged into the existing trajectory.

References:
    Hoffman, M. D., & Gelman, A. (2014). The No-U-Turn Sampler.
    Betancourt, M. (2017). A Conceptual Introduction to Hamiltonian
    Monte Carlo, appendix A.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from bayesmixed.core.exceptions import (
    NonFiniteDensity, SamplingCancelled, SamplingTimeout,
)
from bayesmixed.sampling._adaptation import WindowedAdaptation
from bayesmixed.sampling._common import AdaptationInfo, Chain

LogDensityFn = Callable[[NDArray], tuple[float, NDArray]]


@dataclass
class _State:
    """A point in phase space with cached density and gradient."""
    q: NDArray
    p: NDArray
    log_density: float
    grad: NDArray


@dataclass
class _Tree:
    left: _State
    right: _State
    proposal: _State
    log_sum_weight: float
    rho: NDArray
    n_leapfrog: int
    sum_accept: float
    turning: bool
    divergent: bool


class NUTSKernel:
    """
    Transition kernel for a fixed log density and inverse mass matrix.

    Args:
        log_density: u → (log p(u), ∇ log p(u)).
        inv_mass_diag: Diagonal inverse mass matrix.
        max_tree_depth: Maximum number of trajectory doublings.
        max_delta_energy: Energy error above which a leapfrog step diverges.
    """

    def __init__(
        self,
        log_density: LogDensityFn,
        inv_mass_diag: NDArray,
        max_tree_depth: int,
        max_delta_energy: float,
    ):
        self.log_density = log_density
        self.inv_mass_diag = inv_mass_diag
        self.max_tree_depth = max_tree_depth
        self.max_delta_energy = max_delta_energy

    def kinetic(self, p: NDArray) -> float:
        return 0.5 * float(p @ (self.inv_mass_diag * p))

    def hamiltonian(self, state: _State) -> float:
        return -state.log_density + self.kinetic(state.p)

    def sample_momentum(self, rng: np.random.Generator) -> NDArray:
        return rng.standard_normal(len(self.inv_mass_diag)) / np.sqrt(self.inv_mass_diag)

    def leapfrog(self, state: _State, step_size: float) -> _State:
        p = state.p + 0.5 * step_size * state.grad
        q = state.q + step_size * self.inv_mass_diag * p
        log_density, grad = self.log_density(q)
        p = p + 0.5 * step_size * grad
        return _State(q, p, log_density, grad)

    def _turning(self, left: _State, right: _State, rho: NDArray) -> bool:
        """Generalized no-U-turn criterion on the sharp momenta."""
        p_sharp_left = self.inv_mass_diag * left.p
        p_sharp_right = self.inv_mass_diag * right.p
        return not (p_sharp_left @ rho > 0 and p_sharp_right @ rho > 0)

    def _build_tree(
        self,
        state: _State,
        direction: int,
        depth: int,
        step_size: float,
        h0: float,
        rng: np.random.Generator,
    ) -> _Tree:
        if depth == 0:
            new = self.leapfrog(state, direction * step_size)
            h = self.hamiltonian(new)
            delta = h - h0
            if not np.isfinite(delta):
                delta = np.inf
            divergent = bool(delta > self.max_delta_energy)
            accept = float(np.exp(-delta)) if delta > 0 else 1.0
            return _Tree(
                left=new, right=new, proposal=new,
                log_sum_weight=-delta,
                rho=new.p.copy(),
                n_leapfrog=1,
                sum_accept=accept,
                turning=False,
                divergent=divergent,
            )

        inner = self._build_tree(state, direction, depth - 1, step_size, h0, rng)
        if inner.turning or inner.divergent:
            return inner

        edge = inner.right if direction > 0 else inner.left
        outer = self._build_tree(edge, direction, depth - 1, step_size, h0, rng)
        n_leapfrog = inner.n_leapfrog + outer.n_leapfrog
        sum_accept = inner.sum_accept + outer.sum_accept
        if outer.turning or outer.divergent:
            outer.n_leapfrog = n_leapfrog
            outer.sum_accept = sum_accept
            return outer

        log_sum_weight = np.logaddexp(inner.log_sum_weight, outer.log_sum_weight)
        # Uniform progressive sampling within the subtree
        if np.log(rng.uniform()) < outer.log_sum_weight - log_sum_weight:
            proposal = outer.proposal
        else:
            proposal = inner.proposal

        if direction > 0:
            left, right = inner.left, outer.right
        else:
            left, right = outer.left, inner.right
        rho = inner.rho + outer.rho
        return _Tree(
            left=left, right=right, proposal=proposal,
            log_sum_weight=float(log_sum_weight),
            rho=rho,
            n_leapfrog=n_leapfrog,
            sum_accept=sum_accept,
            turning=self._turning(left, right, rho),
            divergent=False,
        )

    def transition(
        self,
        q: NDArray,
        log_density: float,
        grad: NDArray,
        step_size: float,
        rng: np.random.Generator,
    ) -> tuple[_State, dict]:
        """
        One NUTS iteration from position q.

        Returns:
            (new state, stats) with stats keys accept_stat, tree_depth,
            n_leapfrog, divergent, energy.
        """
        current = _State(q, self.sample_momentum(rng), log_density, grad)
        h0 = self.hamiltonian(current)

        left = right = proposal = current
        rho = current.p.copy()
        log_sum_weight = 0.0
        n_leapfrog = 0
        sum_accept = 0.0
        divergent = False
        depth = 0

        while depth < self.max_tree_depth:
            direction = 1 if rng.uniform() < 0.5 else -1
            edge = right if direction > 0 else left
            subtree = self._build_tree(edge, direction, depth, step_size, h0, rng)
            depth += 1
            n_leapfrog += subtree.n_leapfrog
            sum_accept += subtree.sum_accept

            if subtree.divergent:
                divergent = True
                break
            if subtree.turning:
                break

            # Biased progressive sampling toward the new subtree
            if np.log(rng.uniform()) < subtree.log_sum_weight - log_sum_weight:
                proposal = subtree.proposal
            log_sum_weight = float(np.logaddexp(log_sum_weight, subtree.log_sum_weight))

            if direction > 0:
                right = subtree.right
            else:
                left = subtree.left
            rho = rho + subtree.rho
            if self._turning(left, right, rho):
                break

        stats = {
            'accept_stat': sum_accept / max(n_leapfrog, 1),
            'tree_depth': depth,
            'n_leapfrog': n_leapfrog,
            'divergent': divergent,
            'energy': self.hamiltonian(proposal),
        }
        return proposal, stats


def find_reasonable_step_size(
    kernel: NUTSKernel,
    q: NDArray,
    log_density: float,
    grad: NDArray,
    rng: np.random.Generator,
    step_size: float = 1.0,
    max_iter: int = 100,
) -> float:
    """
    Double or halve the step size until the one-step acceptance crosses 0.8.
    """
    log_target = np.log(0.8)
    direction = 0
    for _ in range(max_iter):
        state = _State(q, kernel.sample_momentum(rng), log_density, grad)
        h0 = kernel.hamiltonian(state)
        new = kernel.leapfrog(state, step_size)
        delta = h0 - kernel.hamiltonian(new)
        if not np.isfinite(delta):
            delta = -np.inf
        if direction == 0:
            direction = 1 if delta > log_target else -1
        if direction == 1 and not delta > log_target:
            break
        if direction == -1 and not delta < log_target:
            break
        step_size = step_size * 2.0 if direction == 1 else step_size * 0.5
        if step_size > 1e7 or step_size < 1e-10:
            break
    return float(step_size)


def _check_interrupt(cancel_event, deadline, chain_id: int, iteration: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise SamplingCancelled(
            f"Chain {chain_id} cancelled at iteration {iteration}",
            chain_id=chain_id,
            iteration=iteration,
        )
    if deadline is not None and deadline.expired():
        raise SamplingTimeout(
            f"Chain {chain_id} exceeded the {deadline.seconds:g}s timeout at "
            f"iteration {iteration}",
            chain_id=chain_id,
            iteration=iteration,
            timeout=deadline.seconds,
        )


def run_chain(
    log_density: LogDensityFn,
    dim: int,
    *,
    chain_id: int,
    seed_sequence: np.random.SeedSequence,
    n_warmup: int,
    n_samples: int,
    target_accept: float,
    max_tree_depth: int,
    max_delta_energy: float,
    adapt_mass_matrix: bool = True,
    init: NDArray | None = None,
    init_radius: float = 2.0,
    cancel_event=None,
    deadline=None,
) -> tuple[Chain, dict[str, float]]:
    """
    Run warmup and sampling for one chain.

    Returns:
        (Chain, timing) where timing has 'warmup' and 'sampling' seconds.

    Raises:
        NonFiniteDensity: Log density or gradient not finite at the
            initial point.
        SamplingCancelled / SamplingTimeout: Interrupted between iterations.
    """
    rng = np.random.default_rng(seed_sequence)
    if init is None:
        q = rng.uniform(-init_radius, init_radius, size=dim)
    else:
        q = np.array(init, dtype=np.float64)

    lp, grad = log_density(q)
    bad_grad = int(np.sum(~np.isfinite(grad)))
    if not np.isfinite(lp) or bad_grad:
        raise NonFiniteDensity(
            f"Chain {chain_id}: log density {lp} with {bad_grad} non-finite "
            f"gradient entries at the initial point",
            chain_id=chain_id,
            log_density=float(lp),
            n_nonfinite_gradient=bad_grad,
        )
    initial_point = q.copy()

    kernel = NUTSKernel(log_density, np.ones(dim), max_tree_depth, max_delta_energy)
    step_size = find_reasonable_step_size(kernel, q, lp, grad, rng)
    init_step_size = step_size
    adapter = WindowedAdaptation(
        dim, n_warmup, step_size, target_accept, adapt_mass_matrix
    )

    timing = {}
    start = time.perf_counter()
    for it in range(n_warmup):
        _check_interrupt(cancel_event, deadline, chain_id, it)
        state, stats = kernel.transition(q, lp, grad, adapter.step_size, rng)
        q, lp, grad = state.q, state.log_density, state.grad
        if adapter.update(it, q, stats['accept_stat']):
            kernel.inv_mass_diag = adapter.inv_mass_diag
            adapter.restart_step_size(
                find_reasonable_step_size(kernel, q, lp, grad, rng, adapter.step_size)
            )
    timing['warmup'] = time.perf_counter() - start

    step_size = adapter.step_size
    draws = np.empty((n_samples, dim))
    log_dens = np.empty(n_samples)
    tree_depth = np.empty(n_samples, dtype=np.int64)
    n_leapfrog = np.empty(n_samples, dtype=np.int64)
    divergent = np.zeros(n_samples, dtype=bool)
    accept = np.empty(n_samples)
    energy = np.empty(n_samples)

    start = time.perf_counter()
    for i in range(n_samples):
        _check_interrupt(cancel_event, deadline, chain_id, n_warmup + i)
        state, stats = kernel.transition(q, lp, grad, step_size, rng)
        q, lp, grad = state.q, state.log_density, state.grad
        draws[i] = q
        log_dens[i] = lp
        tree_depth[i] = stats['tree_depth']
        n_leapfrog[i] = stats['n_leapfrog']
        divergent[i] = stats['divergent']
        accept[i] = stats['accept_stat']
        energy[i] = stats['energy']
    timing['sampling'] = time.perf_counter() - start

    chain = Chain(
        chain_id=chain_id,
        draws=draws,
        log_density=log_dens,
        step_size=np.full(n_samples, step_size),
        tree_depth=tree_depth,
        n_leapfrog=n_leapfrog,
        divergent=divergent,
        accept_stat=accept,
        energy=energy,
        adaptation=AdaptationInfo(
            step_size=float(step_size),
            inv_mass_diag=kernel.inv_mass_diag.copy(),
            init_step_size=float(init_step_size),
            initial_point=initial_point,
        ),
        seed_entropy=seed_sequence.entropy,
        spawn_key=tuple(seed_sequence.spawn_key),
    )
    return chain, timing
