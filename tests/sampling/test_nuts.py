"""
Tests for the NUTS kernel and single-chain driver on known targets.
"""

import threading

import numpy as np
import pytest

from bayesmixed.core.compute.timing import Deadline
from bayesmixed.core.exceptions import (
    NonFiniteDensity, SamplingCancelled, SamplingTimeout,
)
from bayesmixed.sampling._nuts import (
    NUTSKernel, _State, find_reasonable_step_size, run_chain,
)

SCALES = np.array([1.0, 3.0, 0.3])


def gaussian(u):
    """Independent normal target with standard deviations SCALES."""
    z = u / SCALES
    return -0.5 * float(z @ z), -u / SCALES ** 2


def _run(**kwargs):
    defaults = dict(
        chain_id=0,
        seed_sequence=np.random.SeedSequence(7),
        n_warmup=400,
        n_samples=1000,
        target_accept=0.8,
        max_tree_depth=10,
        max_delta_energy=1000.0,
    )
    defaults.update(kwargs)
    return run_chain(gaussian, 3, **defaults)


class TestKernel:

    def test_leapfrog_reversible(self):
        kernel = NUTSKernel(gaussian, np.ones(3), 10, 1000.0)
        q0 = np.array([0.5, -1.0, 0.2])
        lp, grad = gaussian(q0)
        start = _State(q0, np.array([0.3, 0.1, -0.4]), lp, grad)
        fwd = kernel.leapfrog(start, 0.1)
        back = kernel.leapfrog(_State(fwd.q, -fwd.p, fwd.log_density, fwd.grad), 0.1)
        np.testing.assert_allclose(back.q, q0, atol=1e-12)

    def test_energy_nearly_conserved(self):
        kernel = NUTSKernel(gaussian, np.ones(3), 10, 1000.0)
        q0 = np.array([0.5, -1.0, 0.2])
        lp, grad = gaussian(q0)
        state = _State(q0, np.array([0.3, 0.1, -0.4]), lp, grad)
        h0 = kernel.hamiltonian(state)
        for _ in range(20):
            state = kernel.leapfrog(state, 0.01)
        assert kernel.hamiltonian(state) == pytest.approx(h0, abs=1e-3)

    def test_transition_stats(self, rng):
        kernel = NUTSKernel(gaussian, SCALES ** 2, 10, 1000.0)
        q = np.zeros(3)
        lp, grad = gaussian(q)
        state, stats = kernel.transition(q, lp, grad, 0.5, rng)
        assert set(stats) == {'accept_stat', 'tree_depth', 'n_leapfrog',
                              'divergent', 'energy'}
        assert 0.0 <= stats['accept_stat'] <= 1.0
        assert stats['n_leapfrog'] >= 1
        assert 1 <= stats['tree_depth'] <= 10

    def test_huge_step_diverges(self, rng):
        kernel = NUTSKernel(gaussian, np.ones(3), 10, 1.0)
        q = np.ones(3)
        lp, grad = gaussian(q)
        _, stats = kernel.transition(q, lp, grad, 50.0, rng)
        assert stats['divergent']

    def test_max_tree_depth_respected(self, rng):
        kernel = NUTSKernel(gaussian, np.ones(3), 2, 1000.0)
        q = np.zeros(3)
        lp, grad = gaussian(q)
        _, stats = kernel.transition(q, lp, grad, 1e-3, rng)
        assert stats['tree_depth'] == 2
        assert stats['n_leapfrog'] == 3

    def test_step_size_heuristic_scales(self, rng):
        narrow = lambda u: (-0.5 * float(u @ u) * 1e4, -u * 1e4)
        kernel = NUTSKernel(narrow, np.ones(2), 10, 1000.0)
        q = np.full(2, 0.01)
        lp, grad = narrow(q)
        assert find_reasonable_step_size(kernel, q, lp, grad, rng) < 0.1


class TestRunChain:

    def test_recovers_gaussian_moments(self):
        chain, timing = _run()
        assert chain.draws.shape == (1000, 3)
        np.testing.assert_allclose(chain.draws.mean(axis=0), 0.0, atol=0.25 * SCALES)
        np.testing.assert_allclose(chain.draws.std(axis=0), SCALES, rtol=0.2)
        assert set(timing) == {'warmup', 'sampling'}

    def test_mass_matrix_learns_scales(self):
        chain, _ = _run()
        ratio = chain.adaptation.inv_mass_diag / SCALES ** 2
        assert np.all((ratio > 0.3) & (ratio < 3.0))

    def test_reproducible(self):
        a, _ = _run(n_warmup=100, n_samples=50)
        b, _ = _run(n_warmup=100, n_samples=50)
        np.testing.assert_array_equal(a.draws, b.draws)
        np.testing.assert_array_equal(a.tree_depth, b.tree_depth)

    def test_explicit_init(self):
        init = np.array([0.1, 0.2, 0.3])
        chain, _ = _run(n_warmup=10, n_samples=5, init=init)
        np.testing.assert_array_equal(chain.adaptation.initial_point, init)

    def test_non_finite_initial_point(self):
        bad = lambda u: (float('-inf'), np.zeros(3))
        with pytest.raises(NonFiniteDensity) as exc:
            run_chain(bad, 3, chain_id=4, seed_sequence=np.random.SeedSequence(1),
                      n_warmup=10, n_samples=10, target_accept=0.8,
                      max_tree_depth=5, max_delta_energy=1000.0)
        assert exc.value.chain_id == 4

    def test_cancel_before_start(self):
        event = threading.Event()
        event.set()
        with pytest.raises(SamplingCancelled) as exc:
            _run(cancel_event=event)
        assert exc.value.iteration == 0

    def test_timeout(self):
        with pytest.raises(SamplingTimeout):
            _run(n_warmup=100000, deadline=Deadline(0.05))
