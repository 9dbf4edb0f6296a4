"""
Tests for warmup adaptation: windows, dual averaging, Welford variance.
"""

import numpy as np
import pytest

from bayesmixed.sampling._adaptation import (
    DualAveraging,
    WelfordVariance,
    WindowedAdaptation,
    adaptation_windows,
)


class TestAdaptationWindows:

    def test_stan_default_layout(self):
        init_buffer, ends = adaptation_windows(1000)
        assert init_buffer == 75
        assert ends == [99, 149, 249, 449, 949]

    def test_short_warmup_scaled(self):
        init_buffer, ends = adaptation_windows(100)
        assert init_buffer == 15
        assert ends == [89]

    def test_very_short_warmup_no_mass_adaptation(self):
        assert adaptation_windows(10) == (10, [])

    @pytest.mark.parametrize('n', [150, 200, 500, 2000])
    def test_last_window_ends_before_terminal_buffer(self, n):
        _, ends = adaptation_windows(n)
        assert ends == sorted(ends)
        assert ends[-1] < n - 1


class TestDualAveraging:

    def test_converges_toward_target(self):
        # Acceptance decays with step size: a(e) = exp(-e); target 0.8
        da = DualAveraging(step_size=1.0, target_accept=0.8)
        step = 1.0
        for _ in range(2000):
            step = da.update(np.exp(-step))
        assert da.final_step_size == pytest.approx(-np.log(0.8), rel=0.1)

    def test_clips_accept_stat(self):
        da = DualAveraging(step_size=0.5, target_accept=0.8)
        assert np.isfinite(da.update(5.0))
        assert np.isfinite(da.update(-1.0))


class TestWelfordVariance:

    def test_matches_numpy(self, rng):
        x = rng.standard_normal((200, 3)) * [1.0, 3.0, 0.2]
        w = WelfordVariance(3)
        for row in x:
            w.add(row)
        np.testing.assert_allclose(w.mean, x.mean(axis=0))
        var = x.var(axis=0, ddof=1)
        n = 200
        expected = (n / (n + 5.0)) * var + 1e-3 * (5.0 / (n + 5.0))
        np.testing.assert_allclose(w.regularized_variance(), expected)


class TestWindowedAdaptation:

    def test_updates_at_window_ends(self, rng):
        adapter = WindowedAdaptation(2, 1000, 0.5, 0.8)
        hits = [
            it for it in range(1000)
            if adapter.update(it, rng.standard_normal(2) * [1.0, 4.0], 0.8)
        ]
        assert hits == [99, 149, 249, 449, 949]
        assert adapter.inv_mass_diag[1] > adapter.inv_mass_diag[0]

    def test_mass_adaptation_disabled(self, rng):
        adapter = WindowedAdaptation(2, 1000, 0.5, 0.8, adapt_mass_matrix=False)
        assert not any(adapter.update(it, rng.standard_normal(2), 0.8) for it in range(1000))
        np.testing.assert_array_equal(adapter.inv_mass_diag, 1.0)

    def test_final_step_is_averaged(self):
        adapter = WindowedAdaptation(1, 50, 0.5, 0.8, adapt_mass_matrix=False)
        for it in range(50):
            adapter.update(it, np.zeros(1), 0.9)
        assert adapter.step_size == adapter.dual.final_step_size
