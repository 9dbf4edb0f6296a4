"""
Warmup adaptation: step size by dual averaging, diagonal inverse mass
matrix by windowed variance estimation.

References:
    Nesterov, Y. (2009). Primal-dual subgradient methods for convex
    problems. Mathematical Programming, 120(1), 221-259.
    Hoffman, M. D., & Gelman, A. (2014). The No-U-Turn Sampler, section 3.2.
    Stan Development Team. Stan Reference Manual, "HMC algorithm
    parameters" (adaptation windows).
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from bayesmixed.defaults import (
    DUAL_AVERAGING_GAMMA,
    DUAL_AVERAGING_T0,
    DUAL_AVERAGING_KAPPA,
    ADAPT_INIT_BUFFER,
    ADAPT_TERM_BUFFER,
    ADAPT_BASE_WINDOW,
)


class DualAveraging:
    """
    Nesterov dual averaging of log step size toward a target acceptance.

    update() returns the step size to use for the next iteration;
    final_step_size is the averaged iterate used after warmup.
    """

    def __init__(
        self,
        step_size: float,
        target_accept: float,
        gamma: float = DUAL_AVERAGING_GAMMA,
        t0: float = DUAL_AVERAGING_T0,
        kappa: float = DUAL_AVERAGING_KAPPA,
    ):
        self.target_accept = target_accept
        self.gamma = gamma
        self.t0 = t0
        self.kappa = kappa
        self.restart(step_size)

    def restart(self, step_size: float) -> None:
        self.mu = np.log(10.0 * step_size)
        self.counter = 0
        self.h_bar = 0.0
        self.log_step = np.log(step_size)
        self.log_step_bar = 0.0

    def update(self, accept_stat: float) -> float:
        self.counter += 1
        t = self.counter
        # Accept statistics outside [0, 1] only arise from non-finite energies
        accept_stat = min(max(float(accept_stat), 0.0), 1.0)
        eta = 1.0 / (t + self.t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (self.target_accept - accept_stat)
        self.log_step = self.mu - np.sqrt(t) / self.gamma * self.h_bar
        weight = t ** (-self.kappa)
        self.log_step_bar = weight * self.log_step + (1.0 - weight) * self.log_step_bar
        return float(np.exp(self.log_step))

    @property
    def final_step_size(self) -> float:
        return float(np.exp(self.log_step_bar))


class WelfordVariance:
    """Running mean and variance of vectors (Welford's algorithm)."""

    def __init__(self, dim: int):
        self.dim = dim
        self.reset()

    def reset(self) -> None:
        self.n = 0
        self.mean = np.zeros(self.dim)
        self.m2 = np.zeros(self.dim)

    def add(self, x: NDArray) -> None:
        self.n += 1
        delta = x - self.mean
        self.mean += delta / self.n
        self.m2 += delta * (x - self.mean)

    def regularized_variance(self) -> NDArray:
        """
        Sample variance shrunk toward 1e-3:

            (n / (n + 5)) var + 1e-3 * 5 / (n + 5)
        """
        n = self.n
        var = self.m2 / (n - 1)
        return (n / (n + 5.0)) * var + 1e-3 * (5.0 / (n + 5.0))


def adaptation_windows(n_warmup: int) -> tuple[int, list[int]]:
    """
    Slow-window layout for mass-matrix adaptation.

    Returns:
        (init_buffer, window_ends) where window_ends are the warmup
        iteration indices (0-based, inclusive) at which the mass matrix
        is re-estimated. Windows double in length; the last one absorbs
        the remainder so it ends where the terminal buffer starts.
    """
    init_buffer = ADAPT_INIT_BUFFER
    term_buffer = ADAPT_TERM_BUFFER
    base_window = ADAPT_BASE_WINDOW
    if n_warmup < 20:
        return n_warmup, []
    if init_buffer + base_window + term_buffer > n_warmup:
        init_buffer = int(0.15 * n_warmup)
        term_buffer = int(0.1 * n_warmup)
        base_window = n_warmup - (init_buffer + term_buffer)

    ends = []
    window = base_window
    start = init_buffer
    slow_end = n_warmup - term_buffer
    while start < slow_end:
        end = start + window
        # Fold a trailing window shorter than twice the next size into this one
        if end + 2 * window > slow_end:
            end = slow_end
        ends.append(end - 1)
        start = end
        window *= 2
    return init_buffer, ends


class WindowedAdaptation:
    """
    Drives step-size and mass-matrix adaptation through warmup.

    Usage per warmup iteration i:
        step_size = adapter.step_size
        ... transition ...
        if adapter.update(i, position, accept_stat):
            # mass matrix changed: re-initialize the step size, then
            adapter.restart_step_size(new_step_size)
    """

    def __init__(
        self,
        dim: int,
        n_warmup: int,
        step_size: float,
        target_accept: float,
        adapt_mass_matrix: bool = True,
    ):
        self.n_warmup = n_warmup
        self.adapt_mass_matrix = adapt_mass_matrix
        self.inv_mass_diag = np.ones(dim)
        self.dual = DualAveraging(step_size, target_accept)
        self.step_size = step_size
        self.variance = WelfordVariance(dim)
        self.init_buffer, self.window_ends = adaptation_windows(n_warmup)
        if not adapt_mass_matrix:
            self.window_ends = []

    def update(self, iteration: int, position: NDArray, accept_stat: float) -> bool:
        """
        Record one warmup transition.

        Returns:
            True when the inverse mass matrix was re-estimated at this
            iteration (the caller should re-initialize the step size).
        """
        self.step_size = self.dual.update(accept_stat)
        if iteration == self.n_warmup - 1:
            self.step_size = self.dual.final_step_size
            return False

        if not self.window_ends:
            return False
        if self.init_buffer <= iteration <= self.window_ends[-1]:
            self.variance.add(position)
            if iteration in self.window_ends and self.variance.n > 1:
                self.inv_mass_diag = self.variance.regularized_variance()
                self.variance.reset()
                return True
        return False

    def restart_step_size(self, step_size: float) -> None:
        self.step_size = step_size
        self.dual.restart(step_size)
