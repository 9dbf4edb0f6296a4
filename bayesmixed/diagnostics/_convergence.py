"""
Convergence statistics for MCMC draws.

All functions take draws shaped (n_chains, n_draws) or
(n_chains, n_draws, n_params) and return one value per parameter.

References:
    Gelman, A., & Rubin, D. B. (1992). Inference from iterative simulation
    using multiple sequences. Statistical Science, 7(4), 457-472.
    Geyer, C. J. (1992). Practical Markov chain Monte Carlo. Statistical
    Science, 7(4), 473-483.
    Vehtari, A., Gelman, A., Simpson, D., Carpenter, B., & Bürkner, P.-C.
    (2021). Rank-normalization, folding, and localization: an improved
    R-hat. Bayesian Analysis, 16(2), 667-718.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bayesmixed.core.exceptions import DimensionError, ValidationError


def as_chain_array(draws: ArrayLike) -> NDArray:
    """Coerce to (n_chains, n_draws, n_params) float64."""
    arr = np.asarray(draws, dtype=np.float64)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    if arr.ndim != 3:
        raise DimensionError(
            f"draws: expected (chains, draws) or (chains, draws, params), "
            f"got shape {arr.shape}"
        )
    if arr.shape[0] < 1:
        raise ValidationError("draws: need at least one chain")
    if arr.shape[1] < 4:
        raise ValidationError(
            f"draws: need at least 4 draws per chain, got {arr.shape[1]}"
        )
    return arr


def _split(chains: NDArray) -> NDArray:
    """Split every chain in half; an odd middle draw is dropped."""
    half = chains.shape[1] // 2
    return np.concatenate([chains[:, :half], chains[:, -half:]], axis=0)


def split_rhat(draws: ArrayLike) -> NDArray:
    """
    Split-chain potential scale reduction factor per parameter.

    Each chain is split into halves, so a single chain still yields two
    sequences and within-chain drift inflates R-hat.

    Returns:
        R-hat per parameter (n_params,). NaN where the within-sequence
        variance is zero.
    """
    chains = _split(as_chain_array(draws))
    m, n = chains.shape[0], chains.shape[1]

    chain_means = chains.mean(axis=1)
    chain_vars = chains.var(axis=1, ddof=1)
    grand_means = chain_means.mean(axis=0)

    B = n * ((chain_means - grand_means) ** 2).sum(axis=0) / (m - 1)
    W = chain_vars.mean(axis=0)

    var_hat = ((n - 1) / n) * W + (B / n)
    with np.errstate(divide='ignore', invalid='ignore'):
        rhat = np.sqrt(var_hat / W)
    return np.where(W > 0, rhat, np.nan)


def _autocovariance(x: NDArray) -> NDArray:
    """
    Autocovariance of each column of x (n, k) at all lags via FFT.

    Biased estimator (divides by n), as used for ESS.
    """
    n = x.shape[0]
    centered = x - x.mean(axis=0)
    size = 2 ** int(np.ceil(np.log2(2 * n)))
    f = np.fft.rfft(centered, n=size, axis=0)
    acov = np.fft.irfft(f * np.conj(f), n=size, axis=0)[:n]
    return acov / n


def effective_sample_size(draws: ArrayLike) -> NDArray:
    """
    Effective sample size per parameter.

    Combines chains through the split-chain variance estimate, then sums
    autocorrelations with Geyer's initial monotone sequence: pairs
    ρ_{2t} + ρ_{2t+1} are summed while positive and forced
    non-increasing.

    Returns:
        ESS per parameter (n_params,). NaN for constant parameters.
    """
    chains = _split(as_chain_array(draws))
    m, n, k = chains.shape

    acov = np.stack([_autocovariance(chains[c]) for c in range(m)])  # (m, n, k)
    chain_means = chains.mean(axis=1)
    mean_var = acov[:, 0, :].mean(axis=0) * n / (n - 1)
    var_plus = mean_var * (n - 1) / n
    if m > 1:
        var_plus = var_plus + chain_means.var(axis=0, ddof=1)

    ess = np.full(k, np.nan)
    for j in range(k):
        if not var_plus[j] > 0:
            continue
        rho = 1.0 - (mean_var[j] - acov[:, :, j].mean(axis=0)) / var_plus[j]
        rho[0] = 1.0
        pair_sums = []
        t = 0
        while t + 1 < n:
            p = rho[t] + rho[t + 1]
            if p < 0:
                break
            if pair_sums and p > pair_sums[-1]:
                p = pair_sums[-1]
            pair_sums.append(p)
            t += 2
        tau = -1.0 + 2.0 * float(np.sum(pair_sums)) if pair_sums else 1.0
        # Antithetic chains can push tau below 1/log10(m n); cap as Stan does
        tau = max(tau, 1.0 / np.log10(m * n))
        ess[j] = m * n / tau
    return ess


def autocorrelation(draws: ArrayLike, max_lag: int = 20) -> NDArray:
    """
    Autocorrelation at lags 0..max_lag, averaged over chains.

    Returns:
        Array (n_params, max_lag + 1); column 0 is 1.
    """
    chains = as_chain_array(draws)
    n = chains.shape[1]
    max_lag = min(int(max_lag), n - 1)
    acfs = []
    for c in range(chains.shape[0]):
        acov = _autocovariance(chains[c])
        with np.errstate(divide='ignore', invalid='ignore'):
            acfs.append(acov[:max_lag + 1] / acov[0])
    return np.mean(acfs, axis=0).T
