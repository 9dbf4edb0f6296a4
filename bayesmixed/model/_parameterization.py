"""
Unconstrained parameterization of the hierarchical model.

The sampler moves on R^d. The unconstrained vector is laid out as

    [ beta (p) | log sigma | log tau (q) | y_corr (q(q-1)/2) | z (J*q) ]

and maps to the constrained parameters by

    sigma = exp(log sigma),  tau = exp(log tau)
    L     = corr_cholesky(tanh(y_corr))          correlation Cholesky factor
    b_j   = diag(tau) L z_j                      non-centered group effects

Canonical partial correlations are stored row-major over the strict lower
triangle: (1,0), (2,0), (2,1), ...

References:
    Stan Development Team. Stan Reference Manual, "Cholesky factors of
    correlation matrices" (constraint transforms).
    Papaspiliopoulos, Roberts & Sköld (2007). A general framework for the
    parametrization of hierarchical models. Statistical Science.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


def corr_cholesky(cpc: NDArray, q: int) -> NDArray:
    """
    Cholesky factor of a correlation matrix from canonical partial correlations.

    Args:
        cpc: Partial correlations in (-1, 1), length q(q-1)/2, row-major
            over the strict lower triangle.
        q: Matrix dimension.

    Returns:
        Lower-triangular L (q, q) with unit-norm rows.
    """
    L = np.zeros((q, q))
    if q == 0:
        return L
    L[0, 0] = 1.0
    idx = 0
    for i in range(1, q):
        remaining = 1.0
        for j in range(i):
            L[i, j] = cpc[idx] * np.sqrt(remaining)
            remaining -= L[i, j] ** 2
            idx += 1
        L[i, i] = np.sqrt(max(remaining, 0.0))
    return L


def corr_cholesky_log_jacobian(cpc: NDArray, q: int) -> float:
    """
    log |d L_strict / d y| for L = corr_cholesky(tanh(y)).

    Σ_{i>j} [ log(1 - z_ij²) + 0.5 log w_ij ],  w_ij = Π_{k<j} (1 - z_ik²)
    """
    total = 0.0
    idx = 0
    for i in range(1, q):
        log_w = 0.0
        for j in range(i):
            one_minus = 1.0 - cpc[idx] ** 2
            total += np.log(one_minus) + 0.5 * log_w
            log_w += np.log(one_minus)
            idx += 1
    return float(total)


def corr_cholesky_grad(cpc: NDArray, L: NDArray, grad_L: NDArray) -> NDArray:
    """
    Pull a gradient on L back to the unconstrained correlation parameters.

    Includes the derivative of corr_cholesky_log_jacobian.

    Args:
        cpc: Partial correlations z = tanh(y).
        L: corr_cholesky(cpc).
        grad_L: d f / d L, full (q, q) lower triangle including diagonal.

    Returns:
        d (f + log_jacobian) / d y, same layout as cpc.
    """
    q = L.shape[0]
    out = np.zeros(len(cpc))
    idx = 0
    for i in range(1, q):
        start = idx
        z = cpc[start:start + i]
        c_sq = 1.0 - z * z
        prefix = np.concatenate(([1.0], np.cumprod(np.sqrt(c_sq))))[:i]
        for m in range(i):
            tail = np.dot(grad_L[i, m + 1:i], L[i, m + 1:i]) + grad_L[i, i] * L[i, i]
            dz = grad_L[i, m] * prefix[m] - z[m] / c_sq[m] * tail
            # dz/dy = 1 - z^2; Jacobian terms: -2z (tanh) and -z per later column
            out[start + m] = dz * c_sq[m] - 2.0 * z[m] - (i - 1 - m) * z[m]
        idx += i
    return out


@dataclass(frozen=True)
class ParameterLayout:
    """
    Offsets and names of the unconstrained and constrained vectors.

    Attributes:
        fixed_terms: Fixed-effect term names (p).
        random_terms: Group-varying term names (q).
        group_levels: Group labels (J).
    """
    fixed_terms: tuple[str, ...]
    random_terms: tuple[str, ...]
    group_levels: tuple[str, ...]

    @property
    def p(self) -> int:
        return len(self.fixed_terms)

    @property
    def q(self) -> int:
        return len(self.random_terms)

    @property
    def n_groups(self) -> int:
        return len(self.group_levels)

    @property
    def n_corr(self) -> int:
        return self.q * (self.q - 1) // 2

    @property
    def n_z(self) -> int:
        return self.n_groups * self.q if self.q else 0

    # Slices into the unconstrained vector

    @property
    def beta(self) -> slice:
        return slice(0, self.p)

    @property
    def log_sigma(self) -> int:
        return self.p

    @property
    def log_tau(self) -> slice:
        return slice(self.p + 1, self.p + 1 + self.q)

    @property
    def corr(self) -> slice:
        start = self.p + 1 + self.q
        return slice(start, start + self.n_corr)

    @property
    def z(self) -> slice:
        start = self.p + 1 + self.q + self.n_corr
        return slice(start, start + self.n_z)

    @property
    def dim(self) -> int:
        return self.p + 1 + self.q + self.n_corr + self.n_z

    # Names

    def unconstrained_names(self) -> tuple[str, ...]:
        names = [f"beta[{t}]" for t in self.fixed_terms]
        names.append('log_sigma')
        names += [f"log_tau[{t}]" for t in self.random_terms]
        names += [f"cpc[{a},{b}]" for a, b in self._corr_pairs()]
        names += [
            f"z[{g},{t}]" for g in self.group_levels for t in self.random_terms
        ]
        return tuple(names)

    def constrained_names(self) -> tuple[str, ...]:
        """beta, sigma, tau, lower correlation-Cholesky entries, group effects."""
        names = [f"beta[{t}]" for t in self.fixed_terms]
        names.append('sigma')
        names += [f"tau[{t}]" for t in self.random_terms]
        names += [f"L_corr[{a},{b}]" for a, b in self._corr_pairs()]
        names += [
            f"b[{g},{t}]" for g in self.group_levels for t in self.random_terms
        ]
        return tuple(names)

    def _corr_pairs(self) -> list[tuple[str, str]]:
        rt = self.random_terms
        return [(rt[i], rt[j]) for i in range(1, self.q) for j in range(i)]

    # Transforms

    def constrain(self, u: NDArray) -> NDArray:
        """Map one unconstrained vector to the constrained vector."""
        out = np.empty(self.dim)
        out[self.beta] = u[self.beta]
        out[self.log_sigma] = np.exp(u[self.log_sigma])
        tau = np.exp(u[self.log_tau])
        out[self.log_tau] = tau
        if self.q:
            cpc = np.tanh(u[self.corr])
            L = corr_cholesky(cpc, self.q)
            out[self.corr] = L[np.tril_indices(self.q, -1)]
            z = u[self.z].reshape(self.n_groups, self.q)
            out[self.z] = (z @ (tau[:, None] * L).T).ravel()
        return out

    def constrain_draws(self, draws: NDArray) -> NDArray:
        """Constrain a (..., d) array of unconstrained draws."""
        flat = draws.reshape(-1, self.dim)
        out = np.stack([self.constrain(u) for u in flat]) if len(flat) else flat
        return out.reshape(draws.shape)

    def corr_cholesky_from_constrained(self, strict_lower: NDArray) -> NDArray:
        """Rebuild L (..., q, q) from its stored strict lower triangle."""
        strict_lower = np.asarray(strict_lower)
        lead = strict_lower.shape[:-1]
        L = np.zeros(lead + (self.q, self.q))
        if self.q == 0:
            return L
        rows, cols = np.tril_indices(self.q, -1)
        L[..., rows, cols] = strict_lower
        off = np.sum(L ** 2, axis=-1)
        diag = np.sqrt(np.clip(1.0 - off, 0.0, None))
        idx = np.arange(self.q)
        L[..., idx, idx] = diag
        return L

    def to_dict(self) -> dict:
        return {
            'fixed_terms': list(self.fixed_terms),
            'random_terms': list(self.random_terms),
            'group_levels': list(self.group_levels),
        }
