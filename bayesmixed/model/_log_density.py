"""
Log posterior density and its gradient on the unconstrained scale.

For the layout in _parameterization.py:

    log p(u) = Σ_i log N(y_i | x_i β + zr_i b_{g_i}, σ)
             + log p(β) + log p(σ) + log σ
             + Σ_k [log p(τ_k) + log τ_k]
             + log LKJ(L | η) + log |J_corr|
             + Σ log N(z | 0, 1)

Gradients are derived by hand. With r = y - μ and G_jk = Σ_{i∈j} zr_ik r_i / σ²
(the likelihood gradient with respect to b_jk) and M = diag(τ) L:

    ∂/∂β       = Xᵀ r / σ²
    ∂/∂log σ   = -n + Σ r² / σ²
    ∂/∂z       = G M - z
    ∂/∂M       = Gᵀ z            → ∂/∂τ_k = Σ_l ∂M_kl L_kl,  ∂/∂L_kl = τ_k ∂M_kl
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from bayesmixed.data import Dataset
from bayesmixed.model._parameterization import (
    ParameterLayout,
    corr_cholesky,
    corr_cholesky_grad,
    corr_cholesky_log_jacobian,
)
from bayesmixed.model.priors import log_normal_pdf
from bayesmixed.model.spec import (
    ModelSpec,
    INTERCEPT_CLASS,
    SLOPE_CLASS,
    RESIDUAL_SCALE_CLASS,
    GROUP_SCALE_CLASS,
    GROUP_COVARIANCE_CLASS,
)

_HALF_LOG_2PI = 0.5 * np.log(2.0 * np.pi)


def build_layout(dataset: Dataset, spec: ModelSpec) -> ParameterLayout:
    return ParameterLayout(
        fixed_terms=spec.fixed_terms,
        random_terms=spec.random_terms,
        group_levels=tuple(str(g) for g in dataset.group_levels),
    )


class LogDensity:
    """
    Log posterior of a ModelSpec on a Dataset, evaluated at unconstrained u.

    Holds only read-only arrays after construction, so one instance can be
    shared by chains running in different threads.
    """

    def __init__(self, dataset: Dataset, spec: ModelSpec):
        spec.check_priors()
        spec.check_dataset(dataset)
        self.layout = build_layout(dataset, spec)
        self.y = dataset.response
        self.X = dataset.design_matrix(spec.fixed_terms)
        self.Zr = (
            dataset.design_matrix(spec.random_terms)
            if spec.random_terms else np.zeros((dataset.n_observations, 0))
        )
        self.codes = dataset.group_codes
        self.n = dataset.n_observations

        # One prior per fixed term: intercept class for the intercept column
        p = self.layout.p
        self._beta_priors = [
            spec.prior(INTERCEPT_CLASS if i == 0 else SLOPE_CLASS) for i in range(p)
        ]
        self._sigma_prior = spec.prior(RESIDUAL_SCALE_CLASS)
        self._tau_prior = spec.prior(GROUP_SCALE_CLASS) if self.layout.q else None
        self._lkj = spec.prior(GROUP_COVARIANCE_CLASS) if self.layout.q > 1 else None

    @property
    def dim(self) -> int:
        return self.layout.dim

    def unpack(self, u: NDArray) -> tuple[NDArray, float, NDArray, NDArray, NDArray, NDArray]:
        """(beta, sigma, tau, cpc, L, z) from an unconstrained vector."""
        lay = self.layout
        beta = u[lay.beta]
        sigma = float(np.exp(u[lay.log_sigma]))
        tau = np.exp(u[lay.log_tau])
        cpc = np.tanh(u[lay.corr])
        L = corr_cholesky(cpc, lay.q)
        z = u[lay.z].reshape(lay.n_groups, lay.q)
        return beta, sigma, tau, cpc, L, z

    def linear_predictor(self, beta: NDArray, b: NDArray) -> NDArray:
        mu = self.X @ beta
        if self.layout.q:
            mu = mu + np.sum(self.Zr * b[self.codes], axis=1)
        return mu

    def __call__(self, u: NDArray) -> tuple[float, NDArray]:
        """Log density and gradient at u."""
        lay = self.layout
        beta, sigma, tau, cpc, L, z = self.unpack(u)
        q = lay.q
        M = tau[:, None] * L
        b = z @ M.T

        mu = self.linear_predictor(beta, b)
        r = self.y - mu
        inv_var = 1.0 / (sigma * sigma)
        ss = float(r @ r)
        log_sigma = u[lay.log_sigma]

        lp = -0.5 * ss * inv_var - self.n * (log_sigma + _HALF_LOG_2PI)
        grad = np.zeros(lay.dim)

        # Fixed effects
        grad[lay.beta] = self.X.T @ r * inv_var
        for i, prior in enumerate(self._beta_priors):
            lp += float(prior.logpdf(beta[i]))
            grad[i] += float(prior.grad_logpdf(beta[i]))

        # Residual scale (log transform, Jacobian log σ)
        lp += float(self._sigma_prior.logpdf(sigma)) + log_sigma
        grad[lay.log_sigma] = (
            -self.n + ss * inv_var
            + float(self._sigma_prior.grad_logpdf(sigma)) * sigma + 1.0
        )

        if q:
            G = np.empty((lay.n_groups, q))
            wr = r * inv_var
            for k in range(q):
                G[:, k] = np.bincount(
                    self.codes, weights=self.Zr[:, k] * wr, minlength=lay.n_groups
                )

            # Standard-normal prior on z
            lp += float(-0.5 * np.sum(z * z)) - z.size * _HALF_LOG_2PI
            grad[lay.z] = (G @ M - z).ravel()

            dM = G.T @ z
            dtau = np.sum(dM * L, axis=1)
            dL = tau[:, None] * dM

            # Group scales (log transform)
            lp += float(np.sum(self._tau_prior.logpdf(tau))) + float(np.sum(u[lay.log_tau]))
            grad[lay.log_tau] = (dtau + self._tau_prior.grad_logpdf(tau)) * tau + 1.0

            if q > 1:
                lp += float(self._lkj.logpdf(L))
                diag = np.arange(1, q)
                dL[diag, diag] += self._lkj.grad_logpdf(L)
                lp += corr_cholesky_log_jacobian(cpc, q)
                grad[lay.corr] = corr_cholesky_grad(cpc, L, np.tril(dL))

        return float(lp), grad

    def log_density(self, u: NDArray) -> float:
        return self(u)[0]

    # === Constrained-scale likelihood (predictive, LOO) ===

    def pointwise_log_likelihood(self, constrained: NDArray) -> NDArray:
        """
        log p(y_i | θ_s) for constrained draws (S, d) → (S, n).
        """
        lay = self.layout
        beta = constrained[:, lay.beta]
        sigma = constrained[:, lay.log_sigma]
        mu = beta @ self.X.T
        if lay.q:
            b = constrained[:, lay.z].reshape(-1, lay.n_groups, lay.q)
            # (S, n, q) effects for each observation's group
            mu = mu + np.einsum('snk,nk->sn', b[:, self.codes, :], self.Zr)
        return log_normal_pdf(self.y[None, :], mu, sigma[:, None])

