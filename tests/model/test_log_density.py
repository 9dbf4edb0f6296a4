"""
Tests for the unconstrained parameterization and the log posterior.

Gradients are checked against central finite differences for all three
model variants.
"""

import numpy as np
import pytest
from scipy import stats

from bayesmixed import Dataset, ModelSpec, default_priors
from bayesmixed.core.exceptions import ValidationError
from bayesmixed.model._log_density import LogDensity
from bayesmixed.model._parameterization import (
    corr_cholesky,
    corr_cholesky_grad,
    corr_cholesky_log_jacobian,
)
from bayesmixed.model.priors import LKJ


def _finite_difference(f, u, h=1e-6):
    grad = np.empty_like(u)
    for i in range(len(u)):
        up, dn = u.copy(), u.copy()
        up[i] += h
        dn[i] -= h
        grad[i] = (f(up) - f(dn)) / (2 * h)
    return grad


@pytest.fixture
def two_covariate_dataset(make_data):
    d = make_data(seed=5, per_group=6)
    rng = np.random.default_rng(5)
    return Dataset.from_arrays(
        response=d['y'],
        covariates={'age': d['x'], 'income': rng.standard_normal(len(d['y']))},
        groups=d['county'],
        group_name='county',
    )


def _spec(variant, ds, **kwargs):
    build = getattr(ModelSpec, variant)
    return build(list(ds.covariate_names), grouping_factor='county',
                 priors=default_priors(ds), **kwargs)


class TestCorrCholesky:

    @pytest.mark.parametrize('q', [2, 3, 4])
    def test_unit_rows(self, q, rng):
        cpc = np.tanh(rng.standard_normal(q * (q - 1) // 2))
        L = corr_cholesky(cpc, q)
        np.testing.assert_allclose(np.sum(L ** 2, axis=1), 1.0)
        assert np.all(np.diag(L) > 0)

    def test_q2_correlation_is_cpc(self):
        L = corr_cholesky(np.array([0.3]), 2)
        C = L @ L.T
        assert C[1, 0] == pytest.approx(0.3)

    def test_gradient_includes_jacobian(self, rng):
        q = 3
        y = rng.standard_normal(3) * 0.7
        weights = np.tril(rng.standard_normal((q, q)))
        prior = LKJ(1.7)

        def f(yv):
            cpc = np.tanh(yv)
            L = corr_cholesky(cpc, q)
            return (np.sum(weights * L) + prior.logpdf(L)
                    + corr_cholesky_log_jacobian(cpc, q))

        cpc = np.tanh(y)
        L = corr_cholesky(cpc, q)
        grad_L = weights.copy()
        grad_L[[1, 2], [1, 2]] += prior.grad_logpdf(L)
        np.testing.assert_allclose(
            corr_cholesky_grad(cpc, L, grad_L), _finite_difference(f, y),
            rtol=1e-5, atol=1e-6,
        )


class TestLogDensity:

    @pytest.mark.parametrize('variant,kwargs', [
        ('pooled', {}),
        ('varying_intercept', {}),
        ('varying_intercept_slope', {'random_slope': 'income'}),
    ])
    def test_gradient_matches_finite_difference(self, two_covariate_dataset, rng,
                                                variant, kwargs):
        ds = two_covariate_dataset
        ld = LogDensity(ds, _spec(variant, ds, **kwargs))
        u = rng.uniform(-1.0, 1.0, size=ld.dim)
        lp, grad = ld(u)
        assert np.isfinite(lp)
        np.testing.assert_allclose(
            grad, _finite_difference(ld.log_density, u), rtol=1e-5, atol=1e-3,
        )

    def test_dimensions(self, two_covariate_dataset):
        ds = two_covariate_dataset
        pooled = LogDensity(ds, _spec('pooled', ds))
        vi = LogDensity(ds, _spec('varying_intercept', ds))
        vis = LogDensity(ds, _spec('varying_intercept_slope', ds))
        assert pooled.dim == 3 + 1
        assert vi.dim == 3 + 1 + 1 + 8
        assert vis.dim == 3 + 1 + 2 + 1 + 16

    def test_pooled_matches_direct_computation(self, county_dataset, rng):
        ds = county_dataset
        spec = _spec('pooled', ds)
        ld = LogDensity(ds, spec)
        u = rng.standard_normal(ld.dim)
        beta, log_sigma = u[:2], u[2]
        sigma = np.exp(log_sigma)
        mu = beta[0] + beta[1] * ds.covariate('age')
        expected = (
            stats.norm.logpdf(ds.response, mu, sigma).sum()
            + spec.prior('intercept').logpdf(beta[0])
            + spec.prior('slope').logpdf(beta[1])
            + spec.prior('residual_scale').logpdf(sigma)
            + log_sigma
        )
        assert ld.log_density(u) == pytest.approx(expected)

    def test_rejects_bad_spec(self, county_dataset):
        spec = ModelSpec.pooled('income', grouping_factor='county',
                                priors=default_priors(county_dataset))
        with pytest.raises(ValidationError):
            LogDensity(county_dataset, spec)


class TestConstrain:

    def test_scales_positive_and_effects(self, two_covariate_dataset, rng):
        ds = two_covariate_dataset
        ld = LogDensity(ds, _spec('varying_intercept_slope', ds, random_slope='income'))
        lay = ld.layout
        u = rng.standard_normal(lay.dim)
        c = lay.constrain(u)
        assert c[lay.log_sigma] == pytest.approx(np.exp(u[lay.log_sigma]))
        assert np.all(c[lay.log_tau] > 0)
        beta, sigma, tau, cpc, L, z = ld.unpack(u)
        b = z @ (tau[:, None] * L).T
        np.testing.assert_allclose(c[lay.z], b.ravel())
        L_back = lay.corr_cholesky_from_constrained(c[lay.corr])
        np.testing.assert_allclose(L_back, L, atol=1e-12)

    def test_names(self, county_dataset):
        ld = LogDensity(county_dataset, _spec('varying_intercept', county_dataset))
        names = ld.layout.constrained_names()
        assert names[:4] == ('beta[intercept]', 'beta[age]', 'sigma', 'tau[intercept]')
        assert names[4] == 'b[c0,intercept]'
        assert len(names) == ld.dim

    def test_pointwise_log_likelihood(self, county_dataset, rng):
        ds = county_dataset
        ld = LogDensity(ds, _spec('varying_intercept', ds))
        u = rng.standard_normal((5, ld.dim))
        c = ld.layout.constrain_draws(u)
        ll = ld.pointwise_log_likelihood(c)
        assert ll.shape == (5, ds.n_observations)
        s = 2
        beta = c[s, :2]
        b = c[s, ld.layout.z]
        mu = beta[0] + beta[1] * ds.covariate('age') + b[ds.group_codes]
        np.testing.assert_allclose(
            ll[s], stats.norm.logpdf(ds.response, mu, c[s, 2])
        )
