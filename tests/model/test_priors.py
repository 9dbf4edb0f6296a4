"""
Tests for prior families and the prior resolver.
"""

import numpy as np
import pytest
from scipy import stats

from bayesmixed.core.exceptions import ValidationError
from bayesmixed.model.priors import (
    Exponential,
    HalfCauchy,
    HalfNormal,
    HalfStudentT,
    LKJ,
    Normal,
    StudentT,
    resolve_prior,
)

SCALAR_PRIORS = [
    Normal(1.0, 2.0),
    StudentT(4.0, 0.5, 1.5),
    HalfNormal(2.0),
    HalfStudentT(3.0, 1.0),
    HalfCauchy(2.0),
    Exponential(0.5),
]


class TestScalarDensities:

    def test_normal_matches_scipy(self):
        x = np.linspace(-3, 3, 7)
        np.testing.assert_allclose(
            Normal(1.0, 2.0).logpdf(x), stats.norm.logpdf(x, 1.0, 2.0)
        )

    def test_half_normal_matches_scipy(self):
        x = np.linspace(0.1, 4, 7)
        np.testing.assert_allclose(
            HalfNormal(2.0).logpdf(x), stats.halfnorm.logpdf(x, scale=2.0)
        )

    def test_half_cauchy_matches_scipy(self):
        x = np.linspace(0.1, 4, 7)
        np.testing.assert_allclose(
            HalfCauchy(2.0).logpdf(x), stats.halfcauchy.logpdf(x, scale=2.0)
        )

    def test_exponential_matches_scipy(self):
        x = np.linspace(0.1, 4, 7)
        np.testing.assert_allclose(
            Exponential(0.5).logpdf(x), stats.expon.logpdf(x, scale=2.0)
        )

    def test_half_student_t_normalized(self):
        from scipy.integrate import quad

        prior = HalfStudentT(3.0, 1.0)
        total, _ = quad(lambda v: np.exp(prior.logpdf(v)), 0, np.inf)
        assert total == pytest.approx(1.0, abs=1e-6)

    @pytest.mark.parametrize('prior', SCALAR_PRIORS, ids=repr)
    def test_gradient_matches_finite_difference(self, prior):
        x = np.array([0.3, 0.9, 2.2])
        h = 1e-6
        fd = (prior.logpdf(x + h) - prior.logpdf(x - h)) / (2 * h)
        np.testing.assert_allclose(prior.grad_logpdf(x), fd, rtol=1e-5, atol=1e-7)


class TestSampling:

    @pytest.mark.parametrize(
        'prior', [p for p in SCALAR_PRIORS if p.support == 'positive'], ids=repr
    )
    def test_scale_draws_positive(self, prior, rng):
        draws = prior.sample(rng, size=2000)
        assert draws.shape == (2000,)
        assert np.all(draws >= 0)

    def test_normal_moments(self, rng):
        draws = Normal(3.0, 0.5).sample(rng, size=20000)
        assert draws.mean() == pytest.approx(3.0, abs=0.02)
        assert draws.std() == pytest.approx(0.5, abs=0.02)


class TestLKJ:

    def test_sample_is_correlation_cholesky(self, rng):
        L = LKJ(2.0).sample(rng, size=50, q=3)
        assert L.shape == (50, 3, 3)
        np.testing.assert_allclose(np.sum(L ** 2, axis=-1), 1.0)
        assert np.all(np.triu(L, 1) == 0)

    def test_eta_one_q2_uniform_correlation(self, rng):
        # For q = 2 the correlation is Beta(eta, eta) on (-1, 1)
        L = LKJ(1.0).sample(rng, size=4000, q=2)
        r = L[:, 1, 0]
        assert r.var() == pytest.approx(1.0 / 3.0, abs=0.03)

    def test_eta_concentrates(self, rng):
        r_wide = LKJ(1.0).sample(rng, size=2000, q=2)[:, 1, 0]
        r_tight = LKJ(10.0).sample(rng, size=2000, q=2)[:, 1, 0]
        assert r_tight.var() < r_wide.var()

    def test_logpdf_q2(self):
        # q = 2: (2 (eta - 1)) log L_11 = (eta - 1) log(1 - r^2)
        r = 0.6
        L = np.array([[1.0, 0.0], [r, np.sqrt(1 - r * r)]])
        assert LKJ(3.0).logpdf(L) == pytest.approx(2.0 * np.log(1 - r * r))

    def test_grad_matches_finite_difference(self, rng):
        prior = LKJ(2.5)
        L = prior.sample(rng, q=3)
        h = 1e-6
        grad = prior.grad_logpdf(L)
        for k, i in enumerate([1, 2]):
            up, dn = L.copy(), L.copy()
            up[i, i] += h
            dn[i, i] -= h
            fd = (prior.logpdf(up) - prior.logpdf(dn)) / (2 * h)
            assert grad[k] == pytest.approx(fd, rel=1e-5)


class TestResolvePrior:

    def test_passthrough(self):
        p = Normal(0.0, 1.0)
        assert resolve_prior(p) is p

    def test_tuple(self):
        p = resolve_prior(('normal', {'mu': 0, 'sigma': 10}))
        assert p == Normal(0.0, 10.0)

    def test_mapping_round_trip(self):
        p = StudentT(4.0, 1.0, 2.0)
        assert resolve_prior(p.to_dict()) == p

    def test_case_insensitive(self):
        assert resolve_prior(('Half_Normal', {'sigma': 2})) == HalfNormal(2.0)

    def test_unknown_family(self):
        with pytest.raises(ValidationError, match="Unknown prior family"):
            resolve_prior(('gamma', {'a': 1}))

    def test_bad_hyperparameter_name(self):
        with pytest.raises(ValidationError, match="invalid hyperparameters"):
            resolve_prior(('normal', {'scale': 1}))

    def test_bad_hyperparameter_value(self):
        with pytest.raises(ValidationError, match="must be positive"):
            resolve_prior(('half_normal', {'sigma': -1}))

    def test_wrong_type(self):
        with pytest.raises(TypeError):
            resolve_prior(3.0)

    def test_hashable_and_repr(self):
        assert len({Normal(0, 1), Normal(0.0, 1.0)}) == 1
        assert repr(Exponential(0.5)) == 'exponential(rate=0.5)'
