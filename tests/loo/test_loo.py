"""
Tests for the loo() entry point and LooSolution.
"""

import numpy as np
import pytest
from scipy.special import logsumexp

from bayesmixed.core.exceptions import (
    DimensionError, UnreliableLooEstimate, ValidationError,
)
from bayesmixed.loo import LooSolution, loo
from bayesmixed.predictive import pointwise_log_likelihood


@pytest.fixture
def log_lik(rng):
    mu = rng.normal(0.0, 0.2, size=(500, 1))
    y = rng.standard_normal(40)
    return -0.5 * (y[None, :] - mu) ** 2 - 0.5 * np.log(2 * np.pi)


class TestFromPosterior:

    @pytest.fixture(scope='class')
    def result(self, intercept_posterior):
        return loo(intercept_posterior)

    def test_basic(self, result, intercept_posterior):
        assert isinstance(result, LooSolution)
        assert result.n_observations == 160
        assert result.model_name == intercept_posterior.name
        assert result.data_fingerprint == intercept_posterior.dataset.fingerprint()
        assert np.isfinite(result.elpd_loo)

    def test_identities(self, result):
        assert result.looic == pytest.approx(-2.0 * result.elpd_loo)
        assert result.p_loo == pytest.approx(result.lppd - result.elpd_loo)
        assert result.elpd_loo == pytest.approx(result.elpd_loo_i.sum())
        assert result.se == pytest.approx(
            np.sqrt(160) * np.std(result.elpd_loo_i, ddof=1)
        )

    def test_effective_parameters(self, result):
        # 2 fixed effects, sigma and 8 partially pooled intercepts
        assert 2.0 < result.p_loo < 12.0

    def test_name_override(self, intercept_posterior):
        res = loo(intercept_posterior, model_name='hier')
        assert res.model_name == 'hier'

    def test_same_as_matrix(self, result, intercept_posterior):
        res = loo(pointwise_log_likelihood(intercept_posterior))
        np.testing.assert_allclose(res.elpd_loo_i, result.elpd_loo_i)
        assert res.data_fingerprint is None
        assert res.model_name == 'model'

    def test_summary_and_dataframe(self, result):
        text = result.summary()
        assert 'PSIS-LOO' in text
        assert 'elpd_loo' in text
        df = result.to_dataframe()
        assert df.shape == (160, 4)
        assert df.index.name == 'observation'
        assert sum(result.k_table().values()) == 160
        assert 'LooSolution' in repr(result)


class TestMatrixInput:

    def test_lppd(self, log_lik):
        res = loo(log_lik)
        expected = logsumexp(log_lik, axis=0) - np.log(500)
        np.testing.assert_allclose(res.params.lppd_i, expected)

    def test_parallel_matches_serial(self, log_lik):
        serial = loo(log_lik)
        parallel = loo(log_lik, max_workers=3)
        np.testing.assert_array_equal(serial.elpd_loo_i, parallel.elpd_loo_i)
        np.testing.assert_array_equal(serial.pareto_k, parallel.pareto_k)

    def test_not_2d(self):
        with pytest.raises(DimensionError):
            loo(np.zeros(50))

    def test_non_finite(self, log_lik):
        log_lik[3, 2] = np.nan
        with pytest.raises(ValidationError, match="NaN"):
            loo(log_lik)

    def test_too_few_draws(self, log_lik):
        with pytest.raises(ValidationError, match="at least 10"):
            loo(log_lik[:5])

    def test_minimum_draws_all_unreliable(self, log_lik):
        with pytest.warns(UnreliableLooEstimate):
            res = loo(log_lik[:10])
        assert np.all(np.isinf(res.pareto_k))
        assert res.n_unreliable == 40

    def test_dataset_rejected(self, log_lik, county_dataset):
        with pytest.raises(ValidationError, match="dataset"):
            loo(log_lik, dataset=county_dataset)

    def test_bad_max_workers(self, log_lik):
        with pytest.raises(ValidationError):
            loo(log_lik, max_workers=0)
