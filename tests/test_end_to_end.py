"""
End-to-end runs on simulated county data: parameter recovery and model
selection. These sample for several seconds each.
"""

import warnings

import numpy as np
import pytest

from bayesmixed import (
    Dataset, ModelSpec, SamplerConfig, compare, default_priors, fit, loo,
    posterior_predictive, ppc,
)
from bayesmixed.model.priors import Exponential, HalfNormal, Normal

from conftest import TRUE_OFFSETS, make_county_data

pytestmark = pytest.mark.slow


def _dataset(d):
    return Dataset.from_arrays(
        response=d['y'], covariates={'age': d['x']},
        groups=d['county'], group_name='county', response_name='bounce_time',
    )


def _fit(ds, spec, config, seed):
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        return fit(ds, spec, config=config, seed=seed)


class TestRecovery:

    @pytest.fixture(scope='class')
    def posterior(self):
        ds = _dataset(make_county_data(seed=7, residualize=True))
        spec = ModelSpec.varying_intercept(
            'age',
            grouping_factor='county',
            priors={
                'intercept': Normal(20.0, 5.0),
                'slope': Normal(4.0, 2.0),
                'residual_scale': Exponential(0.2),
                'group_scale': HalfNormal(5.0),
            },
        )
        config = SamplerConfig.build(
            warmup_iterations=1000, sampling_iterations=2000, num_chains=2
        )
        return _fit(ds, spec, config, seed=2024)

    def test_slope(self, posterior):
        assert np.median(posterior.sample_set['beta[age]']) == pytest.approx(4.0, abs=1.0)

    def test_group_offsets(self, posterior):
        b = posterior.sample_set.group_effects[..., 0]
        medians = np.median(b.reshape(-1, 8), axis=0)
        np.testing.assert_allclose(medians, TRUE_OFFSETS, atol=2.0)

    def test_converged(self, posterior):
        assert np.all(posterior.diagnostics.rhat < 1.05)

    def test_replicates_cover_data(self, posterior):
        rep = posterior_predictive(posterior, n_draws=500, seed=1)
        check = ppc(rep, posterior.dataset.response, np.std)
        assert 0.05 < check.p_value < 0.95


class TestModelSelection:

    @pytest.fixture(scope='class')
    def table(self):
        d = make_county_data(seed=8, offsets=2.0 * TRUE_OFFSETS, slope=1.0)
        ds = _dataset(d)
        priors = default_priors(ds)
        config = SamplerConfig.build(
            warmup_iterations=500, sampling_iterations=500, num_chains=2
        )
        specs = [
            ModelSpec.pooled('age', grouping_factor='county', priors=priors),
            ModelSpec.varying_intercept('age', grouping_factor='county', priors=priors),
            ModelSpec.varying_intercept_slope(
                'age', grouping_factor='county', priors=priors
            ),
        ]
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            loos = [loo(_fit(ds, s, config, seed=i)) for i, s in enumerate(specs)]
        return compare(loos)

    def test_intercept_beats_pooled(self, table):
        assert table.rank('varying_intercept') < table.rank('pooled')
        elpd = dict(zip(table.models, table.params.elpd_loo))
        assert elpd['varying_intercept'] > elpd['pooled']

    def test_pooled_clearly_worse(self, table):
        i = table.models.index('pooled')
        assert -table.elpd_diff[i] > 2 * table.se_diff[i]
