"""
pytest configuration and shared fixtures.

Datasets follow the county / standardized-age / bounce-time layout the
package is built around: y = 20 + offset[g] + 4 x + noise.
"""

import warnings

import numpy as np
import pytest

from bayesmixed import Dataset, ModelSpec, SamplerConfig, default_priors, fit

TRUE_INTERCEPT = 20.0
TRUE_SLOPE = 4.0
TRUE_SIGMA = 5.0
TRUE_OFFSETS = np.array([-6.0, -4.0, -2.5, -0.5, 0.5, 2.5, 4.0, 6.0])


def make_county_data(
    seed=0,
    offsets=TRUE_OFFSETS,
    per_group=20,
    sigma=TRUE_SIGMA,
    slope=TRUE_SLOPE,
    residualize=False,
):
    """
    Simulate y = 20 + offset[g] + slope x + noise.

    With residualize=True the noise has exactly zero mean within each
    group, is orthogonal to x and has sample sd sigma, so least-squares
    estimates equal the generating values.
    """
    rng = np.random.default_rng(seed)
    J = len(offsets)
    n = J * per_group
    county = np.repeat([f"c{j}" for j in range(J)], per_group)
    codes = np.repeat(np.arange(J), per_group)
    x = rng.standard_normal(n)
    x = (x - x.mean()) / x.std()
    noise = rng.standard_normal(n)
    if residualize:
        G = (codes[:, None] == np.arange(J)).astype(float)
        D = np.column_stack([G, x])
        noise = noise - D @ np.linalg.lstsq(D, noise, rcond=None)[0]
        noise = noise / noise.std(ddof=1)
    y = TRUE_INTERCEPT + np.asarray(offsets)[codes] + slope * x + sigma * noise
    return {'y': y, 'x': x, 'county': county, 'codes': codes}


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def county_arrays():
    return make_county_data(seed=1)


@pytest.fixture
def county_dataset(county_arrays):
    d = county_arrays
    return Dataset.from_arrays(
        response=d['y'],
        covariates={'age': d['x']},
        groups=d['county'],
        group_name='county',
        response_name='bounce_time',
    )


@pytest.fixture
def small_config():
    """Short runs for tests that need a posterior, not a converged one."""
    return SamplerConfig.build(
        warmup_iterations=150, sampling_iterations=100, num_chains=2
    )


@pytest.fixture(scope='session')
def intercept_posterior():
    """One shared varying-intercept fit (2 chains x 300 draws)."""
    d = make_county_data(seed=1)
    ds = Dataset.from_arrays(
        response=d['y'], covariates={'age': d['x']},
        groups=d['county'], group_name='county',
    )
    spec = ModelSpec.varying_intercept(
        'age', grouping_factor='county', priors=default_priors(ds)
    )
    config = SamplerConfig.build(
        warmup_iterations=300, sampling_iterations=300, num_chains=2
    )
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        return fit(ds, spec, config=config, seed=11)


@pytest.fixture
def make_data():
    """Factory fixture: make_data(seed=..., offsets=..., residualize=...)."""
    return make_county_data
