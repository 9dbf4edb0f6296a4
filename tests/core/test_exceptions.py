"""
Tests for the exception and warning hierarchy.
"""

import warnings

import pytest

from bayesmixed.core.exceptions import (
    BayesMixedError,
    BayesMixedWarning,
    ConvergenceWarning,
    DimensionError,
    IncomparableModels,
    NonFiniteDensity,
    NumericalError,
    SamplingCancelled,
    SamplingDivergence,
    SamplingTimeout,
    UnreliableLooEstimate,
    ValidationError,
)


class TestInheritance:

    @pytest.mark.parametrize('exc', [
        ValidationError, DimensionError, NumericalError, NonFiniteDensity,
        SamplingCancelled, SamplingTimeout, IncomparableModels,
    ])
    def test_catchable_as_base(self, exc):
        with pytest.raises(BayesMixedError):
            raise exc("boom")

    def test_dimension_error_is_validation_error(self):
        assert issubclass(DimensionError, ValidationError)

    def test_incomparable_models_is_validation_error(self):
        assert issubclass(IncomparableModels, ValidationError)

    def test_non_finite_density_is_numerical(self):
        assert issubclass(NonFiniteDensity, NumericalError)

    def test_timeout_is_cancellation(self):
        assert issubclass(SamplingTimeout, SamplingCancelled)


class TestAttributes:

    def test_non_finite_density(self):
        err = NonFiniteDensity("bad init", chain_id=2, log_density=float('-inf'),
                               n_nonfinite_gradient=3)
        assert err.chain_id == 2
        assert err.log_density == float('-inf')
        assert err.n_nonfinite_gradient == 3
        assert "bad init" in str(err)

    def test_non_finite_density_defaults(self):
        err = NonFiniteDensity("bad init")
        assert err.chain_id is None
        assert err.log_density is None

    def test_cancelled(self):
        err = SamplingCancelled("stop", chain_id=1, iteration=17)
        assert err.chain_id == 1
        assert err.iteration == 17

    def test_timeout(self):
        err = SamplingTimeout("late", chain_id=0, iteration=5, timeout=2.5)
        assert err.timeout == 2.5
        assert err.iteration == 5

    def test_incomparable(self):
        err = IncomparableModels("mismatch", n_obs=(160, 150))
        assert err.n_obs == (160, 150)


class TestWarnings:

    @pytest.mark.parametrize('cat', [
        SamplingDivergence, ConvergenceWarning, UnreliableLooEstimate,
    ])
    def test_user_warning_subclass(self, cat):
        assert issubclass(cat, BayesMixedWarning)
        assert issubclass(cat, UserWarning)

    def test_filterable(self):
        with warnings.catch_warnings():
            warnings.simplefilter('error', ConvergenceWarning)
            warnings.simplefilter('ignore', SamplingDivergence)
            warnings.warn("diverged", SamplingDivergence)
            with pytest.raises(ConvergenceWarning):
                warnings.warn("R-hat", ConvergenceWarning)
