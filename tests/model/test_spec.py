"""
Tests for ModelSpec construction, prior checks and serialization.
"""

import pytest

from bayesmixed import ModelSpec, default_priors
from bayesmixed.core.exceptions import ValidationError
from bayesmixed.model import Exponential, HalfNormal, LKJ, Normal
from bayesmixed.model.spec import Term


@pytest.fixture
def priors():
    return {
        'intercept': Normal(20.0, 10.0),
        'slope': Normal(0.0, 10.0),
        'residual_scale': Exponential(0.2),
        'group_scale': HalfNormal(5.0),
        'group_covariance': LKJ(2.0),
    }


class TestVariants:

    def test_pooled(self, priors):
        spec = ModelSpec.pooled('age', grouping_factor='county', priors=priors)
        assert spec.fixed_terms == ('intercept', 'age')
        assert spec.random_terms == ()
        assert spec.variant == 'pooled'
        assert spec.terms == (Term('intercept', 'fixed'), Term('age', 'fixed'))
        assert spec.required_classes == ('intercept', 'slope', 'residual_scale')

    def test_varying_intercept(self, priors):
        spec = ModelSpec.varying_intercept('age', grouping_factor='county', priors=priors)
        assert spec.random_terms == ('intercept',)
        assert spec.terms[0].is_random
        assert not spec.terms[1].is_random
        assert 'group_scale' in spec.required_classes
        assert 'group_covariance' not in spec.required_classes

    def test_varying_intercept_slope(self, priors):
        spec = ModelSpec.varying_intercept_slope(
            ['age', 'income'], random_slope='income',
            grouping_factor='county', priors=priors,
        )
        assert spec.fixed_terms == ('intercept', 'age', 'income')
        assert spec.random_terms == ('intercept', 'income')
        assert spec.n_random == 2
        assert spec.required_classes[-1] == 'group_covariance'

    def test_random_slope_must_be_covariate(self, priors):
        with pytest.raises(ValidationError, match="random_slope"):
            ModelSpec.varying_intercept_slope('age', random_slope='income', priors=priors)

    def test_repr_formula(self, priors):
        spec = ModelSpec.varying_intercept('age', grouping_factor='county', priors=priors)
        assert 'y ~ intercept + age + (intercept | county)' in repr(spec)


class TestPriorChecks:

    def test_missing_prior_raises(self, priors):
        del priors['residual_scale']
        with pytest.raises(ValidationError, match="missing prior.*residual_scale"):
            ModelSpec.pooled('age', priors=priors)

    def test_missing_covariance_prior_only_for_two_random_terms(self, priors):
        del priors['group_covariance']
        ModelSpec.varying_intercept('age', priors=priors)
        with pytest.raises(ValidationError, match="group_covariance"):
            ModelSpec.varying_intercept_slope('age', priors=priors)

    def test_inadmissible_family(self, priors):
        priors['residual_scale'] = Normal(0.0, 1.0)
        with pytest.raises(ValidationError, match="not admissible"):
            ModelSpec.pooled('age', priors=priors)

    def test_unknown_class(self, priors):
        priors['nugget'] = Normal(0.0, 1.0)
        with pytest.raises(ValidationError, match="Unknown parameter class"):
            ModelSpec.pooled('age', priors=priors)

    def test_tuple_priors_resolved(self):
        spec = ModelSpec.pooled('age', priors={
            'intercept': ('normal', {'mu': 0, 'sigma': 10}),
            'slope': ('student_t', {'nu': 3, 'mu': 0, 'sigma': 2}),
            'residual_scale': ('half_cauchy', {'sigma': 5}),
        })
        assert spec.prior('slope').family == 'student_t'

    def test_intercept_listed_rejected(self, priors):
        with pytest.raises(ValidationError, match="added automatically"):
            ModelSpec.pooled(['intercept', 'age'], priors=priors)

    def test_duplicate_covariates(self, priors):
        with pytest.raises(ValidationError, match="duplicate"):
            ModelSpec.pooled(['age', 'age'], priors=priors)


class TestDatasetChecks:

    def test_unknown_term(self, county_dataset, priors):
        spec = ModelSpec.pooled('income', grouping_factor='county', priors=priors)
        with pytest.raises(ValidationError, match="unknown term"):
            spec.check_dataset(county_dataset)

    def test_grouping_factor_mismatch(self, county_dataset, priors):
        spec = ModelSpec.varying_intercept('age', grouping_factor='state', priors=priors)
        with pytest.raises(ValidationError, match="grouping factor"):
            spec.check_dataset(county_dataset)


class TestDefaultPriors:

    def test_scaled_to_response(self, county_dataset):
        priors = default_priors(county_dataset)
        y = county_dataset.response
        assert priors['intercept'].mu == pytest.approx(y.mean())
        assert priors['intercept'].sigma == pytest.approx(2.5 * y.std())
        assert priors['residual_scale'].rate == pytest.approx(1.0 / y.std())
        assert priors['group_covariance'] == LKJ(2.0)

    def test_usable_for_every_variant(self, county_dataset):
        priors = default_priors(county_dataset)
        for build in (ModelSpec.pooled, ModelSpec.varying_intercept,
                      ModelSpec.varying_intercept_slope):
            spec = build('age', grouping_factor='county', priors=priors)
            spec.check_dataset(county_dataset)


class TestSerialization:

    def test_round_trip(self, priors):
        spec = ModelSpec.varying_intercept_slope('age', grouping_factor='county',
                                                 priors=priors, name='vis')
        again = ModelSpec.from_dict(spec.to_dict())
        assert again.fixed_terms == spec.fixed_terms
        assert again.random_terms == spec.random_terms
        assert again.name == 'vis'
        assert again.variant == spec.variant
        assert dict(again.priors) == dict(spec.priors)
