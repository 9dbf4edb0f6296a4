"""
Model specification for hierarchical Gaussian regression.

A ModelSpec is an explicit, immutable description of one of three model
structures over a single grouping factor:

    pooled                       y ~ intercept + slopes
    varying intercept            y ~ intercept + slopes + (intercept | group)
    varying intercept and slope  y ~ intercept + slopes + (intercept + slope | group)

Terms are a tagged variant (Term.kind is 'fixed' or 'fixed+random'), not a
formula string. Every parameter class the likelihood references must carry
exactly one prior of an admissible family; this is checked before sampling.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, TYPE_CHECKING

import numpy as np

from bayesmixed.core.exceptions import ValidationError
from bayesmixed.data import INTERCEPT
from bayesmixed.model.priors import (
    Prior, Normal, Exponential, HalfNormal, LKJ, resolve_prior,
)

if TYPE_CHECKING:
    from bayesmixed.data import Dataset

# Parameter classes and the prior families admissible for each
INTERCEPT_CLASS = 'intercept'
SLOPE_CLASS = 'slope'
RESIDUAL_SCALE_CLASS = 'residual_scale'
GROUP_SCALE_CLASS = 'group_scale'
GROUP_COVARIANCE_CLASS = 'group_covariance'

ADMISSIBLE_FAMILIES: dict[str, frozenset[str]] = {
    INTERCEPT_CLASS: frozenset({'normal', 'student_t'}),
    SLOPE_CLASS: frozenset({'normal', 'student_t'}),
    RESIDUAL_SCALE_CLASS: frozenset(
        {'half_normal', 'half_student_t', 'half_cauchy', 'exponential'}
    ),
    GROUP_SCALE_CLASS: frozenset(
        {'half_normal', 'half_student_t', 'half_cauchy', 'exponential'}
    ),
    GROUP_COVARIANCE_CLASS: frozenset({'lkj'}),
}

FIXED = 'fixed'
FIXED_RANDOM = 'fixed+random'

VARIANTS = ('pooled', 'varying_intercept', 'varying_intercept_slope')


@dataclass(frozen=True)
class Term:
    """One regression term; kind is 'fixed' or 'fixed+random'."""
    name: str
    kind: str

    @property
    def is_random(self) -> bool:
        return self.kind == FIXED_RANDOM


@dataclass(frozen=True)
class ModelSpec:
    """
    Immutable model description.

    Attributes:
        fixed_terms: 'intercept' followed by covariate names.
        random_terms: Subset of fixed_terms that vary by group.
        grouping_factor: Name of the grouping factor (must match the
            Dataset's group_name at fit time).
        priors: Parameter class → Prior.
        name: Label used in comparison tables.
        variant: 'pooled', 'varying_intercept' or 'varying_intercept_slope'.
    """
    fixed_terms: tuple[str, ...]
    random_terms: tuple[str, ...]
    grouping_factor: str
    priors: Mapping[str, Prior] = field(default_factory=dict)
    name: str = ''
    variant: str = 'pooled'

    # === Constructors ===

    @classmethod
    def pooled(
        cls,
        covariates: str | Sequence[str],
        *,
        grouping_factor: str = 'group',
        priors: Mapping[str, Any] | None = None,
        name: str = 'pooled',
    ) -> ModelSpec:
        """y ~ intercept + slopes, no group effects."""
        return cls._build(covariates, (), grouping_factor, priors, name, 'pooled')

    @classmethod
    def varying_intercept(
        cls,
        covariates: str | Sequence[str],
        *,
        grouping_factor: str = 'group',
        priors: Mapping[str, Any] | None = None,
        name: str = 'varying_intercept',
    ) -> ModelSpec:
        """y ~ intercept + slopes + (intercept | group)."""
        return cls._build(
            covariates, (INTERCEPT,), grouping_factor, priors, name,
            'varying_intercept',
        )

    @classmethod
    def varying_intercept_slope(
        cls,
        covariates: str | Sequence[str],
        *,
        random_slope: str | None = None,
        grouping_factor: str = 'group',
        priors: Mapping[str, Any] | None = None,
        name: str = 'varying_intercept_slope',
    ) -> ModelSpec:
        """
        y ~ intercept + slopes + (intercept + slope | group).

        Args:
            random_slope: Covariate whose slope varies by group. Defaults
                to the first covariate.
        """
        covs = _as_names(covariates)
        slope = covs[0] if random_slope is None else random_slope
        if slope not in covs:
            raise ValidationError(
                f"random_slope '{slope}' is not among the covariates {list(covs)}"
            )
        return cls._build(
            covs, (INTERCEPT, slope), grouping_factor, priors, name,
            'varying_intercept_slope',
        )

    @classmethod
    def _build(cls, covariates, random_terms, grouping_factor, priors, name, variant):
        covs = _as_names(covariates)
        if INTERCEPT in covs:
            raise ValidationError(
                f"covariates: '{INTERCEPT}' is added automatically, do not list it"
            )
        if len(set(covs)) != len(covs):
            raise ValidationError(f"covariates: duplicate names in {list(covs)}")
        if not grouping_factor:
            raise ValidationError("grouping_factor must be a non-empty string")
        resolved = {}
        for cls_name, prior in (priors or {}).items():
            if cls_name not in ADMISSIBLE_FAMILIES:
                valid = ', '.join(ADMISSIBLE_FAMILIES)
                raise ValidationError(
                    f"Unknown parameter class '{cls_name}'. Valid classes: {valid}"
                )
            resolved[cls_name] = resolve_prior(prior)
        spec = cls(
            fixed_terms=(INTERCEPT,) + covs,
            random_terms=tuple(random_terms),
            grouping_factor=grouping_factor,
            priors=resolved,
            name=name,
            variant=variant,
        )
        spec.check_priors()
        return spec

    # === Structure ===

    @property
    def terms(self) -> tuple[Term, ...]:
        return tuple(
            Term(t, FIXED_RANDOM if t in self.random_terms else FIXED)
            for t in self.fixed_terms
        )

    @property
    def n_fixed(self) -> int:
        return len(self.fixed_terms)

    @property
    def n_random(self) -> int:
        return len(self.random_terms)

    @property
    def covariates(self) -> tuple[str, ...]:
        return tuple(t for t in self.fixed_terms if t != INTERCEPT)

    @property
    def required_classes(self) -> tuple[str, ...]:
        """Parameter classes the likelihood references."""
        classes = [INTERCEPT_CLASS, RESIDUAL_SCALE_CLASS]
        if self.covariates:
            classes.insert(1, SLOPE_CLASS)
        if self.n_random >= 1:
            classes.append(GROUP_SCALE_CLASS)
        if self.n_random >= 2:
            classes.append(GROUP_COVARIANCE_CLASS)
        return tuple(classes)

    def prior(self, parameter_class: str) -> Prior:
        try:
            return self.priors[parameter_class]
        except KeyError:
            raise ValidationError(
                f"Model '{self.name}': no prior for parameter class "
                f"'{parameter_class}'"
            ) from None

    # === Validation ===

    def check_priors(self) -> None:
        """
        Every referenced parameter class has one prior of an admissible family.

        Raises:
            ValidationError: Missing prior or inadmissible family.
        """
        for cls_name in self.required_classes:
            if cls_name not in self.priors:
                raise ValidationError(
                    f"Model '{self.name}': missing prior for parameter class "
                    f"'{cls_name}'. Required: {list(self.required_classes)}"
                )
        for cls_name, prior in self.priors.items():
            allowed = ADMISSIBLE_FAMILIES.get(cls_name)
            if allowed is None:
                raise ValidationError(f"Unknown parameter class '{cls_name}'")
            if prior.family not in allowed:
                raise ValidationError(
                    f"Model '{self.name}': prior family '{prior.family}' is not "
                    f"admissible for '{cls_name}'. Admissible: {sorted(allowed)}"
                )

    def check_dataset(self, dataset: Dataset) -> None:
        """
        Terms and grouping factor exist in the dataset.

        Raises:
            ValidationError: Unknown covariate or grouping factor mismatch.
        """
        missing = [c for c in self.covariates if c not in dataset.covariate_names]
        if missing:
            raise ValidationError(
                f"Model '{self.name}': unknown term(s) {missing}. "
                f"Dataset covariates: {list(dataset.covariate_names)}"
            )
        if self.grouping_factor != dataset.group_name:
            raise ValidationError(
                f"Model '{self.name}': grouping factor '{self.grouping_factor}' "
                f"does not match dataset grouping factor '{dataset.group_name}'"
            )

    # === Serialization ===

    def to_dict(self) -> dict[str, Any]:
        return {
            'fixed_terms': list(self.fixed_terms),
            'random_terms': list(self.random_terms),
            'grouping_factor': self.grouping_factor,
            'priors': {k: p.to_dict() for k, p in sorted(self.priors.items())},
            'name': self.name,
            'variant': self.variant,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> ModelSpec:
        spec = cls(
            fixed_terms=tuple(d['fixed_terms']),
            random_terms=tuple(d['random_terms']),
            grouping_factor=d['grouping_factor'],
            priors={k: resolve_prior(v) for k, v in d['priors'].items()},
            name=d.get('name', ''),
            variant=d.get('variant', 'pooled'),
        )
        spec.check_priors()
        return spec

    def __repr__(self) -> str:
        fixed = ' + '.join(self.fixed_terms)
        if self.random_terms:
            rand = ' + '.join(self.random_terms)
            formula = f"y ~ {fixed} + ({rand} | {self.grouping_factor})"
        else:
            formula = f"y ~ {fixed}"
        return f"ModelSpec('{self.name}': {formula})"


def _as_names(covariates: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(covariates, str):
        covariates = (covariates,)
    names = tuple(covariates)
    if not names:
        raise ValidationError("at least one covariate is required")
    return names


def default_priors(dataset: Dataset) -> dict[str, Prior]:
    """
    Weakly-informative priors scaled to the response.

    intercept ~ Normal(mean(y), 2.5 sd(y)); slope ~ Normal(0, 2.5 sd(y) / sd(x))
    using the smallest covariate sd; sigma ~ Exponential(1 / sd(y));
    tau ~ HalfNormal(sd(y)); correlation ~ LKJ(2).
    """
    y = dataset.response
    sd_y = float(np.std(y))
    if sd_y <= 0:
        sd_y = 1.0
    sd_x = np.std(dataset.covariates, axis=0)
    sd_x = sd_x[sd_x > 0]
    slope_scale = 2.5 * sd_y / (float(sd_x.min()) if sd_x.size else 1.0)
    return {
        INTERCEPT_CLASS: Normal(float(np.mean(y)), 2.5 * sd_y),
        SLOPE_CLASS: Normal(0.0, slope_scale),
        RESIDUAL_SCALE_CLASS: Exponential(1.0 / sd_y),
        GROUP_SCALE_CLASS: HalfNormal(sd_y),
        GROUP_COVARIANCE_CLASS: LKJ(2.0),
    }
