"""
Model specification: terms, priors and the log posterior.

Public API:
    ModelSpec, Term           explicit model structure
    default_priors(dataset)   weakly-informative priors scaled to the response
    resolve_prior(...)        (family, hyperparameters) → Prior
"""

from bayesmixed.model.priors import (
    Prior,
    Normal,
    StudentT,
    HalfNormal,
    HalfStudentT,
    HalfCauchy,
    Exponential,
    LKJ,
    resolve_prior,
)
from bayesmixed.model.spec import ModelSpec, Term, default_priors

__all__ = [
    "ModelSpec",
    "Term",
    "default_priors",
    "Prior",
    "Normal",
    "StudentT",
    "HalfNormal",
    "HalfStudentT",
    "HalfCauchy",
    "Exponential",
    "LKJ",
    "resolve_prior",
]
