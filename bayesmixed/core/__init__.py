"""
Core infrastructure for bayesmixed.

This module provides shared abstractions and utilities used by all
domain-specific subpackages (model, sampling, diagnostics, loo, ...).

Key components:
    protocols: Backend protocol
    result: Generic Result[P] envelope
    exceptions: Exception and warning hierarchy
    validation: Input validators
    compute: Timing and wall-clock budgets
"""

from bayesmixed.core.protocols import Backend
from bayesmixed.core.result import Result
from bayesmixed.core.exceptions import (
    BayesMixedError,
    ValidationError,
    DimensionError,
    NumericalError,
    NonFiniteDensity,
    SamplingCancelled,
    SamplingTimeout,
    IncomparableModels,
    BayesMixedWarning,
    SamplingDivergence,
    ConvergenceWarning,
    UnreliableLooEstimate,
)

__all__ = [
    # Protocols
    "Backend",
    # Result
    "Result",
    # Exceptions
    "BayesMixedError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
    "NonFiniteDensity",
    "SamplingCancelled",
    "SamplingTimeout",
    "IncomparableModels",
    # Warnings
    "BayesMixedWarning",
    "SamplingDivergence",
    "ConvergenceWarning",
    "UnreliableLooEstimate",
]
