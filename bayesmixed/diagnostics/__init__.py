"""
Convergence diagnostics for MCMC output.

Usage:
    from bayesmixed.diagnostics import diagnose, split_rhat

    diag = diagnose(draws, names=names)      # draws: (chains, draws, params)
    diag.converged
    print(diag.summary())
"""

from bayesmixed.diagnostics._convergence import (
    split_rhat,
    effective_sample_size,
    autocorrelation,
)
from bayesmixed.diagnostics.solvers import diagnose
from bayesmixed.diagnostics.solution import DiagnosticsSolution

__all__ = [
    "diagnose",
    "DiagnosticsSolution",
    "split_rhat",
    "effective_sample_size",
    "autocorrelation",
]
