"""
Exception and warning hierarchy for bayesmixed.

All exceptions inherit from BayesMixedError to allow catching any
library-specific error. Non-fatal statistical problems are reported as
warnings (subclasses of BayesMixedWarning) and recorded on the result,
never raised.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
    - A fit with poor diagnostics is still a valid (flagged) result
"""


class BayesMixedError(Exception):
    """Base exception for all bayesmixed errors."""
    pass


class ValidationError(BayesMixedError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks: malformed
    model specification, missing priors, bad sampler configuration.
    Always raised before any sampling starts.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class NumericalError(BayesMixedError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class NonFiniteDensity(NumericalError):
    """
    Log posterior or its gradient is not finite at a chain's initial point.

    Fatal for the chain that hit it (and therefore for the fit).

    Attributes:
        chain_id: Index of the chain whose initial point failed
        log_density: The offending log density value
        n_nonfinite_gradient: Number of non-finite gradient entries
    """

    def __init__(
        self,
        message: str,
        chain_id: int | None = None,
        log_density: float | None = None,
        n_nonfinite_gradient: int | None = None,
    ):
        super().__init__(message)
        self.chain_id = chain_id
        self.log_density = log_density
        self.n_nonfinite_gradient = n_nonfinite_gradient


class SamplingCancelled(BayesMixedError):
    """
    Sampling was cancelled cooperatively between iterations.

    The cancelled chain's partial draws are discarded.

    Attributes:
        chain_id: Chain that observed the cancellation
        iteration: Iteration at which the cancellation was observed
    """

    def __init__(
        self,
        message: str,
        chain_id: int | None = None,
        iteration: int | None = None,
    ):
        super().__init__(message)
        self.chain_id = chain_id
        self.iteration = iteration


class SamplingTimeout(SamplingCancelled):
    """
    Sampling exceeded the caller's wall-clock budget.

    Attributes:
        timeout: The budget in seconds
    """

    def __init__(
        self,
        message: str,
        chain_id: int | None = None,
        iteration: int | None = None,
        timeout: float | None = None,
    ):
        super().__init__(message, chain_id=chain_id, iteration=iteration)
        self.timeout = timeout


class IncomparableModels(ValidationError):
    """
    LOO results do not describe the same observations.

    Raised by the model comparator when observation counts or
    ordering differ between inputs.

    Attributes:
        n_obs: Observation count of each input, in input order
    """

    def __init__(self, message: str, n_obs: tuple[int, ...] | None = None):
        super().__init__(message)
        self.n_obs = n_obs


# =====================================================================
# Warnings
# =====================================================================

class BayesMixedWarning(UserWarning):
    """Base class for all non-fatal bayesmixed diagnostics."""
    pass


class SamplingDivergence(BayesMixedWarning):
    """Divergent transitions occurred; affected regions are poorly explored."""
    pass


class ConvergenceWarning(BayesMixedWarning):
    """R-hat or effective sample size is outside the convergence thresholds."""
    pass


class UnreliableLooEstimate(BayesMixedWarning):
    """One or more observations have Pareto k-hat >= 0.7."""
    pass
