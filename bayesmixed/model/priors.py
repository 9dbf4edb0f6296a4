"""
Prior distribution families.

Each Prior defines, on the constrained scale:
- logpdf(x): log density (normalized, so prior densities are comparable)
- grad_logpdf(x): derivative of logpdf with respect to x
- sample(rng, size): forward draws
- support: 'real', 'positive' or 'correlation'

The sampler works on the unconstrained scale; the transforms and their
Jacobians live in model/_parameterization.py, not here.

LKJ is the one matrix-valued family: it is a prior on the Cholesky factor
of a correlation matrix. Its density depends only on the diagonal of that
factor, so grad_logpdf returns derivatives for the diagonal entries.

References:
    Lewandowski, Kurowicka & Joe (2009). Generating random correlation
    matrices based on vines and extended onion method. J. Multivariate Anal.
    Stan Development Team. Stan Functions Reference, "LKJ Cholesky".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

import numpy as np
from numpy.typing import NDArray
from scipy import stats

from bayesmixed.core.exceptions import ValidationError

_LOG_2 = np.log(2.0)
_LOG_2PI = np.log(2.0 * np.pi)


def _require_positive(value: float, family: str, name: str) -> float:
    value = float(value)
    if not np.isfinite(value) or value <= 0:
        raise ValidationError(
            f"{family} prior: '{name}' must be positive and finite, got {value}"
        )
    return value


def _require_finite(value: float, family: str, name: str) -> float:
    value = float(value)
    if not np.isfinite(value):
        raise ValidationError(
            f"{family} prior: '{name}' must be finite, got {value}"
        )
    return value


class Prior(ABC):
    """Abstract prior family with hyperparameters fixed at construction."""

    family: str = ''
    support: str = 'real'

    @property
    @abstractmethod
    def hyperparameters(self) -> dict[str, float]:
        ...

    @abstractmethod
    def logpdf(self, x: NDArray) -> NDArray:
        ...

    @abstractmethod
    def grad_logpdf(self, x: NDArray) -> NDArray:
        ...

    @abstractmethod
    def sample(self, rng: np.random.Generator, size: Any = None) -> NDArray:
        ...

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly (family, hyperparameters) description."""
        return {'family': self.family, 'hyperparameters': self.hyperparameters}

    def __eq__(self, other: object) -> bool:
        return (
            isinstance(other, Prior)
            and self.family == other.family
            and self.hyperparameters == other.hyperparameters
        )

    def __hash__(self) -> int:
        return hash((self.family, tuple(sorted(self.hyperparameters.items()))))

    def __repr__(self) -> str:
        args = ', '.join(f'{k}={v:g}' for k, v in self.hyperparameters.items())
        return f"{self.family}({args})"


# =====================================================================
# Location families (support: real line)
# =====================================================================

class Normal(Prior):
    """Normal(mu, sigma)."""

    family = 'normal'
    support = 'real'

    def __init__(self, mu: float = 0.0, sigma: float = 1.0):
        self.mu = _require_finite(mu, self.family, 'mu')
        self.sigma = _require_positive(sigma, self.family, 'sigma')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'mu': self.mu, 'sigma': self.sigma}

    def logpdf(self, x):
        z = (np.asarray(x) - self.mu) / self.sigma
        return -0.5 * z * z - np.log(self.sigma) - 0.5 * _LOG_2PI

    def grad_logpdf(self, x):
        return -(np.asarray(x) - self.mu) / self.sigma ** 2

    def sample(self, rng, size=None):
        return rng.normal(self.mu, self.sigma, size=size)


class StudentT(Prior):
    """Student-t(nu, mu, sigma)."""

    family = 'student_t'
    support = 'real'

    def __init__(self, nu: float = 3.0, mu: float = 0.0, sigma: float = 1.0):
        self.nu = _require_positive(nu, self.family, 'nu')
        self.mu = _require_finite(mu, self.family, 'mu')
        self.sigma = _require_positive(sigma, self.family, 'sigma')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'nu': self.nu, 'mu': self.mu, 'sigma': self.sigma}

    def logpdf(self, x):
        return stats.t.logpdf(x, self.nu, loc=self.mu, scale=self.sigma)

    def grad_logpdf(self, x):
        d = np.asarray(x) - self.mu
        return -(self.nu + 1.0) * d / (self.nu * self.sigma ** 2 + d * d)

    def sample(self, rng, size=None):
        return self.mu + self.sigma * rng.standard_t(self.nu, size=size)


# =====================================================================
# Scale families (support: positive half-line)
# =====================================================================

class HalfNormal(Prior):
    """Half-normal(sigma) on x > 0."""

    family = 'half_normal'
    support = 'positive'

    def __init__(self, sigma: float = 1.0):
        self.sigma = _require_positive(sigma, self.family, 'sigma')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'sigma': self.sigma}

    def logpdf(self, x):
        z = np.asarray(x) / self.sigma
        return _LOG_2 - 0.5 * z * z - np.log(self.sigma) - 0.5 * _LOG_2PI

    def grad_logpdf(self, x):
        return -np.asarray(x) / self.sigma ** 2

    def sample(self, rng, size=None):
        return np.abs(rng.normal(0.0, self.sigma, size=size))


class HalfStudentT(Prior):
    """Half-Student-t(nu, sigma) on x > 0."""

    family = 'half_student_t'
    support = 'positive'

    def __init__(self, nu: float = 3.0, sigma: float = 1.0):
        self.nu = _require_positive(nu, self.family, 'nu')
        self.sigma = _require_positive(sigma, self.family, 'sigma')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'nu': self.nu, 'sigma': self.sigma}

    def logpdf(self, x):
        return _LOG_2 + stats.t.logpdf(x, self.nu, loc=0.0, scale=self.sigma)

    def grad_logpdf(self, x):
        x = np.asarray(x)
        return -(self.nu + 1.0) * x / (self.nu * self.sigma ** 2 + x * x)

    def sample(self, rng, size=None):
        return np.abs(self.sigma * rng.standard_t(self.nu, size=size))


class HalfCauchy(Prior):
    """Half-Cauchy(sigma) on x > 0."""

    family = 'half_cauchy'
    support = 'positive'

    def __init__(self, sigma: float = 1.0):
        self.sigma = _require_positive(sigma, self.family, 'sigma')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'sigma': self.sigma}

    def logpdf(self, x):
        z = np.asarray(x) / self.sigma
        return _LOG_2 - np.log(np.pi * self.sigma) - np.log1p(z * z)

    def grad_logpdf(self, x):
        x = np.asarray(x)
        return -2.0 * x / (self.sigma ** 2 + x * x)

    def sample(self, rng, size=None):
        return np.abs(self.sigma * rng.standard_cauchy(size=size))


class Exponential(Prior):
    """Exponential(rate) on x > 0."""

    family = 'exponential'
    support = 'positive'

    def __init__(self, rate: float = 1.0):
        self.rate = _require_positive(rate, self.family, 'rate')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'rate': self.rate}

    def logpdf(self, x):
        return np.log(self.rate) - self.rate * np.asarray(x)

    def grad_logpdf(self, x):
        return np.full_like(np.asarray(x, dtype=np.float64), -self.rate)

    def sample(self, rng, size=None):
        return rng.exponential(1.0 / self.rate, size=size)


# =====================================================================
# Correlation family
# =====================================================================

class LKJ(Prior):
    """
    LKJ(eta) prior on a q × q correlation matrix, expressed on its
    Cholesky factor L.

    log p(L | eta) = Σ_{i=1}^{q-1} (q - i - 1 + 2(eta - 1)) log L_ii + const

    eta = 1 is uniform over correlation matrices; eta > 1 concentrates
    mass around the identity. The normalizing constant depends only on
    (q, eta) and is omitted.
    """

    family = 'lkj'
    support = 'correlation'

    def __init__(self, eta: float = 2.0):
        self.eta = _require_positive(eta, self.family, 'eta')

    @property
    def hyperparameters(self) -> dict[str, float]:
        return {'eta': self.eta}

    def _coefficients(self, q: int) -> NDArray:
        i = np.arange(1, q)
        return (q - i - 1) + 2.0 * (self.eta - 1.0)

    def logpdf(self, L):
        L = np.asarray(L)
        q = L.shape[-1]
        if q < 2:
            return np.zeros(L.shape[:-2])
        diag = np.diagonal(L, axis1=-2, axis2=-1)[..., 1:]
        return np.sum(self._coefficients(q) * np.log(diag), axis=-1)

    def grad_logpdf(self, L):
        """Gradient with respect to the diagonal entries L_ii, i >= 1."""
        L = np.asarray(L)
        q = L.shape[-1]
        if q < 2:
            return np.zeros(L.shape[:-2] + (0,))
        diag = np.diagonal(L, axis1=-2, axis2=-1)[..., 1:]
        return self._coefficients(q) / diag

    def sample(self, rng, size=None, q: int = 2):
        """
        Draw correlation Cholesky factors by the C-vine method.

        Canonical partial correlations at vine level j are independent
        Beta(b_j, b_j) on (-1, 1) with b_j = eta - 1 + (q - j) / 2.
        """
        n = 1 if size is None else int(np.prod(size))
        out = np.zeros((n, q, q))
        out[:, 0, 0] = 1.0
        for s in range(n):
            for i in range(1, q):
                remaining = 1.0
                for j in range(i):
                    beta = self.eta - 1.0 + (q - j) / 2.0
                    z = 2.0 * rng.beta(beta, beta) - 1.0
                    out[s, i, j] = z * np.sqrt(remaining)
                    remaining -= out[s, i, j] ** 2
                out[s, i, i] = np.sqrt(max(remaining, 0.0))
        if size is None:
            return out[0]
        return out.reshape(tuple(np.atleast_1d(size)) + (q, q))


# =====================================================================
# Family name → class mapping + resolver
# =====================================================================

_PRIOR_CLASSES: dict[str, type[Prior]] = {
    'normal': Normal,
    'student_t': StudentT,
    'half_normal': HalfNormal,
    'half_student_t': HalfStudentT,
    'half_cauchy': HalfCauchy,
    'exponential': Exponential,
    'lkj': LKJ,
}


def resolve_prior(prior: Prior | tuple | Mapping) -> Prior:
    """
    Resolve a prior argument to a Prior instance.

    Args:
        prior: A Prior instance (passed through), a
            (family, hyperparameters) tuple such as
            ('normal', {'mu': 0, 'sigma': 10}), or a mapping with
            'family' and 'hyperparameters' keys (the to_dict() form).

    Raises:
        ValidationError: Unknown family or bad hyperparameters.
        TypeError: If the argument has none of the accepted forms.
    """
    if isinstance(prior, Prior):
        return prior
    if isinstance(prior, Mapping):
        family = prior.get('family')
        hyper = prior.get('hyperparameters', {})
    elif isinstance(prior, tuple) and len(prior) in (1, 2):
        family = prior[0]
        hyper = prior[1] if len(prior) == 2 else {}
    else:
        raise TypeError(
            f"prior must be a Prior, a (family, hyperparameters) tuple or a "
            f"mapping, got {type(prior).__name__}"
        )
    if not isinstance(family, str):
        raise ValidationError(f"prior family must be a string, got {family!r}")
    cls = _PRIOR_CLASSES.get(family.lower())
    if cls is None:
        valid = ', '.join(sorted(_PRIOR_CLASSES))
        raise ValidationError(
            f"Unknown prior family: {family!r}. Valid families: {valid}"
        )
    try:
        return cls(**dict(hyper))
    except TypeError as e:
        raise ValidationError(
            f"{family} prior: invalid hyperparameters {dict(hyper)}: {e}"
        ) from e


def log_normal_pdf(x: NDArray, mu: NDArray, sigma: NDArray) -> NDArray:
    """Elementwise Gaussian log density, broadcasting over all arguments."""
    z = (x - mu) / sigma
    return -0.5 * z * z - np.log(sigma) - 0.5 * _LOG_2PI

