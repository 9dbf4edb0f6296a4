"""
Dataset: the in-memory observations every model is fit to.

Dataset is the "I have data" abstraction for the core. Loading and
cleaning files (CSV parsing, standardization) happen upstream; the core
receives ordered vectors and keeps that order end to end, because
Pareto-k diagnostics and pointwise ELPD differences are indexed by it.

Usage:
    from bayesmixed import Dataset

    ds = Dataset.from_arrays(
        response=bounce_time,
        covariates={'age': age_std},
        groups=county,
        group_name='county',
    )
    ds = Dataset.from_dataframe(
        df, response='bounce_time', covariates=['age'], group='county'
    )

    ds.n_observations        # 160
    ds.n_groups              # 8
    ds.group_levels          # original labels, sorted
    ds.group_codes           # dense 0-based index per observation
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING, Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from bayesmixed.core.exceptions import ValidationError
from bayesmixed.core.validation import (
    check_array,
    check_finite,
    check_1d,
    check_consistent_length,
    check_min_samples,
)

if TYPE_CHECKING:
    import pandas as pd

INTERCEPT = 'intercept'


@dataclass(frozen=True)
class Dataset:
    """
    Validated, immutable observations for a single-grouping-factor model.

    Construct via the factory classmethods, not directly.

    Attributes:
        response: Response vector y, shape (n,).
        covariates: Covariate matrix, shape (n, k).
        covariate_names: Column names of ``covariates``.
        group_codes: Dense 0-based group index per observation, shape (n,).
        group_levels: Original group labels, index j ↔ code j, shape (J,).
        group_name: Name of the grouping factor (e.g. 'county').
        response_name: Name of the response (e.g. 'bounce_time').
    """
    response: NDArray
    covariates: NDArray
    covariate_names: tuple[str, ...]
    group_codes: NDArray
    group_levels: NDArray
    group_name: str
    response_name: str = 'y'
    _metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    # === Factory Methods ===

    @classmethod
    def from_arrays(
        cls,
        *,
        response: ArrayLike,
        covariates: Mapping[str, ArrayLike],
        groups: ArrayLike,
        group_name: str = 'group',
        response_name: str = 'y',
    ) -> Dataset:
        """
        Construct from NumPy arrays.

        Args:
            response: Response values (n,).
            covariates: Mapping of covariate name → values (n,). Order is kept.
            groups: Group label per observation (strings or integers).
            group_name: Name of the grouping factor.
            response_name: Name of the response.

        Raises:
            ValidationError: Non-numeric or non-finite values, reserved or
                duplicate names, fewer than 3 observations or 2 groups.
            DimensionError: Inconsistent lengths.
        """
        y = check_array(response, 'response')
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()
        check_1d(y, 'response')
        check_finite(y, 'response')
        check_min_samples(y, 3, 'response')

        if not covariates:
            raise ValidationError("covariates: at least one covariate is required")

        names = tuple(covariates.keys())
        if INTERCEPT in names:
            raise ValidationError(
                f"covariates: '{INTERCEPT}' is reserved for the model intercept"
            )
        columns = []
        for name in names:
            col = check_array(covariates[name], f"covariates['{name}']")
            check_1d(col, f"covariates['{name}']")
            check_finite(col, f"covariates['{name}']")
            columns.append(col)

        g = np.asarray(groups)
        if g.ndim != 1:
            raise ValidationError(
                f"groups: expected 1D labels, got shape {g.shape}"
            )
        check_consistent_length(
            y, *columns, g,
            names=('response', *(f"covariates['{n}']" for n in names), 'groups'),
        )

        levels, codes = np.unique(g, return_inverse=True)
        if len(levels) < 2:
            raise ValidationError(
                f"groups: '{group_name}' has only {len(levels)} level(s), "
                f"need at least 2"
            )

        X = np.column_stack(columns).astype(np.float64)

        return cls(
            response=y.astype(np.float64),
            covariates=X,
            covariate_names=names,
            group_codes=codes.astype(np.int64).ravel(),
            group_levels=levels,
            group_name=group_name,
            response_name=response_name,
            _metadata={'source': 'arrays'},
        )

    @classmethod
    def from_dataframe(
        cls,
        df: 'pd.DataFrame',
        *,
        response: str,
        covariates: Sequence[str],
        group: str,
    ) -> Dataset:
        """Construct from a pandas DataFrame, keeping its row order."""
        missing = [c for c in (response, *covariates, group) if c not in df.columns]
        if missing:
            raise ValidationError(
                f"DataFrame has no column(s) {missing}. Available: {list(df.columns)}"
            )
        ds = cls.from_arrays(
            response=df[response].to_numpy(dtype=np.float64),
            covariates={c: df[c].to_numpy(dtype=np.float64) for c in covariates},
            groups=df[group].to_numpy(),
            group_name=group,
            response_name=response,
        )
        ds._metadata.update({'source': 'dataframe', 'index': list(df.index)})
        return ds

    # === Properties ===

    @property
    def n_observations(self) -> int:
        return int(self.response.shape[0])

    @property
    def n_groups(self) -> int:
        return int(self.group_levels.shape[0])

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    # === Access ===

    def covariate(self, name: str) -> NDArray:
        """
        Column for one term; the intercept is a column of ones.

        Raises:
            KeyError: If the term is unknown, with the available names.
        """
        if name == INTERCEPT:
            return np.ones(self.n_observations, dtype=np.float64)
        if name not in self.covariate_names:
            raise KeyError(
                f"Dataset has no covariate '{name}'. "
                f"Available: {(INTERCEPT,) + self.covariate_names}"
            )
        return self.covariates[:, self.covariate_names.index(name)]

    def design_matrix(self, terms: Sequence[str]) -> NDArray:
        """Columns for the given terms, shape (n, len(terms))."""
        return np.column_stack([self.covariate(t) for t in terms])

    def group_index(self, labels: ArrayLike) -> NDArray:
        """
        Map group labels to training codes.

        Labels not seen at load time map to -1.
        """
        labels = np.asarray(labels)
        pos = np.searchsorted(self.group_levels, labels)
        pos = np.clip(pos, 0, self.n_groups - 1)
        known = self.group_levels[pos] == labels
        return np.where(known, pos, -1).astype(np.int64)

    def fingerprint(self) -> str:
        """
        SHA-256 content hash over values and their order.

        Two datasets with the same fingerprint describe the same
        observations in the same order.
        """
        h = hashlib.sha256()
        h.update(np.ascontiguousarray(self.response).tobytes())
        h.update(np.ascontiguousarray(self.covariates).tobytes())
        h.update(np.ascontiguousarray(self.group_codes).tobytes())
        h.update(repr(self.group_levels.tolist()).encode())
        h.update(repr((self.covariate_names, self.group_name)).encode())
        return h.hexdigest()

    def __repr__(self) -> str:
        return (
            f"Dataset(n={self.n_observations}, "
            f"covariates={list(self.covariate_names)}, "
            f"{self.group_name}={self.n_groups} groups)"
        )
