"""
Tests for input validators.
"""

import numpy as np
import pytest

from bayesmixed.core.exceptions import DimensionError, ValidationError
from bayesmixed.core.validation import (
    check_array,
    check_finite,
    check_1d,
    check_2d,
    check_consistent_length,
    check_min_samples,
    check_positive_int,
    check_positive,
    check_probability,
)


class TestCheckArray:

    def test_int_converted_to_float(self):
        arr = check_array([1, 2, 3], 'x')
        assert arr.dtype == np.float64

    def test_float32_kept(self):
        arr = check_array(np.ones(3, dtype=np.float32), 'x')
        assert arr.dtype == np.float32

    def test_strings_rejected(self):
        with pytest.raises(ValidationError, match="x: non-numeric"):
            check_array(['a', 'b'], 'x')

    def test_mixed_rejected(self):
        with pytest.raises(ValidationError, match="object dtype"):
            check_array([1, 'a', None], 'x')


class TestShapeChecks:

    def test_finite(self):
        check_finite(np.array([1.0, 2.0]), 'x')
        with pytest.raises(ValidationError, match="1 NaN, 1 Inf"):
            check_finite(np.array([np.nan, np.inf, 1.0]), 'x')

    def test_finite_reports_first_index(self):
        with pytest.raises(ValidationError, match="first at index 2"):
            check_finite(np.array([1.0, 2.0, np.nan]), 'y')
        with pytest.raises(ValidationError, match=r"first at index \(1, 0\)"):
            check_finite(np.array([[1.0, 2.0], [np.inf, 1.0]]), 'X')

    def test_1d_2d(self):
        check_1d(np.zeros(3), 'x')
        check_2d(np.zeros((3, 2)), 'x')
        with pytest.raises(DimensionError, match="expected 1D"):
            check_1d(np.zeros((3, 2)), 'x')
        with pytest.raises(DimensionError, match="expected 2D"):
            check_2d(np.zeros(3), 'x')

    def test_consistent_length(self):
        check_consistent_length(np.zeros(3), np.zeros((3, 2)), names=('a', 'b'))
        with pytest.raises(DimensionError, match="a=3, b=4"):
            check_consistent_length(np.zeros(3), np.zeros(4), names=('a', 'b'))

    def test_consistent_length_name_count(self):
        with pytest.raises(ValueError):
            check_consistent_length(np.zeros(3), np.zeros(3), names=('a',))

    def test_min_samples(self):
        with pytest.raises(ValidationError, match="at least 3"):
            check_min_samples(np.zeros(2), 3, 'y')


class TestScalarChecks:

    def test_positive_int(self):
        assert check_positive_int(4, 'n') == 4
        assert check_positive_int(np.int64(0), 'seed', minimum=0) == 0

    @pytest.mark.parametrize('bad', [0, -1, 2.5, True, '3'])
    def test_positive_int_rejects(self, bad):
        with pytest.raises(ValidationError):
            check_positive_int(bad, 'n')

    def test_positive(self):
        assert check_positive(0.5, 'x') == 0.5
        for bad in (0.0, -1.0, np.inf, np.nan, False):
            with pytest.raises(ValidationError):
                check_positive(bad, 'x')

    def test_probability(self):
        assert check_probability(0.8, 'p') == 0.8
        for bad in (0.0, 1.0, 1.5, -0.1):
            with pytest.raises(ValidationError, match="must lie in"):
                check_probability(bad, 'p')
