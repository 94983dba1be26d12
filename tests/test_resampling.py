"""Tests for series-level bootstrap index generation."""

import numpy as np
import pytest

from mxfar import InputShapeError
from mxfar.resampling import generate_bootstrap_indices, n_distinct_resamples


class TestDistinctResamples:
    def test_small_counts(self):
        assert n_distinct_resamples(1) == 1
        assert n_distinct_resamples(2) == 3
        assert n_distinct_resamples(3) == 10

    def test_cap(self):
        assert n_distinct_resamples(50, cap=1000) == 1000


class TestGenerateBootstrapIndices:
    def test_shape_and_range(self):
        idx = generate_bootstrap_indices(6, 40, random_state=0)
        assert idx.shape == (40, 6)
        assert idx.min() >= 0
        assert idx.max() < 6

    def test_reproducible(self):
        a = generate_bootstrap_indices(5, 20, random_state=42)
        b = generate_bootstrap_indices(5, 20, random_state=42)
        np.testing.assert_array_equal(a, b)

    def test_generator_accepted(self):
        rng = np.random.default_rng(1)
        idx = generate_bootstrap_indices(4, 3, random_state=rng)
        assert idx.shape == (3, 4)

    def test_draws_with_replacement(self):
        idx = generate_bootstrap_indices(5, 200, random_state=0)
        repeats = [len(set(row)) < 5 for row in idx]
        assert any(repeats)

    def test_few_series_warns(self):
        with pytest.warns(UserWarning, match="distinct series resamples"):
            generate_bootstrap_indices(2, 10, random_state=0)

    @pytest.mark.parametrize(("n_series", "n_bootstrap"), [(0, 5), (3, 0), (2.5, 4)])
    def test_invalid_counts_raise(self, n_series, n_bootstrap):
        with pytest.raises(InputShapeError):
            generate_bootstrap_indices(n_series, n_bootstrap)
