"""Tests for the evaluation grid and cell assignment."""

import numpy as np
import pytest

from mxfar._exceptions import InputShapeError
from mxfar.grid import MISSING_CELL, build_grid


class TestBuildGrid:
    """Tests for build_grid() construction."""

    def test_cardinality(self):
        u = np.random.default_rng(0).standard_normal(500)
        grid = build_grid(u, numpoints=50)
        assert grid.cut_points.shape == (50,)
        assert grid.points.shape == (51,)
        assert grid.numpoints == 50
        assert grid.n_cells == 51

    def test_percentile_bounds_and_midpoints(self):
        # 5th and 95th percentiles of 0..100 are 5 and 95.
        grid = build_grid(np.arange(101.0), numpoints=10)
        np.testing.assert_allclose(grid.cut_points, np.arange(5.0, 96.0, 10.0))
        np.testing.assert_allclose(grid.points, np.arange(0.0, 101.0, 10.0))

    def test_points_strictly_increasing(self):
        u = np.random.default_rng(1).uniform(-3, 3, 200)
        grid = build_grid(u, numpoints=20)
        assert np.all(np.diff(grid.points) > 0)

    def test_nan_values_ignored(self):
        u = np.arange(101.0)
        with_nan = np.concatenate([u, [np.nan, np.nan]])
        np.testing.assert_allclose(
            build_grid(with_nan, 10).cut_points, build_grid(u, 10).cut_points
        )

    def test_numpoints_too_small_raises(self):
        with pytest.raises(InputShapeError, match="numpoints"):
            build_grid(np.arange(10.0), numpoints=1)

    def test_non_integer_numpoints_raises(self):
        with pytest.raises(InputShapeError):
            build_grid(np.arange(10.0), numpoints=2.5)

    def test_constant_signal_raises(self):
        with pytest.raises(InputShapeError, match="constant"):
            build_grid(np.ones(100), numpoints=10)

    def test_all_nan_raises(self):
        with pytest.raises(InputShapeError, match="finite"):
            build_grid(np.full(10, np.nan), numpoints=5)


class TestAssign:
    """Tests for Grid.assign() right-closed cell lookup."""

    def setup_method(self):
        self.grid = build_grid(np.arange(101.0), numpoints=10)

    def test_every_finite_value_has_a_cell(self):
        x = np.random.default_rng(2).uniform(-50, 150, 1000)
        cells = self.grid.assign(x)
        assert cells.min() >= 0
        assert cells.max() <= self.grid.numpoints

    def test_monotone_non_decreasing(self):
        x = np.sort(np.random.default_rng(3).uniform(-50, 150, 500))
        assert np.all(np.diff(self.grid.assign(x)) >= 0)

    def test_cut_point_belongs_to_left_cell(self):
        cells = self.grid.assign(self.grid.cut_points)
        np.testing.assert_array_equal(cells, np.arange(10))

    def test_just_above_cut_point_moves_right(self):
        cells = self.grid.assign(self.grid.cut_points + 1e-9)
        np.testing.assert_array_equal(cells, np.arange(1, 11))

    def test_tails(self):
        assert self.grid.assign(-1e6) == 0
        assert self.grid.assign(1e6) == 10

    def test_non_finite_values_missing(self):
        cells = self.grid.assign(np.array([np.nan, np.inf, -np.inf, 50.0]))
        np.testing.assert_array_equal(
            cells, [MISSING_CELL, MISSING_CELL, MISSING_CELL, 5]
        )

    def test_evaluation_point_falls_in_its_own_cell(self):
        cells = self.grid.assign(self.grid.points)
        np.testing.assert_array_equal(cells, np.arange(11))
