"""Tests for array-like input conversion."""

import numpy as np
import pandas as pd
import pytest

from mxfar import InputShapeError, far_estimate
from mxfar._compat import _ensure_matrix, _ensure_vector


class TestEnsureMatrix:
    """Tests for the _ensure_matrix converter."""

    def test_vector_becomes_column(self):
        out = _ensure_matrix(np.arange(5))
        assert out.shape == (5, 1)
        assert out.dtype == float

    def test_dataframe(self):
        df = pd.DataFrame({"a": [1, 2, 3], "b": [4, 5, 6]})
        np.testing.assert_array_equal(_ensure_matrix(df), df.to_numpy(dtype=float))

    def test_list_of_lists(self):
        assert _ensure_matrix([[1, 2], [3, 4]]).shape == (2, 2)

    def test_rejects_3d(self):
        with pytest.raises(InputShapeError, match="'y'"):
            _ensure_matrix(np.zeros((2, 2, 2)))

    def test_rejects_empty(self):
        with pytest.raises(InputShapeError, match="non-empty"):
            _ensure_matrix(np.zeros((0, 2)), name="obs")


class TestEnsureVector:
    """Tests for the _ensure_vector converter."""

    def test_series(self):
        s = pd.Series([1.0, 2.0, 3.0], name="u")
        np.testing.assert_array_equal(_ensure_vector(s), [1.0, 2.0, 3.0])

    def test_single_column_frame_flattened(self):
        df = pd.DataFrame({"u": [1.0, 2.0]})
        assert _ensure_vector(df).shape == (2,)

    def test_rejects_matrix(self):
        with pytest.raises(InputShapeError, match="vector"):
            _ensure_vector(np.zeros((3, 2)))


class TestPolarsInput:
    """Verify that Polars objects are converted at the boundary."""

    def setup_method(self):
        self.pl = pytest.importorskip("polars")

    def test_polars_frame(self):
        pl_df = self.pl.DataFrame({"a": [1.0, 2.0], "b": [3.0, 4.0]})
        np.testing.assert_array_equal(_ensure_matrix(pl_df), [[1.0, 3.0], [2.0, 4.0]])

    def test_polars_lazyframe_collected(self):
        lf = self.pl.DataFrame({"a": [1.0, 2.0]}).lazy()
        assert _ensure_matrix(lf).shape == (2, 1)

    def test_polars_series(self):
        s = self.pl.Series("u", [1.0, 2.0, 3.0])
        assert _ensure_vector(s).shape == (3,)

    def test_end_to_end(self):
        rng = np.random.default_rng(42)
        y = rng.standard_normal((200, 2))
        u = rng.standard_normal(200)
        y_pl = self.pl.DataFrame({"y1": y[:, 0], "y2": y[:, 1]})
        u_pl = self.pl.Series("u", u)
        result = far_estimate(y_pl, u_pl, p=1, d=1, bwp=0.3, numpoints=5)
        expected = far_estimate(y, u, p=1, d=1, bwp=0.3, numpoints=5)
        np.testing.assert_array_equal(result.residuals, expected.residuals)
