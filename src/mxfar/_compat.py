"""Input compatibility layer for array-like series data.

All public API functions accept NumPy arrays and pandas
DataFrames/Series.  This module adds transparent support for Polars
DataFrames and Series: when a user passes a Polars object it is
converted at the boundary so that internal code — which operates on
float NumPy arrays — remains unchanged.

Polars is **not** a required dependency.  If it is not installed, only
NumPy and pandas inputs are recognised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
import pandas as pd

from ._exceptions import InputShapeError

if TYPE_CHECKING:
    import polars as pl

    SeriesLike: TypeAlias = (
        np.ndarray | pd.DataFrame | pd.Series | pl.DataFrame | pl.Series
    )
else:
    SeriesLike: TypeAlias = np.ndarray | pd.DataFrame | pd.Series

# Runtime detection — avoids a hard dependency on Polars.
try:
    import polars as pl

    _HAS_POLARS = True
except ImportError:
    _HAS_POLARS = False


def _to_numpy(obj: Any) -> np.ndarray:
    """Convert a supported container to a NumPy array (no copy if possible)."""
    if isinstance(obj, (pd.DataFrame, pd.Series)):
        return obj.to_numpy()

    if _HAS_POLARS:
        if isinstance(obj, pl.LazyFrame):
            return obj.collect().to_numpy()
        if isinstance(obj, (pl.DataFrame, pl.Series)):
            return obj.to_numpy()

    return np.asarray(obj)


def _ensure_matrix(obj: SeriesLike, *, name: str = "y") -> np.ndarray:
    """Return *obj* as a 2-D float array of shape ``(T, K)``.

    A 1-D input is interpreted as a univariate series (``K = 1``).

    Raises:
        InputShapeError: If the input has more than two dimensions or
            no rows.
    """
    arr = np.asarray(_to_numpy(obj), dtype=float)
    if arr.ndim == 1:
        arr = arr[:, np.newaxis]
    if arr.ndim != 2:
        msg = f"'{name}' must be 1-D or 2-D, got shape {arr.shape}."
        raise InputShapeError(msg)
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        msg = f"'{name}' must be non-empty, got shape {arr.shape}."
        raise InputShapeError(msg)
    return arr


def _ensure_vector(obj: SeriesLike, *, name: str = "u") -> np.ndarray:
    """Return *obj* as a 1-D float array.

    Single-column 2-D inputs (e.g. a one-column DataFrame) are
    flattened.

    Raises:
        InputShapeError: If the input cannot be viewed as a vector.
    """
    arr = np.asarray(_to_numpy(obj), dtype=float)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr[:, 0]
    if arr.ndim != 1:
        msg = f"'{name}' must be a vector, got shape {arr.shape}."
        raise InputShapeError(msg)
    return arr
