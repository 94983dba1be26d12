"""Autoregressive design construction.

A FAR(p) model with reference lag d explains ``y[t]`` by the ``p``
previous observation vectors, with coefficients that depend on the
reference value ``u[t-d]``.  With ``L = max(p, d)`` the first ``L``
time points cannot be explained (their lags or reference values fall
before the start of the series), so a series of length ``T`` yields
``T - L`` design rows:

* ``response[r]   = y[L + r]``                          — ``(K,)``
* ``predictors[r] = [y[L+r-1], y[L+r-2], …, y[L+r-p]]`` — ``(K·p,)``
  with lag ``l`` occupying columns ``K·(l-1) … K·l - 1``
* ``reference[r]  = u[L + r - d]``

Stacked designs (several equal-length series concatenated row-wise)
are built series by series and concatenated in series order, so row
``i·(T-L) + r`` belongs to series ``i`` and time ``L + r``.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._exceptions import InputShapeError


@dataclass(frozen=True)
class ARDesign:
    """Design rows for one series or a stack of equal-length series.

    Attributes:
        response: ``(n_rows, K)`` observations being explained.
        predictors: ``(n_rows, K·p)`` lagged observations.
        reference: ``(n_rows,)`` reference value at decision time.
        series_index: ``(n_rows,)`` 0-based series label per row.
        group_sizes: Number of series in each group (``(1,)`` for a
            single series).
        p: Autoregressive order.
        d: Reference-signal lag.
    """

    response: np.ndarray
    predictors: np.ndarray
    reference: np.ndarray
    series_index: np.ndarray
    group_sizes: tuple[int, ...]
    p: int
    d: int

    @property
    def k(self) -> int:
        """Dimension of the observation vectors."""
        return int(self.response.shape[1])

    @property
    def n_rows(self) -> int:
        return int(self.response.shape[0])

    @property
    def n_series(self) -> int:
        return int(sum(self.group_sizes))

    @property
    def n_groups(self) -> int:
        return len(self.group_sizes)

    @property
    def series_group(self) -> np.ndarray:
        """``(n_series,)`` 0-based group label of each series."""
        return np.repeat(np.arange(self.n_groups), self.group_sizes)


def validate_orders(p: int, d: int) -> tuple[int, int]:
    """Check that *p* and *d* are positive integers and return them."""
    for name, value in (("p", p), ("d", d)):
        if int(value) != value or value < 1:
            msg = f"'{name}' must be a positive integer, got {value!r}."
            raise InputShapeError(msg)
    return int(p), int(d)


def lagged_rows(
    y: np.ndarray,
    u: np.ndarray,
    p: int,
    d: int,
    start: int,
    stop: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Build response, predictor and reference rows for ``t in [start, stop)``.

    Requires ``start >= max(p, d)`` so every lag is inside the series.
    Used both for in-sample designs (``start = max(p, d)``) and for
    out-of-sample prediction windows.
    """
    k = y.shape[1]
    t = np.arange(start, stop)
    response = y[t]
    predictors = np.empty((t.size, k * p))
    for lag in range(1, p + 1):
        predictors[:, k * (lag - 1) : k * lag] = y[t - lag]
    reference = u[t - d]
    return response, predictors, reference


def build_design(y: np.ndarray, u: np.ndarray, p: int, d: int) -> ARDesign:
    """Build the design for a single series.

    Args:
        y: ``(T, K)`` observations.
        u: ``(T,)`` reference signal.
        p: Autoregressive order.
        d: Reference-signal lag.

    Raises:
        InputShapeError: If lengths differ or the series is too short
            to yield at least one design row.
    """
    return build_stacked_design((1,), y.shape[0], y, u, p, d)


def build_stacked_design(
    group_sizes: tuple[int, ...],
    series_length: int,
    y: np.ndarray,
    u: np.ndarray,
    p: int,
    d: int,
) -> ARDesign:
    """Build the concatenated design for ``sum(group_sizes)`` series.

    Args:
        group_sizes: Number of series per group.
        series_length: Common length ``T`` of every series.
        y: ``(sum(group_sizes)·T, K)`` stacked observations.
        u: ``(sum(group_sizes)·T,)`` stacked reference signal.
        p: Autoregressive order.
        d: Reference-signal lag.

    Raises:
        InputShapeError: On any shape inconsistency.
    """
    p, d = validate_orders(p, d)
    n_series, series_length = validate_stack(group_sizes, series_length, y, u)
    lagrm = max(p, d)
    if series_length <= lagrm:
        msg = (
            f"series_length={series_length} leaves no design rows for "
            f"max(p, d)={lagrm}."
        )
        raise InputShapeError(msg)

    parts = [
        lagged_rows(
            y[i * series_length : (i + 1) * series_length],
            u[i * series_length : (i + 1) * series_length],
            p,
            d,
            lagrm,
            series_length,
        )
        for i in range(n_series)
    ]
    rows_per_series = series_length - lagrm
    return ARDesign(
        response=np.concatenate([part[0] for part in parts]),
        predictors=np.concatenate([part[1] for part in parts]),
        reference=np.concatenate([part[2] for part in parts]),
        series_index=np.repeat(np.arange(n_series), rows_per_series),
        group_sizes=tuple(int(g) for g in group_sizes),
        p=p,
        d=d,
    )


def validate_stack(
    group_sizes: tuple[int, ...],
    series_length: int,
    y: np.ndarray,
    u: np.ndarray,
) -> tuple[int, int]:
    """Check stacked inputs against ``group_sizes`` and ``series_length``.

    Every series is assumed to have the same length; this is a
    precondition of the stacked layout (and of the bootstrap in the
    nonlinearity test), not something inferred from the data.

    Returns:
        ``(n_series, series_length)`` as Python ints.
    """
    sizes = np.asarray(group_sizes)
    if sizes.ndim != 1 or sizes.size == 0:
        msg = "group_sizes must be a non-empty sequence of positive integers."
        raise InputShapeError(msg)
    if np.any(sizes < 1) or np.any(sizes != np.round(sizes)):
        msg = f"group_sizes must contain positive integers, got {list(group_sizes)}."
        raise InputShapeError(msg)
    if int(series_length) != series_length or series_length < 1:
        msg = f"series_length must be a positive integer, got {series_length!r}."
        raise InputShapeError(msg)

    n_series = int(sizes.sum())
    series_length = int(series_length)
    expected = n_series * series_length
    if y.shape[0] != expected:
        msg = (
            f"'y' has {y.shape[0]} rows, expected {expected} "
            f"({n_series} series x {series_length} time points)."
        )
        raise InputShapeError(msg)
    if u.shape[0] != expected:
        msg = (
            f"'u' has {u.shape[0]} values, expected {expected} "
            f"({n_series} series x {series_length} time points)."
        )
        raise InputShapeError(msg)
    return n_series, series_length


__all__ = [
    "ARDesign",
    "build_design",
    "build_stacked_design",
    "lagged_rows",
    "validate_orders",
    "validate_stack",
]
