"""Multi-fold out-of-sample validation of FAR model specifications.

The accumulated prediction error (APE) compares candidate orders
``(p, d)`` and bandwidths by how well a model fitted on the early part
of each series predicts the next ``r`` observations.

For every series and every fold ``q = 1 … Q``:

1. Truncate the series to its first ``T_q = T − q·r`` observations.
2. Rebuild the evaluation grid from the truncated reference signal and
   refit FAR with the bandwidth proportion rescaled to the shorter
   series::

       bwp_q = bwp · (T / T_q)^{1/5}

   (the ``n^{-1/5}`` rate of a local-linear bandwidth).
3. Predict the ``r`` observations at times ``T_q … T_q + r − 1`` by
   cell lookup in the truncated fit's grid.
4. Add the squared prediction errors (NaN-ignoring) to the total.

The APE is the total averaged over series.  Fold ``q = 1`` predicts the
last ``r`` points; fold ``Q`` predicts the block starting at
``T − Q·r``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np
from joblib import Parallel, delayed

from ._compat import SeriesLike, _ensure_matrix, _ensure_vector
from ._config import resolve_n_jobs
from ._exceptions import InputShapeError
from .core import _fit_far_arrays
from .design import lagged_rows, validate_orders, validate_stack

if TYPE_CHECKING:
    from ._estimators import PointEstimator

logger = logging.getLogger(__name__)

# Rate exponent of the local-linear bandwidth, h ∝ n^{-1/5}.
_BANDWIDTH_RATE = 0.2


def fold_bandwidth(bwp: float, series_length: int, truncated_length: int) -> float:
    """Bandwidth proportion for a fit on the first *truncated_length* points.

    Capped at ``1.0``; a proportion above one would only widen an
    already global kernel.
    """
    scaled = bwp * (series_length / truncated_length) ** _BANDWIDTH_RATE
    return min(float(scaled), 1.0)


def _series_ape(
    y: np.ndarray,
    u: np.ndarray,
    p: int,
    d: int,
    horizon: int,
    folds: int,
    bwp: float,
    numpoints: int,
    estimator: str | PointEstimator,
) -> float:
    """Accumulated squared prediction error of one series over all folds."""
    series_length = y.shape[0]
    total = 0.0
    for q in range(1, folds + 1):
        cutoff = series_length - q * horizon
        grid, engine, field, _ = _fit_far_arrays(
            y[:cutoff],
            u[:cutoff],
            p,
            d,
            fold_bandwidth(bwp, series_length, cutoff),
            numpoints,
            estimator,
            n_jobs=1,
        )
        response, predictors, reference = lagged_rows(
            y, u, p, d, cutoff, cutoff + horizon
        )
        predictions, _ = engine.predict(field, predictors, reference)
        errors = response - predictions
        if np.isnan(errors).all():
            logger.debug(
                "Fold %d (cutoff %d) produced no usable predictions.", q, cutoff
            )
        total += float(np.nansum(errors**2))
    return total


def ape(
    group_sizes: tuple[int, ...] | list[int],
    series_length: int,
    y: SeriesLike,
    u: SeriesLike,
    p: int,
    d: int,
    horizon: int,
    folds: int,
    bwp: float = 0.1,
    numpoints: int = 50,
    *,
    estimator: str | PointEstimator = "local_linear_far",
    n_jobs: int | None = None,
) -> float:
    """Accumulated prediction error of FAR(p, d) averaged over series.

    Args:
        group_sizes: Number of series in each group.  Only the total
            matters here; every series is validated on its own.
        series_length: Common length ``T`` of every series.
        y: ``(N·T, K)`` stacked observations.
        u: ``(N·T,)`` stacked reference signal.
        p: Autoregressive order.
        d: Lag of the reference signal.
        horizon: Number of time points ``r`` predicted per fold.
        folds: Number of folds ``Q``.
        bwp: Bandwidth proportion for the full-length series; each
            fold rescales it to its truncated length.
        numpoints: Number of grid cut points.
        estimator: Point estimator used for every fold fit.
        n_jobs: Parallel workers over series.  ``None`` uses the
            configured default.

    Returns:
        The APE: total squared one-block-ahead prediction error per
        series.  Always finite and non-negative.

    Raises:
        InputShapeError: If the inputs are inconsistent or
            ``T − folds·horizon <= max(p, d)``.

    Examples:
        Compare two reference lags on the same data; the smaller APE
        indicates the better specification::

            ape((10,), 500, y, u, p=1, d=2, horizon=50, folds=4)
            ape((10,), 500, y, u, p=1, d=3, horizon=50, folds=4)
    """
    y_arr = _ensure_matrix(y, name="y")
    u_arr = _ensure_vector(u, name="u")
    p, d = validate_orders(p, d)
    n_series, series_length = validate_stack(group_sizes, series_length, y_arr, u_arr)

    for name, value in (("horizon", horizon), ("folds", folds)):
        if int(value) != value or value < 1:
            msg = f"'{name}' must be a positive integer, got {value!r}."
            raise InputShapeError(msg)
    horizon, folds = int(horizon), int(folds)
    if not 0 < bwp <= 1:
        msg = f"bwp must lie in (0, 1], got {bwp!r}."
        raise InputShapeError(msg)

    lagrm = max(p, d)
    shortest = series_length - folds * horizon
    if shortest <= lagrm:
        msg = (
            f"series_length - folds*horizon = {shortest} must exceed "
            f"max(p, d) = {lagrm}."
        )
        raise InputShapeError(msg)

    def _one(i: int) -> float:
        rows = slice(i * series_length, (i + 1) * series_length)
        return _series_ape(
            y_arr[rows], u_arr[rows], p, d, horizon, folds, bwp, numpoints, estimator
        )

    n_jobs = resolve_n_jobs(n_jobs)
    if n_jobs == 1:
        per_series = [_one(i) for i in range(n_series)]
    else:
        per_series = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_one)(i) for i in range(n_series)
        )

    return float(np.sum(per_series) / n_series)


__all__ = ["ape", "fold_bandwidth"]
