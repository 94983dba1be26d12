"""Bootstrap test for functional-coefficient nonlinearity.

Null hypothesis: every series follows an intercept-free linear VAR(p).
Alternative: the coefficients vary with the reference signal (FAR).

Test statistic
--------------
For each series fit both models on the same time points
``t = max(p, d) … T − 1``.  With ``L = max(p, d)``, the statistic is
the relative reduction in residual sum of squares, pooled over series
and response dimensions::

    T = SS_VAR / SS_FAR − 1

computed on residual rows after a further ``L`` rows are dropped (the
first rows of each fit are the least stable).  Under the null both fits
explain the data equally well and ``T`` is close to zero; a nonlinear
dependence on the reference signal makes ``SS_FAR`` markedly smaller.

Series residual bootstrap
-------------------------
The null distribution of ``T`` is approximated by resampling whole
series.  For each observed series ``j`` keep

* the VAR fitted values (the null model's signal),
* the FAR residuals, centred per response dimension,
* the reference values at decision time ``u[t − d]``,

all on the ``T − L`` aligned rows.  A replicate draws ``N`` donor
series with replacement; slot ``i`` with donor ``j`` becomes the
pseudo-series ``VAR fitted_j + centred FAR residual_j`` with reference
signal ``u_j``.  By construction the pseudo-series satisfy the linear
null while keeping the donor's realistic noise.  Both models are refit
on every pseudo-series and the replicate statistic is recomputed
without the extra trimming.

The p-value is the share of non-missing replicates with
``T* >= T_obs`` (see :mod:`mxfar.pvalues`).

Failure policy
--------------
A replicate whose VAR refit fails, or whose FAR refit leaves no usable
residuals, is recorded as NaN (logged at DEBUG level) and excluded from
the p-value.  If every replicate fails the p-value is NaN and a
``UserWarning`` is issued.

All bootstrap indices are drawn before any replicate runs, and
replicates are merged by index, so a given ``random_state`` gives the
same result for every ``n_jobs``.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from joblib import Parallel, delayed
from statsmodels.tsa.ar_model import AutoReg
from statsmodels.tsa.api import VAR

from ._compat import SeriesLike, _ensure_matrix, _ensure_vector
from ._config import resolve_n_jobs
from ._exceptions import InputShapeError, RefitError
from ._results import NonlinearityTestResult
from .core import _fit_far_arrays
from .design import validate_orders, validate_stack
from .pvalues import bootstrap_p_value, clopper_pearson_interval, format_p_value
from .resampling import generate_bootstrap_indices

if TYPE_CHECKING:
    from ._estimators import PointEstimator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _SeriesComponents:
    """Aligned pieces of one observed series used to build pseudo-series."""

    var_fitted: np.ndarray  # (T − L, K)
    far_centred: np.ndarray  # (T − L, K), missing rows filled with 0
    reference: np.ndarray  # (T − L,)
    var_tail: np.ndarray  # (T − 2L, K) VAR residuals for the statistic
    far_tail: np.ndarray  # (T − 2L, K) FAR residuals for the statistic


# ------------------------------------------------------------------ #
# Model fits
# ------------------------------------------------------------------ #


def fit_linear_var(y: np.ndarray, p: int) -> tuple[np.ndarray, np.ndarray]:
    """Fit an intercept-free VAR(p) by least squares.

    Uses ``statsmodels`` ``VAR`` for ``K >= 2`` and ``AutoReg`` for a
    univariate series.

    Args:
        y: ``(T, K)`` observations.
        p: Lag order.

    Returns:
        ``(residuals, fitted)``, each ``(T − p, K)``.
    """
    if y.shape[1] == 1:
        res = AutoReg(y[:, 0], lags=p, trend="n").fit()
        resid = np.asarray(res.resid, dtype=float)[:, np.newaxis]
        fitted = np.asarray(res.fittedvalues, dtype=float)[:, np.newaxis]
    else:
        res = VAR(y).fit(maxlags=p, trend="n")
        resid = np.asarray(res.resid, dtype=float)
        fitted = np.asarray(res.fittedvalues, dtype=float)
    return resid, fitted


def _column_centre(resid: np.ndarray) -> np.ndarray:
    """Subtract the NaN-ignoring column means; all-NaN columns stay NaN."""
    finite = np.isfinite(resid)
    counts = finite.sum(axis=0)
    sums = np.where(finite, resid, 0.0).sum(axis=0)
    means = np.divide(
        sums, counts, out=np.full(resid.shape[1], np.nan), where=counts > 0
    )
    return resid - means


def _variance_ratio(var_resid: np.ndarray, far_resid: np.ndarray) -> float:
    """``SS_VAR / SS_FAR − 1`` with NaN-ignoring sums of squares."""
    ss_var = float(np.nansum(var_resid**2))
    ss_far = float(np.nansum(far_resid**2))
    if ss_far == 0.0:
        return float("nan")
    return ss_var / ss_far - 1.0


def _series_components(
    y: np.ndarray,
    u: np.ndarray,
    p: int,
    d: int,
    bwp: float,
    numpoints: int,
    estimator: str | PointEstimator,
) -> _SeriesComponents:
    lagrm = max(p, d)
    var_resid, var_fitted = fit_linear_var(y, p)
    # VAR rows start at t = p; FAR rows at t = L.
    var_resid = var_resid[lagrm - p :]
    var_fitted = var_fitted[lagrm - p :]

    _, _, _, far_resid = _fit_far_arrays(
        y, u, p, d, bwp, numpoints, estimator, n_jobs=1
    )
    centred = np.nan_to_num(_column_centre(far_resid), nan=0.0)
    reference = u[lagrm - d : y.shape[0] - d]
    return _SeriesComponents(
        var_fitted=var_fitted,
        far_centred=centred,
        reference=reference,
        var_tail=var_resid[lagrm:],
        far_tail=far_resid[lagrm:],
    )


# ------------------------------------------------------------------ #
# Bootstrap replicate
# ------------------------------------------------------------------ #


def _replicate_statistic(
    donors: np.ndarray,
    components: list[_SeriesComponents],
    p: int,
    d: int,
    bwp: float,
    numpoints: int,
    estimator: str | PointEstimator,
) -> float:
    """Refit both models on the pseudo-series of one replicate."""
    lagrm = max(p, d)
    var_parts: list[np.ndarray] = []
    far_parts: list[np.ndarray] = []
    for slot, donor in enumerate(donors):
        comp = components[int(donor)]
        y_b = comp.var_fitted + comp.far_centred
        try:
            var_resid, _ = fit_linear_var(y_b, p)
            _, _, _, far_resid = _fit_far_arrays(
                y_b, comp.reference, p, d, bwp, numpoints, estimator, n_jobs=1
            )
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise RefitError(
                f"Refit of slot {slot} (donor series {int(donor)}) failed: {exc}"
            ) from exc
        if not np.isfinite(far_resid).any():
            raise RefitError(
                f"FAR refit of slot {slot} (donor series {int(donor)}) left "
                "no usable residuals."
            )
        var_parts.append(var_resid[lagrm - p :])
        far_parts.append(far_resid)
    return _variance_ratio(np.concatenate(var_parts), np.concatenate(far_parts))


def _safe_replicate(b: int, donors: np.ndarray, *args: object) -> float:
    try:
        return _replicate_statistic(donors, *args)  # type: ignore[arg-type]
    except RefitError as exc:
        logger.debug("Bootstrap replicate %d failed: %s", b, exc)
        return float("nan")


# ------------------------------------------------------------------ #
# Public API
# ------------------------------------------------------------------ #


def nonlinearity_test(
    group_sizes: tuple[int, ...] | list[int],
    series_length: int,
    y: SeriesLike,
    u: SeriesLike,
    p: int,
    d: int,
    bwp: float = 0.1,
    numpoints: int = 50,
    bootstrap_reps: int = 200,
    random_state: int | None = None,
    n_jobs: int | None = None,
    *,
    estimator: str | PointEstimator = "local_linear_far",
    precision: int = 3,
    p_value_threshold_one: float = 0.05,
    p_value_threshold_two: float = 0.01,
    p_value_threshold_three: float = 0.001,
) -> NonlinearityTestResult:
    """Test a linear VAR null against functional-coefficient nonlinearity.

    Args:
        group_sizes: Number of series in each group.
        series_length: Common length ``T`` of every series.
        y: ``(N·T, K)`` stacked observations.
        u: ``(N·T,)`` stacked reference signal.
        p: Autoregressive order of both models.
        d: Lag of the reference signal.
        bwp: Bandwidth proportion of the FAR fits.
        numpoints: Number of grid cut points of the FAR fits.
        bootstrap_reps: Number of bootstrap replicates ``B``.
        random_state: Seed for the bootstrap indices.
        n_jobs: Parallel workers over replicates.  ``None`` uses the
            configured default.
        estimator: Point estimator for the FAR fits.
        precision: Decimal places of the formatted p-value.
        p_value_threshold_one: First significance level.
        p_value_threshold_two: Second significance level.
        p_value_threshold_three: Third significance level.

    Returns:
        A :class:`~mxfar._results.NonlinearityTestResult`.

    Raises:
        InputShapeError: If the inputs are inconsistent or the series
            are too short (``T − 2·max(p, d)`` must be at least 1).

    Warns:
        UserWarning: If every bootstrap replicate failed.
    """
    y_arr = _ensure_matrix(y, name="y")
    u_arr = _ensure_vector(u, name="u")
    p, d = validate_orders(p, d)
    group_sizes = tuple(int(g) for g in group_sizes)
    n_series, series_length = validate_stack(group_sizes, series_length, y_arr, u_arr)

    lagrm = max(p, d)
    if series_length - 2 * lagrm < 1:
        msg = (
            f"series_length={series_length} is too short for the bootstrap "
            f"with max(p, d)={lagrm}; need series_length > {2 * lagrm}."
        )
        raise InputShapeError(msg)
    if int(bootstrap_reps) != bootstrap_reps or bootstrap_reps < 1:
        msg = f"bootstrap_reps must be a positive integer, got {bootstrap_reps!r}."
        raise InputShapeError(msg)
    bootstrap_reps = int(bootstrap_reps)

    # ---- Observed fits ----
    components = [
        _series_components(
            y_arr[i * series_length : (i + 1) * series_length],
            u_arr[i * series_length : (i + 1) * series_length],
            p,
            d,
            bwp,
            numpoints,
            estimator,
        )
        for i in range(n_series)
    ]
    statistic = _variance_ratio(
        np.concatenate([c.var_tail for c in components]),
        np.concatenate([c.far_tail for c in components]),
    )

    # ---- Bootstrap ----
    donor_indices = generate_bootstrap_indices(n_series, bootstrap_reps, random_state)
    args = (components, p, d, bwp, numpoints, estimator)

    n_jobs = resolve_n_jobs(n_jobs)
    if n_jobs == 1:
        replicates = [
            _safe_replicate(b, donor_indices[b], *args) for b in range(bootstrap_reps)
        ]
    else:
        replicates = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_safe_replicate)(b, donor_indices[b], *args)
            for b in range(bootstrap_reps)
        )
    bootstrap_statistics = np.asarray(replicates, dtype=float)

    p_value, n_exceed, n_valid = bootstrap_p_value(statistic, bootstrap_statistics)
    n_failed = bootstrap_reps - n_valid
    if n_valid == 0:
        warnings.warn(
            f"All {bootstrap_reps} bootstrap replicates failed; the p-value "
            "is undefined.",
            UserWarning,
            stacklevel=2,
        )
    elif n_failed:
        logger.debug("%d of %d bootstrap replicates failed.", n_failed, bootstrap_reps)

    return NonlinearityTestResult(
        statistic=statistic,
        bootstrap_statistics=bootstrap_statistics,
        p_value=p_value,
        p_value_str=format_p_value(
            p_value,
            precision,
            p_value_threshold_one,
            p_value_threshold_two,
            p_value_threshold_three,
        ),
        p_value_ci=clopper_pearson_interval(n_exceed, n_valid),
        n_bootstrap=bootstrap_reps,
        n_failed=n_failed,
        group_sizes=group_sizes,
        series_length=series_length,
        p=p,
        d=d,
        bwp=float(bwp),
        p_value_threshold_one=p_value_threshold_one,
        p_value_threshold_two=p_value_threshold_two,
        p_value_threshold_three=p_value_threshold_three,
    )


__all__ = ["fit_linear_var", "nonlinearity_test"]
