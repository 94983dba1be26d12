"""Functional-coefficient autoregressive estimation.

A functional-coefficient autoregressive model of order ``p`` with
reference lag ``d`` (FAR(p, d)) lets the VAR coefficients depend on
an observed reference signal ``u``::

    y_t = Σ_{l=1..p} Φ_l(u_{t-d}) · y_{t-l} + ε_t

The coefficient functions ``Φ_l(·)`` are unknown and smooth.  They are
estimated on a fixed grid of reference values (see :mod:`mxfar.grid`)
by a local-linear kernel fit at each grid point; every observation
then borrows the coefficients of the grid cell its reference value
falls into, which gives in-sample predictions and residuals.

The mixed-effects variant (MXFAR) pools several equal-length series
organised in groups.  Each group has a mean coefficient function and
each series a random deviation from it::

    y_it = Σ_l (Φ_{g,l}(u_{i,t-d}) + B_{i,l}(u_{i,t-d})) · y_{i,t-l} + ε_it

Both fields are returned: the group means and the per-series
coefficients (group mean + deviation).  Residuals use each series' own
coefficients.

Optionally the functional partial directed coherence (fPDC) of the
estimated fields is computed at the Fourier frequencies ``k / T``.

References:
    Chen, R. & Tsay, R. S. (1993). Functional-coefficient
    autoregressive models. *J. American Statistical Association*,
    88(421), 298–308.
    Harville, D. A. (1977). Maximum likelihood approaches to variance
    component estimation and to related problems. *J. American
    Statistical Association*, 72(358), 320–338.
"""

from __future__ import annotations

import warnings
from typing import TYPE_CHECKING

import numpy as np

from ._compat import SeriesLike, _ensure_matrix, _ensure_vector
from ._context import EstimationContext
from ._results import FARResult, FPDCResult, MXFARResult, MXFPDCResult
from .design import ARDesign, build_design, build_stacked_design
from .engine import CoefficientField, CoefficientFieldEstimator
from .grid import Grid, build_grid
from .spectral import fourier_frequencies
from .spectral import fpdc as functional_pdc

if TYPE_CHECKING:
    from ._estimators import PointEstimator


# ------------------------------------------------------------------ #
# Shared fitting steps
# ------------------------------------------------------------------ #


def _fit_field(
    design: ARDesign,
    grid_signal: np.ndarray,
    bwp: float,
    numpoints: int,
    estimator: str | PointEstimator,
    n_jobs: int | None,
    ctx: EstimationContext | None = None,
) -> tuple[Grid, CoefficientFieldEstimator, CoefficientField]:
    """Build the grid, sweep it and record the artefacts in *ctx*."""
    grid = build_grid(grid_signal, numpoints)
    engine = CoefficientFieldEstimator(
        grid, estimator=estimator, bwp=bwp, n_jobs=n_jobs
    )
    field = engine.fit(design)

    if ctx is not None:
        ctx.response = design.response
        ctx.predictors = design.predictors
        ctx.reference = design.reference
        ctx.series_index = design.series_index
        ctx.cut_points = grid.cut_points
        finite = design.reference[np.isfinite(design.reference)]
        ctx.bandwidth = float(bwp * np.ptp(finite)) if finite.size else None
        ctx.estimator_name = engine.estimator.name
        ctx.n_failed_cells = field.n_failed
    return grid, engine, field


def _fit_far_arrays(
    y: np.ndarray,
    u: np.ndarray,
    p: int,
    d: int,
    bwp: float,
    numpoints: int,
    estimator: str | PointEstimator = "local_linear_far",
    n_jobs: int | None = None,
    ctx: EstimationContext | None = None,
) -> tuple[Grid, CoefficientFieldEstimator, CoefficientField, np.ndarray]:
    """Fit FAR on validated arrays.

    The grid is built from the whole reference signal ``u``.

    Returns:
        ``(grid, engine, field, residuals)``; residuals are
        ``(T − max(p, d), K)`` with NaN rows in missing cells.
    """
    design = build_design(y, u, p, d)
    grid, engine, field = _fit_field(
        design, u, bwp, numpoints, estimator, n_jobs, ctx
    )
    fitted, cells = engine.predict(field, design.predictors, design.reference)
    if ctx is not None:
        ctx.fitted = fitted
        ctx.cells = cells
    return grid, engine, field, design.response - fitted


def _warn_if_all_failed(field: CoefficientField) -> None:
    """Warn the caller of a public estimator when no cell was estimated."""
    if not field.cell_ok.any():
        warnings.warn(
            f"The local fit failed at all {field.cell_ok.shape[0]} grid points; "
            "every coefficient and residual is missing.  Consider a larger "
            "bandwidth proportion (bwp).",
            UserWarning,
            stacklevel=3,
        )


# ------------------------------------------------------------------ #
# Public API
# ------------------------------------------------------------------ #


def far_estimate(
    y: SeriesLike,
    u: SeriesLike,
    p: int,
    d: int,
    bwp: float = 0.1,
    numpoints: int = 50,
    fpdc: bool = False,
    *,
    estimator: str | PointEstimator = "local_linear_far",
    n_jobs: int | None = None,
) -> FARResult:
    """Estimate a functional-coefficient autoregressive model.

    Args:
        y: ``(T, K)`` observations (a 1-D input is a univariate
            series).  Accepts NumPy arrays, pandas or Polars objects.
        u: ``(T,)`` reference signal.
        p: Autoregressive order (``>= 1``).
        d: Lag of the reference signal (``>= 1``).
        bwp: Bandwidth as a proportion of the range of the reference
            signal, in ``(0, 1]``.
        numpoints: Number of grid cut points; the coefficient field is
            evaluated at ``numpoints + 1`` points.
        fpdc: Also compute the functional PDC of the field at the
            Fourier frequencies ``k / T``, ``k = 1 … ⌊T/2⌋``.
        estimator: Registered point-estimator name or an object
            implementing :class:`~mxfar._estimators.PointEstimator`.
        n_jobs: Parallel workers for the grid sweep.  ``None`` uses
            the configured default (see :func:`mxfar.set_n_jobs`).

    Returns:
        A :class:`~mxfar._results.FARResult`.  Grid points where the
        local fit failed are NaN in ``coefficient_field`` and
        ``cell_ok`` is ``False`` for them; rows routed to such cells
        have NaN residuals.

    Raises:
        InputShapeError: If ``y`` and ``u`` differ in length, the
            orders are invalid, or the series is too short.

    Warns:
        UserWarning: If the local fit failed at every grid point.

    Examples:
        >>> from mxfar import far_estimate, far_simulate
        >>> sim = far_simulate(500, 2, None, lambda x, r: [[0.3 * np.tanh(x)]],
        ...                    random_state=0)
        >>> fit = far_estimate(sim.y, sim.u, p=1, d=2)
        >>> fit.coefficient_field.shape
        (1, 1, 51)
    """
    y_arr = _ensure_matrix(y, name="y")
    u_arr = _ensure_vector(u, name="u")

    ctx = EstimationContext()
    grid, _, field, residuals = _fit_far_arrays(
        y_arr, u_arr, p, d, bwp, numpoints, estimator, n_jobs, ctx
    )
    _warn_if_all_failed(field)
    coefficient_field = field.mean_field[..., 0]

    fpdc_result = None
    if fpdc:
        freqs = fourier_frequencies(y_arr.shape[0])
        fpdc_result = FPDCResult(
            frequencies=freqs, fpdc=functional_pdc(coefficient_field, freqs)
        )

    return FARResult(
        grid_points=grid.points,
        coefficient_field=coefficient_field,
        residuals=residuals,
        cell_ok=field.cell_ok,
        p=int(p),
        d=int(d),
        bwp=float(bwp),
        fpdc=fpdc_result,
        context=ctx,
    )


def mxfar_estimate(
    group_sizes: tuple[int, ...] | list[int],
    series_length: int,
    y: SeriesLike,
    u: SeriesLike,
    p: int,
    d: int,
    bwp: float = 0.1,
    numpoints: int = 50,
    fpdc: bool = False,
    *,
    estimator: str | PointEstimator = "local_linear_mxfar",
    n_jobs: int | None = None,
) -> MXFARResult:
    """Estimate a mixed-effects functional-coefficient AR model.

    The series are stacked row-wise in series order: rows
    ``i·T … (i+1)·T − 1`` of ``y`` and ``u`` belong to series ``i``,
    and the first ``group_sizes[0]`` series form group 0, the next
    ``group_sizes[1]`` group 1, and so on.

    Args:
        group_sizes: Number of series in each group.
        series_length: Common length ``T`` of every series.
        y: ``(N·T, K)`` stacked observations.
        u: ``(N·T,)`` stacked reference signal.
        p: Autoregressive order.
        d: Lag of the reference signal.
        bwp: Bandwidth proportion of the pooled reference range.
        numpoints: Number of grid cut points.
        fpdc: Also compute the fPDC of the group-mean and series
            fields.
        estimator: Registered point-estimator name or an injected
            :class:`~mxfar._estimators.PointEstimator` that returns
            group blocks followed by series blocks.
        n_jobs: Parallel workers for the grid sweep.

    Returns:
        A :class:`~mxfar._results.MXFARResult`.

    Raises:
        InputShapeError: If the stacked inputs disagree with
            ``group_sizes`` and ``series_length``.
    """
    y_arr = _ensure_matrix(y, name="y")
    u_arr = _ensure_vector(u, name="u")
    group_sizes = tuple(int(g) for g in group_sizes)

    ctx = EstimationContext()
    design = build_stacked_design(group_sizes, series_length, y_arr, u_arr, p, d)
    grid, engine, field = _fit_field(
        design, u_arr, bwp, numpoints, estimator, n_jobs, ctx
    )
    _warn_if_all_failed(field)

    subject_field = field.subject_field
    if subject_field is None:
        # Estimator without series blocks: every series uses its group
        # mean, or the single pooled mean when only one block comes back.
        n_blocks = field.mean_field.shape[-1]
        groups = (
            design.series_group
            if n_blocks == design.n_groups
            else np.zeros(design.n_series, dtype=np.intp)
        )
        subject_field = field.mean_field[:, :, :, groups]
        field = CoefficientField(
            mean_field=field.mean_field,
            subject_field=subject_field,
            cell_ok=field.cell_ok,
        )

    fitted, cells = engine.predict(
        field,
        design.predictors,
        design.reference,
        series_index=design.series_index,
        series_group=design.series_group,
    )
    ctx.fitted = fitted
    ctx.cells = cells

    fpdc_result = None
    if fpdc:
        freqs = fourier_frequencies(int(series_length))
        fpdc_mean = np.stack(
            [
                functional_pdc(field.mean_field[..., g], freqs)
                for g in range(field.mean_field.shape[-1])
            ],
            axis=-1,
        )
        fpdc_subject = np.stack(
            [
                functional_pdc(subject_field[..., i], freqs)
                for i in range(design.n_series)
            ],
            axis=-1,
        )
        fpdc_result = MXFPDCResult(
            frequencies=freqs, fpdc_mean=fpdc_mean, fpdc_subject=fpdc_subject
        )

    return MXFARResult(
        grid_points=grid.points,
        mean_field=field.mean_field,
        subject_field=subject_field,
        residuals=design.response - fitted,
        cell_ok=field.cell_ok,
        group_sizes=group_sizes,
        series_length=int(series_length),
        p=int(p),
        d=int(d),
        bwp=float(bwp),
        fpdc=fpdc_result,
        context=ctx,
    )


__all__ = ["far_estimate", "mxfar_estimate"]
