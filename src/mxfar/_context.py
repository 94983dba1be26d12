"""Estimation context — mutable accumulator for pipeline artefacts.

An :class:`EstimationContext` travels through one call of
:func:`~mxfar.core.far_estimate` or :func:`~mxfar.core.mxfar_estimate`,
collecting intermediate arrays at their natural computation points.
The context is attached to the returned result, where
:func:`~mxfar.display.print_estimation_summary` reads the estimator
name and bandwidth from it and users can inspect the design rows,
cell assignments and fitted values without re-computing them.
Internal refits (APE folds, bootstrap replicates) run without one.

The context is **not** part of the public serialisation API:
:meth:`~mxfar._results.FARResult.to_dict` and
:meth:`~mxfar._results.MXFARResult.to_dict` skip it automatically.

Lifecycle::

    ┌──────────────────────────────────────────────────┐
    │  far_estimate() / mxfar_estimate()               │
    │  ├─ ctx = EstimationContext()                    │
    │  ├─ design = build_(stacked_)design(…)           │
    │  │   └─ ctx.response / predictors / reference    │
    │  ├─ grid = build_grid(…)                         │
    │  │   └─ ctx.cut_points, ctx.bandwidth            │
    │  ├─ CoefficientFieldEstimator(…).fit(design)     │
    │  │   └─ ctx.n_failed_cells                       │
    │  ├─ engine.predict(…)                            │
    │  │   └─ ctx.fitted, ctx.cells                    │
    │  └─ result.context = ctx                         │
    └──────────────────────────────────────────────────┘
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class EstimationContext:
    """Mutable accumulator for estimation artefacts.

    Every field defaults to ``None`` so the context can be created
    empty and populated incrementally.  A ``None`` field means that
    stage has not run.
    """

    # ---- Design ----------------------------------------------------
    response: np.ndarray | None = None
    """Design responses ``(n_rows, K)``."""

    predictors: np.ndarray | None = None
    """Lagged predictors ``(n_rows, K·p)``."""

    reference: np.ndarray | None = None
    """Reference value at decision time ``(n_rows,)``."""

    series_index: np.ndarray | None = None
    """0-based series label per design row."""

    # ---- Grid ------------------------------------------------------
    cut_points: np.ndarray | None = None
    """Right-closed cell boundaries ``(numpoints,)``."""

    bandwidth: float | None = None
    """Absolute kernel bandwidth ``bwp · range(reference)``."""

    estimator_name: str | None = None
    """Registry name of the point estimator used."""

    # ---- Fit -------------------------------------------------------
    cells: np.ndarray | None = None
    """Cell index of each design row (``-1`` = non-finite reference)."""

    fitted: np.ndarray | None = None
    """In-sample predictions ``(n_rows, K)``."""

    n_failed_cells: int | None = None
    """Number of grid cells the point estimator could not fit."""
