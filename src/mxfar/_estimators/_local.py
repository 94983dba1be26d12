"""Kernel weighting and local-linear regressors shared by the estimators.

Local-linear estimation approximates each coefficient function near
``u0`` by a first-order Taylor expansion::

    F(u) ≈ F(u0) + F'(u0)·(u - u0)

so the regressors of one design row become ``[x, x·(u - u0)]`` and the
weighted least-squares solution stacks ``F(u0)`` on top of
``F'(u0)``.  Rows are weighted by an Epanechnikov kernel of bandwidth
``h = bwp · (max u − min u)``; the kernel has compact support, which is
why a grid value far in the tail can end up with too few rows to fit.
"""

from __future__ import annotations

import numpy as np

from .._exceptions import LocalEstimationError

# Weighted normal matrices with a larger condition number are treated
# as singular.
_MAX_CONDITION = 1e12


def bandwidth(reference: np.ndarray, bwp: float) -> float:
    """Absolute bandwidth ``bwp · range(reference)`` over finite values."""
    finite = reference[np.isfinite(reference)]
    if finite.size == 0:
        raise LocalEstimationError("No finite reference values in the design.")
    h = float(bwp) * float(finite.max() - finite.min())
    if not h > 0:
        raise LocalEstimationError(
            f"Bandwidth must be positive, got h={h!r} (bwp={bwp!r})."
        )
    return h


def epanechnikov(z: np.ndarray) -> np.ndarray:
    """Epanechnikov kernel ``0.75·(1 − z²)`` on ``|z| <= 1``."""
    return np.where(np.abs(z) <= 1.0, 0.75 * (1.0 - z**2), 0.0)


def usable_rows(
    response: np.ndarray, predictors: np.ndarray, reference: np.ndarray
) -> np.ndarray:
    """Boolean mask of rows whose response, predictors and reference are finite."""
    return (
        np.isfinite(response).all(axis=1)
        & np.isfinite(predictors).all(axis=1)
        & np.isfinite(reference)
    )


def kernel_weights(reference: np.ndarray, u0: float, h: float) -> np.ndarray:
    """Kernel weight of each row; NaN references get zero weight."""
    with np.errstate(invalid="ignore"):
        w = epanechnikov((reference - u0) / h)
    return np.nan_to_num(w, nan=0.0)


def local_regressors(
    predictors: np.ndarray, reference: np.ndarray, u0: float
) -> np.ndarray:
    """Local-linear regressors ``[x, x·(u − u0)]`` of shape ``(n, 2·K·p)``."""
    return np.hstack([predictors, predictors * (reference - u0)[:, np.newaxis]])


def weighted_cross_products(
    Z: np.ndarray, Y: np.ndarray, w: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Return ``(Z'WZ, Z'WY)`` for diagonal weights *w*."""
    Zw = Z * w[:, np.newaxis]
    return Zw.T @ Z, Zw.T @ Y


def is_well_conditioned(S: np.ndarray) -> bool:
    """Whether *S* is safely invertible."""
    if not np.all(np.isfinite(S)):
        return False
    with np.errstate(divide="ignore", invalid="ignore"):
        cond = np.linalg.cond(S)
    return bool(cond < _MAX_CONDITION)
