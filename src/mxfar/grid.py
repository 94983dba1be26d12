"""Evaluation grid over the range of the reference signal.

Functional coefficients are never estimated at every observed value of
the reference signal.  Instead they are evaluated on a fixed grid and
each observation borrows the estimate of the grid cell it falls into.

Construction
------------
Let ``u`` be the reference signal and ``n = numpoints``:

1. Bounds are the 5th and 95th empirical percentiles of ``u`` — the
   tails are too sparse for a stable local fit.
2. ``n`` equally spaced **cut points** ``c_0 < … < c_{n-1}`` span the
   bounds.
3. **Evaluation points** are the ``n − 1`` midpoints of adjacent cut
   points, extended by one extrapolated point below the first and one
   above the last midpoint (common spacing), giving ``n + 1`` points.

The cut points partition the real line into ``n + 1`` right-closed
cells::

    (-inf, c_0], (c_0, c_1], …, (c_{n-2}, c_{n-1}], (c_{n-1}, inf)

and cell ``i`` is represented by evaluation point ``i``.  The two
open-ended cells catch everything outside the percentile bounds, so
every finite value has exactly one cell.

Cell indices are 0-based and index directly into the last axis of a
coefficient field.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ._exceptions import InputShapeError

# Percentile bounds of the grid.
_LOWER_PERCENTILE = 5.0
_UPPER_PERCENTILE = 95.0

# Cell index assigned to non-finite values.
MISSING_CELL = -1


@dataclass(frozen=True)
class Grid:
    """Cut points and evaluation points for one reference signal.

    Attributes:
        cut_points: ``(numpoints,)`` right-closed cell boundaries.
        points: ``(numpoints + 1,)`` evaluation points, one per cell.
    """

    cut_points: np.ndarray
    points: np.ndarray

    @property
    def numpoints(self) -> int:
        """Number of cut points used to build the grid."""
        return int(self.cut_points.shape[0])

    @property
    def n_cells(self) -> int:
        """Number of cells (and evaluation points): ``numpoints + 1``."""
        return int(self.points.shape[0])

    def assign(self, x: np.ndarray | float) -> np.ndarray:
        """Map each value of *x* to its cell index.

        Cells are closed on the right, so a value equal to a cut point
        belongs to the cell that ends there.  ``searchsorted`` with
        ``side="left"`` returns exactly that index: the first cut point
        that is ``>= x``.

        Args:
            x: Scalar or array of reference-signal values.

        Returns:
            Integer array (same shape as *x*) of indices in
            ``[0, numpoints]``; non-finite values map to
            :data:`MISSING_CELL`.
        """
        x = np.asarray(x, dtype=float)
        cells = np.searchsorted(self.cut_points, x, side="left").astype(np.intp)
        return np.where(np.isfinite(x), cells, MISSING_CELL)


def build_grid(u: np.ndarray, numpoints: int = 50) -> Grid:
    """Build the quantile-bounded evaluation grid for a reference signal.

    Args:
        u: Reference-signal values.  NaNs are ignored when computing
            the percentile bounds.
        numpoints: Number of cut points (``>= 2``).  The grid has
            ``numpoints + 1`` evaluation points.

    Returns:
        A :class:`Grid`.

    Raises:
        InputShapeError: If *numpoints* < 2, *u* has no finite values,
            or its 5th and 95th percentiles coincide.
    """
    if int(numpoints) != numpoints or numpoints < 2:
        msg = f"numpoints must be an integer >= 2, got {numpoints!r}."
        raise InputShapeError(msg)
    numpoints = int(numpoints)

    u = np.asarray(u, dtype=float).ravel()
    finite = u[np.isfinite(u)]
    if finite.size == 0:
        msg = "The reference signal has no finite values."
        raise InputShapeError(msg)

    lower, upper = np.percentile(finite, [_LOWER_PERCENTILE, _UPPER_PERCENTILE])
    if not upper > lower:
        msg = (
            "The reference signal is (nearly) constant: its 5th and 95th "
            f"percentiles are both {lower!r}."
        )
        raise InputShapeError(msg)

    cut_points = np.linspace(lower, upper, numpoints)
    spacing = cut_points[1] - cut_points[0]

    # Midpoints c_i + spacing/2 for i = 0..n-2, then one extrapolated
    # point at each end.
    midpoints = 0.5 * (cut_points[:-1] + cut_points[1:])
    points = np.concatenate(
        [[midpoints[0] - spacing], midpoints, [midpoints[-1] + spacing]]
    )
    return Grid(cut_points=cut_points, points=points)


__all__ = ["MISSING_CELL", "Grid", "build_grid"]
