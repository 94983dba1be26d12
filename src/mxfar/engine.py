"""Coefficient field engine — point estimator over a whole grid.

The :class:`CoefficientFieldEstimator` centralises everything that
happens between a raw design and a usable coefficient field:

1. **Grid** — evaluation points and cut points for cell lookup.
2. **Estimator resolution** — a registered name or an injected
   :class:`~mxfar._estimators.PointEstimator`.
3. **Grid sweep** — one point-estimator call per evaluation point.
   Calls are mutually independent and are dispatched through
   ``joblib.Parallel(prefer="threads")`` when ``n_jobs != 1``;
   NumPy's LAPACK solves release the GIL, so threads overlap without
   copying the design.
4. **Block split** — the raw ``(K, 2Kp(g+N))`` output is split into a
   group-mean field and, when the estimator produces series blocks, a
   series field (group mean + series deviation).
5. **Cell lookup prediction** — each design row is predicted with the
   coefficient matrix of the cell its reference value falls into.

Missing cells
~~~~~~~~~~~~~
A :class:`~mxfar._exceptions.LocalEstimationError` (or a LAPACK
failure) at one grid point leaves that cell NaN and is logged at DEBUG
level.  Rows routed to a NaN cell get NaN predictions, so the failure
stays contained in the rows it actually affects.  The boolean
``cell_ok`` mask records which cells were estimated.  The engine never
warns: internal refits (APE folds, bootstrap replicates) may fail
wholesale, so only the public estimation functions report a field in
which every cell is missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from joblib import Parallel, delayed

from ._config import resolve_n_jobs
from ._estimators import PointEstimator, resolve_estimator
from ._exceptions import InputShapeError, LocalEstimationError
from .design import ARDesign
from .grid import MISSING_CELL, Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoefficientField:
    """Coefficient arrays produced by one grid sweep.

    Attributes:
        mean_field: ``(K, Kp, M, g)`` group-mean coefficients.
        subject_field: ``(K, Kp, M, N)`` per-series coefficients, or
            ``None`` when the estimator has no series blocks.
        cell_ok: ``(M,)`` ``True`` where the cell was estimated.
    """

    mean_field: np.ndarray
    subject_field: np.ndarray | None
    cell_ok: np.ndarray

    @property
    def n_failed(self) -> int:
        return int((~self.cell_ok).sum())


class CoefficientFieldEstimator:
    """Evaluate a point estimator on every grid point of a design.

    The estimator is immutable after construction; :meth:`fit` may be
    called repeatedly with different designs that share the grid.

    Attributes:
        grid: The evaluation grid.
        estimator: Resolved point estimator.
        bwp: Bandwidth proportion passed to every local fit.
        n_jobs: joblib worker count for the grid sweep.
    """

    def __init__(
        self,
        grid: Grid,
        *,
        estimator: str | PointEstimator = "local_linear_far",
        bwp: float = 0.1,
        n_jobs: int | None = None,
    ) -> None:
        if not 0 < bwp <= 1:
            msg = f"bwp must lie in (0, 1], got {bwp!r}."
            raise InputShapeError(msg)
        self.grid = grid
        self.estimator: PointEstimator = resolve_estimator(estimator)
        self.bwp = float(bwp)
        self.n_jobs = resolve_n_jobs(n_jobs)

    # ---- Grid sweep -----------------------------------------------

    def _estimate_cell(self, design: ARDesign, u0: float) -> np.ndarray | None:
        """Run the point estimator at one grid value; ``None`` on failure."""
        try:
            return self.estimator.estimate(design, u0, self.bwp)
        except (LocalEstimationError, np.linalg.LinAlgError) as exc:
            logger.debug("Local fit at u0=%.6g failed: %s", u0, exc)
            return None

    def fit(self, design: ARDesign) -> CoefficientField:
        """Sweep the grid and assemble the coefficient field.

        Args:
            design: Single-series or stacked design.

        Returns:
            A :class:`CoefficientField`.  Failed grid points are NaN.
        """
        k, kp = design.k, design.k * design.p
        n_cells = self.grid.n_cells
        n_groups, n_subjects = self.estimator.block_counts(design)
        block = 2 * kp

        if self.n_jobs == 1:
            raw = [self._estimate_cell(design, float(u0)) for u0 in self.grid.points]
        else:
            raw = Parallel(n_jobs=self.n_jobs, prefer="threads")(
                delayed(self._estimate_cell)(design, float(u0))
                for u0 in self.grid.points
            )

        mean_field = np.full((k, kp, n_cells, n_groups), np.nan)
        subject_field = (
            np.full((k, kp, n_cells, n_subjects), np.nan) if n_subjects else None
        )
        cell_ok = np.zeros(n_cells, dtype=bool)
        series_group = design.series_group

        for cell, est in enumerate(raw):
            if est is None:
                continue
            expected = (k, block * (n_groups + n_subjects))
            if est.shape != expected:
                msg = (
                    f"Point estimator '{self.estimator.name}' returned shape "
                    f"{est.shape}, expected {expected}."
                )
                raise ValueError(msg)
            # Only the coefficient half of every block is kept; the
            # local-linear slope half is discarded.
            blocks = est.reshape(k, n_groups + n_subjects, block)[:, :, :kp]
            means = blocks[:, :n_groups, :]  # (K, g, Kp)
            mean_field[:, :, cell, :] = means.transpose(0, 2, 1)
            if subject_field is not None:
                deviations = blocks[:, n_groups:, :]  # (K, N, Kp)
                subject_field[:, :, cell, :] = (
                    means[:, series_group, :] + deviations
                ).transpose(0, 2, 1)
            cell_ok[cell] = True

        if not cell_ok.all():
            logger.debug(
                "%d of %d grid cells could not be estimated.",
                int((~cell_ok).sum()),
                n_cells,
            )

        return CoefficientField(
            mean_field=mean_field, subject_field=subject_field, cell_ok=cell_ok
        )

    # ---- Prediction -----------------------------------------------

    def predict(
        self,
        field: CoefficientField,
        predictors: np.ndarray,
        reference: np.ndarray,
        series_index: np.ndarray | None = None,
        series_group: np.ndarray | None = None,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Predict rows by cell lookup.

        Args:
            field: Output of :meth:`fit`.
            predictors: ``(n, Kp)`` lagged observations.
            reference: ``(n,)`` reference values at decision time.
            series_index: ``(n,)`` series label per row; when given and
                the field has series blocks, each row uses its series'
                own coefficients.
            series_group: ``(N,)`` group of each series; used to pick
                the group-mean field when there are no series blocks.

        Returns:
            ``(predictions (n, K), cells (n,))``.  Rows in a missing
            cell (or with a non-finite reference) are NaN.
        """
        cells = self.grid.assign(reference)
        valid = cells != MISSING_CELL
        safe_cells = np.where(valid, cells, 0)

        if field.subject_field is not None and series_index is not None:
            coefs = field.subject_field[:, :, safe_cells, series_index]  # (K, Kp, n)
        else:
            if series_index is not None and series_group is not None:
                groups = series_group[series_index]
            else:
                groups = np.zeros(safe_cells.shape[0], dtype=np.intp)
            coefs = field.mean_field[:, :, safe_cells, groups]

        predictions = np.einsum("ijn,nj->ni", coefs, predictors)
        predictions[~valid] = np.nan
        return predictions, cells


__all__ = ["CoefficientField", "CoefficientFieldEstimator"]
