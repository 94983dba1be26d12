"""Local-linear point estimator for a single series (or a pooled stack).

At grid value ``u0`` the FAR(p) coefficient matrix ``F(u0)`` and its
derivative ``F'(u0)`` solve the kernel-weighted least-squares problem

    min  Σ_t  K_h(u_{t-d} − u0) · ‖ y_t − [F(u0), F'(u0)] z_t ‖²

with ``z_t = [x_t, x_t·(u_{t-d} − u0)]``.  All ``K`` response
dimensions share the same regressors, so one ``(2Kp × 2Kp)`` normal
matrix serves every column of the response.

When handed a stacked multi-series design this estimator ignores the
series labels and pools every row, which is the fixed-effects-only
special case of :class:`~mxfar._estimators._mxfar.LocalLinearMXFAR`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .._exceptions import LocalEstimationError
from ._local import (
    bandwidth,
    is_well_conditioned,
    kernel_weights,
    local_regressors,
    usable_rows,
    weighted_cross_products,
)

if TYPE_CHECKING:
    from ..design import ARDesign


@dataclass(frozen=True)
class LocalLinearFAR:
    """Epanechnikov local-linear estimator for one FAR coefficient matrix.

    Returns a single ``(K, 2Kp)`` group block per call.
    """

    name: str = "local_linear_far"

    def block_counts(self, design: ARDesign) -> tuple[int, int]:  # noqa: ARG002
        return 1, 0

    def estimate(self, design: ARDesign, u0: float, bwp: float) -> np.ndarray:
        """Solve the weighted local-linear problem at *u0*.

        Raises:
            LocalEstimationError: If fewer than ``2Kp`` rows fall inside
                the kernel window or the weighted normal matrix is
                singular.
        """
        ok = usable_rows(design.response, design.predictors, design.reference)
        h = bandwidth(design.reference[ok], bwp)
        w = kernel_weights(design.reference, u0, h)
        w[~ok] = 0.0

        active = w > 0
        n_params = 2 * design.k * design.p
        if int(active.sum()) < n_params:
            raise LocalEstimationError(
                f"Only {int(active.sum())} rows within bandwidth {h:.4g} of "
                f"u0={u0:.4g}; need at least {n_params}."
            )

        Z = local_regressors(design.predictors[active], design.reference[active], u0)
        S, r = weighted_cross_products(Z, design.response[active], w[active])
        if not is_well_conditioned(S):
            raise LocalEstimationError(
                f"Singular local design at u0={u0:.4g} (bandwidth {h:.4g})."
            )
        beta = np.linalg.solve(S, r)  # (2Kp, K)
        return beta.T
