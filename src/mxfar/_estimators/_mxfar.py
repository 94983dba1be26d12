"""Local-linear mixed-effects point estimator for stacked series.

Model at grid value ``u0`` for series ``i`` in group ``g``::

    y_it = (β_g + b_i)' z_it + ε_it,   b_i ~ N(0, D),   ε_it ~ N(0, σ²)

with the local-linear regressors ``z_it = [x_it, x_it·(u − u0)]`` of
length ``q = 2Kp`` and every row weighted by the kernel
``w_it = K_h(u_{i,t-d} − u0)``.  ``β_g`` is the group-mean local fit,
``b_i`` the series' random deviation.

Henderson's mixed-model equations
---------------------------------
With ``S_i = Z_i'W_iZ_i`` and ``r_i = Z_i'W_iY_i`` the joint BLUP/GLS
solution for one response dimension ``k`` solves::

    ┌                                        ┐ ┌     ┐   ┌            ┐
    │ Σ_{i∈g} S_i     …  S_i       …         │ │ β_g │   │ Σ_{i∈g} r_i│
    │ S_i             …  S_i + Λ_k …         │ │ b_i │ = │ r_i        │
    └                                        ┘ └     ┘   └            ┘

where ``Λ_k = σ_k² D_k⁻¹`` (diagonal) shrinks each deviation towards
zero.  The system has ``q·(g + N)`` unknowns — no ``n × n`` covariance
matrix is ever formed.

Variance components
-------------------
``σ_k²`` and the diagonal of ``D_k`` come from a method-of-moments step
on per-series local fits ``β̂_i = S_i⁻¹ r_i``:

* ``σ_k²`` — kernel-weighted mean squared residual pooled over series;
* ``D_jk`` — pooled within-group variance of ``β̂_ijk`` minus the mean
  sampling variance ``σ_k²·[S_i⁻¹ (Z_i'W_i²Z_i) S_i⁻¹]_jj``, floored at a
  small positive value.

Series whose own local design is singular contribute to the Henderson
system but not to the moment step.
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

# Relative floor for random-effect variances (keeps Λ finite).
_VARIANCE_FLOOR = 1e-8


@dataclass(frozen=True)
class _SeriesMoments:
    """Per-series sufficient statistics inside the kernel window."""

    S: np.ndarray  # (q, q)  Z'WZ
    r: np.ndarray  # (q, K)  Z'WY
    beta: np.ndarray | None  # (q, K) own local fit, None if singular
    sampling_var: np.ndarray | None  # (q,) diag of sandwich S⁻¹ Z'W²Z S⁻¹
    rss: np.ndarray  # (K,) weighted residual sum of squares
    weight: float  # Σ w


@dataclass(frozen=True)
class LocalLinearMXFAR:
    """Local-linear estimator with group means and series random effects.

    Returns ``g`` group blocks followed by ``N`` deviation blocks, each
    ``(K, 2Kp)``.
    """

    name: str = "local_linear_mxfar"

    def block_counts(self, design: ARDesign) -> tuple[int, int]:
        return design.n_groups, design.n_series

    def estimate(self, design: ARDesign, u0: float, bwp: float) -> np.ndarray:
        """Solve Henderson's equations at *u0* for every response dimension.

        Raises:
            LocalEstimationError: If any group has a singular pooled
                local design or the joint system cannot be solved.
        """
        k, p = design.k, design.p
        q = 2 * k * p
        n_groups, n_series = design.n_groups, design.n_series
        series_group = design.series_group

        ok = usable_rows(design.response, design.predictors, design.reference)
        h = bandwidth(design.reference[ok], bwp)
        w = kernel_weights(design.reference, u0, h)
        w[~ok] = 0.0

        moments = [
            self._series_moments(design, w, i, u0, q) for i in range(n_series)
        ]

        # ---- Identifiability of each group mean -------------------
        for g in range(n_groups):
            S_g = sum(m.S for m, sg in zip(moments, series_group) if sg == g)
            if not is_well_conditioned(S_g):
                raise LocalEstimationError(
                    f"Singular pooled local design for group {g} at "
                    f"u0={u0:.4g} (bandwidth {h:.4g})."
                )

        sigma2, D = self._variance_components(moments, series_group, n_groups, k, q)

        # ---- Henderson system (shared left-hand side) ------------
        size = q * (n_groups + n_series)
        C = np.zeros((size, size))
        rhs = np.zeros((size, k))
        for i, m in enumerate(moments):
            g = series_group[i]
            fg = slice(g * q, (g + 1) * q)
            ri = slice((n_groups + i) * q, (n_groups + i + 1) * q)
            C[fg, fg] += m.S
            C[fg, ri] = m.S
            C[ri, fg] = m.S
            C[ri, ri] = m.S
            rhs[fg] += m.r
            rhs[ri] = m.r

        # ---- Solve per response dimension (Λ_k differs) -----------
        solution = np.empty((size, k))
        random_diag = np.arange(n_groups * q, size)
        for col in range(k):
            penalty = sigma2[col] / D[:, col]  # (q,)
            C_k = C.copy()
            C_k[random_diag, random_diag] += np.tile(penalty, n_series)
            try:
                solution[:, col] = np.linalg.solve(C_k, rhs[:, col])
            except np.linalg.LinAlgError as exc:
                raise LocalEstimationError(
                    f"Henderson system not solvable at u0={u0:.4g}: {exc}"
                ) from exc

        if not np.all(np.isfinite(solution)):
            raise LocalEstimationError(f"Non-finite solution at u0={u0:.4g}.")

        # (size, K) → blocks of q rows → (K, q·(g+N)) with blocks side by side.
        return solution.reshape(n_groups + n_series, q, k).transpose(2, 0, 1).reshape(
            k, size
        )

    # ---- Helpers --------------------------------------------------

    @staticmethod
    def _series_moments(
        design: ARDesign, w: np.ndarray, i: int, u0: float, q: int
    ) -> _SeriesMoments:
        k = design.k
        rows = (design.series_index == i) & (w > 0)
        if not rows.any():
            return _SeriesMoments(
                S=np.zeros((q, q)),
                r=np.zeros((q, k)),
                beta=None,
                sampling_var=None,
                rss=np.zeros(k),
                weight=0.0,
            )

        Z = local_regressors(design.predictors[rows], design.reference[rows], u0)
        Y = design.response[rows]
        w_i = w[rows]
        S, r = weighted_cross_products(Z, Y, w_i)

        if int(rows.sum()) <= q or not is_well_conditioned(S):
            return _SeriesMoments(
                S=S, r=r, beta=None, sampling_var=None, rss=np.zeros(k), weight=0.0
            )

        S_inv = np.linalg.inv(S)
        beta = S_inv @ r
        resid = Y - Z @ beta
        meat = (Z * (w_i**2)[:, np.newaxis]).T @ Z
        sampling_var = np.diag(S_inv @ meat @ S_inv)
        rss = (w_i[:, np.newaxis] * resid**2).sum(axis=0)
        return _SeriesMoments(
            S=S,
            r=r,
            beta=beta,
            sampling_var=sampling_var,
            rss=rss,
            weight=float(w_i.sum()),
        )

    @staticmethod
    def _variance_components(
        moments: list[_SeriesMoments],
        series_group: np.ndarray,
        n_groups: int,
        k: int,
        q: int,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Moment estimates of ``σ²`` ``(K,)`` and ``diag D`` ``(q, K)``."""
        fitted = [m for m in moments if m.beta is not None]
        total_weight = sum(m.weight for m in fitted)
        if total_weight > 0:
            sigma2 = sum(m.rss for m in fitted) / total_weight
        else:
            sigma2 = np.zeros(k)

        # Pooled within-group spread of the per-series fits.
        ss = np.zeros((q, k))
        dof = 0
        for g in range(n_groups):
            betas = [
                m.beta
                for m, sg in zip(moments, series_group)
                if sg == g and m.beta is not None
            ]
            if len(betas) < 2:
                continue
            stacked = np.stack(betas)  # (n_g, q, K)
            ss += ((stacked - stacked.mean(axis=0)) ** 2).sum(axis=0)
            dof += len(betas) - 1

        if dof > 0:
            mean_sampling = np.mean([m.sampling_var for m in fitted], axis=0)  # (q,)
            D = ss / dof - mean_sampling[:, np.newaxis] * sigma2[np.newaxis, :]
        else:
            D = np.zeros((q, k))

        scale = np.maximum(sigma2, 1.0)
        floor = _VARIANCE_FLOOR * scale[np.newaxis, :]
        D = np.maximum(D, floor)
        # A zero noise variance would remove all shrinkage and leave the
        # group and series blocks collinear.
        sigma2 = np.maximum(sigma2, _VARIANCE_FLOOR * scale)
        return sigma2, D
