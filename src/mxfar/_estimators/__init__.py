"""Point-estimator registry and protocol.

A point estimator solves the local-linear weighted least-squares
problem at **one** value ``u0`` of the reference signal and returns
raw coefficient blocks.  The coefficient field engine
(:class:`~mxfar.engine.CoefficientFieldEstimator`) calls it once per
grid point and never needs to know which implementation it holds.

Output layout
~~~~~~~~~~~~~
Every estimator returns a ``(K, 2·K·p·(g + N))`` matrix made of
``g + N`` blocks of width ``2·K·p``:

* blocks ``0 … g-1`` — one per group: the group-mean local fit;
* blocks ``g … g+N-1`` — one per series: that series' deviation
  (random effect) from its group mean.

Within a block the first ``K·p`` columns are the coefficient matrix at
``u0`` and the last ``K·p`` columns are its derivative with respect to
the reference signal (the local-linear slope).  A single-series
estimator reports ``(g, N) = (1, 0)``: one group block, no deviations.

Adding a new estimator
~~~~~~~~~~~~~~~~~~~~~~
1. Create a module under ``_estimators/`` with a class that satisfies
   the :class:`PointEstimator` protocol.
2. Register it in :data:`_ESTIMATOR_REGISTRY` below.
3. Pass its name (or an instance) as ``estimator=`` to the public
   estimation functions.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import numpy as np

if TYPE_CHECKING:
    from ..design import ARDesign

# ------------------------------------------------------------------ #
# Estimator protocol
# ------------------------------------------------------------------ #


@runtime_checkable
class PointEstimator(Protocol):
    """Interface that every point estimator must satisfy."""

    name: str
    """Registry name of the estimator."""

    def block_counts(self, design: ARDesign) -> tuple[int, int]:
        """Return ``(g, N)``: number of group and series blocks produced."""
        ...

    def estimate(self, design: ARDesign, u0: float, bwp: float) -> np.ndarray:
        """Fit the local-linear model at reference value *u0*.

        Args:
            design: Design rows (single series or stacked series).
            u0: Grid value at which coefficients are evaluated.
            bwp: Bandwidth as a proportion of the reference range.

        Returns:
            ``(K, 2·K·p·(g + N))`` raw coefficient blocks.

        Raises:
            LocalEstimationError: If the local problem is not
                identifiable at *u0*.
        """
        ...


# ------------------------------------------------------------------ #
# Registry
# ------------------------------------------------------------------ #

_ESTIMATOR_REGISTRY: dict[str, type[PointEstimator]] = {}


def _ensure_registry() -> None:
    """Populate the registry on first access."""
    if _ESTIMATOR_REGISTRY:
        return

    from ._far import LocalLinearFAR
    from ._mxfar import LocalLinearMXFAR

    _ESTIMATOR_REGISTRY.update(
        {
            "local_linear_far": LocalLinearFAR,
            "local_linear_mxfar": LocalLinearMXFAR,
        }
    )


def resolve_estimator(estimator: str | PointEstimator) -> PointEstimator:
    """Return a point-estimator instance.

    Args:
        estimator: A registered name (``"local_linear_far"``,
            ``"local_linear_mxfar"``) or an object already satisfying
            :class:`PointEstimator`, which is returned unchanged.

    Raises:
        ValueError: If *estimator* is an unknown name.
        TypeError: If *estimator* is neither a string nor a
            protocol-conforming object.
    """
    if isinstance(estimator, str):
        _ensure_registry()
        cls = _ESTIMATOR_REGISTRY.get(estimator)
        if cls is None:
            valid = ", ".join(sorted(_ESTIMATOR_REGISTRY))
            raise ValueError(f"Invalid estimator '{estimator}'. Choose from: {valid}.")
        return cls()
    if isinstance(estimator, PointEstimator):
        return estimator
    raise TypeError(
        "estimator must be a registered name or implement block_counts() "
        f"and estimate(), got {type(estimator).__name__}."
    )


__all__ = [
    "PointEstimator",
    "resolve_estimator",
]
