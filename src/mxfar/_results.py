"""Typed result objects for estimation and testing.

Frozen dataclasses that provide:

* **Attribute access** — ``result.residuals``, ``result.p_value``, etc.
* **Dict-like access** — ``result["residuals"]``, ``result.get("key")``,
  ``"key" in result`` for consumers that prefer bracket syntax.
* **Serialisation** — ``.to_dict()`` returns a plain ``dict[str, Any]``
  with all NumPy types converted to native Python (NaN stays a float
  ``nan``).

Result types:

* :class:`FARResult` — single-series functional-coefficient fit.
* :class:`MXFARResult` — grouped mixed-effects fit.
* :class:`FPDCResult` / :class:`MXFPDCResult` — optional functional
  partial directed coherence payloads attached to the fits.
* :class:`NonlinearityTestResult` — bootstrap test of a linear VAR null.
* :class:`SimulationResult` — simulated series and reference signal.

All types are frozen to communicate that results are a snapshot of a
completed computation.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, ClassVar

import numpy as np

if TYPE_CHECKING:
    from ._context import EstimationContext

# ------------------------------------------------------------------ #
# Serialisation helper
# ------------------------------------------------------------------ #


def _numpy_to_python(obj: Any) -> Any:
    """Recursively convert NumPy scalars/arrays to Python-native types.

    Handles nested dicts, lists, dataclass results, ``np.ndarray``,
    ``np.integer`` and ``np.floating`` so that :meth:`to_dict` returns
    a fully JSON-compatible structure.
    """
    if isinstance(obj, _DictAccessMixin):
        return obj.to_dict()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (np.integer, np.bool_)):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, dict):
        return {k: _numpy_to_python(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        converted = [_numpy_to_python(item) for item in obj]
        return type(obj)(converted)
    return obj


# ------------------------------------------------------------------ #
# Dict-compatibility mixin
# ------------------------------------------------------------------ #


class _DictAccessMixin:
    """Dict-like access convenience for result dataclasses.

    Supports three access patterns:

    1. ``result["key"]``     — raises ``KeyError`` on miss
    2. ``result.get(key, d)`` — returns *d* on miss (default ``None``)
    3. ``"key" in result``   — membership test
    """

    # Fields to exclude from to_dict() serialisation.
    _EXCLUDE_FROM_DICT: ClassVar[frozenset[str]] = frozenset({"context"})

    def __getitem__(self, key: str) -> Any:
        """Attribute lookup via bracket syntax."""
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def get(self, key: str, default: Any = None) -> Any:
        """Attribute lookup with a fallback default."""
        return getattr(self, key, default)

    def __contains__(self, key: object) -> bool:
        """Membership test: ``"key" in result``."""
        if not isinstance(key, str):
            return False
        return hasattr(self, key)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dictionary of Python-native values."""
        result: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            if f.name in self._EXCLUDE_FROM_DICT:
                continue
            result[f.name] = _numpy_to_python(getattr(self, f.name))
        return result


# ------------------------------------------------------------------ #
# fPDC payloads
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class FPDCResult(_DictAccessMixin):
    """Functional PDC of a single coefficient field."""

    frequencies: np.ndarray
    """Normalised frequencies ``(F,)`` in cycles per sample."""

    fpdc: np.ndarray
    """``(K, K, F, M)`` PDC at every frequency and grid point."""


@dataclass(frozen=True)
class MXFPDCResult(_DictAccessMixin):
    """Functional PDC of group-mean and per-series coefficient fields."""

    frequencies: np.ndarray
    """Normalised frequencies ``(F,)`` in cycles per sample."""

    fpdc_mean: np.ndarray
    """``(K, K, F, M, g)`` fPDC of each group-mean field."""

    fpdc_subject: np.ndarray
    """``(K, K, F, M, N)`` fPDC of each series' field."""


# ------------------------------------------------------------------ #
# Estimation results
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class FARResult(_DictAccessMixin):
    """Result from :func:`~mxfar.core.far_estimate`."""

    grid_points: np.ndarray
    """Evaluation points ``(M,)`` with ``M = numpoints + 1``."""

    coefficient_field: np.ndarray
    """``(K, K·p, M)`` coefficient matrix at every grid point (NaN = missing)."""

    residuals: np.ndarray
    """``(T − max(p, d), K)`` in-sample residuals (NaN in missing cells)."""

    cell_ok: np.ndarray
    """``(M,)`` ``True`` where the grid point was estimated."""

    p: int
    """Autoregressive order."""

    d: int
    """Reference-signal lag."""

    bwp: float
    """Bandwidth proportion."""

    fpdc: FPDCResult | None = None
    """Functional PDC, present when requested."""

    context: EstimationContext | None = field(default=None, repr=False, compare=False)
    """Intermediate artefacts (design rows, cells, fitted values).
    Excluded from ``to_dict()``."""


@dataclass(frozen=True)
class MXFARResult(_DictAccessMixin):
    """Result from :func:`~mxfar.core.mxfar_estimate`."""

    grid_points: np.ndarray
    """Evaluation points ``(M,)``."""

    mean_field: np.ndarray
    """``(K, K·p, M, g)`` group-mean coefficients."""

    subject_field: np.ndarray
    """``(K, K·p, M, N)`` per-series coefficients (group mean + deviation)."""

    residuals: np.ndarray
    """``(N·(T − max(p, d)), K)`` stacked residuals in series order."""

    cell_ok: np.ndarray
    """``(M,)`` ``True`` where the grid point was estimated."""

    group_sizes: tuple[int, ...]
    """Number of series in each group."""

    series_length: int
    """Common series length ``T``."""

    p: int
    """Autoregressive order."""

    d: int
    """Reference-signal lag."""

    bwp: float
    """Bandwidth proportion."""

    fpdc: MXFPDCResult | None = None
    """Functional PDC of both fields, present when requested."""

    context: EstimationContext | None = field(default=None, repr=False, compare=False)
    """Intermediate artefacts.  Excluded from ``to_dict()``."""


# ------------------------------------------------------------------ #
# Nonlinearity test result
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class NonlinearityTestResult(_DictAccessMixin):
    """Result from :func:`~mxfar.nonlinearity.nonlinearity_test`."""

    statistic: float
    """Observed ratio ``SS_VAR / SS_FAR − 1``."""

    bootstrap_statistics: np.ndarray
    """``(B,)`` replicate statistics; NaN where a refit failed."""

    p_value: float
    """Share of valid replicates ``>= statistic`` (NaN if none valid)."""

    p_value_str: str
    """Formatted p-value with significance marker."""

    p_value_ci: tuple[float, float]
    """Clopper–Pearson 95 % interval for the bootstrap p-value."""

    n_bootstrap: int
    """Number of replicates requested."""

    n_failed: int
    """Number of replicates recorded as missing."""

    group_sizes: tuple[int, ...]
    """Number of series in each group."""

    series_length: int
    """Common series length ``T``."""

    p: int
    """Autoregressive order."""

    d: int
    """Reference-signal lag."""

    bwp: float
    """Bandwidth proportion."""

    p_value_threshold_one: float = 0.05
    """First significance level."""

    p_value_threshold_two: float = 0.01
    """Second significance level."""

    p_value_threshold_three: float = 0.001
    """Third significance level."""


# ------------------------------------------------------------------ #
# Simulation output
# ------------------------------------------------------------------ #


@dataclass(frozen=True)
class SimulationResult(_DictAccessMixin):
    """Output of :func:`~mxfar.simulation.far_simulate` and
    :func:`~mxfar.simulation.mxfar_simulate`."""

    y: np.ndarray
    """``(N·T, K)`` simulated observations (``N = 1`` for a single series)."""

    u: np.ndarray
    """``(N·T,)`` reference signal."""

    random_effects: np.ndarray
    """``(N, R)`` random-effect vectors passed to the coefficient function."""
