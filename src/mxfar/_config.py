"""Parallelism configuration for the mxfar package.

Controls how many joblib workers are used for the embarrassingly
parallel loops (per-grid-point local fits, per-series APE folds,
bootstrap replicates) when a public function is called with
``n_jobs=None``.

Resolution order (first match wins):
    1. Programmatic override via :func:`set_n_jobs`.
    2. The ``MXFAR_N_JOBS`` environment variable.
    3. The default of ``1`` (sequential).

Any integer accepted by :class:`joblib.Parallel` is valid, including
``-1`` (all cores).

Examples:
    Use every core from the shell::

        export MXFAR_N_JOBS=-1

    Use four workers programmatically::

        import mxfar
        mxfar.set_n_jobs(4)

    Re-enable environment/default resolution::

        mxfar.set_n_jobs("auto")
"""

from __future__ import annotations

import os

_ENV_VAR = "MXFAR_N_JOBS"

# Sentinel indicating "no programmatic override has been set".
_n_jobs_override: int | None = None


def _parse_n_jobs(value: str | int) -> int:
    """Validate *value* as a joblib worker count."""
    try:
        n_jobs = int(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"n_jobs must be an integer or 'auto', got {value!r}."
        ) from None
    if n_jobs == 0:
        raise ValueError("n_jobs=0 is not a valid worker count.")
    return n_jobs


def get_n_jobs() -> int:
    """Return the active default worker count.

    Resolution order:
        1. Value set by :func:`set_n_jobs` (unless ``"auto"``).
        2. ``MXFAR_N_JOBS`` environment variable.
        3. ``1``.

    Returns:
        A joblib-compatible ``n_jobs`` integer.
    """
    # 1. Programmatic override
    if _n_jobs_override is not None:
        return _n_jobs_override

    # 2. Environment variable
    env = os.environ.get(_ENV_VAR, "").strip()
    if env:
        return _parse_n_jobs(env)

    # 3. Sequential default
    return 1


def set_n_jobs(value: int | str) -> None:
    """Override the default worker count.

    Args:
        value: A non-zero integer, or ``"auto"`` (case-insensitive)
            to restore the default resolution order.

    Raises:
        ValueError: If *value* is neither ``"auto"`` nor a valid
            non-zero integer.
    """
    global _n_jobs_override
    if isinstance(value, str) and value.strip().lower() == "auto":
        _n_jobs_override = None
        return
    _n_jobs_override = _parse_n_jobs(value)


def resolve_n_jobs(n_jobs: int | None) -> int:
    """Return *n_jobs* unchanged, or the configured default when ``None``."""
    if n_jobs is None:
        return get_n_jobs()
    return _parse_n_jobs(n_jobs)
