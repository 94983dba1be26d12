"""Exception types for the mxfar package.

Three failure classes exist, and they are handled very differently:

* :class:`LocalEstimationError` — a point estimator could not solve the
  local least-squares problem at one grid value (too few observations
  inside the kernel window, singular weighted design).  This is an
  *expected* outcome at the edges of the reference-signal range; the
  coefficient field engine contains it by leaving the cell missing.
* :class:`RefitError` — one bootstrap replicate of the nonlinearity
  test could not refit its VAR or FAR model.  Contained by recording
  the replicate as missing.
* :class:`InputShapeError` — the caller passed inconsistent inputs
  (e.g. ``y`` and ``u`` of different lengths).  Fatal: raised
  immediately, no partial result.

``InputShapeError`` subclasses ``ValueError`` so that callers catching
the generic validation error keep working.
"""

from __future__ import annotations


class LocalEstimationError(RuntimeError):
    """Raised when a local fit at a single grid value is not identifiable."""


class RefitError(RuntimeError):
    """Raised when a bootstrap replicate cannot refit one of its models."""


class InputShapeError(ValueError):
    """Raised when input arrays or model orders are mutually inconsistent."""


__all__ = ["InputShapeError", "LocalEstimationError", "RefitError"]
