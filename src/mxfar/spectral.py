"""Partial directed coherence of (functional) autoregressive coefficients.

For a VAR(p) with lag matrices ``Φ_1 … Φ_p`` the frequency-domain
coefficient matrix is::

    A(f) = I − Σ_{l=1..p} Φ_l · exp(−2πi·f·l)

and the partial directed coherence from series ``j`` to series ``i``
is the column-normalised magnitude (Baccalá & Sameshima, 2001)::

    PDC_ij(f) = |A_ij(f)| / sqrt( Σ_m |A_mj(f)|² )

so ``Σ_i PDC_ij(f)² = 1`` for every source ``j`` and frequency ``f``.

For a functional-coefficient model the lag matrices depend on the
reference signal; :func:`fpdc` evaluates PDC at every grid point of a
coefficient field, giving a frequency × reference-level surface for
each directed pair.

Frequencies are normalised (cycles per sample) and normally lie in
``(0, 0.5]``.

Reference:
    Baccalá, L. A. & Sameshima, K. (2001). Partial directed coherence:
    a new concept in neural structure determination. *Biological
    Cybernetics*, 84(6), 463–474.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ._exceptions import InputShapeError


def fourier_frequencies(series_length: int) -> np.ndarray:
    """Fourier frequencies ``k / T`` for ``k = 1 … ⌊T/2⌋`` (zero excluded)."""
    series_length = int(series_length)
    if series_length < 2:
        msg = f"series_length must be >= 2, got {series_length}."
        raise InputShapeError(msg)
    return np.arange(1, series_length // 2 + 1) / series_length


def stack_lags(phi: np.ndarray | Sequence[np.ndarray]) -> np.ndarray:
    """Return the ``(K, K·p)`` column-stacked form of *phi*.

    *phi* is either ``p`` ``(K, K)`` lag matrices (a sequence or a
    ``(p, K, K)`` array) or an already stacked ``(K, K·p)`` matrix.
    """
    stacked = np.asarray(phi, dtype=float)
    if stacked.ndim == 3:
        stacked = np.concatenate(list(stacked), axis=1)

    if stacked.ndim != 2 or stacked.size == 0:
        msg = f"phi must be 2-D (K, K*p), got shape {stacked.shape}."
        raise InputShapeError(msg)
    k, kp = stacked.shape
    if kp % k != 0:
        msg = f"phi has {kp} columns, not a multiple of K={k}."
        raise InputShapeError(msg)
    return stacked


def pdc(
    phi: np.ndarray | Sequence[np.ndarray],
    freqs: np.ndarray | Sequence[float],
) -> np.ndarray:
    """Partial directed coherence of VAR coefficients.

    Args:
        phi: Either a sequence of ``p`` ``(K, K)`` lag matrices or one
            ``(K, K·p)`` matrix with the lags stacked column-wise
            (``[Φ_1, Φ_2, …, Φ_p]``).
        freqs: Normalised frequencies ``(F,)``.

    Returns:
        ``(K, K, F)`` array; entry ``[i, j, f]`` is the PDC from ``j``
        to ``i`` at ``freqs[f]``.  Values lie in ``[0, 1]``; NaN
        coefficients (or an all-zero column of ``A(f)``) give NaN.

    Examples:
        >>> phi1 = np.array([[0.4, 0.0], [-0.2, 0.5]])
        >>> phi2 = np.array([[0.1, 0.0], [0.6, -0.25]])
        >>> pdc([phi1, phi2], np.linspace(0.01, 0.5, 50)).shape
        (2, 2, 50)
    """
    stacked = stack_lags(phi)
    k = stacked.shape[0]
    p = stacked.shape[1] // k
    freqs = np.atleast_1d(np.asarray(freqs, dtype=float))

    lags = stacked.reshape(k, p, k).transpose(1, 0, 2)  # (p, K, K)
    phase = np.exp(-2j * np.pi * np.outer(freqs, np.arange(1, p + 1)))  # (F, p)
    A = np.eye(k)[np.newaxis, :, :] - np.einsum("fl,lij->fij", phase, lags)

    magnitude = np.abs(A)  # (F, K, K)
    column_norm = np.sqrt((magnitude**2).sum(axis=1, keepdims=True))
    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = magnitude / column_norm
    return ratio.transpose(1, 2, 0)


def fpdc(
    field: np.ndarray,
    freqs: np.ndarray | Sequence[float],
) -> np.ndarray:
    """Functional PDC: :func:`pdc` at every grid point of a coefficient field.

    Args:
        field: ``(K, K·p, M)`` coefficient field (e.g.
            ``FARResult.coefficient_field``).
        freqs: Normalised frequencies ``(F,)``.

    Returns:
        ``(K, K, F, M)`` array.  Missing grid cells yield NaN slices.
    """
    field = np.asarray(field, dtype=float)
    if field.ndim != 3:
        msg = f"field must be 3-D (K, K*p, M), got shape {field.shape}."
        raise InputShapeError(msg)
    freqs = np.atleast_1d(np.asarray(freqs, dtype=float))
    k, _, n_cells = field.shape

    out = np.empty((k, k, freqs.shape[0], n_cells))
    for cell in range(n_cells):
        out[:, :, :, cell] = pdc(field[:, :, cell], freqs)
    return out


__all__ = ["fourier_frequencies", "fpdc", "pdc", "stack_lags"]
