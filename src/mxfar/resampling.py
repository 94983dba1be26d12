"""Pre-generation of series-level bootstrap indices.

The nonlinearity test resamples whole series, not time points: every
bootstrap replicate draws ``N`` donor series with replacement from the
``N`` observed series, so the serial dependence inside each residual
series is kept intact.

All ``B`` replicates are drawn up front into one ``(B, N)`` integer
matrix.  Replicates are then independent units of work that can be
evaluated in any order (or in parallel) and merged by row index, so
the outcome for a given seed does not depend on the number of workers.

Reference-set size
------------------
Drawing ``N`` items with replacement from ``N`` has only
``C(2N − 1, N)`` distinct outcomes (multisets).  For very few series
this is small — 10 for ``N = 3`` — and a large ``B`` then mostly
repeats the same resamples.  A warning is issued when ``B`` exceeds the
number of distinct multisets.
"""

from __future__ import annotations

import math
import warnings

import numpy as np

from ._exceptions import InputShapeError


def n_distinct_resamples(n_series: int, cap: int | None = None) -> int:
    """Number of distinct multisets of size *n_series* drawn from *n_series*.

    Args:
        n_series: Number of series ``N``.
        cap: Optional upper bound; the count is clipped to it so that
            very large ``N`` never builds huge integers.
    """
    total = math.comb(2 * n_series - 1, n_series)
    return min(total, cap) if cap is not None else total


def generate_bootstrap_indices(
    n_series: int,
    n_bootstrap: int,
    random_state: int | np.random.Generator | None = None,
) -> np.ndarray:
    """Draw donor-series indices for every bootstrap replicate.

    Args:
        n_series: Number of observed series ``N`` (``>= 1``).
        n_bootstrap: Number of replicates ``B`` (``>= 1``).
        random_state: Seed or ``numpy.random.Generator`` for
            reproducibility.

    Returns:
        Integer array of shape ``(B, N)``; row ``b`` lists, for every
        slot ``i``, the series whose residuals fill slot ``i`` in
        replicate ``b``.

    Raises:
        InputShapeError: If either count is not a positive integer.

    Warns:
        UserWarning: If ``B`` exceeds the number of distinct resamples.
    """
    for name, value in (("n_series", n_series), ("n_bootstrap", n_bootstrap)):
        if int(value) != value or value < 1:
            msg = f"'{name}' must be a positive integer, got {value!r}."
            raise InputShapeError(msg)
    n_series, n_bootstrap = int(n_series), int(n_bootstrap)

    available = n_distinct_resamples(n_series, cap=n_bootstrap + 1)
    if available < n_bootstrap:
        warnings.warn(
            f"Only {available} distinct series resamples exist for "
            f"{n_series} series; {n_bootstrap} bootstrap replicates will "
            "contain repeats.",
            UserWarning,
            stacklevel=3,
        )

    rng = np.random.default_rng(random_state)
    return rng.integers(0, n_series, size=(n_bootstrap, n_series), dtype=np.intp)


__all__ = ["generate_bootstrap_indices", "n_distinct_resamples"]
