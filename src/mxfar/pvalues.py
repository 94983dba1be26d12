"""P-values for the series bootstrap.

Bootstrap p-value with missing replicates
-----------------------------------------
Each bootstrap replicate refits both the linear and the
functional-coefficient model on a pseudo-sample.  A refit can fail
(singular VAR design, no usable residuals), in which case the
replicate statistic is recorded as NaN.  Failed replicates are removed
from *both* the numerator and the denominator:

    p = #{T*_b >= T_obs : T*_b not missing} / #{T*_b not missing}

Unlike a permutation p-value this is a plain bootstrap tail share, so
no ``+1`` correction is applied and ``p = 0`` is possible.  When every
replicate failed there is no reference distribution and the p-value is
NaN.

Monte Carlo uncertainty
-----------------------
The bootstrap p-value is itself an estimate: with ``B`` valid
replicates its count is ``Binomial(B, p)``.  The exact
Clopper–Pearson interval

    lo = Beta.ppf(α/2,     b,     B − b + 1)
    hi = Beta.ppf(1 − α/2, b + 1, B − b)

(with ``lo = 0`` when ``b = 0`` and ``hi = 1`` when ``b = B``) tells
whether more replicates are needed to settle a borderline result.

Reference:
    Clopper, C. J. & Pearson, E. S. (1934). The use of confidence or
    fiducial limits illustrated in the case of the binomial.
    *Biometrika*, 26(4), 404–413.
"""

from __future__ import annotations

import numpy as np
from scipy import stats


def bootstrap_p_value(
    observed: float,
    replicates: np.ndarray,
) -> tuple[float, int, int]:
    """Upper-tail bootstrap p-value ignoring missing replicates.

    Args:
        observed: Observed test statistic.
        replicates: ``(B,)`` replicate statistics; NaN marks a failed
            replicate.

    Returns:
        ``(p_value, n_exceed, n_valid)``.  ``p_value`` is NaN when
        ``n_valid == 0`` or the observed statistic is NaN.
    """
    replicates = np.asarray(replicates, dtype=float)
    valid = replicates[~np.isnan(replicates)]
    n_valid = int(valid.size)
    if n_valid == 0 or np.isnan(observed):
        return float("nan"), 0, n_valid
    n_exceed = int(np.sum(valid >= observed))
    return n_exceed / n_valid, n_exceed, n_valid


def clopper_pearson_interval(
    successes: int,
    trials: int,
    confidence_level: float = 0.95,
) -> tuple[float, float]:
    """Exact binomial confidence interval for ``successes / trials``.

    Returns ``(nan, nan)`` when ``trials == 0``.
    """
    if trials <= 0:
        return float("nan"), float("nan")
    alpha = 1.0 - confidence_level
    lo = (
        0.0
        if successes == 0
        else float(stats.beta.ppf(alpha / 2, successes, trials - successes + 1))
    )
    hi = (
        1.0
        if successes == trials
        else float(stats.beta.ppf(1 - alpha / 2, successes + 1, trials - successes))
    )
    return lo, hi


def format_p_value(
    p: float,
    precision: int = 3,
    p_value_threshold_one: float = 0.05,
    p_value_threshold_two: float = 0.01,
    p_value_threshold_three: float = 0.001,
) -> str:
    """Format *p* with a significance marker (``***``, ``**``, ``*``, ``ns``)."""
    if np.isnan(p):
        return "N/A"
    rounded = np.round(p, precision)
    val = f"{rounded:.{precision}f}"
    if p < p_value_threshold_three:
        return f"{val} (***)"
    if p < p_value_threshold_two:
        return f"{val} (**)"
    if p < p_value_threshold_one:
        return f"{val} (*)"
    return f"{val} (ns)"


__all__ = ["bootstrap_p_value", "clopper_pearson_interval", "format_p_value"]
