"""Formatted ASCII table display for estimation and test results.

The tables follow the statsmodels summary layout: a header panel with
model metadata in two columns, a body with the fit or test summary,
optional notes, and a footer.  Every table is 80 characters wide.
"""

from __future__ import annotations

import math
import textwrap
from typing import TYPE_CHECKING

import numpy as np
from scipy import stats as _sp_stats

if TYPE_CHECKING:
    from ._results import FARResult, MXFARResult, NonlinearityTestResult

_COL1 = 40
_COL2 = 38


def _wrap(text: str, width: int = 80, indent: int = 2) -> str:
    """Word-wrap *text* to *width*, indenting continuation lines."""
    return textwrap.fill(
        text,
        width=width,
        initial_indent="",
        subsequent_indent=" " * indent,
    )


def _fmt_num(val: float, spec: str = ".4f") -> str:
    """Format a number, rendering NaN as ``'N/A'``."""
    if val is None or (isinstance(val, float) and math.isnan(val)):
        return "N/A"
    return f"{val:{spec}}"


def _print_title(title: str) -> None:
    print("=" * 80)
    for line in textwrap.wrap(title, width=78):
        print(f"{line:^80}")
    print("=" * 80)


def _print_pair(left_label: str, left_value: object, right_label: str, right_value: object) -> None:
    """One header row: flush-left pair in column 1, right-aligned pair in column 2."""
    left = f"{left_label:<16}{left_value!s:<{_COL1 - 16}}"
    right = f"{right_label:>{_COL2 - 11}} {right_value!s:>10}" if right_label else ""
    print(f"{left}{right}")


def _print_notes(notes: list[str]) -> None:
    if not notes:
        return
    print("-" * 80)
    print("Notes")
    print("-" * 80)
    for note in notes:
        print(_wrap(f"  [!] {note}", width=80, indent=6))


def _significance_marker(
    ci_lo: float,
    ci_hi: float,
    thresholds: list[float],
) -> str:
    """Return ``'  [!]'`` when the CI straddles any threshold."""
    for t in thresholds:
        if ci_lo < t < ci_hi:
            return "  [!]"
    return ""


def _recommend_bootstrap_reps(
    p_hat: float,
    threshold: float,
    alpha: float = 0.05,
) -> int:
    """Minimum *B* so the Clopper-Pearson CI no longer straddles *threshold*.

    Uses the normal approximation to the interval half-width,
    ``z_{1-α/2} √{p(1-p)/B}``, and solves for *B* such that the
    half-width is at most ``|p_hat - threshold|``.  The result is
    clamped to ``[100, 1_000_000]``.
    """
    gap = abs(p_hat - threshold)
    if gap < 1e-12:
        return 1_000_000
    z = _sp_stats.norm.ppf(1 - alpha / 2)
    b_min = math.ceil((z**2) * p_hat * (1 - p_hat) / (gap**2))
    return max(100, min(b_min, 1_000_000))


# ------------------------------------------------------------------ #
# Estimation summary
# ------------------------------------------------------------------ #


def print_estimation_summary(
    result: FARResult | MXFARResult,
    *,
    title: str | None = None,
) -> None:
    """Print a summary of a FAR or MXFAR fit.

    Args:
        result: Result of :func:`~mxfar.far_estimate` or
            :func:`~mxfar.mxfar_estimate`.
        title: Table title; defaults to the model name.
    """
    is_mixed = hasattr(result, "mean_field")
    field = result.mean_field if is_mixed else result.coefficient_field
    k = field.shape[0]
    residuals = result.residuals
    n_missing_rows = int(np.isnan(residuals).any(axis=1).sum())
    n_cells = int(result.cell_ok.shape[0])
    n_failed = int((~result.cell_ok).sum())

    if title is None:
        title = (
            "Mixed-Effects Functional-Coefficient AR Estimation"
            if is_mixed
            else "Functional-Coefficient AR Estimation"
        )
    _print_title(title)

    _print_pair("Model:", "MXFAR" if is_mixed else "FAR", "Dimension (K):", k)
    _print_pair("AR Order (p):", result.p, "Residual Rows:", residuals.shape[0])
    _print_pair("Ref. Lag (d):", result.d, "Grid Points:", n_cells)
    _print_pair("Bandwidth:", _fmt_num(result.bwp, ".3f"), "Missing Cells:", n_failed)
    if is_mixed:
        groups = ", ".join(str(g) for g in result.group_sizes)
        _print_pair("Groups:", groups, "Series Length:", result.series_length)
    ctx = result.context
    if ctx is not None and ctx.estimator_name is not None:
        _print_pair("Estimator:", ctx.estimator_name, "Abs. Bandwidth:", _fmt_num(ctx.bandwidth))
    print("-" * 80)

    print(f"{'Component':<22}{'Resid. SS':>18}{'Resid. Var':>18}{'Missing Rows':>22}")
    print("-" * 80)
    for j in range(k):
        col = residuals[:, j]
        finite = col[np.isfinite(col)]
        ss = float(np.sum(finite**2)) if finite.size else float("nan")
        var = float(np.var(finite)) if finite.size else float("nan")
        print(
            f"{'y' + str(j + 1):<22}{_fmt_num(ss):>18}{_fmt_num(var):>18}"
            f"{int(np.isnan(col).sum()):>22}"
        )

    notes: list[str] = []
    if n_failed == n_cells:
        notes.append(
            "The local fit failed at every grid point; consider a larger "
            "bandwidth proportion (bwp)."
        )
    elif n_failed:
        notes.append(
            f"{n_failed} of {n_cells} grid cells could not be estimated; "
            f"{n_missing_rows} residual rows fall into them and are missing."
        )
    if result.fpdc is not None:
        notes.append(
            f"fPDC computed at {result.fpdc.frequencies.shape[0]} Fourier "
            "frequencies."
        )
    _print_notes(notes)
    print("=" * 80)
    print()


# ------------------------------------------------------------------ #
# Nonlinearity test table
# ------------------------------------------------------------------ #


def print_nonlinearity_table(
    result: NonlinearityTestResult,
    *,
    title: str = "Bootstrap Nonlinearity Test",
) -> None:
    """Print the nonlinearity test result.

    Args:
        result: Result of :func:`~mxfar.nonlinearity_test`.
        title: Table title.
    """
    _print_title(title)

    n_series = sum(result.group_sizes)
    _print_pair("Null Model:", f"VAR({result.p})", "No. Series:", n_series)
    _print_pair(
        "Alternative:", f"FAR({result.p}, {result.d})", "Series Length:", result.series_length
    )
    _print_pair(
        "Bandwidth:", _fmt_num(result.bwp, ".3f"), "Replicates:", result.n_bootstrap
    )
    _print_pair("", "", "Failed Replicates:", result.n_failed)
    print("-" * 80)

    lo, hi = result.p_value_ci
    print(f"{'Test Statistic:':<30} {_fmt_num(result.statistic):>12}")
    print(f"{'Bootstrap p-Value:':<30} {result.p_value_str:>12}")
    ci_str = f"[{_fmt_num(lo, '.3f')}, {_fmt_num(hi, '.3f')}]"
    print(f"{'p-Value 95% CI:':<30} {ci_str:>16}")

    notes: list[str] = []
    thresholds = [
        result.p_value_threshold_one,
        result.p_value_threshold_two,
        result.p_value_threshold_three,
    ]
    if not math.isnan(result.p_value) and _significance_marker(lo, hi, thresholds):
        straddled = next(t for t in thresholds if lo < t < hi)
        b_rec = _recommend_bootstrap_reps(result.p_value, straddled)
        notes.append(
            f"The p-value interval straddles {straddled}; consider "
            f"bootstrap_reps ≥ {b_rec:,} to resolve it."
        )
    if result.n_failed == result.n_bootstrap:
        notes.append("Every bootstrap replicate failed; the p-value is undefined.")
    elif result.n_failed:
        notes.append(
            f"{result.n_failed} replicates failed to refit and were excluded "
            "from the p-value."
        )
    _print_notes(notes)

    print("=" * 80)
    print(
        f"(***) p < {result.p_value_threshold_three}   "
        f"(**) p < {result.p_value_threshold_two}   "
        f"(*) p < {result.p_value_threshold_one}   "
        f"(ns) p >= {result.p_value_threshold_one}"
    )
    print("Statistic: SS_VAR / SS_FAR - 1, pooled over series and components.")
    print()


__all__ = ["print_estimation_summary", "print_nonlinearity_table"]
