"""Simulation from FAR and MXFAR models.

A coefficient function ``coef_fn(x, r)`` returns the ``p`` lag
matrices of the model at reference value ``x`` for the random-effect
vector ``r`` — either as a sequence of ``(K, K)`` matrices or as one
``(K, K·p)`` stacked matrix.  The order ``p`` and dimension ``K`` are
read from ``coef_fn(0.0, r)``.

Each series is generated recursively::

    y_t = Σ_l Φ_l(u_{t-d}, r) · y_{t-l} + ε_t,     ε_t ~ N(0, diag(noise_var))

starting from all-ones lags and reference history, and the first
``burn_in`` points are discarded.  The reference signal is either
exogenous white noise ``u_t ~ N(0, 1)`` or one of the simulated
components, ``u_t = y_{t, ref_index}`` (a self-exciting model).

Example coefficient function (bivariate exponential AR with four
random effects)::

    def coef_fn(x, r):
        return [np.array([
            [-0.3 + r[0], 0.6 * np.exp(-(0.30 + r[1]) * x**2)],
            [-0.2 + r[2], -0.4 * np.exp(-(0.45 + r[3]) * x**2)],
        ])]
"""

from __future__ import annotations

import warnings
from collections.abc import Callable, Sequence

import numpy as np

from ._exceptions import InputShapeError
from ._results import SimulationResult
from .design import validate_orders
from .spectral import stack_lags

CoefficientFunction = Callable[[float, np.ndarray], "np.ndarray | Sequence[np.ndarray]"]


def _noise_scale(noise_var: float | Sequence[float], k: int) -> np.ndarray:
    var = np.broadcast_to(np.asarray(noise_var, dtype=float), (k,))
    if np.any(var < 0):
        msg = f"noise_var must be non-negative, got {noise_var!r}."
        raise InputShapeError(msg)
    return np.sqrt(var)


def _simulate_series(
    series_length: int,
    d: int,
    ref_index: int | None,
    coef_fn: CoefficientFunction,
    random_effect: np.ndarray,
    noise_var: float | Sequence[float],
    burn_in: int,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    template = stack_lags(coef_fn(0.0, random_effect))
    k = template.shape[0]
    p = template.shape[1] // k
    if ref_index is not None and not 0 <= ref_index < k:
        msg = f"ref_index must lie in [0, {k - 1}] or be None, got {ref_index!r}."
        raise InputShapeError(msg)

    total = burn_in + series_length
    scale = np.append(_noise_scale(noise_var, k), 1.0)
    shocks = rng.standard_normal((total, k + 1)) * scale

    y = np.empty((total, k))
    past = np.ones(k * p)  # [y_{t-1}, …, y_{t-p}]
    ref_history = np.ones(d)  # [u_{t-1}, …, u_{t-d}]
    for t in range(total):
        coefs = stack_lags(coef_fn(float(ref_history[-1]), random_effect))
        y[t] = coefs @ past + shocks[t, :k]
        past = np.concatenate([y[t], past[: k * (p - 1)]])
        current = shocks[t, k] if ref_index is None else y[t, ref_index]
        ref_history = np.concatenate([[current], ref_history[:-1]])

    y = y[burn_in:]
    u = shocks[burn_in:, k] if ref_index is None else y[:, ref_index].copy()
    if not np.all(np.isfinite(y)):
        warnings.warn(
            "The simulated series diverged (non-finite values); the "
            "coefficient function is likely explosive.",
            UserWarning,
            stacklevel=3,
        )
    return y, u


def far_simulate(
    series_length: int,
    d: int,
    ref_index: int | None,
    coef_fn: CoefficientFunction,
    random_effect: Sequence[float] | np.ndarray | None = None,
    noise_var: float | Sequence[float] = 1.0,
    burn_in: int = 500,
    random_state: int | np.random.Generator | None = None,
) -> SimulationResult:
    """Simulate one series from a FAR model.

    Args:
        series_length: Number of time points ``T`` kept.
        d: Lag of the reference signal.
        ref_index: 0-based component of ``y`` used as the reference
            signal, or ``None`` for exogenous ``N(0, 1)`` noise.
        coef_fn: Coefficient function ``coef_fn(x, r)``.
        random_effect: Vector ``r`` passed to *coef_fn*; ``None``
            passes an empty array.
        noise_var: Innovation variance, scalar or one per component.
        burn_in: Number of initial points discarded.
        random_state: Seed or generator.

    Returns:
        A :class:`~mxfar._results.SimulationResult` with ``y`` of shape
        ``(T, K)``, ``u`` of shape ``(T,)`` and ``random_effects`` of
        shape ``(1, R)``.
    """
    _check_lengths(series_length, d, burn_in)
    r = np.asarray([] if random_effect is None else random_effect, dtype=float)
    rng = np.random.default_rng(random_state)
    y, u = _simulate_series(
        int(series_length), int(d), ref_index, coef_fn, r, noise_var, int(burn_in), rng
    )
    return SimulationResult(y=y, u=u, random_effects=r[np.newaxis, :])


def mxfar_simulate(
    group_sizes: Sequence[int],
    series_length: int,
    d: int,
    ref_index: int | None,
    coef_fn: CoefficientFunction,
    random_effect_var: Sequence[float] | np.ndarray,
    noise_var: float | Sequence[float] = 1.0,
    burn_in: int = 500,
    random_state: int | np.random.Generator | None = None,
) -> SimulationResult:
    """Simulate stacked series from an MXFAR model.

    Every series draws its own random-effect vector
    ``r_i ~ N(0, diag(random_effect_var))`` and is then simulated with
    :func:`far_simulate` semantics.  All groups share *coef_fn*; give
    groups different mean curves by simulating them separately and
    stacking the results.

    Args:
        group_sizes: Number of series per group; ``sum(group_sizes)``
            series are generated.
        series_length: Time points per series.
        d: Lag of the reference signal.
        ref_index: Reference component or ``None`` (exogenous).
        coef_fn: Coefficient function ``coef_fn(x, r)``.
        random_effect_var: Variances of the random effects.
        noise_var: Innovation variance(s).
        burn_in: Points discarded per series.
        random_state: Seed or generator.

    Returns:
        A :class:`~mxfar._results.SimulationResult` with ``y`` of shape
        ``(N·T, K)`` stacked in series order, ``u`` of shape
        ``(N·T,)`` and ``random_effects`` of shape ``(N, R)``.
    """
    _check_lengths(series_length, d, burn_in)
    sizes = [int(g) for g in group_sizes]
    if not sizes or any(g < 1 for g in sizes):
        msg = f"group_sizes must contain positive integers, got {list(group_sizes)}."
        raise InputShapeError(msg)
    re_var = np.asarray(random_effect_var, dtype=float).ravel()
    if np.any(re_var < 0):
        msg = f"random_effect_var must be non-negative, got {random_effect_var!r}."
        raise InputShapeError(msg)

    rng = np.random.default_rng(random_state)
    n_series = sum(sizes)
    effects = rng.standard_normal((n_series, re_var.size)) * np.sqrt(re_var)

    ys, us = [], []
    for i in range(n_series):
        y, u = _simulate_series(
            int(series_length),
            int(d),
            ref_index,
            coef_fn,
            effects[i],
            noise_var,
            int(burn_in),
            rng,
        )
        ys.append(y)
        us.append(u)
    return SimulationResult(
        y=np.concatenate(ys), u=np.concatenate(us), random_effects=effects
    )


def _check_lengths(series_length: int, d: int, burn_in: int) -> None:
    validate_orders(1, d)
    if int(series_length) != series_length or series_length < 1:
        msg = f"series_length must be a positive integer, got {series_length!r}."
        raise InputShapeError(msg)
    if int(burn_in) != burn_in or burn_in < 0:
        msg = f"burn_in must be a non-negative integer, got {burn_in!r}."
        raise InputShapeError(msg)


__all__ = ["far_simulate", "mxfar_simulate"]
