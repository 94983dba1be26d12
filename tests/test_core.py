"""Tests for far_estimate() and mxfar_estimate()."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd
import pytest

from mxfar import (
    FARResult,
    InputShapeError,
    LocalEstimationError,
    MXFARResult,
    far_estimate,
    far_simulate,
    mxfar_estimate,
    mxfar_simulate,
)

# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _expar(x, r):
    """Bivariate exponential AR(1) coefficients with four random effects."""
    return [
        np.array(
            [
                [-0.3 + r[0], 0.6 * np.exp(-(0.30 + r[1]) * x**2)],
                [-0.2 + r[2], -0.4 * np.exp(-(0.45 + r[3]) * x**2)],
            ]
        )
    ]


def _rotation_series(T=300, theta=0.3, seed=0):
    phi = np.array(
        [[np.cos(theta), -np.sin(theta)], [np.sin(theta), np.cos(theta)]]
    )
    y = np.empty((T, 2))
    y[0] = [1.0, 0.0]
    for t in range(1, T):
        y[t] = phi @ y[t - 1]
    return y, np.random.default_rng(seed).standard_normal(T), phi


@dataclass(frozen=True)
class _BlockEstimator:
    """Group g → g + 1, series i → 0.1·(i + 1); slopes are a sentinel."""

    name: str = "blocks"

    def block_counts(self, design):
        return design.n_groups, design.n_series

    def estimate(self, design, u0, bwp):
        k, kp = design.k, design.k * design.p
        values = [g + 1.0 for g in range(design.n_groups)]
        values += [0.1 * (i + 1) for i in range(design.n_series)]
        return np.hstack(
            [np.hstack([np.full((k, kp), v), np.full((k, kp), 99.0)]) for v in values]
        )


@dataclass(frozen=True)
class _FailingEstimator:
    """Refuses every grid point."""

    name: str = "failing"

    def block_counts(self, design):
        return 1, 0

    def estimate(self, design, u0, bwp):
        raise LocalEstimationError("no window")


# ------------------------------------------------------------------ #
# far_estimate
# ------------------------------------------------------------------ #


class TestFarEstimate:
    """Tests for the single-series estimator."""

    def setup_method(self):
        sim = far_simulate(500, 2, None, _expar, np.zeros(4), 1.0, random_state=1)
        self.y, self.u = sim.y, sim.u

    def test_concrete_scenario_shapes(self):
        result = far_estimate(self.y, self.u, p=1, d=2)
        assert isinstance(result, FARResult)
        assert result.grid_points.shape == (51,)
        assert result.coefficient_field.shape == (2, 2, 51)
        assert result.residuals.shape == (498, 2)
        assert result.cell_ok.shape == (51,)
        assert result.fpdc is None

    def test_fpdc_payload(self):
        result = far_estimate(self.y, self.u, p=1, d=2, numpoints=10, fpdc=True)
        assert result.fpdc.frequencies.shape == (250,)
        assert result.fpdc.fpdc.shape == (2, 2, 250, 11)

    def test_residuals_reduce_variance(self):
        result = far_estimate(self.y, self.u, p=1, d=2)
        assert np.nanvar(result.residuals) < np.var(self.y)

    def test_exact_recovery(self):
        y, u, phi = _rotation_series()
        result = far_estimate(y, u, p=1, d=1, numpoints=20)
        ok = result.cell_ok
        assert ok.sum() >= 15
        for cell in np.flatnonzero(ok):
            np.testing.assert_allclose(
                result.coefficient_field[:, :, cell], phi, atol=1e-6
            )
        finite = np.isfinite(result.residuals)
        np.testing.assert_allclose(result.residuals[finite], 0.0, atol=1e-6)

    def test_pandas_input(self):
        y_df = pd.DataFrame(self.y, columns=["a", "b"])
        u_s = pd.Series(self.u, name="ref")
        result = far_estimate(y_df, u_s, p=1, d=2, numpoints=10)
        expected = far_estimate(self.y, self.u, p=1, d=2, numpoints=10)
        np.testing.assert_array_equal(result.residuals, expected.residuals)

    def test_univariate(self):
        result = far_estimate(self.y[:, 0], self.u, p=2, d=1, numpoints=10)
        assert result.coefficient_field.shape == (1, 2, 11)
        assert result.residuals.shape == (498, 1)

    def test_context_populated(self):
        result = far_estimate(self.y, self.u, p=1, d=2, numpoints=10)
        ctx = result.context
        assert ctx.estimator_name == "local_linear_far"
        assert ctx.cells.shape == (498,)
        assert ctx.fitted.shape == (498, 2)
        assert ctx.cut_points.shape == (10,)
        assert ctx.bandwidth > 0
        assert ctx.n_failed_cells == int((~result.cell_ok).sum())
        np.testing.assert_allclose(ctx.response - ctx.fitted, result.residuals)

    def test_length_mismatch_raises(self):
        with pytest.raises(InputShapeError):
            far_estimate(self.y, self.u[:-5], p=1, d=2)

    def test_invalid_order_raises(self):
        with pytest.raises(InputShapeError):
            far_estimate(self.y, self.u, p=0, d=2)

    def test_all_cells_failed_warns_at_call_site(self):
        with pytest.warns(UserWarning, match="failed at all 11 grid points") as record:
            result = far_estimate(
                self.y, self.u, p=1, d=2, numpoints=10, estimator=_FailingEstimator()
            )
        failed = [w for w in record if "failed at all" in str(w.message)]
        assert len(failed) == 1
        assert failed[0].filename == __file__
        assert not result.cell_ok.any()
        assert np.all(np.isnan(result.residuals))


# ------------------------------------------------------------------ #
# mxfar_estimate
# ------------------------------------------------------------------ #


class TestMxfarEstimate:
    """Tests for the mixed-effects estimator."""

    def setup_method(self):
        sim = mxfar_simulate(
            (2, 2), 200, 2, None, _expar, [0.05] * 4, 1.0, random_state=3
        )
        self.y, self.u = sim.y, sim.u

    def test_shapes(self):
        result = mxfar_estimate((2, 2), 200, self.y, self.u, p=1, d=2, numpoints=10)
        assert isinstance(result, MXFARResult)
        assert result.grid_points.shape == (11,)
        assert result.mean_field.shape == (2, 2, 11, 2)
        assert result.subject_field.shape == (2, 2, 11, 4)
        assert result.residuals.shape == (4 * 198, 2)
        assert result.group_sizes == (2, 2)

    def test_fpdc_payload(self):
        result = mxfar_estimate(
            (2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5, fpdc=True
        )
        assert result.fpdc.frequencies.shape == (100,)
        assert result.fpdc.fpdc_mean.shape == (2, 2, 100, 6, 2)
        assert result.fpdc.fpdc_subject.shape == (2, 2, 100, 6, 4)

    def test_injected_estimator_composition(self):
        result = mxfar_estimate(
            (2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5,
            estimator=_BlockEstimator(),
        )
        np.testing.assert_allclose(result.mean_field[..., 1], 2.0)
        np.testing.assert_allclose(result.subject_field[..., 0], 1.1)
        np.testing.assert_allclose(result.subject_field[..., 3], 2.4)

    def test_residuals_use_series_coefficients(self):
        result = mxfar_estimate(
            (2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5,
            estimator=_BlockEstimator(),
        )
        ctx = result.context
        coef = np.array([1.1, 1.2, 2.3, 2.4])[ctx.series_index]
        expected = ctx.response - coef[:, np.newaxis] * ctx.predictors.sum(
            axis=1, keepdims=True
        )
        np.testing.assert_allclose(result.residuals, expected)

    def test_pooled_estimator_repeats_group_mean(self):
        result = mxfar_estimate(
            (2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5,
            estimator="local_linear_far",
        )
        for i in range(4):
            np.testing.assert_array_equal(
                result.subject_field[..., i], result.mean_field[..., 0]
            )

    def test_all_cells_failed_warns(self):
        with pytest.warns(UserWarning, match="failed at all") as record:
            mxfar_estimate(
                (2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5,
                estimator=_FailingEstimator(),
            )
        failed = [w for w in record if "failed at all" in str(w.message)]
        assert failed[0].filename == __file__

    def test_wrong_series_length_raises(self):
        with pytest.raises(InputShapeError, match="expected"):
            mxfar_estimate((2, 2), 199, self.y, self.u, p=1, d=2)

    def test_to_dict_excludes_context(self):
        result = mxfar_estimate((2, 2), 200, self.y, self.u, p=1, d=2, numpoints=5)
        d = result.to_dict()
        assert "context" not in d
        assert d["group_sizes"] == (2, 2)
        assert isinstance(d["mean_field"], list)
