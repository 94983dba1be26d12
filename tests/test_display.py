"""Tests for the display module."""

import numpy as np
import pytest

from mxfar import (
    NonlinearityTestResult,
    far_estimate,
    mxfar_estimate,
    print_estimation_summary,
    print_nonlinearity_table,
)
from mxfar.display import _recommend_bootstrap_reps, _significance_marker


def _test_result(**overrides):
    kwargs = dict(
        statistic=0.42,
        bootstrap_statistics=np.array([0.1, 0.5, np.nan, 0.2]),
        p_value=1 / 3,
        p_value_str="0.333 (ns)",
        p_value_ci=(0.008, 0.906),
        n_bootstrap=4,
        n_failed=1,
        group_sizes=(2, 1),
        series_length=150,
        p=1,
        d=2,
        bwp=0.1,
    )
    kwargs.update(overrides)
    return NonlinearityTestResult(**kwargs)


@pytest.fixture(scope="module")
def far_fit():
    rng = np.random.default_rng(0)
    return far_estimate(
        rng.standard_normal((200, 2)), rng.standard_normal(200), p=1, d=1,
        bwp=0.3, numpoints=5, fpdc=True,
    )


class TestSignificanceMarker:
    def test_straddles(self):
        assert _significance_marker(0.03, 0.07, [0.05]) == "  [!]"

    def test_clear(self):
        assert _significance_marker(0.06, 0.09, [0.05, 0.01]) == ""


class TestRecommendBootstrapReps:
    def test_clamped_below(self):
        assert _recommend_bootstrap_reps(0.5, 0.05) == 100

    def test_grows_near_threshold(self):
        assert _recommend_bootstrap_reps(0.06, 0.05) > _recommend_bootstrap_reps(0.2, 0.05)

    def test_on_threshold(self):
        assert _recommend_bootstrap_reps(0.05, 0.05) == 1_000_000


class TestPrintEstimationSummary:
    def test_far(self, capsys, far_fit):
        print_estimation_summary(far_fit)
        out = capsys.readouterr().out
        assert "Functional-Coefficient AR Estimation" in out
        assert "local_linear_far" in out
        assert "fPDC computed at 100" in out
        assert all(len(line) <= 80 for line in out.splitlines())

    def test_mxfar(self, capsys):
        rng = np.random.default_rng(1)
        result = mxfar_estimate(
            (2, 1), 150, rng.standard_normal((450, 2)), rng.standard_normal(450),
            p=1, d=1, bwp=0.3, numpoints=5,
        )
        print_estimation_summary(result, title="Two groups")
        out = capsys.readouterr().out
        assert "Two groups" in out
        assert "MXFAR" in out
        assert "Series Length:" in out
        assert all(len(line) <= 80 for line in out.splitlines())


class TestPrintNonlinearityTable:
    def test_prints(self, capsys):
        print_nonlinearity_table(_test_result())
        out = capsys.readouterr().out
        assert "Bootstrap Nonlinearity Test" in out
        assert "VAR(1)" in out
        assert "FAR(1, 2)" in out
        assert "0.333 (ns)" in out
        assert "1 replicates failed" in out
        assert all(len(line) <= 80 for line in out.splitlines())

    def test_straddle_note(self, capsys):
        result = _test_result(p_value=0.05, p_value_str="0.050 (ns)", p_value_ci=(0.02, 0.1))
        print_nonlinearity_table(result)
        assert "straddles 0.05" in capsys.readouterr().out

    def test_all_failed(self, capsys):
        result = _test_result(
            bootstrap_statistics=np.full(4, np.nan),
            p_value=float("nan"),
            p_value_str="N/A",
            p_value_ci=(float("nan"), float("nan")),
            n_failed=4,
        )
        print_nonlinearity_table(result)
        out = capsys.readouterr().out
        assert "N/A" in out
        assert "Every bootstrap replicate failed" in out
