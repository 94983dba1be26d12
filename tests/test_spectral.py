"""Tests for partial directed coherence."""

import numpy as np
import pytest

from mxfar._exceptions import InputShapeError
from mxfar.spectral import fourier_frequencies, fpdc, pdc, stack_lags

# Bivariate VAR(2) in which series 2 never drives series 1.
_PHI1 = np.array([[0.4, 0.0], [-0.2, 0.5]])
_PHI2 = np.array([[0.1, 0.0], [0.6, -0.25]])
_FREQS = np.linspace(0.01, 0.5, 50)


class TestPDC:
    """Tests for pdc()."""

    def test_shape(self):
        assert pdc([_PHI1, _PHI2], _FREQS).shape == (2, 2, 50)

    def test_columns_normalised(self):
        out = pdc([_PHI1, _PHI2], _FREQS)
        np.testing.assert_allclose((out**2).sum(axis=0), 1.0)

    def test_range(self):
        out = pdc([_PHI1, _PHI2], _FREQS)
        assert np.all(out >= 0)
        assert np.all(out <= 1 + 1e-12)

    def test_list_and_stacked_forms_agree(self):
        stacked = np.hstack([_PHI1, _PHI2])
        np.testing.assert_allclose(
            pdc([_PHI1, _PHI2], _FREQS), pdc(stacked, _FREQS)
        )

    def test_array_of_lag_matrices(self):
        np.testing.assert_allclose(
            pdc(np.stack([_PHI1, _PHI2]), _FREQS), pdc([_PHI1, _PHI2], _FREQS)
        )

    def test_absent_connection_is_zero(self):
        out = pdc([_PHI1, _PHI2], _FREQS)
        np.testing.assert_allclose(out[0, 1], 0.0)
        assert np.all(out[1, 0] > 0)

    def test_zero_coefficients_give_identity(self):
        out = pdc(np.zeros((3, 3)), _FREQS)
        for f in range(_FREQS.size):
            np.testing.assert_allclose(out[:, :, f], np.eye(3))

    def test_nan_coefficients_propagate(self):
        phi = _PHI1.copy()
        phi[0, 0] = np.nan
        out = pdc(phi, _FREQS)
        assert np.all(np.isnan(out[:, 0]))

    def test_univariate_is_one(self):
        np.testing.assert_allclose(pdc([[0.5]], _FREQS), 1.0)

    def test_bad_shape_raises(self):
        with pytest.raises(InputShapeError):
            pdc(np.zeros((2, 3)), _FREQS)


class TestStackLags:
    """Tests for stack_lags()."""

    def test_sequence_is_hstacked(self):
        np.testing.assert_array_equal(
            stack_lags([_PHI1, _PHI2]), np.hstack([_PHI1, _PHI2])
        )

    def test_empty_raises(self):
        with pytest.raises(InputShapeError):
            stack_lags([])


class TestFPDC:
    """Tests for fpdc()."""

    def test_shape_and_slices(self):
        field = np.stack(
            [np.hstack([_PHI1 * s, _PHI2]) for s in (0.5, 1.0, 1.5)], axis=-1
        )
        out = fpdc(field, _FREQS)
        assert out.shape == (2, 2, 50, 3)
        np.testing.assert_allclose(out[..., 1], pdc([_PHI1, _PHI2], _FREQS))

    def test_missing_cell_is_nan(self):
        field = np.stack([np.hstack([_PHI1, _PHI2])] * 2, axis=-1)
        field[..., 0] = np.nan
        out = fpdc(field, _FREQS)
        assert np.all(np.isnan(out[..., 0]))
        assert np.all(np.isfinite(out[..., 1]))

    def test_requires_3d(self):
        with pytest.raises(InputShapeError):
            fpdc(_PHI1, _FREQS)


class TestFourierFrequencies:
    """Tests for fourier_frequencies()."""

    def test_values(self):
        freqs = fourier_frequencies(500)
        assert freqs.shape == (250,)
        assert freqs[0] == pytest.approx(1 / 500)
        assert freqs[-1] == pytest.approx(0.5)

    def test_odd_length(self):
        freqs = fourier_frequencies(7)
        np.testing.assert_allclose(freqs, np.arange(1, 4) / 7)

    def test_too_short_raises(self):
        with pytest.raises(InputShapeError):
            fourier_frequencies(1)
