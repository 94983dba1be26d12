"""Tests for the typed result objects."""

import dataclasses

import numpy as np
import pytest

from mxfar import EstimationContext, FARResult, FPDCResult, SimulationResult
from mxfar._results import _numpy_to_python


def _far_result(**overrides):
    kwargs = dict(
        grid_points=np.linspace(-1, 1, 3),
        coefficient_field=np.zeros((1, 1, 3)),
        residuals=np.array([[0.5], [np.nan]]),
        cell_ok=np.array([True, False, True]),
        p=1,
        d=2,
        bwp=0.1,
        context=EstimationContext(),
    )
    kwargs.update(overrides)
    return FARResult(**kwargs)


class TestDictAccess:
    def test_bracket_access(self):
        result = _far_result()
        assert result["p"] == 1

    def test_missing_key_raises(self):
        with pytest.raises(KeyError):
            _far_result()["nope"]

    def test_get_default(self):
        assert _far_result().get("nope", 7) == 7

    def test_contains(self):
        result = _far_result()
        assert "residuals" in result
        assert "nope" not in result
        assert 3 not in result

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            _far_result().p = 2


class TestToDict:
    def test_native_types(self):
        d = _far_result().to_dict()
        assert d["grid_points"] == [-1.0, 0.0, 1.0]
        assert d["cell_ok"] == [True, False, True]
        assert np.isnan(d["residuals"][1][0])
        assert "context" not in d

    def test_nested_payload(self):
        payload = FPDCResult(frequencies=np.array([0.25]), fpdc=np.ones((1, 1, 1, 3)))
        d = _far_result(fpdc=payload).to_dict()
        assert d["fpdc"]["frequencies"] == [0.25]

    def test_context_not_compared(self):
        a = _far_result()
        b = _far_result(context=None)
        assert a.context is not b.context
        assert repr(a).count("context") == 0

    def test_simulation_result(self):
        sim = SimulationResult(y=np.ones((2, 1)), u=np.zeros(2), random_effects=np.empty((1, 0)))
        assert sim.to_dict()["random_effects"] == [[]]


class TestNumpyToPython:
    def test_scalars(self):
        assert type(_numpy_to_python(np.int64(3))) is int
        assert type(_numpy_to_python(np.float32(1.5))) is float

    def test_tuple_preserved(self):
        assert _numpy_to_python((np.int64(1), np.int64(2))) == (1, 2)

    def test_dict_recursion(self):
        assert _numpy_to_python({"a": np.array([1, 2])}) == {"a": [1, 2]}
