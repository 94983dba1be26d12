"""mxfar — Mixed-effects functional-coefficient autoregressive models.

Grid-based local-linear estimation of functional-coefficient
autoregressive (FAR) models for a single multivariate series and of
mixed-effects FAR (MXFAR) models for groups of series, together with a
series-bootstrap test of nonlinearity against a linear VAR null,
multi-fold accumulated prediction error for model selection, and the
(functional) partial directed coherence of estimated coefficients.

Public API:
    .. autosummary::
        far_estimate
        mxfar_estimate
        ape
        nonlinearity_test
        pdc
        fpdc
        fourier_frequencies
        far_simulate
        mxfar_simulate
        print_estimation_summary
        print_nonlinearity_table
        generate_bootstrap_indices
        build_grid
        get_n_jobs
        set_n_jobs
        PointEstimator
        resolve_estimator
        CoefficientFieldEstimator
        EstimationContext
        FARResult
        MXFARResult
        FPDCResult
        MXFPDCResult
        NonlinearityTestResult
        SimulationResult
        LocalEstimationError
        RefitError
        InputShapeError
"""

from ._config import get_n_jobs, set_n_jobs
from ._context import EstimationContext
from ._estimators import PointEstimator, resolve_estimator
from ._exceptions import InputShapeError, LocalEstimationError, RefitError
from ._results import (
    FARResult,
    FPDCResult,
    MXFARResult,
    MXFPDCResult,
    NonlinearityTestResult,
    SimulationResult,
)
from .core import far_estimate, mxfar_estimate
from .display import print_estimation_summary, print_nonlinearity_table
from .engine import CoefficientFieldEstimator
from .grid import Grid, build_grid
from .nonlinearity import nonlinearity_test
from .resampling import generate_bootstrap_indices
from .simulation import far_simulate, mxfar_simulate
from .spectral import fourier_frequencies, fpdc, pdc
from .validation import ape

__all__ = [
    "EstimationContext",
    "FARResult",
    "FPDCResult",
    "MXFARResult",
    "MXFPDCResult",
    "NonlinearityTestResult",
    "SimulationResult",
    "far_estimate",
    "mxfar_estimate",
    "ape",
    "nonlinearity_test",
    "pdc",
    "fpdc",
    "fourier_frequencies",
    "far_simulate",
    "mxfar_simulate",
    "print_estimation_summary",
    "print_nonlinearity_table",
    "generate_bootstrap_indices",
    "Grid",
    "build_grid",
    "get_n_jobs",
    "set_n_jobs",
    "PointEstimator",
    "resolve_estimator",
    "CoefficientFieldEstimator",
    "InputShapeError",
    "LocalEstimationError",
    "RefitError",
]

__version__ = "0.1.0"
