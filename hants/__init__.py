"""Harmonic ANalysis of Time Series (HANTS).

Robust harmonic smoothing of cyclic time series with outliers and gaps.
"""

from .batch import (
    BatchResult,
    SeriesStatus,
    fit_array,
    load_batch_result,
    reconstruct_array,
    save_batch_result,
)
from .core import (
    ConfigurationError,
    FitResult,
    HantsConfig,
    HantsError,
    InvalidArgumentError,
    NonConvergenceWarning,
    OutlierMode,
    SingularMatrixError,
    build_design_matrix,
    fit_series,
    reconstruct,
)

__version__ = "0.1.0"

__all__ = [
    "BatchResult",
    "ConfigurationError",
    "FitResult",
    "HantsConfig",
    "HantsError",
    "InvalidArgumentError",
    "NonConvergenceWarning",
    "OutlierMode",
    "SeriesStatus",
    "SingularMatrixError",
    "build_design_matrix",
    "fit_array",
    "fit_series",
    "load_batch_result",
    "reconstruct",
    "reconstruct_array",
    "save_batch_result",
]
