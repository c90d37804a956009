"""
Single-series HANTS core.

This package provides the harmonic design matrix, the robust iterative fit and
the reconstruction of a series from amplitudes and phases.
"""

from .basis import build_design_matrix, default_time_indices, design_rank
from .errors import (
    ConfigurationError,
    HantsError,
    InvalidArgumentError,
    NonConvergenceWarning,
    SingularMatrixError,
)
from .fitter import decode_coefficients, fit_series, fit_with_design
from .reconstruction import reconstruct
from .types import FitResult, HantsConfig, OutlierMode, parse_outlier_mode

__all__ = [
    "ConfigurationError",
    "FitResult",
    "HantsConfig",
    "HantsError",
    "InvalidArgumentError",
    "NonConvergenceWarning",
    "OutlierMode",
    "SingularMatrixError",
    "build_design_matrix",
    "decode_coefficients",
    "default_time_indices",
    "design_rank",
    "fit_series",
    "fit_with_design",
    "parse_outlier_mode",
    "reconstruct",
]
