"""Exceptions and warnings raised by the HANTS core."""

from __future__ import annotations

import numpy as np

__all__ = [
    "ConfigurationError",
    "HantsError",
    "InvalidArgumentError",
    "NonConvergenceWarning",
    "SingularMatrixError",
]


class HantsError(Exception):
    """Base class for all HANTS errors."""


class InvalidArgumentError(HantsError, ValueError):
    """Malformed configuration or inputs, raised before any computation."""


class ConfigurationError(HantsError):
    """Too few valid samples to fit the requested harmonics.

    Raised when the number of samples outside the valid range already exceeds
    ``ni - nr - overdeterminedness``.
    """

    def __init__(self, nout: int, noutmax: int):
        self.nout = nout
        self.noutmax = noutmax
        super().__init__(
            f"{nout} samples outside the valid range but at most {noutmax} may be rejected"
        )


class SingularMatrixError(HantsError, np.linalg.LinAlgError):
    """The regularized normal-equations matrix could not be solved."""


class NonConvergenceWarning(RuntimeWarning):
    """Outlier rejection hit the iteration cap before the stop rule was met."""
