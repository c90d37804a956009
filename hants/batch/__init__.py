"""
Batch driver for the HANTS core.

Applies the single-series fit across N-dimensional arrays and handles result
persistence, plotting and the command line.
"""

from .results import BatchResult, SeriesStatus, load_batch_result, save_batch_result
from .runner import fit_array, reconstruct_array

__all__ = [
    "BatchResult",
    "SeriesStatus",
    "fit_array",
    "load_batch_result",
    "reconstruct_array",
    "save_batch_result",
]
