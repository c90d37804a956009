"""Harmonic design matrix for the HANTS fit.

Row 0 is the constant term; rows (2k-1, 2k) hold the cosine and sine of
harmonic k evaluated at each sample's position within the base period:

    M[2k-1, j] = cos(2π · ((k · t_j) mod nbase) / nbase)
    M[2k,   j] = sin(2π · ((k · t_j) mod nbase) / nbase)

Only the first min(2·nfreq + 1, ni) rows are kept.
"""

from __future__ import annotations

import numpy as np

from hants.core.errors import InvalidArgumentError


def default_time_indices(n_samples: int) -> np.ndarray:
    """Time indices 0..n_samples-1, one sample per virtual time step."""
    return np.arange(n_samples, dtype=np.int64)


def as_time_indices(time_indices, n_samples: int | None = None) -> np.ndarray:
    """Validate and convert time indices to a 1-D int64 array."""
    t = np.asarray(time_indices)
    if t.ndim != 1:
        raise InvalidArgumentError(f"time indices must be 1-D, got shape {t.shape}")
    if t.size == 0:
        raise InvalidArgumentError("time indices must not be empty")
    if not np.issubdtype(t.dtype, np.integer):
        if not np.issubdtype(t.dtype, np.floating) or not np.all(np.isfinite(t)):
            raise InvalidArgumentError("time indices must be integers")
        if np.any(t != np.round(t)):
            raise InvalidArgumentError("time indices must be integral")
    if n_samples is not None and t.size != n_samples:
        raise InvalidArgumentError(
            f"Length mismatch: {n_samples} samples but {t.size} time indices"
        )
    return t.astype(np.int64)


def design_rank(nfreq: int, n_samples: int) -> int:
    """Number of basis rows actually used, nr = min(2·nfreq + 1, ni)."""
    return min(2 * nfreq + 1, n_samples)


def build_design_matrix(time_indices, nbase: int, nfreq: int) -> np.ndarray:
    """
    Build the (nr, ni) harmonic design matrix.

    Args:
        time_indices: Integer sample positions; values beyond nbase wrap.
        nbase: Length of the base period in virtual samples.
        nfreq: Number of harmonics above the zero frequency.

    Returns:
        Read-only float64 array of shape (min(2*nfreq+1, ni), ni).
    """
    if nbase <= 0:
        raise InvalidArgumentError(f"nbase must be positive, got {nbase}")
    if nfreq < 0:
        raise InvalidArgumentError(f"nfreq must be non-negative, got {nfreq}")
    t = as_time_indices(time_indices)

    ni = t.size
    nr = design_rank(nfreq, ni)

    ang = 2.0 * np.pi * np.arange(nbase) / nbase
    cs = np.cos(ang)
    sn = np.sin(ang)

    full = np.empty((2 * nfreq + 1, ni), dtype=np.float64)
    full[0, :] = 1.0
    for k in range(1, nfreq + 1):
        index = np.mod(k * t, nbase)
        full[2 * k - 1, :] = cs[index]
        full[2 * k, :] = sn[index]

    matrix = np.ascontiguousarray(full[:nr])
    matrix.setflags(write=False)
    return matrix
