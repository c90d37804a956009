"""Evaluate fitted amplitudes and phases back into a sample sequence."""

from __future__ import annotations

import numpy as np

from hants.core.errors import InvalidArgumentError


def reconstruct(amplitude, phase, n_samples: int) -> np.ndarray:
    """
    Evaluate a harmonic series over one base period.

    y[m] = Σ_k A_k·cos(φ_k)·cos(2πkm/n) + A_k·sin(φ_k)·sin(2πkm/n),
    for m = 0..n-1, with phases in degrees.

    Args:
        amplitude: (nfreq+1,) amplitudes; amplitude[0] is the mean level.
        phase: (nfreq+1,) phases in degrees.
        n_samples: Number of output samples spanning the base period.

    Returns:
        (n_samples,) float64 array.
    """
    amplitude = np.asarray(amplitude, dtype=np.float64)
    phase = np.asarray(phase, dtype=np.float64)
    if amplitude.ndim != 1 or amplitude.shape != phase.shape:
        raise InvalidArgumentError(
            f"amplitude and phase must be 1-D of equal length, got "
            f"{amplitude.shape} and {phase.shape}"
        )
    if n_samples <= 0:
        raise InvalidArgumentError(f"n_samples must be positive, got {n_samples}")

    phase_rad = np.deg2rad(phase)
    a_coef = amplitude * np.cos(phase_rad)
    b_coef = amplitude * np.sin(phase_rad)

    m = np.arange(n_samples)
    y = np.zeros(n_samples, dtype=np.float64)
    for k in range(amplitude.size):
        ang = 2.0 * np.pi * k * m / n_samples
        y += a_coef[k] * np.cos(ang) + b_coef[k] * np.sin(ang)
    return y
