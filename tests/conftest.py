import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


def _harmonic(n: int, nbase: int, mean: float, terms) -> np.ndarray:
    theta = 2.0 * np.pi * np.arange(n) / nbase
    y = np.full(n, float(mean))
    for k, a, b in terms:
        y += a * np.cos(k * theta) + b * np.sin(k * theta)
    return y


@pytest.fixture
def make_harmonic():
    """
    Factory for noise-free harmonic series.

    make_harmonic(n, nbase, mean, [(k, a, b), ...]) returns
    mean + Σ a*cos(kθ) + b*sin(kθ) with θ = 2πi/nbase, i = 0..n-1.
    """
    return _harmonic


@pytest.fixture
def seasonal_series() -> np.ndarray:
    """24 samples of 10 + 3cos(θ) - sin(θ) + 0.5cos(2θ)."""
    return _harmonic(24, 24, 10.0, [(1, 3.0, -1.0), (2, 0.5, 0.0)])
