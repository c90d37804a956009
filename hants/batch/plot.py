from __future__ import annotations

import numpy as np
import matplotlib.pyplot as plt

from hants.core.basis import default_time_indices
from hants.core.reconstruction import reconstruct
from hants.core.types import FitResult


def plot_fit(
    y,
    result: FitResult,
    ax=None,
    *,
    time_indices=None,
    nbase: int | None = None,
    title: str | None = None,
) -> tuple[plt.Figure, plt.Axes]:
    """
    Plot one series against its HANTS reconstruction.

    - Trusted samples are drawn filled, rejected ones as crosses; missing
      samples are not drawn.
    - When ``nbase`` is given, the smooth curve over one base period is drawn
      from the amplitudes and phases as well.
    - Returns (Figure, Axes); caller decides to show/save.
    """
    fig: plt.Figure
    axes: plt.Axes
    if ax is None:
        fig, axes = plt.subplots(figsize=(8, 4))
    else:
        axes = ax
        fig = axes.figure

    y = np.asarray(y, dtype=np.float64)
    t = default_time_indices(y.size) if time_indices is None else np.asarray(time_indices)
    finite = np.isfinite(y)
    trusted = result.mask & finite
    rejected = ~result.mask & finite

    axes.scatter(t[trusted], y[trusted], s=14, color="tab:blue", label="trusted")
    axes.scatter(t[rejected], y[rejected], s=20, marker="x", color="tab:red", label="rejected")
    order = np.argsort(t, kind="stable")
    axes.plot(t[order], result.reconstructed[order], color="black", lw=1.2, label="HANTS fit")

    if nbase is not None:
        curve = reconstruct(result.amplitude, result.phase, nbase)
        axes.plot(np.arange(nbase), curve, color="tab:gray", lw=0.8, ls="--", label="base period")

    axes.set_xlabel("Time index")
    axes.set_ylabel("Value")
    axes.set_title(title or f"HANTS fit ({result.n_rejected} rejected, {result.n_iterations} iterations)")
    axes.grid(True, alpha=0.2)
    axes.legend(loc="best", fontsize="small")

    return fig, axes
