"""
Robust harmonic fitting of a single series (HANTS).

Each iteration solves the regularized weighted normal equations

    (M · diag(p) · Mᵀ + δ·I') z = M · (p ⊙ y)

where I' is the identity with its (0, 0) entry zeroed so that the mean level is
never damped, then rejects every trusted sample whose signed deviation is more
than half of the worst one. Iteration stops once the worst deviation is within
the fit tolerance, once no further sample may be rejected without dropping
below nr + overdeterminedness trusted samples, or after ni solves.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import replace

import numpy as np
from scipy.linalg import LinAlgError, solve

from hants.core.basis import (
    as_time_indices,
    build_design_matrix,
    default_time_indices,
)
from hants.core.errors import (
    ConfigurationError,
    InvalidArgumentError,
    NonConvergenceWarning,
    SingularMatrixError,
)
from hants.core.types import FitResult, HantsConfig

__all__ = ["as_series", "decode_coefficients", "fit_series", "fit_with_design"]


def as_series(y, missing_value: float | None = None) -> np.ndarray:
    """Convert input samples to a float64 vector with NaN marking missing values.

    Accepts plain sequences (``None`` entries become NaN), numpy arrays and
    masked arrays.
    """
    if isinstance(y, np.ma.MaskedArray):
        values = np.ma.filled(y.astype(np.float64), np.nan)
    else:
        try:
            values = np.array(y, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Series is not numeric: {exc}") from exc
    if values.ndim != 1:
        raise InvalidArgumentError(f"Series must be 1-D, got shape {values.shape}")
    if missing_value is not None:
        values[values == missing_value] = np.nan
    return values


def _solve_weighted(
    matrix: np.ndarray, y: np.ndarray, mask: np.ndarray, delta: float
) -> np.ndarray:
    """Solve the damped normal equations for the trusted samples."""
    za = matrix @ np.where(mask, y, 0.0)
    gram = (matrix * mask) @ matrix.T

    damping = np.full(matrix.shape[0], delta)
    damping[0] = 0.0
    gram += np.diag(damping)

    try:
        return solve(gram, za, assume_a="sym")
    except LinAlgError as exc:
        raise SingularMatrixError(
            f"Normal equations are singular with {int(mask.sum())} trusted samples "
            f"and delta={delta}"
        ) from exc


def _iterate(
    matrix: np.ndarray,
    y: np.ndarray,
    mask: np.ndarray,
    nout: int,
    noutmax: int,
    sign: int,
    fit_tolerance: float,
    delta: float,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, int, bool]:
    """
    Run one solve-and-reject pass.

    Returns:
        (coefficients, reconstructed, mask, nout, ready). The input mask is not
        modified; rejections of this pass are applied to a copy.
    """
    z = _solve_weighted(matrix, y, mask, delta)
    yr = matrix.T @ z

    # Excluded samples may hold NaN or out-of-range values; they score zero.
    err = np.zeros_like(yr)
    err[mask] = sign * (yr[mask] - y[mask])
    ranking = np.argsort(err, kind="stable")
    # Taken from err, not the raw deviation, so the worst score is never an
    # excluded sample's NaN or out-of-range value.
    maxerr = err[ranking[-1]]

    ready = bool(maxerr <= fit_tolerance or nout == noutmax)
    if ready:
        return z, yr, mask, nout, ready

    new_mask = mask.copy()
    for j in ranking[::-1]:
        if err[j] <= maxerr / 2 or nout >= noutmax:
            break
        new_mask[j] = False
        nout += 1
    return z, yr, new_mask, nout, ready


def decode_coefficients(z: np.ndarray, nfreq: int) -> tuple[np.ndarray, np.ndarray]:
    """
    Convert cosine/sine coefficients into amplitudes and phases (degrees).

    ``z`` may be shorter than 2*nfreq+1 when the design matrix was truncated;
    the missing terms decode as zero.
    """
    coeffs = np.zeros(2 * nfreq + 1, dtype=np.float64)
    coeffs[: z.size] = z

    amplitude = np.empty(nfreq + 1, dtype=np.float64)
    phase = np.zeros(nfreq + 1, dtype=np.float64)
    amplitude[0] = coeffs[0]
    if nfreq == 0:
        return amplitude, phase

    ra = coeffs[1::2]
    rb = coeffs[2::2]
    amplitude[1:] = np.hypot(ra, rb)
    angles = np.degrees(np.arctan2(rb, ra))
    angles = np.where(angles < 0.0, angles + 360.0, angles)
    angles[angles >= 360.0] -= 360.0
    phase[1:] = angles
    return amplitude, phase


def fit_with_design(
    y: np.ndarray,
    matrix: np.ndarray,
    config: HantsConfig,
) -> FitResult:
    """
    Fit one series against a prebuilt design matrix.

    Args:
        y: (ni,) float64 samples, NaN for missing values.
        matrix: (nr, ni) design matrix from ``build_design_matrix``.
        config: Validated fit parameters.

    Returns:
        FitResult for the series.

    Raises:
        ConfigurationError: Too many samples outside the valid range.
        SingularMatrixError: The damped normal equations could not be solved.
    """
    ni = y.size
    nr = matrix.shape[0]
    if matrix.shape[1] != ni:
        raise InvalidArgumentError(
            f"Design matrix has {matrix.shape[1]} columns for {ni} samples"
        )

    # NaN compares False, so missing samples start excluded
    mask = (y > config.low) & (y < config.high)
    nout = ni - int(np.count_nonzero(mask))
    noutmax = ni - nr - config.overdeterminedness
    if nout > noutmax:
        raise ConfigurationError(nout, noutmax)

    sign = config.outlier_mode.sign
    ready = False
    n_iterations = 0
    active_counts: list[int] = []
    z = yr = None
    solved_mask = mask

    while not ready and n_iterations < ni:
        n_iterations += 1
        active_counts.append(ni - nout)
        solved_mask = mask
        z, yr, mask, nout, ready = _iterate(
            matrix,
            y,
            mask,
            nout,
            noutmax,
            sign,
            config.fit_tolerance,
            config.delta,
        )
        logging.debug(
            "HANTS iteration %d: %d trusted, %d rejected, ready=%s",
            n_iterations,
            ni - nout,
            nout,
            ready,
        )

    # At the cap the last pass may have rejected samples after its solve; report
    # the mask that produced z and yr.
    mask = solved_mask
    if not ready:
        warnings.warn(
            NonConvergenceWarning(
                f"Outlier rejection stopped after {n_iterations} iterations "
                f"with {ni - int(np.count_nonzero(mask))} of at most {noutmax} samples rejected"
            ),
            stacklevel=3,
        )

    amplitude, phase = decode_coefficients(z, config.nfreq)
    residuals = (yr - y)[mask]
    rms_residual = float(np.sqrt(np.mean(residuals**2))) if residuals.size else np.nan

    return FitResult(
        amplitude=amplitude,
        phase=phase,
        reconstructed=yr,
        mask=mask,
        n_iterations=n_iterations,
        converged=ready,
        active_counts=tuple(active_counts),
        rms_residual=rms_residual,
    )


def fit_series(
    y,
    config: HantsConfig | None = None,
    time_indices=None,
    **overrides,
) -> FitResult:
    """
    Apply HANTS to one series.

    Args:
        y: Samples; NaN, None, masked entries or ``config.missing_value`` mark
            missing values.
        config: Fit parameters; defaults to ``HantsConfig()``.
        time_indices: Integer sample positions within the base period
            (0-based). Defaults to 0..ni-1.
        **overrides: Field overrides applied on top of ``config``, e.g.
            ``nfreq=2, outlier_mode="high"``.

    Returns:
        FitResult with amplitudes, phases, reconstruction and final mask.
    """
    cfg = config or HantsConfig()
    if overrides:
        try:
            cfg = replace(cfg, **overrides)
        except TypeError as exc:
            raise InvalidArgumentError(str(exc)) from exc

    values = as_series(y, cfg.missing_value)
    cfg.validate(values.size)

    if time_indices is None:
        t = default_time_indices(values.size)
    else:
        t = as_time_indices(time_indices, values.size)

    matrix = build_design_matrix(t, cfg.resolve_nbase(values.size), cfg.nfreq)
    return fit_with_design(values, matrix, cfg)
