"""
Apply the HANTS fit to every series of an N-dimensional array.

The fitted axis is moved last and the array flattened to (n_series, ni). Series
are processed in contiguous chunks, sequentially or in a process pool; each
chunk is independent and results are written back by index.

Example:
    result = fit_array(ndvi, HantsConfig(nbase=365, nfreq=3,
                                         valid_range=(-0.2, 1.0),
                                         fit_tolerance=0.05,
                                         overdeterminedness=5,
                                         outlier_mode="low"),
                       axis=0, time_indices=doy, use_parallel=True)
"""

from __future__ import annotations

import logging
import math
import os
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed

import numpy as np
from tqdm import tqdm

from hants import config as defaults
from hants.batch.results import BatchResult, SeriesStatus
from hants.core.basis import as_time_indices, build_design_matrix, default_time_indices
from hants.core.errors import (
    ConfigurationError,
    InvalidArgumentError,
    NonConvergenceWarning,
    SingularMatrixError,
)
from hants.core.fitter import fit_with_design
from hants.core.reconstruction import reconstruct
from hants.core.types import HantsConfig

__all__ = ["fit_array", "reconstruct_array"]


def _normalize_axis(axis: int, ndim: int) -> int:
    if not -ndim <= axis < ndim:
        raise InvalidArgumentError(f"axis {axis} is out of range for a {ndim}-D array")
    return axis % ndim


def _as_float_array(data, missing_value: float | None) -> np.ndarray:
    """Copy input to float64 with NaN at every missing entry."""
    if isinstance(data, np.ma.MaskedArray):
        values = np.ma.filled(data.astype(np.float64), np.nan)
    else:
        try:
            values = np.array(data, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(f"Input array is not numeric: {exc}") from exc
    if missing_value is not None:
        values[values == missing_value] = np.nan
    return values


def _fit_chunk(
    block: np.ndarray,
    matrix: np.ndarray,
    config: HantsConfig,
) -> tuple[np.ndarray, ...]:
    """
    Fit every row of a (n, ni) block.

    Runs in worker processes, so it only touches its arguments.

    Returns:
        (amplitude, phase, reconstructed, mask, status, converged, n_iterations)
    """
    n_series, ni = block.shape
    n_coef = config.nfreq + 1

    amplitude = np.full((n_series, n_coef), np.nan)
    phase = np.full((n_series, n_coef), np.nan)
    reconstructed = np.full((n_series, ni), np.nan)
    mask = np.zeros((n_series, ni), dtype=bool)
    status = np.full(n_series, SeriesStatus.OK.value, dtype="U16")
    converged = np.zeros(n_series, dtype=bool)
    n_iterations = np.zeros(n_series, dtype=np.int64)

    # Missing samples get a value below the valid range so they start excluded
    fill = config.low - 1.0 if math.isfinite(config.low) else np.nan

    with warnings.catch_warnings():
        warnings.simplefilter("ignore", NonConvergenceWarning)
        for i, series in enumerate(block):
            missing = np.isnan(series)
            if missing.all():
                status[i] = SeriesStatus.SKIPPED.value
                continue
            try:
                result = fit_with_design(np.where(missing, fill, series), matrix, config)
            except ConfigurationError as exc:
                logging.debug("Series %d infeasible: %s", i, exc)
                status[i] = SeriesStatus.INFEASIBLE.value
                continue
            except SingularMatrixError as exc:
                logging.debug("Series %d singular: %s", i, exc)
                status[i] = SeriesStatus.SINGULAR.value
                continue

            amplitude[i] = result.amplitude
            phase[i] = result.phase
            reconstructed[i] = result.reconstructed
            mask[i] = result.mask
            converged[i] = result.converged
            n_iterations[i] = result.n_iterations

    return amplitude, phase, reconstructed, mask, status, converged, n_iterations


def fit_array(
    data,
    config: HantsConfig | None = None,
    *,
    axis: int = -1,
    time_indices=None,
    use_parallel: bool = False,
    max_workers: int | None = None,
    chunk_size: int = defaults.DEFAULT_CHUNK_SIZE,
    progress: bool = False,
) -> BatchResult:
    """
    Fit HANTS along ``axis`` for every series of ``data``.

    Args:
        data: N-D array (or masked array); NaN, masked entries and
            ``config.missing_value`` mark missing samples.
        config: Fit parameters shared by all series.
        axis: Time axis of ``data``.
        time_indices: Integer sample positions shared by all series.
        use_parallel: Distribute chunks over a process pool.
        max_workers: Pool size (default: CPU count).
        chunk_size: Series per task.
        progress: Show a tqdm progress bar.

    Returns:
        BatchResult in the layout of ``data``.

    Raises:
        InvalidArgumentError: Malformed configuration, axis or time indices.
    """
    cfg = config or HantsConfig()
    values = _as_float_array(data, cfg.missing_value)
    if values.ndim == 0:
        raise InvalidArgumentError("Input must have at least one dimension")
    axis = _normalize_axis(axis, values.ndim)
    if chunk_size < 1:
        raise InvalidArgumentError(f"chunk_size must be positive, got {chunk_size}")

    moved = np.moveaxis(values, axis, -1)
    rest_shape = moved.shape[:-1]
    ni = moved.shape[-1]
    cfg.validate(ni)

    if time_indices is None:
        t = default_time_indices(ni)
    else:
        t = as_time_indices(time_indices, ni)
    nbase = cfg.resolve_nbase(ni)
    matrix = build_design_matrix(t, nbase, cfg.nfreq)

    flat = moved.reshape(-1, ni)
    n_series = flat.shape[0]
    n_coef = cfg.nfreq + 1

    amplitude = np.full((n_series, n_coef), np.nan)
    phase = np.full((n_series, n_coef), np.nan)
    reconstructed = np.full((n_series, ni), np.nan)
    mask = np.zeros((n_series, ni), dtype=bool)
    status = np.full(n_series, SeriesStatus.SKIPPED.value, dtype="U16")
    converged = np.zeros(n_series, dtype=bool)
    n_iterations = np.zeros(n_series, dtype=np.int64)

    starts = list(range(0, n_series, chunk_size))
    logging.info(
        "Fitting %d series of %d samples (nbase=%d, nfreq=%d, outlier=%s, parallel=%s)",
        n_series,
        ni,
        nbase,
        cfg.nfreq,
        cfg.outlier_mode.value,
        use_parallel,
    )

    def store(start: int, chunk_result) -> None:
        stop = start + chunk_result[0].shape[0]
        (
            amplitude[start:stop],
            phase[start:stop],
            reconstructed[start:stop],
            mask[start:stop],
            status[start:stop],
            converged[start:stop],
            n_iterations[start:stop],
        ) = chunk_result

    if use_parallel and len(starts) > 1:
        if max_workers is None:
            max_workers = os.cpu_count() or 4
        logging.info("Using %d parallel workers for %d chunks", max_workers, len(starts))
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(
                    _fit_chunk, flat[start : start + chunk_size], matrix, cfg
                ): start
                for start in starts
            }
            for future in tqdm(
                as_completed(futures),
                total=len(futures),
                desc="Fitting chunks",
                unit="chunk",
                disable=not progress,
            ):
                store(futures[future], future.result())
    else:
        for start in tqdm(starts, desc="Fitting chunks", unit="chunk", disable=not progress):
            store(start, _fit_chunk(flat[start : start + chunk_size], matrix, cfg))

    result = BatchResult(
        amplitude=np.moveaxis(amplitude.reshape(rest_shape + (n_coef,)), -1, axis),
        phase=np.moveaxis(phase.reshape(rest_shape + (n_coef,)), -1, axis),
        reconstructed=np.moveaxis(reconstructed.reshape(rest_shape + (ni,)), -1, axis),
        mask=np.moveaxis(mask.reshape(rest_shape + (ni,)), -1, axis),
        status=status.reshape(rest_shape),
        converged=converged.reshape(rest_shape),
        n_iterations=n_iterations.reshape(rest_shape),
        axis=axis,
    )

    summary = result.summary()
    logging.info(
        "Batch done: %d ok (%d not converged), %d skipped, %d infeasible, %d singular",
        summary[SeriesStatus.OK.value],
        summary["not_converged"],
        summary[SeriesStatus.SKIPPED.value],
        summary[SeriesStatus.INFEASIBLE.value],
        summary[SeriesStatus.SINGULAR.value],
    )
    return result


def reconstruct_array(amplitude, phase, n_samples: int, *, axis: int = -1) -> np.ndarray:
    """
    Reconstruct every coefficient vector of an N-D array along ``axis``.

    Elements whose amplitudes or phases contain NaN (series that were not fit)
    reconstruct to NaN.

    Returns:
        Array shaped like ``amplitude`` with ``axis`` resized to ``n_samples``.
    """
    amplitude = np.asarray(amplitude, dtype=np.float64)
    phase = np.asarray(phase, dtype=np.float64)
    if amplitude.shape != phase.shape:
        raise InvalidArgumentError(
            f"amplitude and phase shapes differ: {amplitude.shape} vs {phase.shape}"
        )
    if amplitude.ndim == 0:
        raise InvalidArgumentError("amplitude must have at least one dimension")
    if n_samples <= 0:
        raise InvalidArgumentError(f"n_samples must be positive, got {n_samples}")
    axis = _normalize_axis(axis, amplitude.ndim)

    amp_moved = np.moveaxis(amplitude, axis, -1)
    rest_shape = amp_moved.shape[:-1]
    amp_flat = amp_moved.reshape(-1, amp_moved.shape[-1])
    phase_flat = np.moveaxis(phase, axis, -1).reshape(amp_flat.shape)

    out = np.full((amp_flat.shape[0], n_samples), np.nan)
    for i in range(amp_flat.shape[0]):
        if np.isnan(amp_flat[i]).any() or np.isnan(phase_flat[i]).any():
            continue
        out[i] = reconstruct(amp_flat[i], phase_flat[i], n_samples)

    return np.moveaxis(out.reshape(rest_shape + (n_samples,)), -1, axis)
