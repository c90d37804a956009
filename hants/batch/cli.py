"""Command-line interface for batch HANTS fitting.

Example:
    # Smooth 36 dekadal NDVI composites per pixel, rejecting low (cloudy) values
    python -m hants --input ndvi.npz --key ndvi --axis 0 --nfreq 3 \\
        --low -0.2 --high 1.0 --fit-tolerance 0.05 --dod 5 --outlier low \\
        --output ndvi_hants.npz --workers 8
"""

from __future__ import annotations

import argparse
import logging
import warnings
from datetime import datetime
from pathlib import Path

import numpy as np
import pandas as pd

from hants import config
from hants.batch.results import save_batch_result
from hants.batch.runner import fit_array
from hants.core.errors import HantsError, InvalidArgumentError
from hants.core.fitter import fit_series
from hants.core.types import HantsConfig, OutlierMode
from hants.logging_utils import setup_logging


def load_input(path: Path, key: str = config.INPUT_KEY, header: bool = False) -> np.ndarray:
    """
    Load the array to fit.

    - ``.npz``: array stored under ``key``.
    - ``.npy``: the stored array.
    - ``.csv``: one series per row, read with pandas; empty cells become NaN.
    """
    suffix = path.suffix.lower()
    if suffix == ".npz":
        with np.load(path) as data:
            if key not in data:
                raise KeyError(f"{path} has no array '{key}' (found: {list(data.keys())})")
            return np.asarray(data[key], dtype=np.float64)
    if suffix == ".npy":
        return np.asarray(np.load(path), dtype=np.float64)
    if suffix == ".csv":
        df = pd.read_csv(path, header=0 if header else None)
        return df.apply(pd.to_numeric, errors="coerce").to_numpy(dtype=np.float64)
    raise ValueError(f"Unsupported input format: {path.suffix}")


def _build_config(args: argparse.Namespace) -> HantsConfig:
    cfg = HantsConfig(
        nbase=args.nbase,
        nfreq=args.nfreq,
        valid_range=(args.low, args.high),
        fit_tolerance=args.fit_tolerance,
        overdeterminedness=args.dod,
        delta=args.delta,
        outlier_mode=args.outlier,
        missing_value=args.missing_value,
    )
    cfg.validate()
    return cfg


def _plot_series(
    data: np.ndarray,
    cfg: HantsConfig,
    axis: int,
    index: int,
    time_indices: np.ndarray | None,
    output: Path,
) -> None:
    """Refit one series and save the diagnostic plot."""
    from hants.batch.plot import plot_fit

    flat = np.moveaxis(data, axis, -1)
    flat = flat.reshape(-1, flat.shape[-1])
    if not 0 <= index < flat.shape[0]:
        raise InvalidArgumentError(f"--plot-index {index} outside 0..{flat.shape[0] - 1}")

    series = flat[index]
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        result = fit_series(series, cfg, time_indices)

    fig, _ = plot_fit(
        series,
        result,
        time_indices=time_indices,
        nbase=cfg.resolve_nbase(series.size),
        title=f"Series {index}",
    )
    output.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output, dpi=150, bbox_inches="tight")
    logging.info("Saved plot of series %d to %s", index, output)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments for batch HANTS fitting."""
    parser = argparse.ArgumentParser(
        prog="python -m hants",
        description="Robust harmonic smoothing (HANTS) of cyclic time series",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--input", type=Path, required=True, help="Input .npz, .npy or .csv file"
    )
    parser.add_argument(
        "--key", default=config.INPUT_KEY, help="Array name inside an .npz input"
    )
    parser.add_argument(
        "--header", action="store_true", help="CSV input has a header row"
    )
    parser.add_argument("--axis", type=int, default=-1, help="Time axis of the input")
    parser.add_argument(
        "--time-indices",
        type=Path,
        default=None,
        help="Text file of integer sample positions (default: 0..ni-1)",
    )
    parser.add_argument(
        "--nbase",
        type=int,
        default=None,
        help="Base period length in virtual samples (default: series length)",
    )
    parser.add_argument(
        "--nfreq", type=int, default=config.DEFAULT_NFREQ, help="Number of harmonics"
    )
    parser.add_argument(
        "--low", type=float, default=-np.inf, help="Valid range minimum (exclusive)"
    )
    parser.add_argument(
        "--high", type=float, default=np.inf, help="Valid range maximum (exclusive)"
    )
    parser.add_argument(
        "--fit-tolerance",
        type=float,
        default=config.DEFAULT_FIT_TOLERANCE,
        help="Fit error tolerance",
    )
    parser.add_argument(
        "--dod",
        type=int,
        default=config.DEFAULT_OVERDETERMINEDNESS,
        help="Degree of overdeterminedness",
    )
    parser.add_argument(
        "--delta",
        type=float,
        default=config.DEFAULT_DELTA,
        help="Damping of high amplitudes",
    )
    parser.add_argument(
        "--outlier",
        choices=[m.value for m in OutlierMode],
        default=OutlierMode.NONE.value,
        help="Side on which outliers are rejected",
    )
    parser.add_argument(
        "--missing-value",
        type=float,
        default=None,
        help="Nodata flag treated as missing",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Parallel worker processes (1 = sequential, 0 = CPU count)",
    )
    parser.add_argument(
        "--output", type=Path, required=True, help="Output NPZ file"
    )
    parser.add_argument(
        "--overwrite", action="store_true", help="Overwrite an existing output file"
    )
    parser.add_argument(
        "--plot", type=Path, default=None, help="Save a diagnostic plot to this PNG"
    )
    parser.add_argument(
        "--plot-index",
        type=int,
        default=0,
        help="Flat index of the series shown by --plot",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable DEBUG-level logging"
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for batch HANTS fitting."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    start = datetime.now()

    if args.output.exists() and not args.overwrite:
        logging.info(f"Output file already exists: {args.output}")
        logging.info("Use --overwrite to recompute")
        return 0

    try:
        cfg = _build_config(args)
    except InvalidArgumentError as exc:
        logging.error("Invalid configuration: %s", exc)
        return 1

    try:
        data = load_input(args.input, key=args.key, header=args.header)
        time_indices = (
            np.loadtxt(args.time_indices, dtype=np.int64, ndmin=1)
            if args.time_indices is not None
            else None
        )
    except (OSError, KeyError, ValueError) as exc:
        logging.error("Failed to load input: %s", exc)
        return 1

    logging.info(f"Loaded {args.input} with shape {data.shape}")

    try:
        result = fit_array(
            data,
            cfg,
            axis=args.axis,
            time_indices=time_indices,
            use_parallel=args.workers != 1,
            max_workers=args.workers or None,
            progress=True,
        )
    except HantsError as exc:
        logging.error("Invalid input: %s", exc)
        return 1
    except Exception as exc:
        logging.exception("Failed to fit input: %s", exc)
        return 1

    try:
        save_batch_result(result, args.output)
    except Exception as exc:
        logging.exception("Failed to save results: %s", exc)
        return 1

    if args.plot is not None:
        try:
            _plot_series(data, cfg, result.axis, args.plot_index, time_indices, args.plot)
        except HantsError as exc:
            logging.warning("Could not plot series %d: %s", args.plot_index, exc)

    duration = datetime.now() - start
    logging.info(f"Done in {duration.total_seconds():.1f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
