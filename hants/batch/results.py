"""Containers and NPZ persistence for batch HANTS results."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np


class SeriesStatus(str, Enum):
    """Outcome of fitting one series in a batch."""

    OK = "ok"
    SKIPPED = "skipped"  # no valid sample, fit not attempted
    INFEASIBLE = "infeasible"  # too many samples outside the valid range
    SINGULAR = "singular"  # normal equations could not be solved


@dataclass(slots=True)
class BatchResult:
    """
    Element-aligned outputs of ``fit_array``.

    The fitted axis sits at position ``axis`` as in the input array:
    - amplitude/phase: fitted axis resized to nfreq+1; NaN where not fit.
    - reconstructed: same shape as the input; NaN where not fit.
    - mask: same shape as the input; True for samples trusted by the final fit,
      False everywhere for series not fit.
    - status: SeriesStatus values, shape of the input without the fitted axis.
    - converged: False for non-converged fits and for series not fit.
    - n_iterations: Solves per series (0 where not fit).
    """

    amplitude: np.ndarray
    phase: np.ndarray
    reconstructed: np.ndarray
    mask: np.ndarray
    status: np.ndarray
    converged: np.ndarray
    n_iterations: np.ndarray
    axis: int

    def summary(self) -> dict[str, int]:
        """Count series per status, plus the fitted-but-not-converged ones."""
        counts = {s.value: int(np.count_nonzero(self.status == s.value)) for s in SeriesStatus}
        fitted = self.status == SeriesStatus.OK.value
        counts["not_converged"] = int(np.count_nonzero(fitted & ~self.converged))
        return counts

    def as_dict(self) -> dict[str, Any]:
        """Return a dictionary representation useful for np.savez."""
        return {
            "amplitude": self.amplitude,
            "phase": self.phase,
            "reconstructed": self.reconstructed,
            "mask": self.mask.astype(bool),
            "status": np.asarray(self.status, dtype="U16"),
            "converged": self.converged.astype(bool),
            "n_iterations": self.n_iterations.astype(np.int64),
            "axis": np.int32(self.axis),
        }


def save_batch_result(result: BatchResult, output_path: Path) -> None:
    """Write a batch result to NPZ atomically via temporary file and rename."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        dir=output_path.parent, suffix=".tmp", delete=False
    ) as tmp:
        np.savez_compressed(tmp, **result.as_dict())
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    os.replace(tmp_path, output_path)
    logging.info("Saved batch result to %s", output_path)


def load_batch_result(path: Path) -> BatchResult:
    """Load a batch result saved by ``save_batch_result``."""
    with np.load(path) as data:
        return BatchResult(
            amplitude=data["amplitude"],
            phase=data["phase"],
            reconstructed=data["reconstructed"],
            mask=data["mask"],
            status=data["status"],
            converged=data["converged"],
            n_iterations=data["n_iterations"],
            axis=int(data["axis"]),
        )
