from __future__ import annotations

import math
import operator
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from hants import config
from hants.core.errors import InvalidArgumentError


class OutlierMode(str, Enum):
    """Which side of the curve counts as an outlier."""

    NONE = "none"
    HIGH = "high"
    LOW = "low"

    @property
    def sign(self) -> int:
        """Multiplier applied to ``fitted - observed`` before ranking."""
        if self is OutlierMode.HIGH:
            return -1
        if self is OutlierMode.LOW:
            return 1
        return 0


_OUTLIER_ALIASES = {
    "none": OutlierMode.NONE,
    "hi": OutlierMode.HIGH,
    "high": OutlierMode.HIGH,
    "lo": OutlierMode.LOW,
    "low": OutlierMode.LOW,
}


def parse_outlier_mode(value: OutlierMode | str | None) -> OutlierMode:
    if value is None:
        return OutlierMode.NONE
    if isinstance(value, OutlierMode):
        return value
    try:
        return _OUTLIER_ALIASES[str(value).strip().lower()]
    except KeyError:
        raise InvalidArgumentError(f"Unknown outlier mode: {value}") from None


def _as_count(name: str, value) -> int:
    try:
        return operator.index(value)
    except TypeError:
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class HantsConfig:
    """
    Parameters shared by every series of a fit.

    Attributes:
        nbase: Length of the base period in virtual samples. ``None`` uses the
            series length.
        nfreq: Number of harmonics above the zero frequency.
        valid_range: Exclusive (low, high) bounds; samples outside are rejected
            before the first solve.
        fit_tolerance: Largest signed deviation accepted without rejecting more
            samples.
        overdeterminedness: Trusted points kept beyond the minimum required for
            the fit.
        delta: Damping added to the diagonal of the normal equations, except for
            the constant term.
        outlier_mode: Side of the curve on which outliers are rejected.
        missing_value: Optional nodata flag treated like NaN by the batch driver.
    """

    nbase: int | None = None
    nfreq: int = config.DEFAULT_NFREQ
    valid_range: tuple[float, float] = config.DEFAULT_VALID_RANGE
    fit_tolerance: float = config.DEFAULT_FIT_TOLERANCE
    overdeterminedness: int = config.DEFAULT_OVERDETERMINEDNESS
    delta: float = config.DEFAULT_DELTA
    outlier_mode: OutlierMode = OutlierMode.NONE
    missing_value: float | None = None

    def __post_init__(self):
        object.__setattr__(self, "outlier_mode", parse_outlier_mode(self.outlier_mode))
        try:
            low, high = self.valid_range
            valid_range = (float(low), float(high))
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError(
                f"valid_range must be a (low, high) pair of numbers, got {self.valid_range!r}"
            ) from exc
        object.__setattr__(self, "valid_range", valid_range)
        for name in ("fit_tolerance", "delta"):
            value = getattr(self, name)
            try:
                object.__setattr__(self, name, float(value))
            except (TypeError, ValueError) as exc:
                raise InvalidArgumentError(f"{name} must be a number, got {value!r}") from exc

    @property
    def low(self) -> float:
        return self.valid_range[0]

    @property
    def high(self) -> float:
        return self.valid_range[1]

    def resolve_nbase(self, n_samples: int) -> int:
        return n_samples if self.nbase is None else _as_count("nbase", self.nbase)

    def validate(self, n_samples: int | None = None) -> None:
        """Raise InvalidArgumentError if any parameter is out of its domain."""
        if self.nbase is not None and _as_count("nbase", self.nbase) <= 0:
            raise InvalidArgumentError(f"nbase must be positive, got {self.nbase}")
        if _as_count("nfreq", self.nfreq) < 0:
            raise InvalidArgumentError(f"nfreq must be non-negative, got {self.nfreq}")
        if _as_count("overdeterminedness", self.overdeterminedness) < 0:
            raise InvalidArgumentError(
                f"overdeterminedness must be non-negative, got {self.overdeterminedness}"
            )
        if not self.fit_tolerance >= 0.0:
            raise InvalidArgumentError(
                f"fit_tolerance must be non-negative, got {self.fit_tolerance}"
            )
        if not (self.delta > 0.0 and math.isfinite(self.delta)):
            raise InvalidArgumentError(f"delta must be positive, got {self.delta}")
        if math.isnan(self.low) or math.isnan(self.high) or self.low >= self.high:
            raise InvalidArgumentError(f"Invalid valid_range: {self.valid_range}")
        if n_samples is not None and n_samples < 1:
            raise InvalidArgumentError("Series must contain at least one sample")


@dataclass(frozen=True)
class FitResult:
    """
    Outcome of one robust harmonic fit.

    - amplitude: (nfreq+1,) amplitudes; amplitude[0] is the mean level.
    - phase: (nfreq+1,) phases in degrees within [0, 360); phase[0] is 0.
    - reconstructed: (ni,) fitted values at the input time indices.
    - mask: (ni,) True for samples trusted by the final fit.
    - n_iterations: Solves performed.
    - converged: False when the iteration cap stopped the loop.
    - active_counts: Trusted-sample count at the start of every iteration.
    - rms_residual: RMS of reconstructed - y over the final mask.
    """

    amplitude: np.ndarray
    phase: np.ndarray
    reconstructed: np.ndarray
    mask: np.ndarray
    n_iterations: int
    converged: bool
    active_counts: tuple[int, ...] = field(default=())
    rms_residual: float = math.nan

    @property
    def nfreq(self) -> int:
        return self.amplitude.size - 1

    @property
    def n_rejected(self) -> int:
        return int(self.mask.size - np.count_nonzero(self.mask))
