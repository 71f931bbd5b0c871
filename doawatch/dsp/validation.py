"""Input contract checks shared by the numeric routines."""

from __future__ import annotations

import numpy as np

from doawatch.errors import PreconditionError


def as_1d_signal(samples, name: str = "signal") -> np.ndarray:
    """Return samples as a 1-D float64 array or raise PreconditionError."""
    arr = np.asarray(samples, dtype=np.float64)
    if arr.ndim != 1:
        raise PreconditionError(f"{name} must be 1-D, got shape {arr.shape}")
    return arr


def check_sampling_rate(sampling_rate: float) -> float:
    fs = float(sampling_rate)
    if not np.isfinite(fs) or fs <= 0.0:
        raise PreconditionError(f"sampling rate must be positive, got {sampling_rate!r}")
    return fs
