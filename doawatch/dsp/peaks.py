"""Peak picking over dB spectra."""

from __future__ import annotations

from typing import List

import numpy as np
from scipy.signal import find_peaks


def suppress_close_peaks(values: np.ndarray, peaks: np.ndarray, min_separation: int) -> np.ndarray:
    """Greedy non-max suppression in bin units.

    Peaks are visited by descending height (ties: earliest index first) and a
    peak is kept only if no already-kept peak lies within min_separation bins.
    Returns the kept indices in ascending order.
    """
    peaks = np.asarray(peaks, dtype=np.intp)
    if peaks.size == 0 or min_separation <= 1:
        return np.sort(peaks)
    # lexsort sorts by the last key first: height descending, then index ascending.
    order = np.lexsort((peaks, -values[peaks]))
    kept: List[int] = []
    for idx in peaks[order]:
        if all(abs(int(idx) - k) >= min_separation for k in kept):
            kept.append(int(idx))
    return np.asarray(sorted(kept), dtype=np.intp)


def find_spectral_peaks(
    values_db: np.ndarray,
    *,
    min_height_db: float,
    min_prominence_db: float = 0.0,
    min_separation_bins: int = 1,
) -> np.ndarray:
    """Indices of local maxima above min_height_db that survive prominence and spacing rules."""
    data = np.asarray(values_db, dtype=np.float64)
    if data.size < 3:
        return np.zeros(0, dtype=np.intp)
    peaks, _ = find_peaks(
        data,
        height=float(min_height_db),
        prominence=max(0.0, float(min_prominence_db)),
    )
    return suppress_close_peaks(data, peaks, int(min_separation_bins))
