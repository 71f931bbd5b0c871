"""Narrowband tonal detection per frame and persistence tracking across frames."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from doawatch.detection.types import PersistentTonal, Tonal, TonalTrack
from doawatch.dsp.noise_estimation import median_noise_floor_db
from doawatch.dsp.peaks import find_spectral_peaks
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.dsp.welch import welch_psd
from doawatch.dsp.windowing import frame_signal
from doawatch.util.logging import get_logger
from doawatch.util.math import db10, prev_pow2

logger = get_logger(__name__)

MIN_AUTO_NPERSEG = 64
MAX_AUTO_NPERSEG = 8192
# Tracking tolerance never drops below this many PSD bins.
MIN_TOLERANCE_BINS = 1.5


@dataclass
class TonalOptions:
    freq_range: Tuple[float, Optional[float]] = (20.0, None)
    min_snr_db: float = 10.0
    frame_duration: float = 1.0
    min_frames_present: int = 3
    freq_tolerance_hz: float = 5.0
    min_prominence_db: float = 6.0
    min_separation_bins: int = 5
    nperseg: Optional[int] = None

    def segment_length(self, frame_len: int) -> int:
        if self.nperseg:
            return int(self.nperseg)
        return int(np.clip(prev_pow2(max(frame_len // 4, 1)), MIN_AUTO_NPERSEG, MAX_AUTO_NPERSEG))


def _band_mask(freqs: np.ndarray, freq_range: Tuple[float, Optional[float]], nyquist: float) -> np.ndarray:
    fmin, fmax = freq_range
    low = 0.0 if fmin is None else float(fmin)
    high = nyquist if fmax is None else min(float(fmax), nyquist)
    return (freqs >= low) & (freqs <= high)


def detect_tonals_in_frame(frame, sampling_rate: float, options: Optional[TonalOptions] = None) -> List[Tonal]:
    """Spectral peaks of one frame that stand min_snr_db above the band's median floor."""
    opts = options or TonalOptions()
    x = as_1d_signal(frame, "frame")
    fs = check_sampling_rate(sampling_rate)
    nperseg = opts.segment_length(x.size)
    estimate = welch_psd(x, fs, nperseg)
    if estimate.is_empty:
        return []

    mask = _band_mask(estimate.freqs, opts.freq_range, fs / 2.0)
    band_freqs = estimate.freqs[mask]
    band_db = db10(estimate.psd[mask])
    if band_db.size == 0:
        return []

    floor_db = median_noise_floor_db(band_db)
    peaks = find_spectral_peaks(
        band_db,
        min_height_db=floor_db + float(opts.min_snr_db),
        min_prominence_db=opts.min_prominence_db,
        min_separation_bins=opts.min_separation_bins,
    )
    return [
        Tonal(frequency=float(band_freqs[i]), power=float(band_db[i]), snr=float(band_db[i] - floor_db))
        for i in peaks
    ]


def track_tonals(frames_tonals: Iterable[Sequence[Tonal]], options: Optional[TonalOptions] = None) -> List[PersistentTonal]:
    """Greedy frequency binning of per-frame tonals in frame order.

    Each tonal joins the earliest-created track whose running mean frequency is
    within freq_tolerance_hz, otherwise it starts a new track. Assignment is
    order dependent; frames must be supplied in time order. Tracks with at
    least min_frames_present detections are reported, lowest frequency first.
    """
    opts = options or TonalOptions()
    tolerance = float(opts.freq_tolerance_hz)
    tracks: List[TonalTrack] = []
    for tonals in frames_tonals:
        for tonal in tonals:
            target = next((t for t in tracks if abs(t.frequency - tonal.frequency) <= tolerance), None)
            if target is None:
                target = TonalTrack()
                tracks.append(target)
            target.add(tonal)

    persistent = [t.summarize() for t in tracks if len(t.detections) >= int(opts.min_frames_present)]
    persistent.sort(key=lambda p: p.frequency_mean)
    return persistent


def detect_tonals(signal, sampling_rate: float, options: Optional[TonalOptions] = None) -> List[PersistentTonal]:
    """Persistent tonals over frames of frame_duration with 75 % overlap.

    Tracking uses the larger of freq_tolerance_hz and 1.5 PSD bin widths.
    """
    opts = options or TonalOptions()
    x = as_1d_signal(signal)
    fs = check_sampling_rate(sampling_rate)
    frame_len = int(round(float(opts.frame_duration) * fs))
    hop = max(frame_len // 4, 1)
    frames = frame_signal(x, frame_len, hop) if frame_len > 0 else np.empty((0, 0))
    if frames.shape[0] == 0:
        logger.debug("Signal shorter than one %.3fs tonal frame", opts.frame_duration)
        return []

    per_frame = [detect_tonals_in_frame(frame, fs, opts) for frame in frames]
    # An off-bin tone alternates between neighbouring bins.
    bin_hz = fs / opts.segment_length(frame_len)
    tolerance = max(float(opts.freq_tolerance_hz), MIN_TOLERANCE_BINS * bin_hz)
    persistent = track_tonals(per_frame, replace(opts, freq_tolerance_hz=tolerance))
    logger.debug(
        "Tonal search: %d detections, %d persistent",
        sum(len(t) for t in per_frame),
        len(persistent),
        extra={"stage": "tonals", "n_frames": int(frames.shape[0])},
    )
    return persistent
