"""Frame-wise narrowband direction of arrival from a pressure/velocity triplet."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence

import numpy as np

from doawatch.detection.types import DoaPoint, DoaSummary
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.dsp.welch import csd, nearest_bin, welch_psd
from doawatch.dsp.windowing import frame_signal, frame_starts
from doawatch.errors import PreconditionError
from doawatch.util.logging import get_logger
from doawatch.util.math import RATIO_EPS, nearest_pow2, prev_pow2, wrap_degrees

logger = get_logger(__name__)

# Sub-segments per frame used to average the cross terms.
SUBSEGMENT_DIVISOR = 4
MIN_FRAME_SAMPLES = 8


def _coherence(cross: complex, auto_a: float, auto_b: float) -> float:
    value = (abs(cross) ** 2) / (auto_a * auto_b + RATIO_EPS)
    return float(np.clip(value, 0.0, 1.0))


def doa_frame_length(sampling_rate: float, frame_duration: float, n_samples: Optional[int] = None) -> int:
    """Power-of-two frame length closest to frame_duration seconds.

    When that rounds up past n_samples the power of two below the requested
    length is used instead.
    """
    requested = float(frame_duration) * float(sampling_rate)
    frame_len = nearest_pow2(requested)
    if n_samples is not None and frame_len > n_samples:
        frame_len = prev_pow2(int(requested))
    return frame_len


def _frame_doa(h: np.ndarray, vx: np.ndarray, vy: np.ndarray, fs: float, nperseg: int, target_freq: float):
    p_h = welch_psd(h, fs, nperseg)
    p_x = welch_psd(vx, fs, nperseg)
    p_y = welch_psd(vy, fs, nperseg)
    g_ph = csd(vx, h, fs, nperseg)
    g_pv = csd(vy, h, fs, nperseg)
    k, _ = nearest_bin(p_h.freqs, target_freq)

    cross_h = complex(g_ph.real[k], g_ph.imag[k])
    cross_v = complex(g_pv.real[k], g_pv.imag[k])
    azimuth = wrap_degrees(math.degrees(math.atan2(cross_v.real, cross_h.real)))
    coherence_h = _coherence(cross_h, float(p_h.psd[k]), float(p_x.psd[k]))
    coherence_v = _coherence(cross_v, float(p_h.psd[k]), float(p_y.psd[k]))
    return azimuth, math.sqrt(coherence_h * coherence_v)


def calculate_doa_vs_time(
    hydrophone,
    vx,
    vy,
    sampling_rate: float,
    target_freq: float,
    frame_duration: float = 0.5,
    start_time: float = 0.0,
) -> List[DoaPoint]:
    """Azimuth and coherence confidence per frame at the bin nearest target_freq.

    The azimuth is atan2(Re(Vy*conj(H)), Re(Vx*conj(H))) from Welch-averaged
    cross spectra inside each frame. Frames are a power of two long with a
    quarter-frame hop; each frame is independent of the others. Point times
    are frame midpoints offset by start_time.
    """
    h = as_1d_signal(hydrophone, "hydrophone")
    x = as_1d_signal(vx, "vx")
    y = as_1d_signal(vy, "vy")
    if not (h.size == x.size == y.size):
        raise PreconditionError(f"channel lengths differ: hydrophone={h.size} vx={x.size} vy={y.size}")
    fs = check_sampling_rate(sampling_rate)
    target = float(target_freq)
    if not math.isfinite(target) or target < 0.0:
        raise PreconditionError(f"target frequency must be a non-negative number, got {target_freq!r}")

    frame_len = doa_frame_length(fs, frame_duration, h.size)
    if frame_len < MIN_FRAME_SAMPLES or h.size < frame_len:
        logger.debug("Not enough samples for a %d-sample DoA frame", frame_len)
        return []
    hop = frame_len // 4
    nperseg = frame_len // SUBSEGMENT_DIVISOR

    frames_h = frame_signal(h, frame_len, hop)
    frames_x = frame_signal(x, frame_len, hop)
    frames_y = frame_signal(y, frame_len, hop)
    starts = frame_starts(h.size, frame_len, hop)

    points: List[DoaPoint] = []
    dropped = 0
    for start, fh, fx, fy in zip(starts, frames_h, frames_x, frames_y):
        azimuth, confidence = _frame_doa(fh, fx, fy, fs, nperseg, target)
        if not (math.isfinite(azimuth) and math.isfinite(confidence)):
            dropped += 1
            continue
        time_s = float(start_time) + (int(start) + frame_len / 2.0) / fs
        points.append(DoaPoint(time=time_s, doa=azimuth, confidence=confidence))

    logger.debug(
        "DoA at %.1f Hz: %d points, %d non-finite frames dropped",
        target,
        len(points),
        dropped,
        extra={"stage": "doa", "n_frames": int(starts.size)},
    )
    return points


def summarize_doa(points: Sequence[DoaPoint]) -> Optional[DoaSummary]:
    """Aggregate statistics over a DoA series; None when the series is empty."""
    if not points:
        return None
    doas = np.asarray([p.doa for p in points], dtype=np.float64)
    confidences = np.asarray([p.confidence for p in points], dtype=np.float64)
    radians = np.deg2rad(doas)
    circular = wrap_degrees(math.degrees(math.atan2(float(np.mean(np.sin(radians))), float(np.mean(np.cos(radians))))))
    return DoaSummary(
        mean_doa=float(np.mean(doas)),
        circular_mean_doa=circular,
        min_doa=float(np.min(doas)),
        max_doa=float(np.max(doas)),
        mean_confidence=float(np.mean(confidences)),
        count=len(points),
    )
