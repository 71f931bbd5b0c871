"""Frame-energy noise classification and noise-only spectra."""

from __future__ import annotations

import numpy as np

from doawatch.dsp.types import NoiseProfile
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.dsp.welch import welch_psd
from doawatch.dsp.windowing import frame_signal
from doawatch.util.logging import get_logger
from doawatch.util.math import POWER_EPS, db10

logger = get_logger(__name__)


def median_noise_floor_db(psd_db: np.ndarray) -> float:
    """Median of a band's dB values, used as its local noise floor."""
    values = np.asarray(psd_db, dtype=np.float64)
    if values.size == 0:
        return float("-inf")
    return float(np.median(values))


def estimate_noise(
    signal,
    sampling_rate: float,
    frame_length_sec: float = 0.1,
    percentile_threshold: float = 20.0,
    nperseg: int = 1024,
) -> NoiseProfile:
    """Split the signal into quiet (noise) and active frames.

    Frames are non-overlapping and frame_length_sec long; a trailing partial
    frame is ignored. Every frame whose mean-square energy is at or below the
    given percentile of all frame energies is classified as noise. The noise
    PSD is only computed when the pooled noise samples exceed one Welch
    segment.
    """
    x = as_1d_signal(signal)
    fs = check_sampling_rate(sampling_rate)
    frame_len = int(round(float(frame_length_sec) * fs))
    frames = frame_signal(x, frame_len, frame_len) if frame_len > 0 else np.empty((0, 0))
    n_frames = frames.shape[0]
    if n_frames == 0:
        logger.debug("Signal shorter than one %.3fs frame; empty noise profile", frame_length_sec)
        return NoiseProfile.empty()

    energies = np.mean(frames ** 2, axis=1)
    percentile = float(np.clip(percentile_threshold, 0.0, 100.0))
    threshold = float(np.percentile(energies, percentile))
    noise_mask = energies <= threshold
    frame_times = (np.arange(n_frames, dtype=np.float64) * frame_len + frame_len / 2.0) / fs

    pooled = frames[noise_mask].reshape(-1)
    noise_power_db = float(10.0 * np.log10(np.mean(pooled ** 2) + POWER_EPS)) if pooled.size else float("-inf")
    noise_percentage = float(np.clip(100.0 * pooled.size / x.size, 0.0, 100.0))

    freqs = np.zeros(0, dtype=np.float64)
    psd_db = np.zeros(0, dtype=np.float64)
    if pooled.size > nperseg:
        estimate = welch_psd(pooled, fs, nperseg)
        freqs, psd_db = estimate.freqs, db10(estimate.psd)

    logger.debug(
        "Noise estimate: %d/%d frames below %.3g",
        int(np.count_nonzero(noise_mask)),
        n_frames,
        threshold,
        extra={"stage": "noise", "n_frames": n_frames},
    )
    return NoiseProfile(
        noise_power_db=noise_power_db,
        noise_percentage=noise_percentage,
        noise_samples_count=int(pooled.size),
        freqs=freqs,
        psd_db=psd_db,
        frame_energies=energies,
        frame_times=frame_times,
        threshold=threshold,
        noise_mask=noise_mask,
    )
