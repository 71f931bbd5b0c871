"""Short-time Fourier transform for spectrogram views."""

from __future__ import annotations

import numpy as np

from doawatch.dsp.fft import fft_complex
from doawatch.dsp.types import Spectrogram
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.dsp.windowing import frame_signal, frame_starts, periodic_hann
from doawatch.errors import PreconditionError
from doawatch.util.math import db20, is_power_of_two


def calculate_stft(data, sampling_rate: float, window_size: int = 1024, hop_size: int = 256) -> Spectrogram:
    """Hann-windowed STFT magnitudes in dB, one row per frame.

    Rows hold bins 0 .. window_size/2 - 1; times are frame centres.
    """
    x = as_1d_signal(data, "data")
    fs = check_sampling_rate(sampling_rate)
    window_size = int(window_size)
    hop_size = int(hop_size)
    if not is_power_of_two(window_size) or window_size < 2:
        raise PreconditionError(f"window_size must be a power of two >= 2, got {window_size}")
    if hop_size <= 0:
        raise PreconditionError(f"hop_size must be positive, got {hop_size}")

    frames = frame_signal(x, window_size, hop_size)
    if frames.shape[0] == 0:
        return Spectrogram.empty(window_size)

    half = window_size // 2
    spectra = fft_complex(frames * periodic_hann(window_size))[:, :half]
    magnitudes_db = db20(np.abs(spectra))
    finite = magnitudes_db[np.isfinite(magnitudes_db)]
    max_db = float(np.max(finite)) if finite.size else float("-inf")
    times = (frame_starts(x.size, window_size, hop_size) + window_size / 2.0) / fs
    freqs = np.arange(half, dtype=np.float64) * fs / window_size
    return Spectrogram(times=times, freqs=freqs, magnitudes_db=magnitudes_db, max_magnitude_db=max_db)
