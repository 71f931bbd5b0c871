"""Welch power and cross-power spectral density estimators."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from doawatch.dsp.fft import fft_complex
from doawatch.dsp.types import CrossSpectrum, PsdEstimate
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.dsp.windowing import frame_signal, periodic_hann
from doawatch.errors import PreconditionError
from doawatch.util.math import is_power_of_two


def _check_nperseg(nperseg: int) -> int:
    nperseg = int(nperseg)
    if not is_power_of_two(nperseg) or nperseg < 2:
        raise PreconditionError(f"nperseg must be a power of two >= 2, got {nperseg}")
    return nperseg


def _segment_spectra(x: np.ndarray, nperseg: int, window: np.ndarray) -> np.ndarray:
    """FFT of every Hann-weighted, 50 % overlapped segment, one row per segment."""
    segments = frame_signal(x, nperseg, nperseg // 2)
    return fft_complex(segments * window)


def _density_scale(sampling_rate: float, window: np.ndarray, n_segments: int) -> np.ndarray:
    nperseg = window.size
    scale = np.full(nperseg // 2 + 1, 2.0)
    scale[0] = 1.0
    scale[-1] = 1.0
    return scale / (sampling_rate * float(np.sum(window ** 2)) * n_segments)


def _onesided_freqs(nperseg: int, sampling_rate: float) -> np.ndarray:
    return np.arange(nperseg // 2 + 1, dtype=np.float64) * sampling_rate / nperseg


def welch_psd(data, sampling_rate: float, nperseg: int) -> PsdEstimate:
    """One-sided PSD by averaging Hann-windowed periodograms with 50 % overlap.

    Returns an empty estimate when data is shorter than one segment.
    """
    x = as_1d_signal(data, "data")
    fs = check_sampling_rate(sampling_rate)
    nperseg = _check_nperseg(nperseg)
    if x.size < nperseg:
        return PsdEstimate.empty()
    window = periodic_hann(nperseg)
    spectra = _segment_spectra(x, nperseg, window)
    half = nperseg // 2 + 1
    power = np.sum(np.abs(spectra[:, :half]) ** 2, axis=0)
    psd = power * _density_scale(fs, window, spectra.shape[0])
    return PsdEstimate(freqs=_onesided_freqs(nperseg, fs), psd=psd)


def csd(x, y, sampling_rate: float, nperseg: int) -> CrossSpectrum:
    """One-sided cross-spectral density S_xy = X * conj(Y), Welch-averaged."""
    xa = as_1d_signal(x, "x")
    ya = as_1d_signal(y, "y")
    if xa.size != ya.size:
        raise PreconditionError(f"csd inputs differ in length: {xa.size} != {ya.size}")
    fs = check_sampling_rate(sampling_rate)
    nperseg = _check_nperseg(nperseg)
    if xa.size < nperseg:
        return CrossSpectrum.empty()
    window = periodic_hann(nperseg)
    half = nperseg // 2 + 1
    sx = _segment_spectra(xa, nperseg, window)[:, :half]
    sy = _segment_spectra(ya, nperseg, window)[:, :half]
    cross = np.sum(sx * np.conj(sy), axis=0) * _density_scale(fs, window, sx.shape[0])
    return CrossSpectrum(freqs=_onesided_freqs(nperseg, fs), real=cross.real.copy(), imag=cross.imag.copy())


def nearest_bin(freqs: np.ndarray, target_hz: float) -> Tuple[int, float]:
    """Index and frequency of the bin closest to target_hz (earliest on ties)."""
    if freqs.size == 0:
        raise PreconditionError("cannot select a bin from an empty frequency axis")
    idx = int(np.argmin(np.abs(freqs - float(target_hz))))
    return idx, float(freqs[idx])
