"""Radix-2 FFT and single-sided amplitude spectrum."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from doawatch.dsp.types import Spectrum
from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.errors import PreconditionError
from doawatch.util.math import is_power_of_two, next_pow2


def _bit_reverse_indices(n: int) -> np.ndarray:
    bits = n.bit_length() - 1
    idx = np.arange(n, dtype=np.intp)
    rev = np.zeros(n, dtype=np.intp)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)
    return rev


def fft_complex(samples: np.ndarray) -> np.ndarray:
    """Decimation-in-time radix-2 FFT along the last axis.

    The input is permuted into bit-reversed order, then combined by
    log2(N) butterfly stages with twiddles exp(-2*pi*i*k/len). Leading axes
    are treated as independent rows so a stack of Welch segments transforms
    in one call.
    """
    data = np.asarray(samples)
    n = data.shape[-1] if data.ndim else 0
    if data.ndim == 0:
        raise PreconditionError("FFT input must be an array")
    if n == 0:
        return np.zeros(data.shape, dtype=np.complex128)
    if not is_power_of_two(n):
        raise PreconditionError(f"FFT length must be a power of two, got {n}")

    out = np.ascontiguousarray(data[..., _bit_reverse_indices(n)], dtype=np.complex128)
    lead = out.shape[:-1]
    size = 2
    while size <= n:
        half = size // 2
        twiddle = np.exp(-2j * np.pi * np.arange(half) / size)
        blocks = out.reshape(lead + (n // size, size))
        even = blocks[..., :half].copy()
        odd = blocks[..., half:] * twiddle
        blocks[..., :half] = even + odd
        blocks[..., half:] = even - odd
        size *= 2
    return out


def fft(samples) -> Tuple[np.ndarray, np.ndarray]:
    """Return (real, imag) coefficient arrays of a power-of-two length signal."""
    x = np.asarray(samples)
    if x.ndim != 1:
        raise PreconditionError(f"FFT input must be 1-D, got shape {x.shape}")
    spectrum = fft_complex(x)
    return spectrum.real.copy(), spectrum.imag.copy()


def calculate_fft(data, sampling_rate: float) -> Spectrum:
    """Zero-pad to the next power of two and return the one-sided amplitude spectrum.

    DC and Nyquist bins are scaled by 1/N, all other bins by 2/N, so a
    sinusoid of amplitude A shows a peak of about A.
    """
    x = as_1d_signal(data, "data")
    fs = check_sampling_rate(sampling_rate)
    if x.size == 0:
        return Spectrum()
    n = next_pow2(x.size)
    padded = np.zeros(n, dtype=np.float64)
    padded[: x.size] = x
    coeffs = fft_complex(padded)
    half = n // 2
    scale = np.full(half + 1, 2.0 / n)
    scale[0] = 1.0 / n
    scale[-1] = 1.0 / n
    magnitudes = np.abs(coeffs[: half + 1]) * scale
    frequencies = np.arange(half + 1, dtype=np.float64) * fs / n
    return Spectrum(frequencies=frequencies, magnitudes=magnitudes)
