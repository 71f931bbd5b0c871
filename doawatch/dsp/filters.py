"""Butterworth biquad preprocessing filters and RMS normalisation."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np
from scipy.signal import lfilter

from doawatch.dsp.validation import as_1d_signal, check_sampling_rate
from doawatch.util.logging import get_logger

logger = get_logger(__name__)

Cutoff = Union[float, Tuple[float, float]]

BUTTERWORTH_Q = 1.0 / math.sqrt(2.0)


class FilterType(str, enum.Enum):
    NONE = "none"
    LOWPASS = "lowpass"
    HIGHPASS = "highpass"
    BANDPASS = "bandpass"


class FilterStatus(str, enum.Enum):
    OK = "ok"
    PASS_THROUGH = "pass_through"
    INVALID = "invalid"


@dataclass
class FilterSettings:
    type: FilterType = FilterType.NONE
    cutoff: Cutoff = 1000.0


@dataclass
class FilterResult:
    """Filtered samples plus how they were produced.

    INVALID results carry the input unchanged and a human readable reason.
    """

    status: FilterStatus
    data: np.ndarray
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is FilterStatus.OK


def design_biquad(kind: FilterType, cutoff_hz: float, sampling_rate: float) -> Tuple[np.ndarray, np.ndarray]:
    """2nd-order Butterworth (b, a) coefficients via the bilinear transform.

    The analog prototype is pre-warped at the cutoff, so the -3 dB point lands
    exactly on cutoff_hz. a[0] is normalised to 1.
    """
    w0 = 2.0 * math.pi * float(cutoff_hz) / float(sampling_rate)
    cos_w0 = math.cos(w0)
    alpha = math.sin(w0) / (2.0 * BUTTERWORTH_Q)
    if kind is FilterType.LOWPASS:
        b = [(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0]
    elif kind is FilterType.HIGHPASS:
        b = [(1.0 + cos_w0) / 2.0, -(1.0 + cos_w0), (1.0 + cos_w0) / 2.0]
    else:
        raise ValueError(f"biquad design supports lowpass/highpass only, got {kind}")
    a = [1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha]
    return np.asarray(b) / a[0], np.asarray(a) / a[0]


def _check_cutoff(cutoff: float, nyquist: float) -> Optional[str]:
    try:
        value = float(cutoff)
    except (TypeError, ValueError):
        return f"cutoff {cutoff!r} is not a number"
    if not math.isfinite(value) or value <= 0.0:
        return f"cutoff {value} Hz must be positive"
    if value >= nyquist:
        return f"cutoff {value} Hz must be below Nyquist ({nyquist} Hz)"
    return None


def _resolve_band(cutoff: Cutoff, nyquist: float) -> Tuple[Optional[Tuple[float, float]], Optional[str]]:
    if np.ndim(cutoff) != 1 or len(cutoff) != 2:
        return None, "bandpass needs a (low, high) cutoff pair"
    low, high = cutoff
    for edge in (low, high):
        reason = _check_cutoff(edge, nyquist)
        if reason:
            return None, reason
    if float(low) >= float(high):
        return None, f"low cutoff {low} Hz must be below high cutoff {high} Hz"
    return (float(low), float(high)), None


def _run_biquad(x: np.ndarray, kind: FilterType, cutoff_hz: float, fs: float) -> np.ndarray:
    b, a = design_biquad(kind, cutoff_hz, fs)
    return lfilter(b, a, x)


def filter_signal(signal, filter_type: FilterType, settings: FilterSettings, sampling_rate: float) -> FilterResult:
    """Apply the configured filter with zero initial state over the whole signal."""
    x = as_1d_signal(signal)
    fs = check_sampling_rate(sampling_rate)
    kind = FilterType(filter_type)
    nyquist = fs / 2.0

    if kind is FilterType.NONE:
        return FilterResult(FilterStatus.PASS_THROUGH, x)

    if kind is FilterType.BANDPASS:
        band, reason = _resolve_band(settings.cutoff, nyquist)
        if band is None:
            return _invalid(x, kind, reason)
        highpassed = _run_biquad(x, FilterType.HIGHPASS, band[0], fs)
        return FilterResult(FilterStatus.OK, _run_biquad(highpassed, FilterType.LOWPASS, band[1], fs))

    cutoff = settings.cutoff
    if np.ndim(cutoff) != 0:
        return _invalid(x, kind, f"{kind.value} needs a single cutoff, got {cutoff!r}")
    reason = _check_cutoff(cutoff, nyquist)
    if reason:
        return _invalid(x, kind, reason)
    return FilterResult(FilterStatus.OK, _run_biquad(x, kind, float(cutoff), fs))


def _invalid(x: np.ndarray, kind: FilterType, reason: Optional[str]) -> FilterResult:
    logger.warning("Skipping %s filter: %s", kind.value, reason, extra={"stage": "filter", "reason": reason})
    return FilterResult(FilterStatus.INVALID, x, reason)


def apply_filter(signal, filter_type: FilterType, settings: FilterSettings, sampling_rate: float) -> np.ndarray:
    """Filtered samples, or the unfiltered input when the configuration is unusable."""
    return filter_signal(signal, filter_type, settings, sampling_rate).data


def normalize_rms(signal) -> np.ndarray:
    """Scale a signal to unit RMS; an all-zero signal yields zeros."""
    x = as_1d_signal(signal)
    if x.size == 0:
        return x.copy()
    rms = float(np.sqrt(np.mean(x ** 2)))
    if not math.isfinite(rms) or rms <= 0.0:
        return np.zeros_like(x)
    return x / rms
