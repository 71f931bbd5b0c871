"""Spectral value types produced by the dsp package."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.float64)


@dataclass
class Spectrum:
    """Single-sided amplitude spectrum, frequencies ascending over [0, Nyquist]."""

    frequencies: np.ndarray = field(default_factory=_empty)
    magnitudes: np.ndarray = field(default_factory=_empty)

    def __len__(self) -> int:
        return int(self.frequencies.size)

    def peak(self) -> tuple:
        """Return (frequency, magnitude) of the largest bin."""
        if self.magnitudes.size == 0:
            raise ValueError("empty spectrum has no peak")
        idx = int(np.argmax(self.magnitudes))
        return float(self.frequencies[idx]), float(self.magnitudes[idx])


@dataclass
class PsdEstimate:
    """One-sided power spectral density in linear units."""

    freqs: np.ndarray = field(default_factory=_empty)
    psd: np.ndarray = field(default_factory=_empty)

    @classmethod
    def empty(cls) -> "PsdEstimate":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.freqs.size == 0

    @property
    def bin_hz(self) -> float:
        if self.freqs.size < 2:
            return 0.0
        return float(self.freqs[1] - self.freqs[0])


@dataclass
class CrossSpectrum:
    """Averaged one-sided cross-spectral density between two channels."""

    freqs: np.ndarray = field(default_factory=_empty)
    real: np.ndarray = field(default_factory=_empty)
    imag: np.ndarray = field(default_factory=_empty)

    @classmethod
    def empty(cls) -> "CrossSpectrum":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.freqs.size == 0

    @property
    def values(self) -> np.ndarray:
        return self.real + 1j * self.imag


@dataclass
class NoiseProfile:
    noise_power_db: float
    noise_percentage: float
    noise_samples_count: int
    freqs: np.ndarray
    psd_db: np.ndarray
    frame_energies: np.ndarray
    frame_times: np.ndarray
    threshold: float
    noise_mask: np.ndarray

    @classmethod
    def empty(cls) -> "NoiseProfile":
        return cls(
            noise_power_db=float("-inf"),
            noise_percentage=0.0,
            noise_samples_count=0,
            freqs=_empty(),
            psd_db=_empty(),
            frame_energies=_empty(),
            frame_times=_empty(),
            threshold=0.0,
            noise_mask=np.zeros(0, dtype=bool),
        )

    @property
    def n_frames(self) -> int:
        return int(self.frame_energies.size)


@dataclass
class Spectrogram:
    """Short-time magnitude spectra in dB, one row per frame."""

    times: np.ndarray
    freqs: np.ndarray
    magnitudes_db: np.ndarray
    max_magnitude_db: float

    @classmethod
    def empty(cls, window_size: int = 0) -> "Spectrogram":
        return cls(
            times=_empty(),
            freqs=_empty(),
            magnitudes_db=np.zeros((0, max(window_size // 2, 0)), dtype=np.float64),
            max_magnitude_db=float("-inf"),
        )
