"""Window and framing helpers built on numpy stride tricks."""

from __future__ import annotations

import numpy as np


def periodic_hann(length: int) -> np.ndarray:
    """Periodic Hann window 0.5 * (1 - cos(2*pi*i/length))."""
    if length <= 0:
        return np.zeros(0, dtype=np.float64)
    i = np.arange(length, dtype=np.float64)
    return 0.5 * (1.0 - np.cos(2.0 * np.pi * i / length))


def frame_count(n_samples: int, frame_len: int, hop: int) -> int:
    """Number of full frames of frame_len that fit with the given hop."""
    if frame_len <= 0 or hop <= 0 or n_samples < frame_len:
        return 0
    return (n_samples - frame_len) // hop + 1


def frame_signal(x: np.ndarray, frame_len: int, hop: int) -> np.ndarray:
    """Return a read-only (n_frames, frame_len) view of x; trailing partial frames are dropped."""
    x = np.asarray(x)
    if x.ndim != 1:
        raise ValueError("frame_signal only supports 1D arrays")
    count = frame_count(x.size, frame_len, hop)
    if count == 0:
        return np.empty((0, max(frame_len, 0)), dtype=x.dtype)
    windows = np.lib.stride_tricks.sliding_window_view(x, frame_len)
    return windows[: (count - 1) * hop + 1 : hop]


def frame_starts(n_samples: int, frame_len: int, hop: int) -> np.ndarray:
    return np.arange(frame_count(n_samples, frame_len, hop), dtype=np.int64) * int(hop)
