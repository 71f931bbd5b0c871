"""Numeric helper functions used across DSP logic."""

import numpy as np

POWER_EPS = 1e-15
RATIO_EPS = 1e-9


def db10(x: np.ndarray) -> np.ndarray:
    """Return 10 * log10(x + 1e-15) for power quantities."""
    return 10.0 * np.log10(np.maximum(np.asarray(x, dtype=np.float64), 0.0) + POWER_EPS)


def db20(x: np.ndarray) -> np.ndarray:
    """Return 20 * log10(|x| + 1e-15) for amplitude quantities."""
    return 20.0 * np.log10(np.abs(np.asarray(x, dtype=np.float64)) + POWER_EPS)


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def next_pow2(n: int) -> int:
    """Smallest power of two >= n (1 for n <= 1)."""
    n = int(n)
    if n <= 1:
        return 1
    return 1 << (n - 1).bit_length()


def prev_pow2(n: int) -> int:
    """Largest power of two <= n (1 for n <= 1)."""
    n = int(n)
    if n <= 1:
        return 1
    return 1 << (n.bit_length() - 1)


def nearest_pow2(x: float) -> int:
    """Power of two nearest to x on a log2 scale."""
    if x <= 1.0:
        return 1
    return 1 << int(round(float(np.log2(x))))


def wrap_degrees(angle_deg: float) -> float:
    """Map an angle in degrees onto [0, 360)."""
    wrapped = float(angle_deg) % 360.0
    # -1e-17 % 360.0 rounds to 360.0
    if wrapped >= 360.0:
        wrapped = 0.0
    return wrapped
