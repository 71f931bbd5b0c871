"""Duration parsing helpers for CLI arguments."""

from __future__ import annotations

import argparse
from typing import Any, Optional

_MULTIPLIERS = {
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration_to_seconds(spec: Optional[Any]) -> Optional[float]:
    """Parse strings like '0.5', '250ms', '2s', '1m', returning seconds as float."""

    if spec is None:
        return None
    if isinstance(spec, (int, float)):
        return float(spec)
    text = str(spec).strip().lower()
    if not text:
        return None
    if text.endswith("ms"):
        unit = "ms"
        value_part = text[:-2]
    elif text[-1].isalpha():
        unit = text[-1]
        value_part = text[:-1]
    else:
        unit = "s"
        value_part = text
    if unit not in _MULTIPLIERS:
        raise argparse.ArgumentTypeError(f"Unsupported duration suffix '{unit}'")
    try:
        value = float(value_part)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid duration '{spec}'") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"Duration must be non-negative, got '{spec}'")
    return value * _MULTIPLIERS[unit]
