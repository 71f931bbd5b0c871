"""Attitude interpolation and body-to-earth azimuth correction."""

from __future__ import annotations

import bisect
import enum
import math
from dataclasses import dataclass
from typing import List, Sequence

from doawatch.detection.types import DoaPoint, OrientationSample
from doawatch.orientation.rotation import attitude_matrix, direction_vector, inverse3, mat_vec
from doawatch.util.logging import get_logger
from doawatch.util.math import wrap_degrees

logger = get_logger(__name__)


class CorrectionStatus(str, enum.Enum):
    CORRECTED = "corrected"
    SINGULAR = "singular"


@dataclass(frozen=True)
class CorrectionResult:
    azimuth: float
    status: CorrectionStatus


def _interpolate(time: float, samples: Sequence[OrientationSample], times: Sequence[float]) -> OrientationSample:
    if not samples:
        return OrientationSample(time=time, roll=0.0, pitch=0.0, yaw=0.0)
    if time <= times[0]:
        return samples[0]
    if time >= times[-1]:
        return samples[-1]
    index = bisect.bisect_right(times, time) - 1
    p1 = samples[index]
    p2 = samples[index + 1]
    t = (time - p1.time) / (p2.time - p1.time)
    return OrientationSample(
        time=time,
        roll=p1.roll + t * (p2.roll - p1.roll),
        pitch=p1.pitch + t * (p2.pitch - p1.pitch),
        yaw=p1.yaw + t * (p2.yaw - p1.yaw),
    )


def get_interpolated_orientation(time: float, samples: Sequence[OrientationSample]) -> OrientationSample:
    """Attitude at `time`, linearly interpolated and clamped to the sample span.

    Outside the span the first or last sample is returned as-is. With no
    samples the attitude is zero.
    """
    return _interpolate(float(time), samples, [s.time for s in samples])


def correct_doa_checked(
    azimuth: float, roll: float, pitch: float, yaw: float, elevation: float = 0.0
) -> CorrectionResult:
    rotation = attitude_matrix(roll, pitch, yaw)
    inverse = inverse3(rotation)
    if inverse is None:
        logger.warning(
            "Singular attitude matrix (roll=%.2f pitch=%.2f yaw=%.2f); azimuth left uncorrected",
            roll,
            pitch,
            yaw,
            extra={"stage": "orientation"},
        )
        return CorrectionResult(wrap_degrees(azimuth), CorrectionStatus.SINGULAR)
    x, y, _ = mat_vec(inverse, direction_vector(azimuth, elevation))
    return CorrectionResult(wrap_degrees(math.degrees(math.atan2(y, x))), CorrectionStatus.CORRECTED)


def correct_doa(azimuth: float, roll: float, pitch: float, yaw: float, elevation: float = 0.0) -> float:
    """Rotate a body-frame azimuth into the earth frame, degrees in [0, 360)."""
    return correct_doa_checked(azimuth, roll, pitch, yaw, elevation).azimuth


def correct_doa_series(
    points: Sequence[DoaPoint],
    samples: Sequence[OrientationSample],
    time_offset: float = 0.0,
) -> List[DoaPoint]:
    """Correct every point with the attitude at point.time + time_offset.

    The returned points keep the uncorrected azimuth in doa_raw.
    """
    times = [s.time for s in samples]
    corrected: List[DoaPoint] = []
    for point in points:
        raw = point.doa if point.doa_raw is None else point.doa_raw
        if not samples:
            corrected.append(point.corrected(raw))
            continue
        att = _interpolate(point.time + float(time_offset), samples, times)
        corrected.append(point.corrected(correct_doa(raw, att.roll, att.pitch, att.yaw)))
    return corrected
