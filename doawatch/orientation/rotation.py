"""3x3 rotation helpers as free functions over tuples.

Angles are in degrees. Matrices are row-major tuples of rows and are never
mutated, so results can be shared freely.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

Vec3 = Tuple[float, float, float]
Mat3 = Tuple[Vec3, Vec3, Vec3]

SINGULAR_DET = 1e-12

IDENTITY: Mat3 = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))


def rot_x(angle_deg: float) -> Mat3:
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    return ((1.0, 0.0, 0.0), (0.0, c, -s), (0.0, s, c))


def rot_y(angle_deg: float) -> Mat3:
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    return ((c, 0.0, s), (0.0, 1.0, 0.0), (-s, 0.0, c))


def rot_z(angle_deg: float) -> Mat3:
    c, s = math.cos(math.radians(angle_deg)), math.sin(math.radians(angle_deg))
    return ((c, -s, 0.0), (s, c, 0.0), (0.0, 0.0, 1.0))


def mat_mul(a: Mat3, b: Mat3) -> Mat3:
    return tuple(
        tuple(sum(a[i][k] * b[k][j] for k in range(3)) for j in range(3)) for i in range(3)
    )  # type: ignore[return-value]


def mat_vec(m: Mat3, v: Vec3) -> Vec3:
    return tuple(m[i][0] * v[0] + m[i][1] * v[1] + m[i][2] * v[2] for i in range(3))  # type: ignore[return-value]


def det3(m: Mat3) -> float:
    return (
        m[0][0] * (m[1][1] * m[2][2] - m[1][2] * m[2][1])
        - m[0][1] * (m[1][0] * m[2][2] - m[1][2] * m[2][0])
        + m[0][2] * (m[1][0] * m[2][1] - m[1][1] * m[2][0])
    )


def inverse3(m: Mat3) -> Optional[Mat3]:
    """Closed-form inverse (adjugate / determinant); None when |det| < 1e-12."""
    det = det3(m)
    if abs(det) < SINGULAR_DET:
        return None
    inv_det = 1.0 / det
    adj = (
        (
            m[1][1] * m[2][2] - m[1][2] * m[2][1],
            m[0][2] * m[2][1] - m[0][1] * m[2][2],
            m[0][1] * m[1][2] - m[0][2] * m[1][1],
        ),
        (
            m[1][2] * m[2][0] - m[1][0] * m[2][2],
            m[0][0] * m[2][2] - m[0][2] * m[2][0],
            m[0][2] * m[1][0] - m[0][0] * m[1][2],
        ),
        (
            m[1][0] * m[2][1] - m[1][1] * m[2][0],
            m[0][1] * m[2][0] - m[0][0] * m[2][1],
            m[0][0] * m[1][1] - m[0][1] * m[1][0],
        ),
    )
    return tuple(tuple(v * inv_det for v in row) for row in adj)  # type: ignore[return-value]


def attitude_matrix(roll: float, pitch: float, yaw: float) -> Mat3:
    """Intrinsic yaw -> pitch -> roll rotation R = Rz(yaw) Ry(pitch) Rx(roll)."""
    return mat_mul(rot_z(yaw), mat_mul(rot_y(pitch), rot_x(roll)))


def direction_vector(azimuth_deg: float, elevation_deg: float = 0.0) -> Vec3:
    az = math.radians(azimuth_deg)
    el = math.radians(elevation_deg)
    return (math.cos(el) * math.cos(az), math.cos(el) * math.sin(az), math.sin(el))
