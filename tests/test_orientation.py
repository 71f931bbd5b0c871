import io

import numpy as np
import pytest

from doawatch.detection.types import DoaPoint, OrientationSample
from doawatch.orientation import corrector
from doawatch.orientation.corrector import (
    CorrectionStatus,
    correct_doa,
    correct_doa_checked,
    correct_doa_series,
    get_interpolated_orientation,
)
from doawatch.orientation.rotation import IDENTITY, attitude_matrix, det3, inverse3, mat_mul
from doawatch.util.logging import configure_logging


def _samples():
    return [
        OrientationSample(time=1.0, roll=0.0, pitch=0.0, yaw=10.0),
        OrientationSample(time=3.0, roll=4.0, pitch=-2.0, yaw=30.0),
    ]


def _assert_matrix_close(a, b) -> None:
    assert np.allclose(np.asarray(a), np.asarray(b), atol=1e-12)


@pytest.mark.parametrize("azimuth", [0.0, 37.0, 179.5, 359.0])
def test_zero_attitude_leaves_azimuth_unchanged(azimuth: float) -> None:
    assert correct_doa(azimuth, 0.0, 0.0, 0.0) == pytest.approx(azimuth)


def test_yaw_only_rotation_subtracts_heading() -> None:
    assert correct_doa(100.0, 0.0, 0.0, 30.0) == pytest.approx(70.0)
    assert correct_doa(10.0, 0.0, 0.0, 30.0) == pytest.approx(340.0)


def test_roll_of_180_mirrors_azimuth() -> None:
    # Flipping about x maps y -> -y in the horizontal plane.
    assert correct_doa(60.0, 180.0, 0.0, 0.0) == pytest.approx(300.0)


def test_correction_result_is_tagged() -> None:
    result = correct_doa_checked(45.0, 5.0, 5.0, 5.0)
    assert result.status is CorrectionStatus.CORRECTED
    assert 0.0 <= result.azimuth < 360.0


def test_singular_attitude_leaves_azimuth_uncorrected(monkeypatch) -> None:
    monkeypatch.setattr(corrector, "inverse3", lambda m: None)
    stream = io.StringIO()
    configure_logging(level="WARNING", use_color=False, stream=stream)
    try:
        result = correct_doa_checked(-30.0, 5.0, 5.0, 40.0)
    finally:
        configure_logging(level="WARNING", use_color=False)
    assert result.status is CorrectionStatus.SINGULAR
    assert result.azimuth == pytest.approx(330.0)
    assert correct_doa(400.0, 0.0, 0.0, 90.0) == pytest.approx(40.0)
    output = stream.getvalue()
    assert "WARNING" in output
    assert "Singular attitude matrix" in output


def test_attitude_matrix_times_inverse_is_identity() -> None:
    m = attitude_matrix(12.0, -33.0, 250.0)
    assert det3(m) == pytest.approx(1.0)
    _assert_matrix_close(mat_mul(m, inverse3(m)), IDENTITY)


def test_inverse_of_singular_matrix_is_none() -> None:
    singular = ((1.0, 2.0, 3.0), (2.0, 4.0, 6.0), (0.0, 1.0, 1.0))
    assert inverse3(singular) is None


def test_interpolation_between_samples() -> None:
    att = get_interpolated_orientation(2.0, _samples())
    assert att.roll == pytest.approx(2.0)
    assert att.pitch == pytest.approx(-1.0)
    assert att.yaw == pytest.approx(20.0)


def test_interpolation_clamps_to_endpoints() -> None:
    samples = _samples()
    before = get_interpolated_orientation(0.0, samples)
    after = get_interpolated_orientation(9.0, samples)
    assert (before.roll, before.pitch, before.yaw) == (0.0, 0.0, 10.0)
    assert (after.roll, after.pitch, after.yaw) == (4.0, -2.0, 30.0)


def test_interpolation_without_samples_is_zero_attitude() -> None:
    att = get_interpolated_orientation(5.0, [])
    assert (att.roll, att.pitch, att.yaw) == (0.0, 0.0, 0.0)


def test_series_correction_uses_time_offset_and_keeps_raw() -> None:
    samples = [
        OrientationSample(time=0.0, roll=0.0, pitch=0.0, yaw=0.0),
        OrientationSample(time=10.0, roll=0.0, pitch=0.0, yaw=100.0),
    ]
    points = [DoaPoint(time=1.0, doa=90.0, confidence=0.9)]
    corrected = correct_doa_series(points, samples, time_offset=2.0)
    assert corrected[0].doa == pytest.approx(60.0)
    assert corrected[0].doa_raw == 90.0
    assert corrected[0].confidence == 0.9
    assert corrected[0].time == 1.0


def test_series_correction_is_idempotent_on_raw_azimuth() -> None:
    samples = [OrientationSample(time=0.0, roll=0.0, pitch=0.0, yaw=20.0)]
    once = correct_doa_series([DoaPoint(time=0.0, doa=50.0, confidence=1.0)], samples)
    twice = correct_doa_series(once, samples)
    assert twice[0].doa == pytest.approx(30.0)
    assert twice[0].doa_raw == 50.0


def test_series_correction_without_orientation_keeps_azimuth() -> None:
    corrected = correct_doa_series([DoaPoint(time=0.0, doa=12.0, confidence=0.5)], [])
    assert corrected[0].doa == 12.0
    assert corrected[0].doa_raw == 12.0
