import json
import math
from pathlib import Path

import numpy as np
import pytest

from doawatch.analysis.config import AnalysisConfig
from doawatch.analysis.session import AnalysisSession, run_analysis, to_jsonable
from doawatch.detection.types import ChannelRoles, OrientationSample
from doawatch.dsp.filters import FilterSettings, FilterStatus, FilterType
from doawatch.io.recording import Recording
from doawatch.util.run_logger import AnalysisLogger


def _make_vector_sensor_recording(azimuth_deg: float = 60.0, fs: float = 8000.0, seconds: float = 6.0, orientation=None) -> Recording:
    n = int(fs * seconds)
    t = np.arange(n) / fs
    rng = np.random.default_rng(21)
    p = 0.5 * np.sin(2 * np.pi * 1000.0 * t)
    theta = math.radians(azimuth_deg)
    channels = np.vstack(
        [
            p + 0.05 * rng.standard_normal(n),
            math.cos(theta) * p + 0.05 * rng.standard_normal(n),
            math.sin(theta) * p + 0.05 * rng.standard_normal(n),
        ]
    )
    return Recording(
        sampling_rate=fs,
        channels=channels,
        channel_names=["hydrophone", "vx", "vy"],
        orientation=orientation or [],
    )


def _roles() -> ChannelRoles:
    return ChannelRoles(hydrophone=0, vx=1, vy=2)


def test_end_to_end_selects_strongest_tonal_and_estimates_doa() -> None:
    result = run_analysis(_make_vector_sensor_recording(60.0), _roles())
    assert len(result.channels) == 3
    assert result.target_freq == pytest.approx(1000.0)
    assert result.doa_points
    assert result.doa_summary.mean_doa == pytest.approx(60.0, abs=2.0)
    assert result.doa_summary.mean_confidence > 0.9
    assert not result.orientation_corrected
    assert result.filter_status is FilterStatus.PASS_THROUGH


def test_orientation_is_applied_to_doa_points() -> None:
    orientation = [OrientationSample(time=0.0, roll=0.0, pitch=0.0, yaw=20.0)]
    result = run_analysis(_make_vector_sensor_recording(60.0, orientation=orientation), _roles())
    assert result.orientation_corrected
    for point in result.doa_points:
        assert point.doa == pytest.approx(40.0, abs=2.0)
        assert point.doa_raw == pytest.approx(60.0, abs=2.0)


def test_incomplete_roles_skip_doa() -> None:
    result = run_analysis(_make_vector_sensor_recording(), ChannelRoles(hydrophone=0))
    assert result.target_freq is None
    assert result.doa_points == []
    assert result.doa_summary is None


def test_explicit_target_frequency_is_used() -> None:
    result = run_analysis(_make_vector_sensor_recording(), _roles(), target_freq=1000.0)
    assert result.target_freq == 1000.0
    assert result.doa_points


def test_start_time_offsets_the_timeline() -> None:
    config = AnalysisConfig(analysis_start_time=2.0)
    result = run_analysis(_make_vector_sensor_recording(seconds=6.0), _roles(), config)
    assert result.start_time == pytest.approx(2.0)
    assert result.duration == pytest.approx(4.0)
    assert result.doa_points[0].time > 2.0


def test_invalid_filter_falls_back_to_raw_channels() -> None:
    config = AnalysisConfig(filter_settings=FilterSettings(FilterType.LOWPASS, 9000.0))
    result = run_analysis(_make_vector_sensor_recording(), _roles(), config)
    assert result.filter_status is FilterStatus.INVALID
    assert result.target_freq == pytest.approx(1000.0)


def test_processed_channels_are_rms_normalised() -> None:
    session = AnalysisSession(_make_vector_sensor_recording(), AnalysisConfig(), _roles())
    data = session.processed_channels()
    assert np.allclose(np.sqrt(np.mean(data ** 2, axis=1)), 1.0)


def test_to_jsonable_is_json_serialisable() -> None:
    result = run_analysis(_make_vector_sensor_recording(), _roles())
    payload = to_jsonable(result)
    text = json.dumps(payload)
    assert "Infinity" not in text
    assert payload["channels"][0]["name"] == "hydrophone"
    assert payload["channels"][0]["tonals"][0]["frequency_mean"] == pytest.approx(1000.0)
    assert payload["filter_status"] == "pass_through"
    assert payload["doa_summary"]["count"] == len(payload["doa_points"])


def test_run_logger_records_events(tmp_path: Path) -> None:
    log_path = tmp_path / "events" / "run.jsonl"
    run_logger = AnalysisLogger.from_path(str(log_path))
    run_analysis(_make_vector_sensor_recording(), _roles(), run_logger=run_logger)
    events = [json.loads(line)["event"] for line in log_path.read_text().splitlines()]
    assert events[0] == "analysis_start"
    assert events.count("channel_done") == 3
    assert "doa_done" in events
    assert events[-1] == "analysis_done"
