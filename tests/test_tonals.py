import numpy as np
import pytest

from doawatch.detection.tonals import TonalOptions, detect_tonals, detect_tonals_in_frame, track_tonals
from doawatch.detection.types import Tonal
from doawatch.dsp.peaks import find_spectral_peaks, suppress_close_peaks


def _make_two_tone_recording(
    fs: float = 8000.0, seconds: float = 6.0, seed: int = 0, freqs: tuple = (1000.0, 2500.0)
) -> np.ndarray:
    n = int(fs * seconds)
    t = np.arange(n) / fs
    rng = np.random.default_rng(seed)
    tones = 0.5 * np.sin(2 * np.pi * freqs[0] * t) + 0.5 * np.sin(2 * np.pi * freqs[1] * t)
    return tones + rng.normal(0.0, 0.1, n)


def _tonal(freq: float, snr: float = 20.0) -> Tonal:
    return Tonal(frequency=freq, power=-20.0, snr=snr)


def test_two_persistent_tones_are_found() -> None:
    fs = 8000.0
    tonals = detect_tonals(_make_two_tone_recording(fs), fs, TonalOptions())
    assert [round(t.frequency_mean) for t in tonals] == [1000, 2500]
    for tonal in tonals:
        assert tonal.snr_mean > 10.0
        assert tonal.n_detections >= 3


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5])
def test_tones_between_psd_bins_are_tracked_once(seed: int) -> None:
    fs = 8000.0
    # Half a bin off with 1024-point segments (7.8125 Hz bins).
    freqs = (1003.90625, 2503.90625)
    tonals = detect_tonals(_make_two_tone_recording(fs, seed=seed, freqs=freqs), fs, TonalOptions())
    assert len(tonals) == 2
    for tonal, freq in zip(tonals, freqs):
        assert abs(tonal.frequency_mean - freq) < 7.8125


def test_explicit_tolerance_wider_than_bin_is_kept() -> None:
    fs = 8000.0
    x = _make_two_tone_recording(fs, freqs=(1000.0, 1062.5))
    assert len(detect_tonals(x, fs, TonalOptions())) == 2
    assert len(detect_tonals(x, fs, TonalOptions(freq_tolerance_hz=100.0))) == 1


def test_tone_outside_frequency_range_is_ignored() -> None:
    fs = 8000.0
    options = TonalOptions(freq_range=(1500.0, 3500.0))
    tonals = detect_tonals(_make_two_tone_recording(fs), fs, options)
    assert [round(t.frequency_mean) for t in tonals] == [2500]


def test_single_frame_detection_reports_snr_over_median_floor() -> None:
    fs = 8000.0
    frame = _make_two_tone_recording(fs, seconds=1.0)
    found = detect_tonals_in_frame(frame, fs)
    assert [t.frequency for t in found] == [1000.0, 2500.0]
    assert all(t.snr > 30.0 for t in found)


def test_noise_only_signal_has_no_persistent_tonals() -> None:
    fs = 8000.0
    x = np.random.default_rng(9).normal(0.0, 0.1, int(fs * 5))
    assert detect_tonals(x, fs) == []


def test_signal_shorter_than_frame_yields_nothing() -> None:
    assert detect_tonals(np.zeros(100), 8000.0) == []


def test_auto_segment_length_is_quarter_frame_power_of_two() -> None:
    options = TonalOptions()
    assert options.segment_length(8000) == 1024
    assert options.segment_length(100) == 64
    assert options.segment_length(10_000_000) == 8192
    assert TonalOptions(nperseg=256).segment_length(8000) == 256


def test_tracker_requires_min_frames_present() -> None:
    frames = [[_tonal(100.0)], [_tonal(101.0)], [_tonal(300.0)]]
    options = TonalOptions(min_frames_present=2, freq_tolerance_hz=5.0)
    result = track_tonals(frames, options)
    assert len(result) == 1
    assert result[0].frequency_mean == pytest.approx(100.5)
    assert result[0].n_detections == 2


def test_tracker_tie_goes_to_earliest_track() -> None:
    frames = [[_tonal(100.0), _tonal(108.0)], [_tonal(104.0)]]
    result = track_tonals(frames, TonalOptions(min_frames_present=1, freq_tolerance_hz=5.0))
    assert [(t.frequency_mean, t.n_detections) for t in result] == [(102.0, 2), (108.0, 1)]


def test_tracker_assignment_depends_on_frame_order() -> None:
    options = TonalOptions(min_frames_present=1, freq_tolerance_hz=5.0)
    forward = track_tonals([[_tonal(100.0)], [_tonal(104.0)], [_tonal(108.0)]], options)
    backward = track_tonals([[_tonal(108.0)], [_tonal(104.0)], [_tonal(100.0)]], options)
    assert [t.frequency_mean for t in forward] == [102.0, 108.0]
    assert [t.frequency_mean for t in backward] == [100.0, 106.0]


def test_tracker_output_sorted_by_frequency() -> None:
    frames = [[_tonal(900.0), _tonal(200.0)]] * 3
    result = track_tonals(frames, TonalOptions(min_frames_present=3))
    assert [t.frequency_mean for t in result] == [200.0, 900.0]


def test_suppression_keeps_highest_then_earliest() -> None:
    values = np.zeros(30)
    values[[10, 13, 20, 22]] = [5.0, 5.0, 4.0, 6.0]
    kept = suppress_close_peaks(values, np.array([10, 13, 20, 22]), 5)
    assert kept.tolist() == [10, 22]


def test_find_spectral_peaks_applies_height_threshold() -> None:
    values = np.full(50, -60.0)
    values[10] = -20.0
    values[30] = -55.0
    peaks = find_spectral_peaks(values, min_height_db=-50.0, min_prominence_db=6.0)
    assert peaks.tolist() == [10]


def test_find_spectral_peaks_short_input() -> None:
    assert find_spectral_peaks(np.array([1.0, 2.0]), min_height_db=0.0).size == 0
