import numpy as np
import pytest

from doawatch.dsp.noise_estimation import estimate_noise, median_noise_floor_db


def _make_bursty_signal(fs: float, frame_len: int, quiet: int, loud: int, seed: int = 0) -> np.ndarray:
    """`quiet` low-level frames followed by `loud` frames ten times stronger."""
    rng = np.random.default_rng(seed)
    low = 0.01 * rng.standard_normal(quiet * frame_len)
    high = 0.1 * rng.standard_normal(loud * frame_len)
    return np.concatenate([low, high])


def test_percentile_threshold_selects_quiet_frames() -> None:
    fs = 8000.0
    frame_len = 800
    x = _make_bursty_signal(fs, frame_len, quiet=10, loud=40)
    profile = estimate_noise(x, fs, frame_length_sec=0.1, percentile_threshold=20.0)
    assert profile.n_frames == 50
    assert int(np.count_nonzero(profile.noise_mask)) == 10
    assert np.all(profile.noise_mask[:10])
    assert profile.noise_percentage == pytest.approx(20.0)
    assert profile.noise_samples_count == 10 * frame_len
    assert np.all(profile.frame_energies[profile.noise_mask] <= profile.threshold)
    assert np.all(profile.frame_energies[~profile.noise_mask] > profile.threshold)


def test_noise_power_reflects_quiet_frames() -> None:
    fs = 8000.0
    x = _make_bursty_signal(fs, 800, quiet=10, loud=40)
    profile = estimate_noise(x, fs)
    # 0.01 rms -> -40 dB
    assert profile.noise_power_db == pytest.approx(-40.0, abs=0.5)


def test_noise_psd_is_computed_when_enough_samples() -> None:
    fs = 8000.0
    x = _make_bursty_signal(fs, 800, quiet=10, loud=40)
    profile = estimate_noise(x, fs, nperseg=1024)
    assert profile.freqs.size == 513
    assert profile.psd_db.size == 513
    assert np.all(np.isfinite(profile.psd_db))


def test_noise_psd_skipped_when_pooled_samples_too_few() -> None:
    fs = 8000.0
    x = _make_bursty_signal(fs, 800, quiet=1, loud=9)
    profile = estimate_noise(x, fs, percentile_threshold=5.0, nperseg=1024)
    assert profile.noise_samples_count == 800
    assert profile.psd_db.size == 0


def test_frame_times_are_midpoints() -> None:
    fs = 1000.0
    profile = estimate_noise(np.random.default_rng(2).standard_normal(1000), fs, frame_length_sec=0.25)
    assert np.allclose(profile.frame_times, [0.125, 0.375, 0.625, 0.875])


def test_short_signal_gives_empty_profile() -> None:
    profile = estimate_noise(np.ones(100), 8000.0, frame_length_sec=0.1)
    assert profile.noise_power_db == float("-inf")
    assert profile.noise_percentage == 0.0
    assert profile.noise_samples_count == 0
    assert profile.n_frames == 0
    assert profile.psd_db.size == 0


def test_full_percentile_marks_every_frame_noise() -> None:
    x = np.random.default_rng(3).standard_normal(8000)
    profile = estimate_noise(x, 8000.0, percentile_threshold=100.0)
    assert np.all(profile.noise_mask)
    assert profile.noise_percentage == pytest.approx(100.0)


def test_median_floor_of_empty_band_is_negative_infinity() -> None:
    assert median_noise_floor_db(np.zeros(0)) == float("-inf")
    assert median_noise_floor_db(np.array([-3.0, -1.0, -2.0])) == -2.0


def test_threshold_is_interpolated_percentile_of_frame_energies() -> None:
    x = np.random.default_rng(8).standard_normal(8000 * 3)
    profile = estimate_noise(x, 8000.0, frame_length_sec=0.1, percentile_threshold=37.5)
    assert profile.threshold == np.percentile(profile.frame_energies, 37.5)
    assert 0.0 <= profile.noise_percentage <= 100.0
