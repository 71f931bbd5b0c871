"""Analysis session: preprocessing, per-channel products and the DoA series."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from doawatch.analysis.config import AnalysisConfig
from doawatch.detection.doa import calculate_doa_vs_time, summarize_doa
from doawatch.detection.tonals import detect_tonals
from doawatch.detection.types import ChannelRoles, DoaPoint, DoaSummary, PersistentTonal
from doawatch.dsp.fft import calculate_fft
from doawatch.dsp.filters import FilterStatus, filter_signal, normalize_rms
from doawatch.dsp.noise_estimation import estimate_noise
from doawatch.dsp.types import NoiseProfile, Spectrum
from doawatch.io.recording import Recording
from doawatch.orientation.corrector import correct_doa_series
from doawatch.util.logging import get_logger, timed_stage
from doawatch.util.run_logger import AnalysisLogger

logger = get_logger(__name__)


@dataclass
class ChannelAnalysis:
    index: int
    name: str
    spectrum: Spectrum
    noise: NoiseProfile
    tonals: List[PersistentTonal]


@dataclass
class AnalysisResult:
    sampling_rate: float
    start_time: float
    duration: float
    filter_status: Optional[FilterStatus]
    channels: List[ChannelAnalysis] = field(default_factory=list)
    target_freq: Optional[float] = None
    doa_points: List[DoaPoint] = field(default_factory=list)
    doa_summary: Optional[DoaSummary] = None
    orientation_corrected: bool = False


def strongest_tonal(tonals: Sequence[PersistentTonal]) -> Optional[PersistentTonal]:
    """Tonal with the highest mean SNR (lowest frequency wins ties)."""
    best: Optional[PersistentTonal] = None
    for tonal in tonals:
        if best is None or tonal.snr_mean > best.snr_mean:
            best = tonal
    return best


class AnalysisSession:
    """Bind a recording, channel roles and parameters to the analysis stages."""

    def __init__(
        self,
        recording: Recording,
        config: Optional[AnalysisConfig] = None,
        roles: Optional[ChannelRoles] = None,
        run_logger: Optional[AnalysisLogger] = None,
    ):
        self.recording = recording
        self.config = config or AnalysisConfig()
        self.roles = roles or ChannelRoles()
        self.roles.validate(recording.n_channels)
        self.run_logger = run_logger
        self._filtered: Optional[np.ndarray] = None
        self._processed: Optional[np.ndarray] = None
        self.filter_status: Optional[FilterStatus] = None

    def _log(self, event: str, **fields: Any) -> None:
        if self.run_logger:
            self.run_logger.log(event, **fields)

    @property
    def start_sample(self) -> int:
        start = int(round(max(0.0, float(self.config.analysis_start_time)) * self.recording.sampling_rate))
        return min(start, self.recording.n_samples)

    def filtered_channels(self) -> np.ndarray:
        """Filtered channels from the analysis start onward."""
        if self._filtered is not None:
            return self._filtered
        fs = self.recording.sampling_rate
        settings = self.config.filter_settings
        rows = []
        for raw in self.recording.channels[:, self.start_sample :]:
            result = filter_signal(raw, settings.type, settings, fs)
            self.filter_status = result.status
            rows.append(result.data)
        self._filtered = np.vstack(rows) if rows else np.zeros((0, 0))
        return self._filtered

    def processed_channels(self) -> np.ndarray:
        """Filtered channels, RMS-normalised when the config asks for it.

        These feed the per-channel spectra, noise and tonal products. DoA
        reads filtered_channels() since per-channel gains skew the azimuth.
        """
        if self._processed is not None:
            return self._processed
        filtered = self.filtered_channels()
        if self.config.normalize_rms and filtered.size:
            self._processed = np.vstack([normalize_rms(row) for row in filtered])
        else:
            self._processed = filtered
        return self._processed

    def analyze_channel(self, index: int) -> ChannelAnalysis:
        data = self.processed_channels()[index]
        fs = self.recording.sampling_rate
        cfg = self.config
        with timed_stage(logger, "channel", channel=index) as timing:
            analysis = ChannelAnalysis(
                index=index,
                name=self.recording.channel_names[index],
                spectrum=calculate_fft(data, fs),
                noise=estimate_noise(data, fs, cfg.frame_length, cfg.percentile_threshold, cfg.noise_nperseg),
                tonals=detect_tonals(data, fs, cfg.tonal_options()),
            )
        logger.info(
            "Channel %s: %d persistent tonals, %.1f%% noise",
            analysis.name,
            len(analysis.tonals),
            analysis.noise.noise_percentage,
            extra={"channel": index, "stage": "channel", "duration_ms": timing["duration_ms"]},
        )
        self._log("channel_done", channel=index, tonals=len(analysis.tonals), duration_ms=timing["duration_ms"])
        return analysis

    def compute_doa(self, target_freq: float) -> List[DoaPoint]:
        """Raw DoA series at target_freq, attitude-corrected when orientation is present."""
        if not self.roles.is_complete:
            logger.info("Channel roles incomplete; skipping DoA", extra={"stage": "doa"})
            return []
        data = self.filtered_channels()
        cfg = self.config
        start_time = self.start_sample / self.recording.sampling_rate
        points = calculate_doa_vs_time(
            data[self.roles.hydrophone],
            data[self.roles.vx],
            data[self.roles.vy],
            self.recording.sampling_rate,
            target_freq,
            cfg.doa_frame_duration,
            start_time=start_time,
        )
        if self.recording.orientation:
            points = correct_doa_series(points, self.recording.orientation, cfg.orientation_time_offset)
        self._log("doa_done", target_freq=target_freq, points=len(points))
        return points

    def run(self, target_freq: Optional[float] = None, channels: Optional[Sequence[int]] = None) -> AnalysisResult:
        """Analyse the selected channels (all by default) and, if roles allow, the DoA series.

        Without an explicit target_freq the strongest persistent tonal on the
        hydrophone channel is used; no tonal means no DoA.
        """
        rec = self.recording
        indices = list(range(rec.n_channels)) if channels is None else list(channels)
        if self.roles.hydrophone is not None and self.roles.hydrophone not in indices and target_freq is None:
            indices.append(self.roles.hydrophone)
        if self.run_logger:
            self.run_logger.start_run(rec.source or "<memory>", channels=indices, target_freq=target_freq)

        self.processed_channels()
        result = AnalysisResult(
            sampling_rate=rec.sampling_rate,
            start_time=self.start_sample / rec.sampling_rate,
            duration=(rec.n_samples - self.start_sample) / rec.sampling_rate,
            filter_status=self.filter_status,
        )
        result.channels = [self.analyze_channel(i) for i in indices]

        if target_freq is None and self.roles.is_complete:
            by_index = {c.index: c for c in result.channels}
            best = strongest_tonal(by_index[self.roles.hydrophone].tonals)
            if best is not None:
                target_freq = best.frequency_mean
        result.target_freq = target_freq

        if target_freq is not None and self.roles.is_complete:
            result.doa_points = self.compute_doa(target_freq)
            result.doa_summary = summarize_doa(result.doa_points)
            result.orientation_corrected = bool(rec.orientation)

        self._log("analysis_done", doa_points=len(result.doa_points), target_freq=target_freq)
        return result


def run_analysis(
    recording: Recording,
    roles: Optional[ChannelRoles] = None,
    config: Optional[AnalysisConfig] = None,
    target_freq: Optional[float] = None,
    run_logger: Optional[AnalysisLogger] = None,
) -> AnalysisResult:
    return AnalysisSession(recording, config, roles, run_logger).run(target_freq)


def _tonal_dict(t: PersistentTonal) -> Dict[str, Any]:
    return {
        "frequency_mean": t.frequency_mean,
        "snr_mean": t.snr_mean,
        "power_mean": t.power_mean,
        "n_detections": t.n_detections,
    }


def _finite_or_none(value: float) -> Optional[float]:
    return float(value) if np.isfinite(value) else None


def to_jsonable(result: AnalysisResult) -> Dict[str, Any]:
    """Plain-data view of a result (no arrays, no infinities) for JSON output."""
    channels = []
    for ch in result.channels:
        peak = ch.spectrum.peak() if len(ch.spectrum) else (None, None)
        channels.append(
            {
                "index": ch.index,
                "name": ch.name,
                "spectrum_peak_hz": peak[0],
                "spectrum_peak_amplitude": peak[1],
                "noise": {
                    "noise_power_db": _finite_or_none(ch.noise.noise_power_db),
                    "noise_percentage": ch.noise.noise_percentage,
                    "noise_samples_count": ch.noise.noise_samples_count,
                    "threshold": ch.noise.threshold,
                    "n_frames": ch.noise.n_frames,
                    "n_noise_frames": int(np.count_nonzero(ch.noise.noise_mask)),
                },
                "tonals": [_tonal_dict(t) for t in ch.tonals],
            }
        )
    summary = None
    if result.doa_summary is not None:
        s = result.doa_summary
        summary = {
            "mean_doa": s.mean_doa,
            "circular_mean_doa": s.circular_mean_doa,
            "min_doa": s.min_doa,
            "max_doa": s.max_doa,
            "mean_confidence": s.mean_confidence,
            "count": s.count,
        }
    return {
        "sampling_rate": result.sampling_rate,
        "start_time": result.start_time,
        "duration": result.duration,
        "filter_status": result.filter_status.value if result.filter_status else None,
        "channels": channels,
        "target_freq": result.target_freq,
        "orientation_corrected": result.orientation_corrected,
        "doa_summary": summary,
        "doa_points": [
            {"time": p.time, "doa": p.doa, "confidence": p.confidence, "doa_raw": p.doa_raw}
            for p in result.doa_points
        ],
    }
