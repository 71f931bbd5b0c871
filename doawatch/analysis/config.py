"""Analysis parameters supplied by the operator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from doawatch.detection.tonals import TonalOptions
from doawatch.dsp.filters import FilterSettings


@dataclass
class AnalysisConfig:
    frame_length: float = 0.1  # s, noise classification frames
    percentile_threshold: float = 20.0
    freq_range: Tuple[float, Optional[float]] = (20.0, None)
    min_snr_db: float = 10.0
    tonal_frame_duration: float = 1.0
    min_frames_present: int = 3
    freq_tolerance_hz: float = 5.0
    doa_frame_duration: float = 0.5
    analysis_start_time: float = 0.0
    orientation_time_offset: float = 0.0
    noise_nperseg: int = 1024
    normalize_rms: bool = True
    filter_settings: FilterSettings = field(default_factory=FilterSettings)

    def tonal_options(self) -> TonalOptions:
        return TonalOptions(
            freq_range=self.freq_range,
            min_snr_db=self.min_snr_db,
            frame_duration=self.tonal_frame_duration,
            min_frames_present=self.min_frames_present,
            freq_tolerance_hz=self.freq_tolerance_hz,
        )
