"""Analysis profile dataclasses and helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass
class AnalysisProfile:
    name: str
    description: str
    frame_length: Optional[float] = None
    percentile_threshold: Optional[float] = None
    fmin_hz: Optional[float] = None
    fmax_hz: Optional[float] = None
    min_snr_db: Optional[float] = None
    tonal_frame_duration: Optional[float] = None
    min_frames_present: Optional[int] = None
    freq_tolerance_hz: Optional[float] = None
    doa_frame_duration: Optional[float] = None
    noise_nperseg: Optional[int] = None
    filter_type: Optional[str] = None
    cutoff_hz: Optional[Tuple[float, ...]] = None


def default_analysis_profiles() -> Dict[str, AnalysisProfile]:
    profiles = [
        AnalysisProfile(
            name="general",
            description="Defaults suited to kHz-range tonals on audio-rate recordings",
        ),
        AnalysisProfile(
            name="low_frequency",
            description="Long frames and a 1 kHz lowpass for machinery lines below 500 Hz",
            frame_length=0.5,
            fmin_hz=5.0,
            fmax_hz=500.0,
            min_snr_db=8.0,
            tonal_frame_duration=4.0,
            min_frames_present=4,
            freq_tolerance_hz=1.0,
            doa_frame_duration=2.0,
            noise_nperseg=4096,
            filter_type="lowpass",
            cutoff_hz=(1000.0,),
        ),
        AnalysisProfile(
            name="fast_survey",
            description="Short frames for a quick first look at long recordings",
            frame_length=0.05,
            percentile_threshold=30.0,
            min_snr_db=12.0,
            tonal_frame_duration=0.5,
            min_frames_present=2,
            freq_tolerance_hz=10.0,
            doa_frame_duration=0.25,
            noise_nperseg=512,
        ),
    ]
    return {p.name.lower(): p for p in profiles}


def serialize_profiles() -> Dict[str, Any]:
    """Return ordered JSON-serializable description of built-in profiles."""

    profiles = default_analysis_profiles()
    ordered = sorted(profiles.values(), key=lambda p: p.name.lower())
    return {"profiles": [asdict(prof) for prof in ordered]}
