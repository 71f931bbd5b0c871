from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional

from doawatch.errors import PreconditionError


@dataclass(frozen=True)
class Tonal:
    frequency: float  # Hz
    power: float  # dB
    snr: float  # dB above the frame's median floor


@dataclass(frozen=True)
class PersistentTonal:
    frequency_mean: float
    snr_mean: float
    power_mean: float
    n_detections: int


@dataclass
class TonalTrack:
    """Running accumulator for one frequency bin during tracking."""

    detections: List[Tonal] = field(default_factory=list)
    frequency_sum: float = 0.0

    @property
    def frequency(self) -> float:
        return self.frequency_sum / len(self.detections) if self.detections else 0.0

    def add(self, tonal: Tonal) -> None:
        self.detections.append(tonal)
        self.frequency_sum += tonal.frequency

    def summarize(self) -> PersistentTonal:
        n = len(self.detections)
        return PersistentTonal(
            frequency_mean=self.frequency_sum / n,
            snr_mean=sum(t.snr for t in self.detections) / n,
            power_mean=sum(t.power for t in self.detections) / n,
            n_detections=n,
        )


@dataclass(frozen=True)
class DoaPoint:
    time: float  # s on the recording timeline
    doa: float  # deg in [0, 360)
    confidence: float  # [0, 1]
    doa_raw: Optional[float] = None  # body-frame azimuth before attitude correction

    def corrected(self, doa: float) -> "DoaPoint":
        raw = self.doa if self.doa_raw is None else self.doa_raw
        return replace(self, doa=doa, doa_raw=raw)


@dataclass
class DoaSummary:
    mean_doa: float
    circular_mean_doa: float
    min_doa: float
    max_doa: float
    mean_confidence: float
    count: int


@dataclass(frozen=True)
class OrientationSample:
    time: float
    roll: float
    pitch: float
    yaw: float


@dataclass
class ChannelRoles:
    """Channel indices feeding the DoA estimator; None marks an unassigned role."""

    hydrophone: Optional[int] = None
    vx: Optional[int] = None
    vy: Optional[int] = None

    @property
    def is_complete(self) -> bool:
        return self.hydrophone is not None and self.vx is not None and self.vy is not None

    def validate(self, n_channels: int) -> None:
        assigned = [(name, idx) for name, idx in self.items() if idx is not None]
        seen = {}
        for name, idx in assigned:
            if idx < 0 or idx >= n_channels:
                raise PreconditionError(f"{name} channel {idx} out of range for {n_channels} channels")
            if idx in seen:
                raise PreconditionError(f"{name} and {seen[idx]} share channel {idx}")
            seen[idx] = name

    def items(self):
        return (("hydrophone", self.hydrophone), ("vx", self.vx), ("vy", self.vy))
