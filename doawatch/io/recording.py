"""In-memory recordings and the .npz input adapter."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from doawatch.detection.types import OrientationSample
from doawatch.dsp.validation import check_sampling_rate
from doawatch.errors import PreconditionError, RecordingFormatError
from doawatch.util.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Recording:
    """Equal-length channels sharing one sampling rate.

    channels has shape (n_channels, n_samples). Orientation samples are kept
    sorted by time.
    """

    sampling_rate: float
    channels: np.ndarray
    channel_names: List[str] = field(default_factory=list)
    orientation: List[OrientationSample] = field(default_factory=list)
    source: Optional[str] = None

    def __post_init__(self) -> None:
        self.sampling_rate = check_sampling_rate(self.sampling_rate)
        self.channels = np.asarray(self.channels, dtype=np.float64)
        if self.channels.ndim != 2:
            raise PreconditionError(f"channels must be 2-D (n_channels, n_samples), got {self.channels.shape}")
        if not self.channel_names:
            self.channel_names = [f"ch{i + 1}" for i in range(self.n_channels)]
        elif len(self.channel_names) != self.n_channels:
            raise PreconditionError(
                f"{len(self.channel_names)} channel names given for {self.n_channels} channels"
            )
        self.orientation = sorted(self.orientation, key=lambda s: s.time)

    @property
    def n_channels(self) -> int:
        return int(self.channels.shape[0])

    @property
    def n_samples(self) -> int:
        return int(self.channels.shape[1])

    @property
    def duration(self) -> float:
        return self.n_samples / self.sampling_rate


def remove_dc(channels: np.ndarray) -> np.ndarray:
    """Subtract each channel's mean."""
    data = np.asarray(channels, dtype=np.float64)
    if data.size == 0:
        return data.copy()
    return data - data.mean(axis=-1, keepdims=True)


def orientation_from_array(rows: np.ndarray) -> List[OrientationSample]:
    """Build samples from an (N, 4) array of [time, roll, pitch, yaw]."""
    data = np.asarray(rows, dtype=np.float64)
    if data.size == 0:
        return []
    if data.ndim != 2 or data.shape[1] != 4:
        raise RecordingFormatError(f"orientation must be (N, 4) [time, roll, pitch, yaw], got {data.shape}")
    return [OrientationSample(time=float(t), roll=float(r), pitch=float(p), yaw=float(y)) for t, r, p, y in data]


def load_recording(path: str | Path) -> Recording:
    """Load a .npz recording with DC offsets removed.

    Expected keys: sampling_rate (scalar), channels (n_channels x n_samples),
    optionally channel_names and orientation ((N, 4) [time, roll, pitch, yaw]).
    """
    path = Path(path)
    try:
        with np.load(path, allow_pickle=False) as archive:
            keys = set(archive.files)
            missing = {"sampling_rate", "channels"} - keys
            if missing:
                raise RecordingFormatError(f"{path}: missing keys {sorted(missing)}")
            sampling_rate = float(np.asarray(archive["sampling_rate"]).reshape(-1)[0])
            channels = np.asarray(archive["channels"], dtype=np.float64)
            names: Sequence[str] = [str(n) for n in archive["channel_names"]] if "channel_names" in keys else []
            orientation = orientation_from_array(archive["orientation"]) if "orientation" in keys else []
    except (OSError, ValueError) as exc:
        raise RecordingFormatError(f"{path}: cannot read recording ({exc})") from exc

    if channels.ndim == 1:
        channels = channels.reshape(1, -1)
    try:
        recording = Recording(
            sampling_rate=sampling_rate,
            channels=remove_dc(channels),
            channel_names=list(names),
            orientation=orientation,
            source=path.name,
        )
    except PreconditionError as exc:
        raise RecordingFormatError(f"{path}: {exc}") from exc
    logger.info(
        "Loaded %s: %d channels, %d samples at %.1f Hz, %d orientation samples",
        path.name,
        recording.n_channels,
        recording.n_samples,
        recording.sampling_rate,
        len(recording.orientation),
    )
    return recording
