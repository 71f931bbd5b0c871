"""JSON-lines event log for analysis runs."""

from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, List, Optional, Set

from doawatch.util.logging import get_logger
from doawatch.util.time import utc_now_str

logger = get_logger(__name__)


class AnalysisLogger:
    def __init__(self, log_path: Path, mirror_paths: Optional[List[Path]] = None):
        self.log_path = log_path
        self.mirror_paths: List[Path] = []
        self._ensure_parent(self.log_path)
        seen: Set[str] = {str(self.log_path)}
        for mirror in mirror_paths or []:
            resolved = mirror
            if not resolved.is_absolute():
                resolved = (Path.cwd() / resolved).absolute()
            if str(resolved) in seen:
                continue
            self._ensure_parent(resolved)
            self.mirror_paths.append(resolved)
            seen.add(str(resolved))
        self.run_id = f"run-{int(time.time() * 1000)}-pid{os.getpid()}"
        self.recording: Optional[str] = None

    @staticmethod
    def _ensure_parent(path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("Cannot create log directory %s: %s", path.parent, exc)

    @classmethod
    def from_path(cls, path: str, extra_targets: Optional[List[str]] = None) -> "AnalysisLogger":
        expanded = Path(path).expanduser()
        extra_paths = [Path(target).expanduser() for target in extra_targets or [] if target]
        return cls(expanded, extra_paths)

    def start_run(self, recording: str, **metadata: Any) -> None:
        self.recording = recording
        self.log("analysis_start", **metadata)

    def log(self, event: str, **fields: Any) -> None:
        record = {
            "ts": utc_now_str(),
            "run_id": self.run_id,
            "recording": self.recording,
            "event": event,
            **fields,
        }
        line = json.dumps(record, default=str) + "\n"
        for target in [self.log_path] + self.mirror_paths:
            try:
                with target.open("a", encoding="utf-8") as fh:
                    fh.write(line)
            except OSError as exc:
                logger.warning("Failed to append run event to %s: %s", target, exc)
