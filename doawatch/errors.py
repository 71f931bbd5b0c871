"""Exception types raised by doawatch.

Only genuine misuse raises. Short signals, empty detections and degenerate
configurations are reported through empty or tagged results instead.
"""

from __future__ import annotations


class DoaWatchError(Exception):
    """Base class for doawatch errors."""


class PreconditionError(DoaWatchError, ValueError):
    """Caller violated an input contract (shape, length, power-of-two size)."""


class RecordingFormatError(DoaWatchError):
    """A recording file could not be decoded into channels."""
