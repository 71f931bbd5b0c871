#!/usr/bin/env python3
"""doawatch analysis CLI entrypoint (package module)."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional, Set, Tuple, Union

from doawatch.analysis.config import AnalysisConfig
from doawatch.analysis.session import AnalysisSession, to_jsonable
from doawatch.detection.types import ChannelRoles
from doawatch.dsp.filters import FilterSettings, FilterType
from doawatch.errors import DoaWatchError, PreconditionError, RecordingFormatError
from doawatch.io.profiles import default_analysis_profiles, serialize_profiles
from doawatch.io.recording import load_recording
from doawatch.util.duration import parse_duration_to_seconds
from doawatch.util.exit_codes import ExitCode
from doawatch.util.logging import configure_logging, get_logger, log_exception
from doawatch.util.run_logger import AnalysisLogger

logger = get_logger(__name__)

# profile field -> argparse attribute
_PROFILE_ARGS = {
    "frame_length": "frame_length",
    "percentile_threshold": "percentile",
    "fmin_hz": "fmin",
    "fmax_hz": "fmax",
    "min_snr_db": "min_snr_db",
    "tonal_frame_duration": "tonal_frame",
    "min_frames_present": "min_frames",
    "freq_tolerance_hz": "freq_tolerance",
    "doa_frame_duration": "doa_frame",
    "noise_nperseg": "noise_nperseg",
    "filter_type": "filter",
}


def parse_cutoff(text: str) -> Union[float, Tuple[float, float]]:
    """'1000' -> 1000.0, '300,3000' -> (300.0, 3000.0)."""
    parts = [part.strip() for part in str(text).split(",") if part.strip()]
    try:
        values = [float(part) for part in parts]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid cutoff '{text}'") from exc
    if len(values) == 1:
        return values[0]
    if len(values) == 2:
        return (values[0], values[1])
    raise argparse.ArgumentTypeError(f"Cutoff takes one or two frequencies, got '{text}'")


def run(args: argparse.Namespace) -> int:
    """Load the recording, analyse it and print the result as JSON."""
    if getattr(args, "list_profiles", False):
        _emit_profiles_json()
        return ExitCode.SUCCESS

    path = Path(args.recording).expanduser()
    if not path.exists():
        logger.error("%s: %s", ExitCode.message(ExitCode.INPUT_NOT_FOUND), path)
        return ExitCode.INPUT_NOT_FOUND

    try:
        recording = load_recording(path)
    except RecordingFormatError as exc:
        logger.error("%s", exc, extra={"error_type": type(exc).__name__})
        return ExitCode.BAD_RECORDING

    run_logger = AnalysisLogger.from_path(args.jsonl[0], args.jsonl[1:]) if args.jsonl else None
    roles = ChannelRoles(hydrophone=args.hydrophone, vx=args.vx, vy=args.vy)
    try:
        session = AnalysisSession(recording, config_from_args(args), roles, run_logger)
        result = session.run(args.target_freq)
    except PreconditionError as exc:
        logger.error("Invalid analysis request: %s", exc, extra={"error_type": type(exc).__name__})
        return ExitCode.INVALID_ARGS
    except DoaWatchError as exc:
        log_exception(logger, f"Analysis failed: {exc}", error_type=type(exc).__name__)
        return ExitCode.GENERAL_ERROR

    print(json.dumps(to_jsonable(result), indent=2))
    return ExitCode.SUCCESS


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    return AnalysisConfig(
        frame_length=args.frame_length,
        percentile_threshold=args.percentile,
        freq_range=(args.fmin, args.fmax),
        min_snr_db=args.min_snr_db,
        tonal_frame_duration=args.tonal_frame,
        min_frames_present=args.min_frames,
        freq_tolerance_hz=args.freq_tolerance,
        doa_frame_duration=args.doa_frame,
        analysis_start_time=args.start_time,
        orientation_time_offset=args.orientation_offset,
        noise_nperseg=args.noise_nperseg,
        normalize_rms=not args.no_normalize,
        filter_settings=FilterSettings(type=FilterType(args.filter), cutoff=args.cutoff),
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        description="Spectral, tonal and direction-of-arrival analysis of vector-sensor recordings",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("recording", nargs="?", help="Recording .npz (keys: sampling_rate, channels[, channel_names, orientation])")
    p.add_argument("--profile", type=str, help="Analysis profile name to pre-load defaults")
    p.add_argument("--list-profiles", dest="list_profiles", action="store_true", help="Print built-in analysis profiles as JSON and exit")

    p.add_argument("--hydrophone", type=int, help="Channel index carrying pressure")
    p.add_argument("--vx", type=int, help="Channel index carrying x particle velocity")
    p.add_argument("--vy", type=int, help="Channel index carrying y particle velocity")
    p.add_argument("--target-freq", dest="target_freq", type=float, help="DoA frequency in Hz (default: strongest hydrophone tonal)")

    p.add_argument("--filter", choices=[t.value for t in FilterType], help="Preprocessing filter (default none)")
    p.add_argument("--cutoff", type=parse_cutoff, help="Cutoff in Hz; LOW,HIGH for bandpass (default 1000)")
    p.add_argument("--no-normalize", dest="no_normalize", action="store_true", help="Skip RMS normalisation of each channel")

    p.add_argument("--frame-length", dest="frame_length", type=parse_duration_to_seconds, help="Noise classification frame (default 100ms)")
    p.add_argument("--percentile", type=float, help="Noise frame energy percentile (default 20)")
    p.add_argument("--noise-nperseg", dest="noise_nperseg", type=int, help="Welch segment for the noise PSD (default 1024)")
    p.add_argument("--fmin", type=float, help="Lowest tonal frequency in Hz (default 20)")
    p.add_argument("--fmax", type=float, help="Highest tonal frequency in Hz (default Nyquist)")
    p.add_argument("--min-snr-db", dest="min_snr_db", type=float, help="Tonal SNR over the median floor (default 10)")
    p.add_argument("--tonal-frame", dest="tonal_frame", type=parse_duration_to_seconds, help="Tonal detection frame (default 1s)")
    p.add_argument("--min-frames", dest="min_frames", type=int, help="Frames a tonal must persist (default 3)")
    p.add_argument("--freq-tolerance", dest="freq_tolerance", type=float, help="Tracking tolerance in Hz (default 5)")
    p.add_argument("--doa-frame", dest="doa_frame", type=parse_duration_to_seconds, help="DoA frame (default 500ms)")
    p.add_argument("--start-time", dest="start_time", type=parse_duration_to_seconds, help="Skip this much of the recording (default 0)")
    p.add_argument(
        "--orientation-offset",
        dest="orientation_offset",
        type=float,
        help="Seconds added to DoA times before looking up the attitude (default 0)",
    )

    p.add_argument(
        "--jsonl",
        action="append",
        help="Append run events as line-delimited JSON to this path; repeat to mirror into more files",
    )
    p.add_argument("--log-level", dest="log_level", type=str, help="DEBUG, INFO, WARNING or ERROR (default WARNING)")
    p.add_argument("--log-json", dest="log_json", type=str, help="Also write JSON-formatted log records to this file")

    args = p.parse_args(argv)
    args._cli_overrides = set()

    defaults = AnalysisConfig()
    _set_default(args, args._cli_overrides, "recording", None)
    _set_default(args, args._cli_overrides, "profile", None)
    _set_default(args, args._cli_overrides, "list_profiles", False)
    _set_default(args, args._cli_overrides, "hydrophone", None)
    _set_default(args, args._cli_overrides, "vx", None)
    _set_default(args, args._cli_overrides, "vy", None)
    _set_default(args, args._cli_overrides, "target_freq", None)
    _set_default(args, args._cli_overrides, "filter", defaults.filter_settings.type.value)
    _set_default(args, args._cli_overrides, "cutoff", defaults.filter_settings.cutoff)
    _set_default(args, args._cli_overrides, "no_normalize", not defaults.normalize_rms)
    _set_default(args, args._cli_overrides, "frame_length", defaults.frame_length)
    _set_default(args, args._cli_overrides, "percentile", defaults.percentile_threshold)
    _set_default(args, args._cli_overrides, "noise_nperseg", defaults.noise_nperseg)
    _set_default(args, args._cli_overrides, "fmin", defaults.freq_range[0])
    _set_default(args, args._cli_overrides, "fmax", defaults.freq_range[1])
    _set_default(args, args._cli_overrides, "min_snr_db", defaults.min_snr_db)
    _set_default(args, args._cli_overrides, "tonal_frame", defaults.tonal_frame_duration)
    _set_default(args, args._cli_overrides, "min_frames", defaults.min_frames_present)
    _set_default(args, args._cli_overrides, "freq_tolerance", defaults.freq_tolerance_hz)
    _set_default(args, args._cli_overrides, "doa_frame", defaults.doa_frame_duration)
    _set_default(args, args._cli_overrides, "start_time", defaults.analysis_start_time)
    _set_default(args, args._cli_overrides, "orientation_offset", defaults.orientation_time_offset)
    _set_default(args, args._cli_overrides, "jsonl", None)
    _set_default(args, args._cli_overrides, "log_level", None)
    _set_default(args, args._cli_overrides, "log_json", None)

    if not args.list_profiles and not args.recording:
        p.error("a recording is required unless --list-profiles is used")

    _apply_analysis_profile(args, p)

    if hasattr(args, "_cli_overrides"):
        delattr(args, "_cli_overrides")

    if not args.list_profiles:
        if not 0.0 <= args.percentile <= 100.0:
            p.error("--percentile must be within 0..100")
        if args.fmax is not None and args.fmax <= args.fmin:
            p.error("--fmax must be > --fmin")
        if args.min_frames < 1:
            p.error("--min-frames must be >= 1")
        if args.frame_length <= 0 or args.tonal_frame <= 0 or args.doa_frame <= 0:
            p.error("frame durations must be > 0")
        if args.filter == FilterType.BANDPASS.value and not isinstance(args.cutoff, tuple):
            p.error("--filter bandpass needs --cutoff LOW,HIGH")

    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def _apply_analysis_profile(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    profile_name = getattr(args, "profile", None)
    if not profile_name:
        return
    profiles = default_analysis_profiles()
    profile = profiles.get(str(profile_name).lower())
    if not profile:
        parser.error(f"Unknown analysis profile '{profile_name}'. Use --list-profiles to inspect options.")

    overrides: Set[str] = getattr(args, "_cli_overrides", set())

    def maybe_set(attr: str, value: Any) -> None:
        if value is None:
            return
        if attr in overrides:
            return
        setattr(args, attr, value)

    for field_name, attr in _PROFILE_ARGS.items():
        maybe_set(attr, getattr(profile, field_name))
    if profile.cutoff_hz:
        maybe_set("cutoff", profile.cutoff_hz[0] if len(profile.cutoff_hz) == 1 else tuple(profile.cutoff_hz))

    logger.info("Applied profile '%s'", profile.name)


def _emit_profiles_json() -> None:
    payload = serialize_profiles()
    print(json.dumps(payload, indent=2, sort_keys=True))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_file=args.log_json)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
