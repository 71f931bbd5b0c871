"""Documented exit codes for the doawatch CLI.

Exit codes follow UNIX conventions:
- 0: Success
- 1: General/unspecified error
- 2: Invalid command-line arguments or usage
- 3-4: Application-specific errors

Usage:
    from doawatch.util.exit_codes import ExitCode
    sys.exit(ExitCode.INPUT_NOT_FOUND)
"""

from __future__ import annotations


class ExitCode:
    """Exit code constants for doawatch processes.

    Attributes:
        SUCCESS: Normal termination, no errors.
        GENERAL_ERROR: Unspecified runtime error.
        INVALID_ARGS: Command-line argument validation failed.
        INPUT_NOT_FOUND: Recording file does not exist.
        BAD_RECORDING: Recording file could not be decoded.
    """

    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    INPUT_NOT_FOUND: int = 3
    BAD_RECORDING: int = 4

    @classmethod
    def message(cls, code: int) -> str:
        """Return a human-readable message for an exit code."""
        messages = {
            cls.SUCCESS: "Success",
            cls.GENERAL_ERROR: "General error",
            cls.INVALID_ARGS: "Invalid arguments",
            cls.INPUT_NOT_FOUND: "Recording not found",
            cls.BAD_RECORDING: "Recording could not be decoded",
        }
        return messages.get(code, f"Unknown exit code {code}")
