#!/usr/bin/env python3
"""
doawatch analysis entry point.

Thin shim around doawatch.cli for running from a source checkout.

Run:
    python doawatch-analyze.py recording.npz --hydrophone 0 --vx 1 --vy 2

Environment:
    DOAWATCH_DEBUG        Set to 1 for DEBUG logging
    DOAWATCH_LOG_LEVEL    Default log level when --log-level is not given
"""
from __future__ import annotations

import sys

from doawatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
