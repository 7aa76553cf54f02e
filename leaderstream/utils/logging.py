"""
Logging setup for the CLI.
Call setup_logging() once at startup; library modules only call logging.getLogger(__name__).

Records go to stderr so `leaderstream replay` can keep stdout for its JSON.
"""

from __future__ import annotations

import logging
import sys
import time
from typing import TextIO


class _NsFormatter(logging.Formatter):
    """Adds monotonic nanosecond timestamp to every log record."""

    def format(self, record: logging.LogRecord) -> str:
        record.mono_ns = time.monotonic_ns()
        return super().format(record)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        _NsFormatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s | mono_ns=%(mono_ns)d | %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root = logging.getLogger()
    root.setLevel(numeric)
    root.handlers.clear()
    root.addHandler(handler)
    # aiohttp logs every websocket frame at DEBUG
    logging.getLogger("aiohttp").setLevel(max(numeric, logging.INFO))
