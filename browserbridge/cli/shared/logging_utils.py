"""Loguru helpers for consistent logging in CLI commands.

stdout carries native messaging frames, so every sink here writes to stderr
or a file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from loguru import logger

_SINK_IDS: dict[str, int] = {}

LOG_DIR = Path.home() / ".browserbridge" / "logs"
STDERR_FORMAT = "<dim>{time:HH:mm:ss.SSS}</dim> | <level>{level: <8}</level> | <level>{message}</level>"


def configure_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with a stderr sink and keep stdlib logging off stdout."""
    logger.remove()
    logger.add(sys.stderr, level=level, format=STDERR_FORMAT, backtrace=False, diagnose=False)
    _SINK_IDS.clear()
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if level == "DEBUG" else logging.WARNING,
        force=True,
    )


def ensure_rotating_log_file(name: str, level: str = "INFO") -> Path:
    """Ensure a rotating log sink for the given command name."""
    log_path = LOG_DIR / f"{name}.log"
    if name in _SINK_IDS:
        return log_path
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    sink_id = logger.add(
        str(log_path),
        level=level,
        rotation="10 MB",
        retention="14 days",
        enqueue=True,
        encoding="utf-8",
        backtrace=False,
        diagnose=False,
    )
    _SINK_IDS[name] = sink_id
    return log_path
