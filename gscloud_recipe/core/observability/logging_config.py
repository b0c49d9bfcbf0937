"""
Logging configuration — one setup call per process.

Called once by ``gscloud_recipe.main`` before any command runs. Every
module does ``logger = logging.getLogger(__name__)`` and inherits it.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  GSR_LOG_LEVEL  >  WARNING

Optional file output via GSR_LOG_FILE / GSR_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

# WARNING and above: the message is enough
_FMT_CONSOLE = "%(message)s"

# INFO: which step is talking
_FMT_STEPS = "%(asctime)s [%(name)s] %(message)s"

# DEBUG and log files: everything
_FMT_FULL = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"

_DATEFMT_SHORT = "%H:%M:%S"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "asyncio")


def resolve_level(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Pick the console level name from CLI flags and GSR_LOG_LEVEL."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get("GSR_LOG_LEVEL", "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Configure the root logger for the whole process.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path of a log file; its directory is created.
        log_file_level: Level for the file. Defaults to ``level``.
    """
    console_level = _parse_level(level)

    if console_level <= logging.DEBUG:
        console_fmt = logging.Formatter(_FMT_FULL, datefmt=_DATEFMT_SHORT)
    elif console_level <= logging.INFO:
        console_fmt = logging.Formatter(_FMT_STEPS, datefmt=_DATEFMT_SHORT)
    else:
        console_fmt = logging.Formatter(_FMT_CONSOLE)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_fmt)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root_level = min(root_level, file_level)

        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter(_FMT_FULL, datefmt=_DATEFMT_FILE))
        root.addHandler(file_handler)

    root.setLevel(root_level)

    if console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
