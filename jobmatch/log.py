"""Logging setup shared by the engine, the CLI and the daily runner.

Console output goes to stdout at ``LOG_LEVEL``; a per-day file under
``LOG_DIR`` (default ``logs/``) always gets DEBUG.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# one line per HTTP request / SQL statement is noise at INFO
_CHATTY = ("httpx", "httpcore", "openai", "urllib3", "sqlalchemy.engine")

_configured = False


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    return handler


def configure_logging(level: str | None = None, log_dir: Path | None = None) -> None:
    """Install root handlers once; later calls only adjust the console level."""
    global _configured
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    console_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for name in _CHATTY:
        logging.getLogger(name).setLevel(logging.WARNING)

    if _configured:
        for h in root.handlers:
            if getattr(h, "stream", None) is sys.stdout:
                h.setLevel(console_level)
        return
    _configured = True

    if root.handlers:
        # someone else (pytest, an embedding app) owns the handlers
        root.setLevel(console_level)
        return

    root.addHandler(_handler(logging.StreamHandler(sys.stdout), console_level))

    directory = log_dir or Path(os.environ.get("LOG_DIR") or DEFAULT_LOG_DIR)
    try:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"jobmatch_{datetime.now():%Y-%m-%d}.log"
        root.addHandler(_handler(logging.FileHandler(path, encoding="utf-8"), logging.DEBUG))
    except OSError as exc:
        root.warning("File logging disabled (%s): %s", directory, exc)


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
