"""Logger factory. Logs go to stderr (and optionally a file), never stdout."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler

_ROOT = "influence_mcp"
_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO", log_file: str | None = None) -> logging.Logger:
    """Attach handlers to the package root logger. Safe to call repeatedly."""

    root = logging.getLogger(_ROOT)
    root.setLevel(level)
    root.propagate = False

    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    if not any(getattr(h, "_influence_stream", False) for h in root.handlers):
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(formatter)
        stream._influence_stream = True  # type: ignore[attr-defined]
        root.addHandler(stream)

    if log_file and not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_ROOT}.{name}")
