"""File logging for grammar builds. The console is reserved for progress output."""

from __future__ import annotations

import logging
from pathlib import Path

__all__ = ["configure", "DEFAULT_LOG_FILE"]

DEFAULT_LOG_FILE = Path("log/output.log")
LOG_FORMAT = "%(levelname)s [%(asctime)s] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_HANDLER_NAME = "grammar_foundry.file"


def configure(log_file: str | Path = DEFAULT_LOG_FILE, *, level: int = logging.INFO) -> logging.Handler:
    """Route package logs to ``log_file``, replacing a previously configured file."""

    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger("grammar_foundry")
    for handler in list(package_logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            package_logger.removeHandler(handler)
            handler.close()

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    return handler
