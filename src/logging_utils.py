"""Structured logging shared by every triage module."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path

LOG_PATH = Path(os.getenv("LOG_PATH", Path(__file__).resolve().parent.parent / "logs" / "triage.log"))
CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line; structured fields travel under extra={"extra": {...}}."""

    def format(self, record: logging.LogRecord) -> str:
        return json.dumps(
            {
                "time": self.formatTime(record),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "extra": getattr(record, "extra", {}),
            },
            default=str,
        )


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(JSONFormatter())
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logger(name: str = "triage_engine", level: int = logging.INFO, path: Path = LOG_PATH) -> logging.Logger:
    """
    Return the named logger, attaching a JSON file handler at ``path`` and a
    plain console handler the first time it is requested.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(_file_handler(path))
    logger.addHandler(_console_handler())
    return logger


logger = setup_logger()
