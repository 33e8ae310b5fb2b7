"""Logging configuration for the companion and keyboard processes."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


def default_logs_dir() -> Path:
    return Path.home() / ".config" / "appgroup_dictation" / "logs"


def setup_logging(logs_dir: Path, role: str, verbose: bool = False) -> None:
    """Rotating file log per process role plus a console handler.

    Args:
        logs_dir: Directory to store log files
        role: ``host`` or ``keyboard``; names the log file
        verbose: DEBUG level when True, otherwise INFO
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    formatter = logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s")

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            logs_dir / f"{role}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"File logging disabled: {exc}", file=sys.stderr)
    else:
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.info("Logging initialized: role=%s level=%s", role, logging.getLevelName(level))
