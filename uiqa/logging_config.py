"""Unified logging configuration for the UI QA bot."""
from __future__ import annotations

import logging
import os
from pathlib import Path

# Log directory: configurable via UIQA_LOG_DIR for CI runners
LOG_DIR = Path(os.getenv("UIQA_LOG_DIR", "logs"))

# Prevent duplicate handlers
_configured_loggers: set[str] = set()


def setup_logger(name: str, filename: str, level: int = logging.INFO) -> logging.Logger:
    """Setup a logger with file and console handlers.

    Args:
        name: Logger name (e.g., 'uiqa')
        filename: Log file name (e.g., 'uiqa.log')
        level: Minimum level for both handlers

    Returns:
        Configured logger instance
    """
    if name in _configured_loggers:
        return logging.getLogger(name)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs

    # File handler
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(LOG_DIR / filename, encoding='utf-8')
    fh.setLevel(level)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"
    ))

    # Console handler (Actions log)
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s"
    ))

    logger.addHandler(fh)
    logger.addHandler(sh)

    _configured_loggers.add(name)
    return logger


def get_action_logger() -> logging.Logger:
    """Root logger of the package; every ``uiqa.*`` module logger inherits it."""
    return setup_logger("uiqa", "uiqa.log")
