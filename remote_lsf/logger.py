"""
Logging setup.

Diagnostics go to stderr and/or a log file. Listing lines are written to
stdout by the CLI and never pass through logging.
"""

import logging
import sys
from pathlib import Path

from .config import LogConfig

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(threadName)s - %(message)s"

# Libraries that are chatty at INFO (paramiko logs every transport event)
THIRD_PARTY_LOGGERS = ("paramiko", "googleapiclient", "google_auth_oauthlib", "urllib3")


def _file_handler(path: str) -> logging.FileHandler:
    log_path = Path(path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.FileHandler(log_path, mode="a", encoding="utf-8")


def setup_logging(config: LogConfig) -> None:
    """
    Replace the root logger's handlers according to config.

    An unknown level name falls back to WARNING. Third-party libraries stay
    at WARNING unless DEBUG was asked for.
    """
    level = getattr(logging, config.level.upper(), logging.WARNING)

    handlers: list[logging.Handler] = []
    if config.file:
        handlers.append(_file_handler(config.file))
    if config.console:
        handlers.append(logging.StreamHandler(sys.stderr))

    root_logger = logging.getLogger()
    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
    root_logger.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
