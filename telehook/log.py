"""Logging setup for hook processes.

Hooks talk to the agent over stdout, so log records only ever go to a file.
"""

import logging
import os

from .config import TelehookSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(settings: TelehookSettings) -> logging.Logger:
    """Attach a file handler to the ``telehook`` logger at the configured level."""
    logger = logging.getLogger("telehook")
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    logger.propagate = False

    log_file = os.path.abspath(os.path.expanduser(settings.log_file))
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == log_file:
            return logger

    try:
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as e:
        # Unwritable log location must not break the hook
        logger.addHandler(logging.NullHandler())
        logging.getLogger("telehook.log").debug(f"Cannot open log file {log_file}: {e}")
        return logger

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
