"""
Logging setup for the intake agent.

Every module logs through ``logging.getLogger(LOGGER_NAME)``. Call logs carry
the callSid so that one call can be followed across the Twilio, Realtime and
SMS steps; audio frames are only logged at DEBUG.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from marta.config.constants import LOGGER_NAME

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOG_FILE = LOG_DIR / f"{LOGGER_NAME}.log"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5


def _file_handler(formatter: logging.Formatter) -> RotatingFileHandler:
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        LOG_FILE, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    return handler


def configure_logging(level: str = LOG_LEVEL) -> logging.Logger:
    """
    Set up the ``marta`` logger with a stdout handler and a rotating log file.

    Safe to call more than once (``run.py`` reconfigures with the CLI level):
    existing handlers are replaced, not stacked. If the log directory cannot be
    created the logger keeps writing to stdout only.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.propagate = False

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    try:
        logger.addHandler(_file_handler(formatter))
    except OSError as e:
        logger.warning(f"File logging disabled, cannot write {LOG_FILE}: {e}")

    logger.info(f"Logging configured at {logging.getLevelName(logger.level)}")
    return logger
