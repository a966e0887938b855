# compliant/logging_config.py
"""
LOGGING: Package Logger Setup
=============================

Every module logs through `logging.getLogger(__name__)`, i.e. below the
`compliant` logger. Warnings carry the recoverable assembly problems
(zero-treated blocks, resized mapping values, unvisited inputs); info
and debug trace the traversal and the assembled sizes.

USAGE:
------
    setup_logging(logging.DEBUG)              # console only
    setup_logging(logging.INFO, "run.log")    # console + file
"""
import logging
import sys
from typing import Optional

from .config import CONFIG

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the package logger.

    Calling it again replaces the handlers of the previous call.
    Returns the package logger.
    """
    logger = logging.getLogger(CONFIG.logger_name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("logging to %s", log_file or "stdout")
    return logger
