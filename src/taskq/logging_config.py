"""Logging configuration for the taskq CLI."""

from __future__ import annotations

import logging
import sys


LOGGER_NAME = "taskq"

_FORMATS = {
    logging.INFO: "%(message)s",
    logging.DEBUG: "%(levelname)s %(name)s: %(message)s",
}


def configure_logging(verbose: bool, debug: bool = False) -> None:
    """Configure logging output for the taskq logger.

    Args:
        verbose: Send INFO records to stdout
        debug: Send DEBUG records (optimizer and cache decisions) to stdout
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.propagate = False
    logger.handlers.clear()

    if not verbose and not debug:
        logger.setLevel(logging.WARNING)
        return

    level = logging.DEBUG if debug else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMATS[level]))
    logger.setLevel(level)
    logger.addHandler(handler)
