"""Logging setup for the deployhook service."""
import logging
import sys

LOGGER_NAME = "deployhook"
LOG_FORMAT = "%(asctime)s - %(levelname)-8s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Safe to call more than once: the handler is replaced, not duplicated.
    Unknown level names fall back to INFO.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        logger.handlers.clear()
    logger.setLevel(numeric_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
