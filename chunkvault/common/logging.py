"""Console logging for the chunkvault logger tree."""

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "chunkvault"
HANDLER_NAME = "chunkvault-console"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _console_handler(logger: logging.Logger) -> Optional[logging.Handler]:
    for handler in logger.handlers:
        if handler.get_name() == HANDLER_NAME:
            return handler
    return None


def setup_logging(level: int = logging.INFO, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach one console handler to the ``chunkvault`` logger.

    Calling it again only moves the level, and the stream when one is given,
    so repeated CLI runs in one process never stack duplicate handlers.

    Args:
        level: Threshold for the logger and its console handler.
        stream: Destination stream, stdout when omitted.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    handler = _console_handler(logger)
    if handler is None:
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    elif stream is not None:
        handler.setStream(stream)
    handler.setLevel(level)
    return logger
