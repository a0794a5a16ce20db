"""Logging setup for the update job"""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# Per-request INFO lines from the notes client would drown the run log
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logger(
    name: Optional[str] = None,
    level: int | str = logging.INFO,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Attach a stderr handler to a logger, once

    stdout stays free for anything piped out of the job.

    Args:
        name: Logger name, the root logger when None
        level: Level as int or name ("DEBUG", "INFO"...)
        format_string: Record format, DEFAULT_FORMAT when None

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)
    return logger
