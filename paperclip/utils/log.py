"""Logging setup for paperclip."""

import logging
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "paperclip"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Union[str, int] = logging.WARNING, log_file: Optional[Path] = None) -> logging.Logger:
    """Configure the paperclip logger with a console and optional file handler."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Repeated setup must not stack handlers
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("paperclip logging initialized")
    return logger
