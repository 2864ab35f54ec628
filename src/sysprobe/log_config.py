"""Logging setup for the sysprobe command line tools."""

import logging
import sys
from pathlib import Path

LOGGER_NAME = "sysprobe"


def setup_logger(level: int = logging.INFO, log_file: Path | None = None) -> logging.Logger:
    """
    Configure the package logger with console and optional file output.

    Args:
        level: Console logging level.
        log_file: Optional file receiving DEBUG and above in a detailed format.

    Returns:
        The configured ``sysprobe`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file else level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt="[%(levelname)s] %(message)s"))
    logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
