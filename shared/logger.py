"""Logging setup shared by all tools."""

import logging
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logger(
    name: str,
    level: Union[str, int] = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure a logger with rich console output.

    Handlers are attached once per logger name, so calling this again only
    updates the level.

    Args:
        name: Logger name (usually the package or module name)
        level: Log level name or number
        log_file: Optional file to also write plain-text logs to

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        # stderr, so JSON written to stdout stays parseable
        handler = RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="[%X]"))
        logger.addHandler(handler)

    if log_file and not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
