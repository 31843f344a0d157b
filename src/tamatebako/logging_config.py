"""
Logging configuration for tamatebako.

Routes log records through rich for readable terminal output.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .exceptions import InvalidConfigError

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def setup_logging(level: str = "info", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure logging with rich handler for colored output.

    Args:
        level: One of debug, info, warn, warning, error
        log_file: Optional file path to write logs to

    Returns:
        Configured logger instance for tamatebako

    Raises:
        InvalidConfigError: If the level name is unknown
    """
    numeric_level = LOG_LEVELS.get(level.lower())
    if numeric_level is None:
        raise InvalidConfigError("log_level", level, f"expected one of {', '.join(LOG_LEVELS)}")

    verbose = numeric_level <= logging.DEBUG
    console = Console(stderr=True)

    handlers: list[logging.Handler] = [
        RichHandler(
            console=console,
            rich_tracebacks=True,
            tracebacks_show_locals=verbose,
            markup=False,
            show_time=True,
            show_path=verbose,
        )
    ]

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=numeric_level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True
    )

    logger = logging.getLogger("tamatebako")
    logger.setLevel(numeric_level)

    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Module name (e.g., 'tamatebako.collector')
              If None, returns the root tamatebako logger
    """
    if name is None:
        return logging.getLogger("tamatebako")

    if not name.startswith("tamatebako"):
        name = f"tamatebako.{name}"

    return logging.getLogger(name)
