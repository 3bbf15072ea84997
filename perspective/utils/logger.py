"""Logging utilities."""

import functools
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

PACKAGE_LOGGER = "perspective"


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """
    Set up and configure a logger.

    Args:
        name: Logger name.
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional file path for logging.
        console: Whether to log to console.
        format_string: Custom format string.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Clear existing handlers
    logger.handlers = []

    if format_string is None:
        format_string = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    formatter = logging.Formatter(format_string, datefmt="%Y-%m-%d %H:%M:%S")

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logger_from_config(
    config: Optional[Dict[str, Any]],
    name: str = PACKAGE_LOGGER,
) -> logging.Logger:
    """
    Configure a logger from the ``logging`` section of a config dict.

    Expected layout::

        level: INFO
        log_file: null | path
    """
    config = config or {}
    return setup_logger(
        name,
        level=config.get("level", "INFO"),
        log_file=config.get("log_file"),
    )


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Get a logger, configuring the package root logger on first use.

    Module loggers (``perspective.calibration.p3p``) propagate to the
    ``perspective`` logger, so only the root of the dotted name gets
    handlers attached.

    Args:
        name: Logger name, usually ``__name__``.

    Returns:
        Logger instance.
    """
    root_name = name.split(".")[0]
    root = logging.getLogger(root_name)

    if not root.handlers:
        setup_logger(root_name)

    return logging.getLogger(name)


class LoggerMixin:
    """Mixin class to add logging to any class."""

    @property
    def logger(self) -> logging.Logger:
        """Get class-specific logger."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(
                f"{PACKAGE_LOGGER}.{self.__class__.__name__}"
            )
        return self._logger


def log_function_call(logger: Optional[logging.Logger] = None):
    """
    Decorator to log function calls and failures.

    Args:
        logger: Logger to use (uses the package logger if None).
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or get_logger(func.__module__)
            log.debug(f"Calling {func.__name__}")
            try:
                result = func(*args, **kwargs)
                log.debug(f"{func.__name__} completed successfully")
                return result
            except Exception as e:
                log.error(f"{func.__name__} failed: {e}")
                raise
        return wrapper
    return decorator
