"""Utility modules."""

from .config_loader import ConfigLoader, get_nested, load_config, set_nested
from .logger import (
    LoggerMixin,
    get_logger,
    log_function_call,
    setup_logger,
    setup_logger_from_config,
)

__all__ = [
    "ConfigLoader",
    "load_config",
    "get_nested",
    "set_nested",
    "setup_logger",
    "setup_logger_from_config",
    "get_logger",
    "LoggerMixin",
    "log_function_call",
]
