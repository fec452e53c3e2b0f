"""Common utilities for composer-mirror."""

from .logger import setup_logger, setup_from_config, get_logger
from .config import load_config, load_typed_config, parse_config

__all__ = [
    "get_logger",
    "load_config",
    "load_typed_config",
    "parse_config",
    "setup_from_config",
    "setup_logger",
]
