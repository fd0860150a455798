"""Utility modules."""

from .config_loader import YamlLoader, load_yaml, save_yaml, get_nested
from .logger import setup_logger, get_logger, LoggerMixin

__all__ = [
    "YamlLoader",
    "load_yaml",
    "save_yaml",
    "get_nested",
    "setup_logger",
    "get_logger",
    "LoggerMixin",
]
