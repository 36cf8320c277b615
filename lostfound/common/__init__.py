"""Common utilities for lostfound."""

from .logger import setup_logger
from .config import load_config, load_typed_config

__all__ = ["load_config", "load_typed_config", "setup_logger"]
