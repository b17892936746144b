"""Configuration module."""

from shiftwatch.core.config.loader import load_config
from shiftwatch.core.config.schema import Config

__all__ = ["Config", "load_config"]
