"""Configuration module for squabble."""

from squabble.config.loader import get_config_path, load_config
from squabble.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
