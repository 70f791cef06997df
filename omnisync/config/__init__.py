"""Process configuration for Omnisync."""

from omnisync.config.config import Config
from omnisync.config.loader import load_config, reset_config_cache

__all__ = ["Config", "load_config", "reset_config_cache"]
