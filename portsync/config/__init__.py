"""Configuration management.

This module handles configuration loading and validation.
"""

from __future__ import annotations

from portsync.config.config import ConfigManager, init_config
from portsync.models import Config

__all__ = [
    "Config",
    "ConfigManager",
    "init_config",
]
