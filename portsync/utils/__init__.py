"""Shared utilities and infrastructure.

This module contains common utilities used throughout the application.
"""

from __future__ import annotations

from portsync.utils.backoff import AdaptiveTimeout
from portsync.utils.exceptions import (
    ConfigurationError,
    ErrorKind,
    PortSyncError,
    RenewalError,
)
from portsync.utils.logging_config import setup_logging

__all__ = [
    "AdaptiveTimeout",
    "ConfigurationError",
    "ErrorKind",
    "PortSyncError",
    "RenewalError",
    "setup_logging",
]
