"""Verbosity management for the portsync CLI.

Provides multi-level verbosity control with -v, -vv, -vvv flags.
"""

from __future__ import annotations

import logging
from enum import IntEnum

from portsync.models import LogLevel


class VerbosityLevel(IntEnum):
    """Verbosity levels for CLI commands."""

    NORMAL = 0  # Default: configured log level
    VERBOSE = 1  # -v: at least INFO
    DEBUG = 2  # -vv: debug messages
    TRACE = 3  # -vvv: debug plus stack traces on failures


class VerbosityManager:
    """Maps -v flags to logging levels."""

    LEVEL_TO_LOGGING: dict[VerbosityLevel, LogLevel | None] = {
        VerbosityLevel.NORMAL: None,
        VerbosityLevel.VERBOSE: LogLevel.INFO,
        VerbosityLevel.DEBUG: LogLevel.DEBUG,
        VerbosityLevel.TRACE: LogLevel.DEBUG,
    }

    def __init__(self, verbosity_count: int = 0):
        """Initialize verbosity manager.

        Args:
            verbosity_count: Number of -v flags (0-3)

        """
        self.verbosity_count = max(0, min(3, verbosity_count))  # Clamp to 0-3
        self.level = VerbosityLevel(self.verbosity_count)

    @classmethod
    def from_count(cls, count: int) -> VerbosityManager:
        """Create VerbosityManager from count."""
        return cls(count)

    def log_level(self, configured: LogLevel) -> LogLevel:
        """Return the effective log level given the configured one."""
        override = self.LEVEL_TO_LOGGING[self.level]
        if override is None:
            return configured
        # Verbosity only ever lowers the threshold
        if logging.getLevelName(override.value) < logging.getLevelName(configured.value):
            return override
        return configured

    def should_show_stack_trace(self) -> bool:
        """Check if stack traces should be shown."""
        return self.level == VerbosityLevel.TRACE

    def is_debug(self) -> bool:
        """Check if debug mode is enabled."""
        return self.level >= VerbosityLevel.DEBUG
