"""Adaptive timeout used to pace the renewal loop."""

from __future__ import annotations

from dataclasses import dataclass, field

MIN_TIMEOUT = 0.25
MAX_TIMEOUT = 300.0


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Read-only view of a schedule."""

    current: float
    min_timeout: float
    max_timeout: float


@dataclass
class AdaptiveTimeout:
    """Timeout that halves on success and doubles on failure.

    The value always stays within ``[min_timeout, max_timeout]`` and starts
    at ``min_timeout``. Sustained failures widen the retry window, sustained
    successes bring it back to the minimum probing cadence.
    """

    min_timeout: float = MIN_TIMEOUT
    max_timeout: float = MAX_TIMEOUT
    current: float = field(default=0.0)

    def __post_init__(self) -> None:
        """Validate bounds and clamp the starting value."""
        if self.min_timeout <= 0:
            msg = "min_timeout must be positive"
            raise ValueError(msg)
        if self.max_timeout < self.min_timeout:
            msg = "max_timeout must not be smaller than min_timeout"
            raise ValueError(msg)
        self.current = self._clamp(self.current or self.min_timeout)

    def _clamp(self, value: float) -> float:
        return min(max(value, self.min_timeout), self.max_timeout)

    def on_success(self) -> float:
        """Shrink the timeout after a successful iteration."""
        self.current = max(self.current / 2, self.min_timeout)
        return self.current

    def on_failure(self) -> float:
        """Widen the timeout after a failed iteration."""
        self.current = min(self.current * 2, self.max_timeout)
        return self.current

    def snapshot(self) -> ScheduleSnapshot:
        """Return an immutable copy of the current state."""
        return ScheduleSnapshot(self.current, self.min_timeout, self.max_timeout)
