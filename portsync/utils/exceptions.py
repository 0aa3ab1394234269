"""Exception hierarchy for portsync.

Configuration errors are fatal and stop the process before the renewal
loop starts. Everything derived from ``RenewalError`` is local to one
loop iteration: it is logged, drives the backoff schedule and the loop
carries on.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Which step of a renewal iteration failed."""

    ADDRESS_QUERY_FAILED = "address_query_failed"
    MAPPING_REQUEST_FAILED = "mapping_request_failed"
    SINK_CONNECT_FAILED = "sink_connect_failed"
    SINK_UPDATE_FAILED = "sink_update_failed"
    UNEXPECTED_SINK_RESPONSE = "unexpected_sink_response"
    DEADLINE_EXCEEDED = "deadline_exceeded"


class PortSyncError(Exception):
    """Base exception for all portsync errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize portsync error."""
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ValidationError(PortSyncError):
    """Data validation errors."""


class ConfigurationError(ValidationError):
    """Configuration validation errors."""


class NetworkError(PortSyncError):
    """Network-related errors."""


class RenewalError(NetworkError):
    """Recoverable failure of a single renewal iteration."""

    kind: ErrorKind


class AddressQueryError(RenewalError):
    """The gateway did not answer the external address query."""

    kind = ErrorKind.ADDRESS_QUERY_FAILED


class MappingRequestError(RenewalError):
    """The gateway did not grant the port mapping."""

    kind = ErrorKind.MAPPING_REQUEST_FAILED


class SinkConnectError(RenewalError):
    """Could not discover or connect to the downstream host."""

    kind = ErrorKind.SINK_CONNECT_FAILED


class SinkUpdateError(RenewalError):
    """The downstream service rejected the port update."""

    kind = ErrorKind.SINK_UPDATE_FAILED


class UnexpectedSinkResponseError(RenewalError):
    """The downstream service answered with an unexpected shape."""

    kind = ErrorKind.UNEXPECTED_SINK_RESPONSE


class DeadlineExceededError(RenewalError):
    """An iteration ran past its deadline."""

    kind = ErrorKind.DEADLINE_EXCEEDED
