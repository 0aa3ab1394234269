"""NAT traversal exceptions."""

from __future__ import annotations

from portsync.utils.exceptions import NetworkError


class NATError(NetworkError):
    """Base exception for NAT traversal errors."""


class NATPMPError(NATError):
    """NAT-PMP specific error."""

    def __init__(self, message: str, result_code: int | None = None):
        """Initialize NAT-PMP error."""
        details = {"result_code": result_code} if result_code is not None else None
        super().__init__(message, details)
        self.result_code = result_code
