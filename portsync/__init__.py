"""portsync - keep a NAT-PMP port mapping and Deluge's incoming port in sync."""

from __future__ import annotations

__version__ = "0.1.0"
