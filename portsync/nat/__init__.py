"""NAT-PMP port mapping.

Provides an RFC 6886 client and the deadline-bound mapping request used
by the renewal loop.
"""

from portsync.nat.client import MappingClient
from portsync.nat.exceptions import NATError, NATPMPError
from portsync.nat.natpmp import NATPMPClient, PortMapping

__all__ = ["MappingClient", "NATError", "NATPMPClient", "NATPMPError", "PortMapping"]
