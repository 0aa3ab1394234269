"""Deadline-bound port mapping requests against a NAT-PMP gateway."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from portsync.nat.exceptions import NATPMPError
from portsync.nat.natpmp import NAT_PMP_PORT, IPAddress, NATPMPClient, PortMapping
from portsync.utils.exceptions import AddressQueryError, MappingRequestError

logger = logging.getLogger(__name__)

DEFAULT_LEASE_LIFETIME = 360


class MappingClient:
    """Requests the single TCP mapping kept alive by the renewal loop."""

    def __init__(
        self,
        lifetime: int = DEFAULT_LEASE_LIFETIME,
        port: int = NAT_PMP_PORT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize mapping client.

        Args:
            lifetime: Lease lifetime to request, in seconds
            port: Gateway NAT-PMP port
            clock: Clock the deadlines passed to request_mapping are measured on

        """
        self.lifetime = lifetime
        self.port = port
        self._clock = clock

    def _session(self, deadline: float | None, gateway: IPAddress) -> NATPMPClient:
        timeout = None if deadline is None else max(0.0, deadline - self._clock())
        return NATPMPClient(gateway, timeout=timeout, port=self.port)

    async def request_mapping(
        self,
        deadline: float | None,
        gateway: IPAddress,
    ) -> PortMapping:
        """Query the external address, then request a TCP mapping.

        Args:
            deadline: Absolute time on ``clock`` by which the gateway must
                have answered, or None for no timeout
            gateway: Gateway IP address

        Returns:
            The mapping granted by the gateway

        Raises:
            AddressQueryError: If the external address query failed
            MappingRequestError: If the mapping request failed

        """
        client = self._session(deadline, gateway)

        try:
            external_ip = await client.get_external_ip()
        except NATPMPError as e:
            msg = f"could not get external address: {e}"
            raise AddressQueryError(msg, e.details) from e
        logger.debug(
            "External address is %s",
            external_ip,
            extra={"external_address": str(external_ip)},
        )

        try:
            mapping = await client.add_port_mapping(0, 0, self.lifetime, "tcp")
        except NATPMPError as e:
            msg = f"could not add port mapping: {e}"
            raise MappingRequestError(msg, e.details) from e

        logger.debug(
            "Added port mapping %d -> %d (lifetime: %ds)",
            mapping.internal_port,
            mapping.external_port,
            mapping.lifetime,
            extra={
                "internal_port": mapping.internal_port,
                "external_port": mapping.external_port,
                "lifetime": mapping.lifetime,
            },
        )
        return mapping
