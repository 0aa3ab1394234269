"""NAT-PMP (NAT Port Mapping Protocol) client implementation per RFC 6886."""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import struct
from dataclasses import dataclass
from enum import IntEnum

from portsync.nat.exceptions import NATPMPError

logger = logging.getLogger(__name__)

# RFC 6886 constants
NAT_PMP_PORT = 5351
NAT_PMP_VERSION = 0
NAT_PMP_RESPONSE_OFFSET = 128

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class NATPMPOpcode(IntEnum):
    """NAT-PMP opcodes from RFC 6886."""

    PUBLIC_ADDRESS_REQUEST = 0
    UDP_MAPPING_REQUEST = 1
    TCP_MAPPING_REQUEST = 2


class NATPMPResult(IntEnum):
    """NAT-PMP result codes from RFC 6886 section 3.5."""

    SUCCESS = 0
    UNSUPPORTED_VERSION = 1
    NOT_AUTHORIZED = 2  # e.g., gateway firewall disallows
    NETWORK_FAILURE = 3
    OUT_OF_RESOURCES = 4
    UNSUPPORTED_OPCODE = 5


@dataclass(frozen=True)
class PortMapping:
    """A port mapping granted by the gateway.

    ``lifetime`` is what the gateway granted, which may differ from what
    was requested.
    """

    internal_port: int
    external_port: int
    lifetime: int  # seconds
    protocol: str = "tcp"


# Message encoding/decoding functions


def encode_public_address_request() -> bytes:
    """Encode public address request (RFC 6886 section 3.2)."""
    return struct.pack("!BB", NAT_PMP_VERSION, NATPMPOpcode.PUBLIC_ADDRESS_REQUEST)


def encode_port_mapping_request(
    internal_port: int,
    external_port: int,
    lifetime: int,
    protocol: str,
) -> bytes:
    """Encode port mapping request (RFC 6886 section 3.3).

    Args:
        internal_port: Internal port (0 for unspecified)
        external_port: Suggested external port (0 for automatic)
        lifetime: Requested mapping lifetime in seconds
        protocol: "tcp" or "udp"

    Returns:
        Encoded NAT-PMP request message

    """
    opcode = (
        NATPMPOpcode.TCP_MAPPING_REQUEST
        if protocol.lower() == "tcp"
        else NATPMPOpcode.UDP_MAPPING_REQUEST
    )
    # version(1), opcode(1), reserved(2), internal_port(2),
    # external_port(2), lifetime(4)
    return struct.pack(
        "!BBHHHI",
        NAT_PMP_VERSION,
        opcode,
        0,  # reserved
        internal_port,
        external_port,
        lifetime,
    )


def _check_header(version: int, opcode: int, result: int, expected: NATPMPOpcode) -> None:
    if version != NAT_PMP_VERSION:
        msg = f"Unexpected NAT-PMP version {version}"
        raise ValueError(msg)
    if opcode != NAT_PMP_RESPONSE_OFFSET + expected:
        msg = f"Unexpected NAT-PMP opcode {opcode}"
        raise ValueError(msg)
    if result != NATPMPResult.SUCCESS:
        error_name = (
            NATPMPResult(result).name if result in range(6) else f"Unknown({result})"
        )
        msg = f"NAT-PMP error: {error_name}"
        raise NATPMPError(msg, result_code=result)


def decode_public_address_response(data: bytes) -> tuple[ipaddress.IPv4Address, int]:
    """Decode public address response (RFC 6886 section 3.2).

    Args:
        data: Response bytes

    Returns:
        Tuple of (external_ip, seconds_since_epoch)

    Raises:
        ValueError: If response is malformed
        NATPMPError: If the gateway returned a non-zero result code

    """
    if len(data) < 12:
        msg = "Response too short"
        raise ValueError(msg)
    # version(1), opcode(1), result(2), seconds_since_epoch(4), external_ip(4)
    version, opcode, result, seconds, ip_int = struct.unpack("!BBHII", data[:12])
    _check_header(version, opcode, result, NATPMPOpcode.PUBLIC_ADDRESS_REQUEST)
    return ipaddress.IPv4Address(ip_int), seconds


def decode_port_mapping_response(
    data: bytes,
    protocol: str = "tcp",
) -> PortMapping:
    """Decode port mapping response (RFC 6886 section 3.3).

    Args:
        data: Response bytes
        protocol: Protocol of the request this answers

    Returns:
        PortMapping granted by the gateway

    Raises:
        ValueError: If response is malformed
        NATPMPError: If the gateway returned a non-zero result code

    """
    if len(data) < 16:
        msg = "Response too short"
        raise ValueError(msg)
    # version(1), opcode(1), result(2), seconds_since_epoch(4),
    # internal_port(2), external_port(2), lifetime(4)
    version, opcode, result, _seconds, internal, external, lifetime = struct.unpack(
        "!BBHIHHI",
        data[:16],
    )
    expected = (
        NATPMPOpcode.TCP_MAPPING_REQUEST
        if protocol.lower() == "tcp"
        else NATPMPOpcode.UDP_MAPPING_REQUEST
    )
    _check_header(version, opcode, result, expected)
    return PortMapping(internal, external, lifetime, protocol.lower())


class _ResponseProtocol(asyncio.DatagramProtocol):
    """Resolves a future with the first datagram received."""

    def __init__(self) -> None:
        self.response: asyncio.Future[bytes] = (
            asyncio.get_running_loop().create_future()
        )

    def datagram_received(self, data: bytes, addr: tuple) -> None:
        if not self.response.done():
            self.response.set_result(data)

    def error_received(self, exc: Exception) -> None:
        if not self.response.done():
            self.response.set_exception(exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if not self.response.done():
            self.response.set_exception(exc or ConnectionError("Socket closed"))


class NATPMPClient:
    """Async NAT-PMP client bound to one gateway and one timeout.

    Each request sends a single datagram and waits for the reply for at
    most ``timeout`` seconds (forever when ``timeout`` is None). Retrying
    is left to the caller.
    """

    def __init__(
        self,
        gateway_ip: IPAddress,
        timeout: float | None = None,
        port: int = NAT_PMP_PORT,
    ):
        """Initialize NAT-PMP client.

        Args:
            gateway_ip: Gateway IP address
            timeout: Seconds to wait for each reply (None for no timeout)
            port: Gateway UDP port

        """
        self.gateway_ip = gateway_ip
        self.timeout = timeout
        self.port = port
        self.external_ip: ipaddress.IPv4Address | None = None
        self.last_epoch_time: int = 0

    async def _exchange(self, request: bytes) -> bytes:
        """Send one request datagram and return the reply."""
        loop = asyncio.get_running_loop()
        transport, protocol = await loop.create_datagram_endpoint(
            _ResponseProtocol,
            remote_addr=(str(self.gateway_ip), self.port),
        )
        try:
            transport.sendto(request)
            return await asyncio.wait_for(protocol.response, timeout=self.timeout)
        finally:
            transport.close()

    async def get_external_ip(self) -> ipaddress.IPv4Address:
        """Get external IP address (RFC 6886 section 3.2).

        Returns:
            External IPv4 address

        Raises:
            NATPMPError: If unable to get external IP

        """
        try:
            response = await self._exchange(encode_public_address_request())
            external_ip, seconds = decode_public_address_response(response)
        except NATPMPError:
            raise
        except asyncio.TimeoutError:
            msg = "Timeout getting external IP"
            raise NATPMPError(msg) from None
        except (OSError, ValueError) as e:
            msg = f"Error getting external IP: {e}"
            raise NATPMPError(msg) from e

        self.external_ip = external_ip
        self.last_epoch_time = seconds
        return external_ip

    async def add_port_mapping(
        self,
        internal_port: int,
        external_port: int = 0,
        lifetime: int = 3600,
        protocol: str = "tcp",
    ) -> PortMapping:
        """Add port mapping (RFC 6886 section 3.3).

        Args:
            internal_port: Internal port
            external_port: Suggested external port (0 for automatic)
            lifetime: Requested mapping lifetime in seconds
            protocol: "tcp" or "udp"

        Returns:
            PortMapping with actual external port and lifetime

        Raises:
            NATPMPError: If unable to add port mapping

        """
        request = encode_port_mapping_request(
            internal_port, external_port, lifetime, protocol
        )
        try:
            response = await self._exchange(request)
            mapping = decode_port_mapping_response(response, protocol)
        except NATPMPError:
            raise
        except asyncio.TimeoutError:
            msg = "Timeout adding port mapping"
            raise NATPMPError(msg) from None
        except (OSError, ValueError) as e:
            msg = f"Error adding port mapping: {e}"
            raise NATPMPError(msg) from e

        logger.debug(
            "Mapped %s port %s -> %s (lifetime: %s s)",
            protocol,
            mapping.internal_port,
            mapping.external_port,
            mapping.lifetime,
        )
        return mapping
