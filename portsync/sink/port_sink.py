"""Idempotent propagation of the mapped port to Deluge."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from portsync.sink.deluge import DelugeClient, DelugeError
from portsync.utils.exceptions import (
    SinkConnectError,
    SinkUpdateError,
    UnexpectedSinkResponseError,
)
from portsync.utils.logging_config import TimeSampler

logger = logging.getLogger(__name__)

NOOP_LOG_INTERVAL = 30 * 60.0


@dataclass(frozen=True)
class SinkState:
    """Read-only view of what the sink believes Deluge has applied."""

    last_applied_port: int = 0  # 0 = nothing applied yet
    host_id: str | None = None


def parse_hosts(result: Any) -> list[tuple[Any, ...]]:
    """Validate a ``web.get_hosts`` reply.

    Returns:
        The host entries, in the order Deluge listed them

    Raises:
        UnexpectedSinkResponseError: If the reply is not a non-empty list of
            entries whose first entry starts with a host id string

    """
    if not isinstance(result, list) or not result:
        msg = "Deluge hosts list has unexpected shape"
        raise UnexpectedSinkResponseError(msg, {"hosts": result})
    entries: list[tuple[Any, ...]] = []
    for entry in result:
        if not isinstance(entry, (list, tuple)) or not entry:
            msg = "Deluge hosts list has unexpected shape"
            raise UnexpectedSinkResponseError(msg, {"hosts": result})
        entries.append(tuple(entry))
    host_id = entries[0][0]
    if not isinstance(host_id, str) or not host_id:
        msg = "Deluge hosts list has unexpected shape"
        raise UnexpectedSinkResponseError(msg, {"hosts": result})
    return entries


class PortSink:
    """Sets Deluge's incoming port, skipping ports already applied.

    The cached port only advances after Deluge confirmed the update, so a
    failed or partial update is retried on the next call instead of being
    mistaken for a no-op.
    """

    def __init__(
        self,
        client: DelugeClient,
        noop_log_interval: float = NOOP_LOG_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize port sink.

        Args:
            client: Deluge JSON-RPC client
            noop_log_interval: Seconds between INFO logs for unchanged ports
            clock: Clock the deadlines passed to apply are measured on

        """
        self.client = client
        self._clock = clock
        self._noop_sampler = TimeSampler(noop_log_interval, clock=clock)
        self._last_applied_port = 0
        self._host_id: str | None = None

    @property
    def state(self) -> SinkState:
        """Snapshot of the sink state."""
        return SinkState(self._last_applied_port, self._host_id)

    async def apply(self, deadline: float | None, port: int) -> None:
        """Make Deluge listen on ``port``.

        Args:
            deadline: Absolute time on ``clock`` bounding the downstream
                calls, or None for no timeout
            port: Port to apply

        Raises:
            SinkConnectError: If discovering or connecting to the host failed
            UnexpectedSinkResponseError: If the hosts list was malformed
            SinkUpdateError: If Deluge rejected the update
            TimeoutError: If the deadline passed first

        """
        if port == 0:
            # 0 also marks "nothing applied yet" in SinkState
            logger.warning(
                "Gateway granted external port 0, not updating Deluge",
                extra={"port": port},
            )
            return

        if port == self._last_applied_port:
            level = logging.INFO if self._noop_sampler.sample() else logging.DEBUG
            logger.log(
                level,
                "Not updating Deluge since its port %d is already correct",
                port,
                extra={"port": port},
            )
            return

        timeout = None if deadline is None else max(0.0, deadline - self._clock())
        async with asyncio.timeout(timeout):
            if self._host_id is None:
                self._host_id = await self._connect()

            try:
                await self.client.set_config({"listen_ports": [port, port]})
            except DelugeError as e:
                # Force rediscovery next time; the session may be stale
                self._host_id = None
                msg = f"could not update Deluge incoming port: {e}"
                raise SinkUpdateError(msg, {"port": port}) from e

        self._last_applied_port = port
        logger.info(
            "Updated Deluge incoming port to %d",
            port,
            extra={"port": port},
        )

    async def _connect(self) -> str:
        """Discover the first Deluge host and connect the Web UI to it."""
        try:
            if self.client.password:
                await self.client.login()
            hosts = parse_hosts(await self.client.get_hosts())
        except DelugeError as e:
            msg = f"could not list Deluge hosts: {e}"
            raise SinkConnectError(msg) from e
        logger.debug("Discovered Deluge hosts: %s", hosts, extra={"hosts": hosts})

        host_id = hosts[0][0]
        try:
            await self.client.connect(host_id)
        except DelugeError as e:
            msg = f"could not connect to Deluge: {e}"
            raise SinkConnectError(msg, {"host": host_id}) from e
        logger.debug("Connected to Deluge host %s", host_id, extra={"host": host_id})
        return host_id
