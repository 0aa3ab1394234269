"""Renewal loop keeping the port mapping and Deluge in sync.

Each iteration requests the mapping under a deadline derived from the
adaptive timeout, hands the external port to the sink and then:

- on success halves the timeout and sleeps half the granted lease,
- on failure doubles the timeout and sleeps out the rest of the deadline
  window it just used, so a failing gateway is never probed faster than
  the current timeout.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from portsync.nat.client import MappingClient
from portsync.nat.natpmp import IPAddress, PortMapping
from portsync.sink.port_sink import PortSink
from portsync.utils.backoff import AdaptiveTimeout
from portsync.utils.exceptions import DeadlineExceededError, RenewalError
from portsync.utils.logging_config import set_correlation_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IterationResult:
    """Outcome of one renewal iteration."""

    success: bool
    timeout_used: float
    next_timeout: float
    sleep_for: float
    mapping: PortMapping | None = None
    error: RenewalError | None = None


class RenewalLoop:
    """Sequentially renews one TCP mapping against one gateway."""

    def __init__(
        self,
        gateway: IPAddress,
        mapper: MappingClient,
        sink: PortSink,
        schedule: AdaptiveTimeout | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        show_tracebacks: bool = False,
    ) -> None:
        """Initialize renewal loop.

        Args:
            gateway: Gateway IP address
            mapper: Client issuing the mapping requests
            sink: Sink receiving the external port
            schedule: Adaptive timeout state (defaults to 250ms..5min)
            clock: Monotonic clock used for deadlines
            sleep: Coroutine function used between iterations
            show_tracebacks: Attach tracebacks to failure log lines

        """
        self.gateway = gateway
        self.mapper = mapper
        self.sink = sink
        self.schedule = schedule or AdaptiveTimeout()
        self._clock = clock
        self._sleep = sleep
        self.show_tracebacks = show_tracebacks

    async def _iterate(self, deadline: float) -> PortMapping:
        try:
            async with asyncio.timeout(max(0.0, deadline - self._clock())):
                mapping = await self.mapper.request_mapping(deadline, self.gateway)
                await self.sink.apply(deadline, mapping.external_port)
        except TimeoutError as e:
            msg = "deadline exceeded"
            raise DeadlineExceededError(msg, {"timeout": self.schedule.current}) from e
        return mapping

    async def run_once(self) -> IterationResult:
        """Run a single iteration and return how the loop should proceed."""
        set_correlation_id()
        timeout = self.schedule.current
        deadline = self._clock() + timeout
        logger.debug(
            "Attempting to map a port (timeout %.3fs)",
            timeout,
            extra={"timeout": timeout},
        )

        try:
            mapping = await self._iterate(deadline)
        except RenewalError as e:
            next_timeout = self.schedule.on_failure()
            sleep_for = max(0.0, deadline - self._clock())
            logger.error(
                "Renewal failed (%s): %s; retrying in %.3fs",
                e.kind.value,
                e,
                sleep_for,
                extra={"kind": e.kind.value, "timeout": next_timeout},
                exc_info=e if self.show_tracebacks else None,
            )
            return IterationResult(
                success=False,
                timeout_used=timeout,
                next_timeout=next_timeout,
                sleep_for=sleep_for,
                error=e,
            )

        next_timeout = self.schedule.on_success()
        sleep_for = mapping.lifetime / 2
        logger.debug(
            "Mapping for port %d renewed, sleeping %.1fs",
            mapping.external_port,
            sleep_for,
            extra={
                "external_port": mapping.external_port,
                "lifetime": mapping.lifetime,
                "timeout": next_timeout,
            },
        )
        return IterationResult(
            success=True,
            timeout_used=timeout,
            next_timeout=next_timeout,
            sleep_for=sleep_for,
            mapping=mapping,
        )

    async def run(self) -> None:
        """Renew forever."""
        logger.info("Keeping a TCP port mapping alive via gateway %s", self.gateway)
        while True:
            result = await self.run_once()
            await self._sleep(result.sleep_for)

    async def close(self) -> None:
        """Release the sink's HTTP session."""
        await self.sink.client.close()
