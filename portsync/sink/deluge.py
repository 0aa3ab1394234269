"""Deluge Web UI JSON-RPC client.

Deluge's Web UI accepts ``POST <url>/json`` requests carrying
``{"method", "params", "id"}`` and answers ``{"result", "error", "id"}``.
Authentication is cookie based (``auth.login``).
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any
from urllib.parse import urlsplit

import aiohttp

from portsync.utils.exceptions import ConfigurationError, NetworkError

logger = logging.getLogger(__name__)

JSON_PATH = "/json"


class DelugeError(NetworkError):
    """A Deluge JSON-RPC call failed."""


class DelugeClient:
    """Minimal async client for the Deluge Web UI JSON-RPC endpoint."""

    def __init__(
        self,
        url: str = "http://localhost:8112",
        password: str = "deluge",
        session: aiohttp.ClientSession | None = None,
    ):
        """Initialize Deluge client.

        Args:
            url: Base URL of the Deluge Web UI
            password: Web UI password, empty to skip login
            session: Optional aiohttp session (created lazily otherwise)

        Raises:
            ConfigurationError: If the URL cannot be used

        """
        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.hostname:
            msg = f"Invalid Deluge URL: {url!r}"
            raise ConfigurationError(msg)
        self.url = url.rstrip("/")
        self.endpoint = f"{self.url}{JSON_PATH}"
        self.password = password
        self._session = session
        self._owns_session = session is None
        self._ids = itertools.count(1)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure HTTP session is created."""
        if self._session is None or self._session.closed:
            # unsafe=True keeps cookies set by hosts addressed by IP
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.CookieJar(unsafe=True),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def call(self, method: str, *params: Any) -> Any:
        """Invoke a JSON-RPC method and return its result.

        Raises:
            DelugeError: On transport errors, HTTP errors, malformed replies
                or a JSON-RPC error member

        """
        session = await self._ensure_session()
        payload = {"method": method, "params": list(params), "id": next(self._ids)}
        body = json.dumps(payload)
        logger.debug(
            "Sending HTTP request to Deluge: POST %s %s",
            self.endpoint,
            method,
            extra={"url": self.endpoint, "body": body},
        )

        try:
            async with session.post(
                self.endpoint,
                data=body,
                headers={
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
            ) as resp:
                raw = await resp.read()
                status = resp.status
        except aiohttp.ClientError as e:
            msg = f"{method} request failed: {e}"
            raise DelugeError(msg) from e

        logger.debug(
            "Received response from Deluge: HTTP %d",
            status,
            extra={"status": status, "body": raw.decode("utf-8", errors="replace")},
        )

        if status >= 400:
            msg = f"{method} failed: HTTP {status}"
            raise DelugeError(msg, {"status": status})

        try:
            # JSON-RPC replies are UTF-8 whatever charset the server claims
            reply = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            msg = f"{method} returned invalid JSON"
            raise DelugeError(msg) from e
        if not isinstance(reply, dict):
            msg = f"{method} returned a non-object reply"
            raise DelugeError(msg)

        error = reply.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            details = {"code": error.get("code")} if isinstance(error, dict) else None
            msg = f"{method} failed: {message}"
            raise DelugeError(msg, details)

        return reply.get("result")

    async def login(self) -> None:
        """Authenticate against the Web UI."""
        if await self.call("auth.login", self.password) is not True:
            msg = "auth.login was rejected"
            raise DelugeError(msg)

    async def get_hosts(self) -> Any:
        """List the daemons known to the Web UI (``web.get_hosts``)."""
        return await self.call("web.get_hosts")

    async def connect(self, host_id: str) -> Any:
        """Connect the Web UI to a daemon (``web.connect``)."""
        return await self.call("web.connect", host_id)

    async def set_config(self, config: dict[str, Any]) -> Any:
        """Update daemon configuration (``core.set_config``)."""
        return await self.call("core.set_config", config)
