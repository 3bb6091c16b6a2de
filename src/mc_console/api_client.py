"""Async REST + console-stream client for the save manager server.

This module is intentionally self-contained and does not depend on Textual.
Every request returns an explicit :class:`~mc_console.result.Ok` or
:class:`~mc_console.result.Err`; transport failures are folded into ``Err``
so that callers have a single handling path.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Any
from urllib.parse import quote

import httpx
import websockets

from .result import Err, Ok, Result

LOG = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://127.0.0.1:1234"
SERVER_URL_ENV = "MC_CONSOLE_SERVER"


class ApiClientError(RuntimeError):
    """Raised when the client is used outside of its start/stop lifecycle."""


def resolve_server_url(explicit: str | None = None) -> str:
    """Return the server base URL.

    The URL is taken from ``explicit`` if given, then from the
    MC_CONSOLE_SERVER environment variable, then the default local address.
    """

    if explicit:
        return explicit.rstrip("/")
    override = os.environ.get(SERVER_URL_ENV)
    if override:
        return override.rstrip("/")
    return DEFAULT_SERVER_URL


def normalize_response(response: httpx.Response) -> Result:
    """Map an HTTP response onto ``Ok``/``Err``.

    200 is success (an empty body decodes to ``{}``), 400 and 500 carry a
    declared ``{err, desc}`` body, anything else (including a 400/500 without
    that body) becomes ``BadStatus``.
    """

    status = response.status_code
    if status not in (200, 400, 500):
        return Err("BadStatus", "unexpected server status", status)

    text = response.text
    try:
        body: Any = json.loads(text) if text.strip() else {}
    except json.JSONDecodeError:
        LOG.warning("Failed to decode JSON body (status=%s): %r", status, text[:200])
        if status != 200:
            return Err("BadStatus", "unexpected server status", status)
        return Err("TransportError", "the server returned a malformed body", status)

    if status == 200:
        return Ok(body)

    if isinstance(body, dict) and "err" in body:
        return Err(str(body["err"]), str(body.get("desc", "")), status)
    return Err("BadStatus", "unexpected server status", status)


class SaveManagerClient:
    """Async client for a single save manager server."""

    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self._client is not None:
            return
        LOG.info("Connecting to save manager at %s", self._server_url)
        self._client = httpx.AsyncClient(
            base_url=self._server_url,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def stop(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        await client.aclose()

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise ApiClientError("Save manager client is not started. Call start() first.")
        return self._client

    @property
    def server_url(self) -> str:
        return self._server_url

    # ------------------------------------------------------------------
    # REST endpoints
    # ------------------------------------------------------------------
    async def fetch_status(self) -> Result:
        return await self._request("GET", "/api/status")

    async def fetch_schema(self) -> Result:
        return await self._request("GET", "/api/schema")

    async def list_versions(self) -> Result:
        return await self._request("GET", "/api/versions")

    async def list_saves(self) -> Result:
        result = await self._request("GET", "/api/saves")
        if isinstance(result, Ok) and isinstance(result.value, dict):
            # Older servers wrap the list in {"saves": [...]}.
            return Ok(result.value.get("saves", []))
        return result

    async def create_save(self, name: str, version: str, values: dict[str, Any]) -> Result:
        return await self._request(
            "POST",
            "/api/create_save",
            {"name": name, "version": version, "values": values},
        )

    async def modify_save(self, name: str, values: dict[str, Any]) -> Result:
        return await self._request("POST", "/api/modify_save", {"name": name, "values": values})

    async def delete_save(self, name: str) -> Result:
        return await self._request("POST", "/api/delete_save", {"name": name})

    async def start_save(self, name: str) -> Result:
        return await self._request("POST", "/api/start_save", {"name": name})

    async def stop_save(self, name: str) -> Result:
        return await self._request("POST", "/api/stop_save", {"name": name})

    async def send_command(self, name: str, command: str) -> Result:
        return await self._request("POST", "/api/command", {"name": name, "command": command})

    # ------------------------------------------------------------------
    # Console stream
    # ------------------------------------------------------------------
    def console_url(self, save_name: str, cursor: int) -> str:
        """Return the websocket address for ``save_name`` resuming at ``cursor``."""

        url = httpx.URL(self._server_url)
        scheme = "wss" if url.scheme == "https" else "ws"
        base = str(url.copy_with(scheme=scheme)).rstrip("/")
        return f"{base}/api/console/{cursor}/{quote(save_name, safe='')}"

    def open_console(self, save_name: str, cursor: int) -> Any:
        """Open the console stream; usable as ``async with`` yielding messages."""

        url = self.console_url(save_name, cursor)
        LOG.debug("Opening console stream %s", url)
        return websockets.connect(url, open_timeout=self._timeout, max_size=None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str, payload: Any = None) -> Result:
        client = self._require_client()
        LOG.debug("Sending %s %s", method, path)
        try:
            if payload is None:
                response = await client.request(method, path)
            else:
                response = await client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            LOG.warning("%s %s failed: %s", method, path, exc)
            return Err("TransportError", str(exc) or exc.__class__.__name__)

        result = normalize_response(response)
        if isinstance(result, Err):
            LOG.info("%s %s -> %s", method, path, result.describe())
        return result


def configure_logging(level: int = logging.INFO) -> None:
    """Configure basic logging to stderr for the console client."""

    if logging.getLogger().handlers:
        # Assume the application configured logging already.
        return

    logging.basicConfig(
        stream=sys.stderr,
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )
