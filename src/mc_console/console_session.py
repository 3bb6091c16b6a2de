"""Resumable streaming connection to one save's live console.

The session tracks a byte cursor into the server's console buffer. After a
transport error it reconnects with the current cursor, so bytes already
shown are never requested again and nothing in between is skipped.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from enum import Enum

from .result import CancelToken, Result

LOG = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0

StreamConnector = Callable[[str, int], AbstractAsyncContextManager[AsyncIterator[str | bytes]]]
CommandSender = Callable[[str, str], Awaitable[Result]]
TranscriptListener = Callable[[str], None]


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    ERROR = "error"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class Transcript:
    """Append-only console text, kept as a list of lines."""

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._listeners: list[TranscriptListener] = []

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def text(self) -> str:
        return "\n".join(self._lines)

    def subscribe(self, listener: TranscriptListener) -> None:
        self._listeners.append(listener)

    def append(self, text: str) -> None:
        """Append ``text``: its first piece continues the current line and
        every later piece starts a new one."""

        pieces = text.replace("\r", "").split("\n")
        if not self._lines:
            self._lines.append("")
        self._lines[-1] += pieces[0]
        self._lines.extend(pieces[1:])
        self._emit("\n".join(pieces))

    def break_line(self) -> None:
        if self._lines and self._lines[-1]:
            self._lines.append("")
            self._emit("\n")

    def _emit(self, text: str) -> None:
        if not text:
            return
        for listener in list(self._listeners):
            listener(text)


class ConsoleSession:
    """Console stream for a single save; see :func:`open_session`."""

    def __init__(
        self,
        save_name: str,
        connect: StreamConnector,
        *,
        send_command: CommandSender | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        transcript: Transcript | None = None,
    ) -> None:
        self.save_name = save_name
        self.transcript = transcript or Transcript()
        self.reconnects = 0
        self._connect = connect
        self._send_command = send_command
        self._reconnect_delay = reconnect_delay
        self._cursor = 0
        self._state = ConnectionState.CONNECTING
        self._token = CancelToken()
        self._task: asyncio.Task[None] | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._resume_on_new_line = False

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._token.cancelled

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        if self._task is not None or self.closed:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"console-{self.save_name}"
        )

    def close(self) -> None:
        """Stop streaming and cancel any pending reconnect. Safe to repeat."""

        if self.closed:
            return
        LOG.debug("Closing console session for %s at byte %d", self.save_name, self._cursor)
        self._token.cancel()
        self._state = ConnectionState.CLOSED
        task = self._task
        if task is not None and not task.done():
            task.cancel()

    async def wait_closed(self) -> None:
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def send_command(self, command: str) -> Result | None:
        """Send ``command`` to the save; returns None if the session closed."""

        if self._send_command is None or self.closed:
            return None
        result = await self._send_command(self.save_name, command)
        if self.closed:
            LOG.debug("Discarding command result for closed console %s", self.save_name)
            return None
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _set_state(self, state: ConnectionState) -> None:
        if self.closed:
            return
        self._state = state

    async def _run(self) -> None:
        while not self.closed:
            self._set_state(ConnectionState.CONNECTING)
            try:
                async with self._connect(self.save_name, self._cursor) as stream:
                    if self.closed:
                        return
                    self._set_state(ConnectionState.STREAMING)
                    LOG.info("Console for %s streaming from byte %d", self.save_name, self._cursor)
                    async for chunk in stream:
                        if self.closed:
                            return
                        self._receive(chunk)
                LOG.info("Console stream for %s ended at byte %d", self.save_name, self._cursor)
            except Exception as exc:
                if self.closed:
                    return
                LOG.warning(
                    "Console stream for %s failed at byte %d: %s",
                    self.save_name,
                    self._cursor,
                    exc,
                )

            if self.closed:
                return
            self._set_state(ConnectionState.ERROR)
            self._resume_on_new_line = True
            self._set_state(ConnectionState.RECONNECTING)
            await asyncio.sleep(self._reconnect_delay)
            self.reconnects += 1

    def _receive(self, chunk: str | bytes) -> None:
        if isinstance(chunk, str):
            size = len(chunk.encode("utf-8"))
            text = chunk
        else:
            size = len(chunk)
            text = self._decoder.decode(chunk)
        self._cursor += size

        if self._resume_on_new_line:
            self._resume_on_new_line = False
            self.transcript.break_line()
        self.transcript.append(text)


def open_session(
    save_name: str,
    connect: StreamConnector,
    **kwargs,
) -> ConsoleSession:
    """Create a console session for ``save_name`` and start streaming from byte 0."""

    session = ConsoleSession(save_name, connect, **kwargs)
    session.start()
    return session
