from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from mc_console.console_session import ConnectionState, ConsoleSession, Transcript
from mc_console.result import Ok, Result


class ScriptedStream:
    """One scripted connection: yields ``chunks`` then fails, ends or hangs."""

    def __init__(
        self,
        chunks: list[str | bytes],
        *,
        error: Exception | None = None,
        hang: bool = False,
    ) -> None:
        self._chunks = chunks
        self._error = error
        self._hang = hang

    async def __aenter__(self) -> ScriptedStream:
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error
        if self._hang:
            await asyncio.Event().wait()


class FakeConnector:
    def __init__(self, *streams: ScriptedStream) -> None:
        self._streams = list(streams)
        self.requests: list[tuple[str, int]] = []

    def __call__(self, save_name: str, cursor: int) -> ScriptedStream:
        self.requests.append((save_name, cursor))
        if self._streams:
            return self._streams.pop(0)
        return ScriptedStream([], hang=True)


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition not reached")


def test_transcript_continues_partial_lines() -> None:
    transcript = Transcript()
    emitted: list[str] = []
    transcript.subscribe(emitted.append)

    transcript.append("Starting")
    transcript.append(" server\r\nDone")

    assert transcript.lines == ["Starting server", "Done"]
    assert emitted == ["Starting", " server\nDone"]


@pytest.mark.asyncio()
async def test_reconnect_resumes_from_cursor_on_a_new_line() -> None:
    connector = FakeConnector(
        ScriptedStream(["A\nB"], error=ConnectionResetError("dropped")),
        ScriptedStream(["C"], hang=True),
    )
    session = ConsoleSession("world1", connector, reconnect_delay=0)
    session.start()

    await wait_until(lambda: session.transcript.lines == ["A", "B", "C"])

    assert connector.requests == [("world1", 0), ("world1", 3)]
    assert session.cursor == 4
    assert session.reconnects == 1
    assert session.state is ConnectionState.STREAMING
    session.close()
    await session.wait_closed()


@pytest.mark.asyncio()
async def test_end_of_stream_is_treated_as_a_disconnect() -> None:
    connector = FakeConnector(ScriptedStream(["hello\n"]), ScriptedStream(["again"], hang=True))
    session = ConsoleSession("world1", connector, reconnect_delay=0)
    session.start()

    await wait_until(lambda: len(connector.requests) == 2)

    assert connector.requests[1] == ("world1", 6)
    session.close()
    await session.wait_closed()


@pytest.mark.asyncio()
async def test_cursor_counts_bytes_and_decodes_split_utf8() -> None:
    connector = FakeConnector(ScriptedStream([b"caf\xc3", b"\xa9!"], hang=True))
    session = ConsoleSession("world1", connector, reconnect_delay=0)
    session.start()

    await wait_until(lambda: session.cursor == 6)

    assert session.transcript.text() == "café!"
    session.close()
    await session.wait_closed()


@pytest.mark.asyncio()
async def test_close_is_idempotent_and_cancels_pending_reconnect() -> None:
    connector = FakeConnector(ScriptedStream([], error=OSError("refused")))
    session = ConsoleSession("world1", connector, reconnect_delay=30)
    session.start()

    await wait_until(lambda: session.state is ConnectionState.RECONNECTING)
    session.close()
    session.close()
    await session.wait_closed()
    await asyncio.sleep(0.01)

    assert session.closed
    assert session.state is ConnectionState.CLOSED
    assert connector.requests == [("world1", 0)]


@pytest.mark.asyncio()
async def test_command_result_is_discarded_after_close() -> None:
    sent: list[tuple[str, str]] = []

    async def send(save_name: str, command: str) -> Result:
        sent.append((save_name, command))
        return Ok({})

    session = ConsoleSession("world1", FakeConnector(), send_command=send)

    assert await session.send_command("say hi") == Ok({})
    session.close()
    assert await session.send_command("stop") is None
    assert sent == [("world1", "say hi")]
