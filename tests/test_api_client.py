from __future__ import annotations

import json

import httpx
import pytest

from mc_console.api_client import (
    ApiClientError,
    SaveManagerClient,
    normalize_response,
    resolve_server_url,
)
from mc_console.result import Err, Ok


def make_client(handler) -> SaveManagerClient:
    return SaveManagerClient("http://saves.test:1234/", transport=httpx.MockTransport(handler))


def test_normalize_response_maps_statuses() -> None:
    assert normalize_response(httpx.Response(200, text="")) == Ok({})
    assert normalize_response(httpx.Response(200, json=[1, 2])) == Ok([1, 2])
    assert normalize_response(
        httpx.Response(400, json={"err": "InvalidName", "desc": "bad name"})
    ) == Err("InvalidName", "bad name", 400)
    assert normalize_response(httpx.Response(404, text="nope")).kind == "BadStatus"
    assert normalize_response(httpx.Response(200, text="{oops")).kind == "TransportError"


def test_resolve_server_url_prefers_explicit_then_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MC_CONSOLE_SERVER", raising=False)
    assert resolve_server_url(None) == "http://127.0.0.1:1234"

    monkeypatch.setenv("MC_CONSOLE_SERVER", "http://env.example:9000/")
    assert resolve_server_url(None) == "http://env.example:9000"
    assert resolve_server_url("https://cli.example") == "https://cli.example"


@pytest.mark.asyncio()
async def test_requests_before_start_raise() -> None:
    client = make_client(lambda request: httpx.Response(200))

    with pytest.raises(ApiClientError):
        await client.fetch_status()


@pytest.mark.asyncio()
async def test_list_saves_unwraps_legacy_envelope() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/saves"
        return httpx.Response(200, json={"saves": [{"name": "world1", "status": "online"}]})

    client = make_client(handler)
    await client.start()
    try:
        result = await client.list_saves()
    finally:
        await client.stop()

    assert result == Ok([{"name": "world1", "status": "online"}])


@pytest.mark.asyncio()
async def test_create_save_posts_json_body() -> None:
    seen: list[tuple[str, str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"name": "fresh"})

    client = make_client(handler)
    await client.start()
    try:
        result = await client.create_save("fresh", "1.20.4", {"pvp": True})
    finally:
        await client.stop()

    assert result == Ok({"name": "fresh"})
    assert seen == [
        ("POST", "/api/create_save", {"name": "fresh", "version": "1.20.4", "values": {"pvp": True}})
    ]


@pytest.mark.asyncio()
async def test_declared_failure_is_returned_as_err() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"err": "IOError", "desc": "disk full"})

    client = make_client(handler)
    await client.start()
    try:
        result = await client.delete_save("world1")
    finally:
        await client.stop()

    assert result == Err("IOError", "disk full", 500)
    assert result.describe() == "IOError: disk full"


@pytest.mark.asyncio()
async def test_transport_failure_is_folded_into_err() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)
    await client.start()
    try:
        result = await client.send_command("world1", "say hi")
    finally:
        await client.stop()

    assert isinstance(result, Err)
    assert result.kind == "TransportError"
    assert result.status is None


def test_console_url_uses_websocket_scheme_and_quotes_name() -> None:
    plain = SaveManagerClient("http://saves.test:1234")
    secure = SaveManagerClient("https://saves.test")

    assert plain.console_url("my world", 42) == "ws://saves.test:1234/api/console/42/my%20world"
    assert secure.console_url("w/1", 0) == "wss://saves.test/api/console/0/w%2F1"


def test_undeclared_failure_bodies_become_bad_status() -> None:
    assert normalize_response(httpx.Response(500, text="<html>oops</html>")) == Err(
        "BadStatus", "unexpected server status", 500
    )
    assert normalize_response(httpx.Response(400, json=["nope"])).kind == "BadStatus"
    assert normalize_response(httpx.Response(400, text="")).kind == "BadStatus"
