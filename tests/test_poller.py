from __future__ import annotations

import asyncio
import random

import pytest

from mc_console.poller import IDLE_SKIP_MAX, IDLE_SKIP_MIN, StatusPoller
from mc_console.result import Err, Ok, Result
from mc_console.state import SaveStatus, SessionState


class ScriptedFetcher:
    """Returns queued results, repeating the last one."""

    def __init__(self, *results: Result) -> None:
        self._results = list(results)
        self.calls = 0

    async def __call__(self) -> Result:
        self.calls += 1
        if len(self._results) > 1:
            return self._results.pop(0)
        return self._results[0]


@pytest.mark.asyncio()
async def test_idle_fleet_skips_between_five_and_nine_ticks(state: SessionState) -> None:
    fetcher = ScriptedFetcher(Ok({"world1": "offline", "creative": "online"}))
    poller = StatusPoller(state, fetcher, rng=random.Random(7))

    assert await poller.tick() is True
    skip = poller.skip_remaining
    assert IDLE_SKIP_MIN <= skip <= IDLE_SKIP_MAX

    for _ in range(skip):
        assert await poller.tick() is False
    assert await poller.tick() is True
    assert fetcher.calls == 2


@pytest.mark.asyncio()
async def test_transitional_save_polls_every_tick(state: SessionState) -> None:
    state.registry.set_status("world1", SaveStatus.LOADING)
    fetcher = ScriptedFetcher(
        Ok({"world1": "loading", "creative": "online"}),
        Ok({"world1": "loading", "creative": "online"}),
        Ok({"world1": "online", "creative": "online"}),
    )
    poller = StatusPoller(state, fetcher, rng=random.Random(1))

    assert [await poller.tick() for _ in range(3)] == [True, True, True]
    assert state.registry.get("world1").status is SaveStatus.ONLINE
    assert poller.skip_remaining >= IDLE_SKIP_MIN


@pytest.mark.asyncio()
async def test_transition_mid_skip_resets_cadence(state: SessionState) -> None:
    fetcher = ScriptedFetcher(Ok({"creative": "online"}))
    poller = StatusPoller(state, fetcher, rng=random.Random(3))
    await poller.tick()
    assert poller.skip_remaining > 0

    state.registry.set_status("creative", SaveStatus.SHUTDOWN)

    assert await poller.tick() is True


@pytest.mark.asyncio()
async def test_failed_fetch_leaves_registry_untouched(state: SessionState) -> None:
    poller = StatusPoller(state, ScriptedFetcher(Err("TransportError", "refused")))

    await poller.tick()

    assert state.registry.get("creative").status is SaveStatus.ONLINE
    assert poller.fetch_count == 1


@pytest.mark.asyncio()
async def test_raising_fetcher_does_not_escape(state: SessionState) -> None:
    async def explode() -> Result:
        raise RuntimeError("boom")

    poller = StatusPoller(state, explode)

    assert await poller.tick() is True
    assert state.registry.get("creative").status is SaveStatus.ONLINE


@pytest.mark.asyncio()
async def test_start_is_idempotent_and_stop_cancels(state: SessionState) -> None:
    fetcher = ScriptedFetcher(Ok({}))
    poller = StatusPoller(state, fetcher, interval=0.01)

    poller.start()
    poller.start()
    await asyncio.sleep(0.05)
    assert poller.running
    poller.stop()
    poller.stop()
    await asyncio.sleep(0)

    assert not poller.running
    assert fetcher.calls >= 1


@pytest.mark.asyncio()
async def test_restart_fetches_on_first_tick(state: SessionState) -> None:
    """Coming back to the save list refreshes statuses straight away."""

    fetcher = ScriptedFetcher(Ok({"world1": "offline", "creative": "online"}))
    poller = StatusPoller(state, fetcher, interval=60, rng=random.Random(5))
    await poller.tick()
    assert poller.skip_remaining > 0

    poller.start()
    assert poller.skip_remaining == 0
    poller.stop()
