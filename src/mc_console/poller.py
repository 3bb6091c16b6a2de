"""Adaptive fleet status polling."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any

from .result import Err, Result
from .state import SessionState

LOG = logging.getLogger(__name__)

# Extra ticks skipped after a fetch while nothing is starting or stopping.
IDLE_SKIP_MIN = 5
IDLE_SKIP_MAX = 9

StatusFetcher = Callable[[], Awaitable[Result]]


class StatusPoller:
    """Fetch ``name -> status`` once per tick and reconcile it into the registry.

    While a save is loading or shutting down every tick fetches; at rest the
    poller skips a random 5-9 ticks after each fetch.
    """

    def __init__(
        self,
        state: SessionState,
        fetch_status: StatusFetcher,
        *,
        interval: float = 1.0,
        rng: random.Random | None = None,
    ) -> None:
        self._state = state
        self._fetch_status = fetch_status
        self._interval = interval
        self._rng = rng or random.Random()
        self._skip = 0
        self._task: asyncio.Task[None] | None = None
        self.fetch_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def skip_remaining(self) -> int:
        return self._skip

    def start(self) -> None:
        if self.running:
            return
        self._skip = 0
        LOG.debug("Status poller started (interval=%.2fs)", self._interval)
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="status-poller"
        )

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            LOG.debug("Status poller stopped")
            task.cancel()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------
    async def _run(self) -> None:
        while True:
            await self.tick()
            await asyncio.sleep(self._interval)

    async def tick(self) -> bool:
        """Run one scheduling step; return True if a fetch happened."""

        if self._state.registry.has_transitional():
            self._skip = 0
        if self._skip > 0:
            self._skip -= 1
            return False

        await self._poll_once()
        if not self._state.registry.has_transitional():
            self._skip = self._rng.randint(IDLE_SKIP_MIN, IDLE_SKIP_MAX)
        return True

    def reset_cadence(self) -> None:
        """Make the next tick fetch, e.g. right after a start/stop request."""

        self._skip = 0

    async def _poll_once(self) -> None:
        self.fetch_count += 1
        try:
            result = await self._fetch_status()
        except Exception:
            # A fetcher should return Err, but a poll miss must never kill the loop.
            LOG.exception("Status fetch raised")
            return

        if isinstance(result, Err):
            LOG.warning("Status fetch failed: %s", result.describe())
            return

        statuses: Any = result.value
        if not isinstance(statuses, dict):
            LOG.warning("Ignoring malformed status payload: %r", statuses)
            return

        changed = self._state.registry.reconcile(statuses)
        if changed:
            LOG.info("Status changed for %s", ", ".join(changed))
