"""User-initiated save actions.

Each action marks its screen busy while the request is in flight, applies an
optimistic registry update when the server accepts it, and surfaces a
declared failure back to the screen that started it. Responses can arrive
after the user has moved on; registry effects are still applied, screen
effects only while the screen that started them has not been left since.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from .navigation import NavigationController, ScreenHost
from .properties import Schema
from .result import Err, Ok, Result
from .selection import SelectionManager
from .state import SaveRecord, SaveStatus, Screen, SessionState

LOG = logging.getLogger(__name__)


class SaveApi(Protocol):
    async def list_saves(self) -> Result: ...

    async def fetch_schema(self) -> Result: ...

    async def list_versions(self) -> Result: ...

    async def create_save(self, name: str, version: str, values: dict[str, Any]) -> Result: ...

    async def modify_save(self, name: str, values: dict[str, Any]) -> Result: ...

    async def delete_save(self, name: str) -> Result: ...

    async def start_save(self, name: str) -> Result: ...

    async def stop_save(self, name: str) -> Result: ...


class SaveActions:
    def __init__(
        self,
        state: SessionState,
        selection: SelectionManager,
        navigation: NavigationController,
        api: SaveApi,
        host: ScreenHost,
        *,
        on_transition_requested: Callable[[], None] | None = None,
    ) -> None:
        self._state = state
        self._selection = selection
        self._navigation = navigation
        self._api = api
        self._host = host
        self._on_transition_requested = on_transition_requested
        self._busy: set[Screen] = set()

    def is_busy(self, screen: Screen) -> bool:
        return screen in self._busy

    async def _guarded(self, screen: Screen, call: Callable[[], Awaitable[Result]]) -> Result | None:
        if screen in self._busy:
            LOG.debug("Ignoring action on %s while a request is in flight", screen.value)
            return None
        self._busy.add(screen)
        self._host.set_busy(screen, True)
        try:
            return await call()
        finally:
            self._busy.discard(screen)
            self._host.set_busy(screen, False)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def refresh_saves(self) -> Result:
        token = self._navigation.screen_token
        result = await self._api.list_saves()
        if isinstance(result, Ok) and not isinstance(result.value, list):
            LOG.warning("Ignoring malformed save list: %r", result.value)
            result = Err("BadPayload", "the server sent a malformed save list")
        match result:
            case Ok(value=saves):
                records = []
                for item in saves:
                    if not isinstance(item, dict) or "name" not in item:
                        LOG.warning("Skipping malformed save entry: %r", item)
                        continue
                    records.append(SaveRecord.from_json(item))
                self._state.registry.replace_all(records)
                LOG.info("Loaded %d saves", len(records))
            case Err() as error:
                LOG.warning("Could not list saves: %s", error.describe())
                if not token.cancelled:
                    self._host.show_error(Screen.SAVES, error)
        return result

    async def load_schema(self) -> Schema | None:
        result = await self._api.fetch_schema()
        if isinstance(result, Err):
            LOG.warning("Could not load property schema: %s", result.describe())
            return None
        if not isinstance(result.value, dict):
            LOG.warning("Ignoring malformed property schema: %r", result.value)
            return None
        return Schema.from_json(result.value)

    async def load_versions(self) -> list[str]:
        token = self._navigation.screen_token
        result = await self._api.list_versions()
        if isinstance(result, Ok) and not isinstance(result.value, list):
            LOG.warning("Ignoring malformed version list: %r", result.value)
            result = Err("BadPayload", "the server sent a malformed version list")
        if isinstance(result, Err):
            LOG.warning("Could not list versions: %s", result.describe())
            if not token.cancelled:
                self._host.show_error(Screen.VERSION, result)
            return []
        return [str(version) for version in result.value]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    async def create_save(self, name: str, version: str, values: dict[str, Any]) -> Result | None:
        token = self._navigation.screen_token
        result = await self._guarded(
            Screen.CREATE, lambda: self._api.create_save(name, version, values)
        )
        match result:
            case Ok(value=payload):
                if isinstance(payload, dict) and "name" in payload:
                    record = SaveRecord.from_json(payload)
                else:
                    record = SaveRecord(name=name)
                self._state.registry.upsert(record)
                LOG.info("Created save %s", record.name)
                if not token.cancelled:
                    self._navigation.request_screen(Screen.SAVES)
                    self._selection.select(record.name)
            case Err() as error:
                if not token.cancelled:
                    self._host.show_error(Screen.CREATE, error)
        return result

    async def modify_save(self, values: dict[str, Any]) -> Result | None:
        name = self._selection.current
        if name is None:
            return None
        token = self._navigation.screen_token
        result = await self._guarded(Screen.MODIFY, lambda: self._api.modify_save(name, values))
        match result:
            case Ok():
                self._state.registry.merge_metadata(name, values)
                LOG.info("Modified save %s", name)
                if not token.cancelled:
                    self._navigation.request_screen(Screen.SAVES)
            case Err() as error:
                if not token.cancelled:
                    self._host.show_error(Screen.MODIFY, error)
        return result

    async def delete_save(self) -> Result | None:
        name = self._selection.current
        if name is None:
            return None
        token = self._navigation.screen_token
        result = await self._guarded(Screen.DELETE, lambda: self._api.delete_save(name))
        match result:
            case Ok():
                # Removing the selected save deselects it, which closes the screen.
                self._state.registry.remove(name)
                LOG.info("Deleted save %s", name)
                if not token.cancelled:
                    self._navigation.request_screen(Screen.SAVES)
            case Err() as error:
                if not token.cancelled:
                    self._host.show_error(Screen.DELETE, error)
        return result

    async def toggle_play(self) -> Result | None:
        """Start the selected save if offline, stop it if online."""

        record = self._state.selected_record()
        if record is None:
            return None
        name = record.name
        match record.status:
            case SaveStatus.OFFLINE:
                request, optimistic = self._api.start_save, SaveStatus.LOADING
            case SaveStatus.ONLINE:
                request, optimistic = self._api.stop_save, SaveStatus.SHUTDOWN
            case _:
                LOG.debug("Save %s is %s; ignoring play toggle", name, record.status.value)
                return None

        token = self._navigation.screen_token
        result = await self._guarded(Screen.SAVES, lambda: request(name))
        match result:
            case Ok():
                self._state.registry.set_status(name, optimistic)
                if self._on_transition_requested is not None:
                    self._on_transition_requested()
            case Err() as error:
                if not token.cancelled:
                    self._host.show_error(Screen.SAVES, error)
        return result
