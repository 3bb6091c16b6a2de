"""In-memory save registry and the shared session state of the console."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

LOG = logging.getLogger(__name__)


class SaveStatus(str, Enum):
    """Run state of a save as reported by the server."""

    OFFLINE = "offline"
    LOADING = "loading"
    ONLINE = "online"
    SHUTDOWN = "shutdown"

    @classmethod
    def parse(cls, value: Any) -> SaveStatus:
        """Return the status for ``value``; unknown or missing means offline."""

        if isinstance(value, SaveStatus):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.OFFLINE

    @property
    def transitional(self) -> bool:
        return self in (SaveStatus.LOADING, SaveStatus.SHUTDOWN)


class Screen(str, Enum):
    SAVES = "saves"
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    CONSOLE = "console"
    VERSION = "version"


@dataclass(slots=True)
class SaveRecord:
    """One save known to the console."""

    name: str
    status: SaveStatus = SaveStatus.OFFLINE
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: Mapping[str, Any]) -> SaveRecord:
        metadata = {k: v for k, v in payload.items() if k not in ("name", "status")}
        return cls(
            name=str(payload["name"]),
            status=SaveStatus.parse(payload.get("status")),
            metadata=metadata,
        )


class ChangeKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    STATUS = "status"
    METADATA = "metadata"


@dataclass(frozen=True, slots=True)
class RegistryChange:
    kind: ChangeKind
    name: str
    record: SaveRecord | None = None
    previous_status: SaveStatus | None = None


RegistryListener = Callable[[RegistryChange], None]


class SaveRegistry:
    """Authoritative mapping of save name to record.

    Listeners are notified only for mutations that actually change
    something, so applying the same update twice is silent the second time.
    """

    def __init__(self) -> None:
        self._saves: dict[str, SaveRecord] = {}
        self._listeners: list[RegistryListener] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get(self, name: str) -> SaveRecord | None:
        return self._saves.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._saves

    def records(self) -> list[SaveRecord]:
        return list(self._saves.values())

    def names(self) -> list[str]:
        return list(self._saves)

    def has_transitional(self) -> bool:
        return any(record.status.transitional for record in self._saves.values())

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    def _notify(self, change: RegistryChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def upsert(self, record: SaveRecord) -> None:
        existing = self._saves.get(record.name)
        if existing is None:
            self._saves[record.name] = record
            self._notify(RegistryChange(ChangeKind.ADDED, record.name, record))
            return
        self.merge_metadata(record.name, record.metadata)
        self.set_status(record.name, record.status)

    def remove(self, name: str) -> None:
        record = self._saves.pop(name, None)
        if record is not None:
            self._notify(RegistryChange(ChangeKind.REMOVED, name, record))

    def replace_all(self, records: Iterable[SaveRecord]) -> None:
        incoming = {record.name: record for record in records}
        for name in [n for n in self._saves if n not in incoming]:
            self.remove(name)
        for record in incoming.values():
            self.upsert(record)

    def set_status(self, name: str, status: SaveStatus) -> bool:
        record = self._saves.get(name)
        if record is None or record.status == status:
            return False
        previous = record.status
        record.status = status
        LOG.debug("Save %s: %s -> %s", name, previous.value, status.value)
        self._notify(RegistryChange(ChangeKind.STATUS, name, record, previous))
        return True

    def merge_metadata(self, name: str, values: Mapping[str, Any]) -> bool:
        record = self._saves.get(name)
        if record is None:
            return False
        changed = {k: v for k, v in values.items() if record.metadata.get(k, object()) != v}
        if not changed:
            return False
        record.metadata.update(changed)
        self._notify(RegistryChange(ChangeKind.METADATA, name, record))
        return True

    def reconcile(self, statuses: Mapping[str, Any]) -> list[str]:
        """Apply a fleet-wide status map and return the names that changed.

        Saves missing from ``statuses`` are considered offline; names in the
        map that are not in the registry are ignored.
        """

        changed: list[str] = []
        for name in list(self._saves):
            status = SaveStatus.parse(statuses.get(name))
            if self.set_status(name, status):
                changed.append(name)
        return changed


@dataclass(slots=True)
class SessionState:
    """Single owned state object shared by the console components."""

    registry: SaveRegistry = field(default_factory=SaveRegistry)
    selected: str | None = None
    filter_text: str = ""
    screen: Screen = Screen.SAVES

    def matches_filter(self, name: str) -> bool:
        needle = self.filter_text.strip().casefold()
        return not needle or needle in name.casefold()

    def selected_record(self) -> SaveRecord | None:
        if self.selected is None:
            return None
        return self.registry.get(self.selected)
