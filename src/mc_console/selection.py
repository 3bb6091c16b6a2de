"""Selection tracking and the status-dependent set of enabled actions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .state import ChangeKind, RegistryChange, SaveStatus, SessionState

LOG = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ActionSet:
    """Which save actions are currently available."""

    play: bool = False
    console: bool = False
    modify: bool = False
    delete: bool = False
    play_caption: str = "Start"

    @classmethod
    def for_status(cls, status: SaveStatus | None) -> ActionSet:
        match status:
            case None:
                return cls()
            case SaveStatus.OFFLINE:
                return cls(play=True, modify=True, delete=True, play_caption="Start")
            case SaveStatus.ONLINE:
                return cls(play=True, console=True, play_caption="Stop")
            case _:
                # Transitional states forbid configuration changes and
                # re-triggering the transition in flight.
                return cls(console=True, play_caption="Stop")


SelectionListener = Callable[[str | None, ActionSet], None]


class SelectionManager:
    """Keeps ``state.selected`` consistent with the registry and filter."""

    def __init__(self, state: SessionState) -> None:
        self._state = state
        self._listeners: list[SelectionListener] = []
        self._actions = ActionSet()
        state.registry.subscribe(self._on_registry_change)

    @property
    def current(self) -> str | None:
        return self._state.selected

    @property
    def actions(self) -> ActionSet:
        return self._actions

    def subscribe(self, listener: SelectionListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    def select(self, name: str) -> None:
        if name not in self._state.registry or not self._state.matches_filter(name):
            self.deselect()
            return
        if self._state.selected != name:
            LOG.debug("Selected save %s", name)
        self._state.selected = name
        # Re-selecting the same save still refreshes the affordances.
        self._recompute()

    def deselect(self) -> None:
        if self._state.selected is None and self._actions == ActionSet():
            return
        LOG.debug("Deselected save %s", self._state.selected)
        self._state.selected = None
        self._recompute()

    def set_filter(self, text: str) -> None:
        self._state.filter_text = text
        selected = self._state.selected
        if selected is not None and not self._state.matches_filter(selected):
            self.deselect()

    def visible_names(self) -> list[str]:
        return [n for n in self._state.registry.names() if self._state.matches_filter(n)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _recompute(self) -> None:
        record = self._state.selected_record()
        self._actions = ActionSet.for_status(record.status if record else None)
        for listener in list(self._listeners):
            listener(self._state.selected, self._actions)

    def _on_registry_change(self, change: RegistryChange) -> None:
        if change.name != self._state.selected:
            return
        if change.kind is ChangeKind.REMOVED:
            self.deselect()
        elif change.kind is ChangeKind.STATUS:
            self._recompute()
