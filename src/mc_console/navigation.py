"""Screen state machine for the console.

The controller owns the rules for entering each screen and for tearing
down what a screen started when it is left. It mirrors transitions into a
:class:`NavigationHistory` so that "back" behaves like closing the current
screen.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from .console_session import ConsoleSession
from .result import CancelToken, Err
from .selection import ActionSet, SelectionManager
from .state import SaveRecord, SaveStatus, Screen, SessionState

LOG = logging.getLogger(__name__)

VersionCallback = Callable[[str | None], None]
ConsoleOpener = Callable[[str], ConsoleSession]


class ScreenHost(Protocol):
    """Rendering/input layer driven by the controller and the save actions."""

    def show_screen(self, screen: Screen) -> None: ...

    def focus_name_input(self) -> None: ...

    def populate_modify_form(self, record: SaveRecord) -> None: ...

    def show_delete_message(self, message: str) -> None: ...

    def attach_console(self, session: ConsoleSession) -> None: ...

    def set_busy(self, screen: Screen, busy: bool) -> None: ...

    def show_error(self, screen: Screen, error: Err) -> None: ...


class Poller(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class NavigationHistory:
    """Browser-style history of screens; the root entry is ``None``."""

    def __init__(self) -> None:
        self._entries: list[Screen | None] = [None]
        self._index = 0

    @property
    def entries(self) -> list[Screen | None]:
        return list(self._entries[: self._index + 1])

    def push(self, screen: Screen) -> None:
        del self._entries[self._index + 1 :]
        self._entries.append(screen)
        self._index += 1

    def rewind(self) -> None:
        """Step back one entry without replaying it."""

        if self._index > 0:
            self._index -= 1

    def back(self) -> Screen | None:
        if self._index > 0:
            self._index -= 1
        return self._entries[self._index]

    def forward(self) -> Screen | None:
        if self._index + 1 < len(self._entries):
            self._index += 1
            return self._entries[self._index]
        return None


class NavigationController:
    """Finite state machine over :class:`Screen` values."""

    def __init__(
        self,
        state: SessionState,
        selection: SelectionManager,
        poller: Poller,
        open_console: ConsoleOpener,
        host: ScreenHost,
        *,
        history: NavigationHistory | None = None,
    ) -> None:
        self._state = state
        self._selection = selection
        self._poller = poller
        self._open_console = open_console
        self._host = host
        self.history = history or NavigationHistory()
        self._console: ConsoleSession | None = None
        self._version_callback: VersionCallback | None = None
        self._screen_token = CancelToken()
        selection.subscribe(self._on_selection_change)

    @property
    def screen(self) -> Screen:
        return self._state.screen

    @property
    def screen_token(self) -> CancelToken:
        """Token cancelled as soon as the current screen is left."""

        return self._screen_token

    @property
    def console_session(self) -> ConsoleSession | None:
        return self._console

    @property
    def has_version_callback(self) -> bool:
        return self._version_callback is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def activate(self) -> None:
        """Show the current screen and run its entry effects (app start-up)."""

        self._host.show_screen(self._state.screen)
        self._enter(self._state.screen)

    def shutdown(self) -> None:
        self._screen_token.cancel()
        self._close_console()
        self._poller.stop()
        self._version_callback = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def request_screen(self, screen: Screen, is_history_replay: bool = False) -> bool:
        """Move to ``screen`` if allowed; return whether a transition happened."""

        screen = Screen(screen)
        current = self._state.screen
        if screen == current:
            return False
        if screen is not Screen.VERSION:
            self._version_callback = None
        if not self._can_enter(screen):
            LOG.debug("Refused transition %s -> %s", current.value, screen.value)
            return False

        self._screen_token.cancel()
        self._screen_token = CancelToken()
        self._close_console()
        if current is Screen.SAVES:
            self._poller.stop()

        if not is_history_replay:
            if current is Screen.SAVES:
                self.history.push(screen)
            elif screen is Screen.SAVES:
                self.history.rewind()

        LOG.debug("Screen %s -> %s", current.value, screen.value)
        self._state.screen = screen
        self._host.show_screen(screen)
        self._enter(screen)
        return True

    def navigate_back(self) -> None:
        """Handle a history "back" gesture."""

        if self._state.screen is Screen.VERSION and self._version_callback is not None:
            self.cancel_version()
            return
        self._replay(self.history.back())

    def navigate_forward(self) -> None:
        entry = self.history.forward()
        if entry is not None:
            self._replay(entry)

    def _replay(self, entry: Screen | None) -> None:
        target = entry if entry is not None and self._can_enter(entry) else Screen.SAVES
        self.request_screen(target, is_history_replay=True)

    # ------------------------------------------------------------------
    # Version sub-screen
    # ------------------------------------------------------------------
    def open_version_picker(self, callback: VersionCallback) -> bool:
        previous = self._version_callback
        self._version_callback = callback
        if self._state.screen is Screen.VERSION:
            return True
        if not self.request_screen(Screen.VERSION):
            self._version_callback = previous
            return False
        return True

    def choose_version(self, version: str) -> None:
        self._fire_version_callback(version)

    def cancel_version(self) -> None:
        self._fire_version_callback(None)

    def _fire_version_callback(self, version: str | None) -> None:
        callback = self._version_callback
        self._version_callback = None
        if callback is None:
            return
        callback(version)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _can_enter(self, screen: Screen) -> bool:
        if screen in (Screen.MODIFY, Screen.DELETE):
            return self._state.selected_record() is not None
        if screen is Screen.CONSOLE:
            record = self._state.selected_record()
            return record is not None and record.status is not SaveStatus.OFFLINE
        return True

    def _enter(self, screen: Screen) -> None:
        match screen:
            case Screen.SAVES:
                self._poller.start()
            case Screen.CREATE:
                self._selection.deselect()
                self._host.focus_name_input()
            case Screen.MODIFY:
                record = self._state.selected_record()
                assert record is not None
                self._host.populate_modify_form(record)
            case Screen.DELETE:
                name = self._state.selected
                self._host.show_delete_message(
                    f'Delete the save "{name}"? Its world and all files will be removed.'
                )
            case Screen.CONSOLE:
                name = self._state.selected
                assert name is not None
                self._console = self._open_console(name)
                self._host.attach_console(self._console)
            case Screen.VERSION:
                pass

    def _close_console(self) -> None:
        session = self._console
        self._console = None
        if session is not None:
            session.close()

    def _on_selection_change(self, name: str | None, actions: ActionSet) -> None:
        # Screens that need a selection cannot outlive it.
        if name is None and self._state.screen in (Screen.MODIFY, Screen.DELETE, Screen.CONSOLE):
            self.request_screen(Screen.SAVES)
