from __future__ import annotations

from typing import Any

import pytest

from mc_console.result import Err
from mc_console.selection import SelectionManager
from mc_console.state import SaveRecord, SaveStatus, Screen, SessionState


class RecordingHost:
    """Screen host that records every call made by the controller."""

    def __init__(self) -> None:
        self.shown: list[Screen] = []
        self.focused_name = 0
        self.modify_forms: list[str] = []
        self.delete_messages: list[str] = []
        self.consoles: list[Any] = []
        self.busy: list[tuple[Screen, bool]] = []
        self.errors: list[tuple[Screen, Err]] = []

    def show_screen(self, screen: Screen) -> None:
        self.shown.append(screen)

    def focus_name_input(self) -> None:
        self.focused_name += 1

    def populate_modify_form(self, record: SaveRecord) -> None:
        self.modify_forms.append(record.name)

    def show_delete_message(self, message: str) -> None:
        self.delete_messages.append(message)

    def attach_console(self, session: Any) -> None:
        self.consoles.append(session)

    def set_busy(self, screen: Screen, busy: bool) -> None:
        self.busy.append((screen, busy))

    def show_error(self, screen: Screen, error: Err) -> None:
        self.errors.append((screen, error))


class FakePoller:
    def __init__(self) -> None:
        self.running = False
        self.starts = 0
        self.resets = 0

    def start(self) -> None:
        self.running = True
        self.starts += 1

    def stop(self) -> None:
        self.running = False

    def reset_cadence(self) -> None:
        self.resets += 1


class FakeSession:
    def __init__(self, save_name: str) -> None:
        self.save_name = save_name
        self.close_calls = 0

    def close(self) -> None:
        self.close_calls += 1


@pytest.fixture()
def state() -> SessionState:
    session_state = SessionState()
    session_state.registry.replace_all(
        [
            SaveRecord("world1", SaveStatus.OFFLINE, {"mc-manager-server-version": "1.20.4"}),
            SaveRecord("creative", SaveStatus.ONLINE),
        ]
    )
    return session_state


@pytest.fixture()
def selection(state: SessionState) -> SelectionManager:
    return SelectionManager(state)


@pytest.fixture()
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture()
def poller() -> FakePoller:
    return FakePoller()


@pytest.fixture()
def opened_sessions() -> list[FakeSession]:
    return []


@pytest.fixture()
def open_console(opened_sessions: list[FakeSession]):
    def _open(save_name: str) -> FakeSession:
        session = FakeSession(save_name)
        opened_sessions.append(session)
        return session

    return _open
