"""Textual front-end for the save manager console."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.markup import escape
from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.css.query import NoMatches
from textual.widgets import (
    Button,
    ContentSwitcher,
    DataTable,
    Footer,
    Header,
    Input,
    Label,
    Log,
    OptionList,
    Static,
)
from textual.widgets.option_list import Option

from ..actions import SaveActions
from ..api_client import SaveManagerClient, configure_logging
from ..console_session import DEFAULT_RECONNECT_DELAY, ConsoleSession, open_session
from ..navigation import NavigationController
from ..poller import StatusPoller
from ..properties import PropertyValueError, Schema
from ..result import Err, Ok
from ..selection import ActionSet, SelectionManager
from ..state import ChangeKind, RegistryChange, SaveRecord, Screen, SessionState
from .log_panel import LogPanelBridge
from .widgets import ConsolePane, PropertyForm, SaveTable

LOG = logging.getLogger(__name__)


@dataclass(slots=True)
class AppConfig:
    server_url: str
    poll_interval: float = 1.0
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    request_timeout: float = 10.0
    show_log_panel: bool = False


class SaveConsoleApp(App[None]):
    """Main Textual application; also the screen host for the controller."""

    CSS = """
    Screen {
        layout: vertical;
        background: #0b0f0a;
    }

    #screens {
        height: 1fr;
        padding: 0 1;
    }

    #screens > Vertical {
        border: solid #2c3a22;
        background: #0e140c;
        padding: 0 1;
    }

    #saves-table {
        height: 1fr;
    }

    #create-form, #modify-form {
        height: 1fr;
    }

    .form-row {
        height: auto;
        margin-bottom: 1;
    }

    .form-row Label {
        width: 40;
        padding: 1 1 0 0;
    }

    .buttons {
        height: auto;
        margin-top: 1;
    }

    .buttons Button {
        margin-right: 1;
    }

    .error {
        color: #ff6b5b;
        height: auto;
    }

    #console-pane {
        height: 1fr;
    }

    #console-log {
        height: 1fr;
        border: solid #2c3a22;
        background: #050805;
    }

    #dev-log {
        height: 8;
        border: solid #2c3a22;
        margin: 0 1 1 1;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("escape", "back", "Back"),
        Binding("ctrl+n", "create", "New save"),
        Binding("ctrl+r", "refresh", "Refresh"),
        Binding("alt+right", "forward", "Forward", show=False),
    ]

    def __init__(self, config: AppConfig, *, api: SaveManagerClient | None = None) -> None:
        super().__init__()
        self._config = config
        self._api = api or SaveManagerClient(config.server_url, timeout=config.request_timeout)
        self._session_state = SessionState()
        self._save_selection = SelectionManager(self._session_state)
        self._status_poller = StatusPoller(
            self._session_state,
            self._api.fetch_status,
            interval=config.poll_interval,
        )
        self._nav = NavigationController(
            self._session_state,
            self._save_selection,
            self._status_poller,
            self._open_console,
            self,
        )
        self._save_actions = SaveActions(
            self._session_state,
            self._save_selection,
            self._nav,
            self._api,
            self,
            on_transition_requested=self._status_poller.reset_cadence,
        )
        self._schema: Schema | None = None
        self._create_version: str | None = None
        self._log_panel = LogPanelBridge(self)
        self._session_state.registry.subscribe(self._on_registry_change)
        self._save_selection.subscribe(self._on_selection_change)

    # ------------------------------------------------------------------
    # Textual lifecycle
    # ------------------------------------------------------------------
    def compose(self) -> ComposeResult:
        yield Header()
        with ContentSwitcher(initial=Screen.SAVES.value, id="screens"):
            with Vertical(id="saves"):
                yield Input(placeholder="Search saves", id="saves-search")
                yield SaveTable(id="saves-table")
                yield Static("", id="saves-error", classes="error")
                with Horizontal(classes="buttons"):
                    yield Button("Start", id="saves-play", disabled=True)
                    yield Button("Console", id="saves-console", disabled=True)
                    yield Button("New", id="saves-create", variant="primary")
                    yield Button("Modify", id="saves-modify", disabled=True)
                    yield Button("Delete", id="saves-delete", variant="error", disabled=True)
            with Vertical(id="create"):
                yield Input(placeholder="Save name", id="create-name")
                with Horizontal(classes="form-row"):
                    yield Label("Server version")
                    yield Button("Choose version...", id="create-version")
                yield PropertyForm(id="create-form")
                yield Static("", id="create-error", classes="error")
                with Horizontal(classes="buttons"):
                    yield Button("Create", id="create-confirm", variant="primary")
                    yield Button("Cancel", id="create-cancel")
            with Vertical(id="modify"):
                yield Static("", id="modify-title")
                yield PropertyForm(id="modify-form")
                yield Static("", id="modify-error", classes="error")
                with Horizontal(classes="buttons"):
                    yield Button("Save", id="modify-confirm", variant="primary")
                    yield Button("Cancel", id="modify-cancel")
            with Vertical(id="delete"):
                yield Static("", id="delete-message")
                yield Static("", id="delete-error", classes="error")
                with Horizontal(classes="buttons"):
                    yield Button("Delete", id="delete-confirm", variant="error")
                    yield Button("Cancel", id="delete-cancel")
            with Vertical(id="console"):
                yield ConsolePane(id="console-pane")
                with Horizontal(classes="buttons"):
                    yield Button("Back", id="console-back")
            with Vertical(id="version"):
                yield OptionList(id="version-list")
                yield Static("", id="version-error", classes="error")
                with Horizontal(classes="buttons"):
                    yield Button("Cancel", id="version-cancel")
        if self._config.show_log_panel:
            log_widget = Log(id="dev-log")
            log_widget.border_title = "Logs"
            yield log_widget
        yield Footer()

    async def on_mount(self) -> None:
        configure_logging()
        if self._config.show_log_panel:
            self._log_panel.enable()
        self.title = "mc-console"
        self.sub_title = self._api.server_url
        await self._api.start()
        self._nav.activate()
        self.run_worker(self._load_initial(), group="load")

    async def on_ready(self) -> None:
        if not self._config.show_log_panel:
            return
        try:
            self._log_panel.attach(self.query_one("#dev-log", Log))
        except NoMatches:
            pass

    async def on_unmount(self) -> None:
        self._nav.shutdown()
        await self._api.stop()
        if self._config.show_log_panel:
            self._log_panel.disable()

    async def _load_initial(self) -> None:
        schema = await self._save_actions.load_schema()
        if schema is not None:
            self._schema = schema
            self.query_one("#create-form", PropertyForm).set_properties(schema.for_create())
            self.query_one("#modify-form", PropertyForm).set_properties(schema.editable())
        await self._save_actions.refresh_saves()

    def _open_console(self, save_name: str) -> ConsoleSession:
        return open_session(
            save_name,
            self._api.open_console,
            send_command=self._api.send_command,
            reconnect_delay=self._config.reconnect_delay,
        )

    # ------------------------------------------------------------------
    # Screen host
    # ------------------------------------------------------------------
    def show_screen(self, screen: Screen) -> None:
        self.query_one("#screens", ContentSwitcher).current = screen.value
        try:
            self.query_one(f"#{screen.value}-error", Static).update("")
        except NoMatches:
            pass
        match screen:
            case Screen.SAVES:
                self.query_one("#saves-table", SaveTable).focus()
            case Screen.VERSION:
                self.run_worker(self._load_versions(), group="versions", exclusive=True)
            case Screen.CONSOLE:
                self.query_one("#console-input", Input).focus()

    def focus_name_input(self) -> None:
        self.query_one("#create-name", Input).focus()

    def populate_modify_form(self, record: SaveRecord) -> None:
        self.query_one("#modify-title", Static).update(f"Properties of [bold]{escape(record.name)}[/bold]")
        self.query_one("#modify-form", PropertyForm).load(record.metadata)

    def show_delete_message(self, message: str) -> None:
        self.query_one("#delete-message", Static).update(escape(message))

    def attach_console(self, session: ConsoleSession) -> None:
        pane = self.query_one("#console-pane", ConsolePane)
        pane.reset(session.save_name)
        session.transcript.subscribe(pane.write)

    def set_busy(self, screen: Screen, busy: bool) -> None:
        for button in self.query(f"#{screen.value} Button").results(Button):
            button.disabled = busy
        if not busy and screen is Screen.SAVES:
            self._apply_actions(self._save_selection.actions)

    def show_error(self, screen: Screen, error: Err) -> None:
        message = error.describe()
        try:
            self.query_one(f"#{screen.value}-error", Static).update(message)
        except NoMatches:
            pass
        self.notify(message, title="Request failed", severity="error")

    # ------------------------------------------------------------------
    # Registry / selection rendering
    # ------------------------------------------------------------------
    def _render_saves(self) -> None:
        visible = set(self._save_selection.visible_names())
        records = [r for r in self._session_state.registry.records() if r.name in visible]
        self.query_one("#saves-table", SaveTable).show(records, self._save_selection.current)

    def _on_registry_change(self, change: RegistryChange) -> None:
        if change.kind is ChangeKind.STATUS and change.record is not None:
            self.query_one("#saves-table", SaveTable).set_status(change.name, change.record.status)
        else:
            self._render_saves()

    def _on_selection_change(self, name: str | None, actions: ActionSet) -> None:
        self._apply_actions(actions)
        self.sub_title = name or self._api.server_url

    def _apply_actions(self, actions: ActionSet) -> None:
        play = self.query_one("#saves-play", Button)
        play.label = actions.play_caption
        play.disabled = not actions.play or self._save_actions.is_busy(Screen.SAVES)
        self.query_one("#saves-console", Button).disabled = not actions.console
        self.query_one("#saves-modify", Button).disabled = not actions.modify
        self.query_one("#saves-delete", Button).disabled = not actions.delete

    # ------------------------------------------------------------------
    # Actions / key bindings
    # ------------------------------------------------------------------
    def action_back(self) -> None:
        if self._nav.screen is Screen.SAVES:
            self._save_selection.deselect()
        else:
            self._nav.navigate_back()

    def action_forward(self) -> None:
        self._nav.navigate_forward()

    def action_create(self) -> None:
        self._nav.request_screen(Screen.CREATE)

    def action_refresh(self) -> None:
        self.run_worker(self._save_actions.refresh_saves(), group="load")

    # ------------------------------------------------------------------
    # Input handling
    # ------------------------------------------------------------------
    @on(DataTable.RowSelected, "#saves-table")
    def _on_save_row_selected(self, event: DataTable.RowSelected) -> None:
        if event.row_key.value is not None:
            self._save_selection.select(event.row_key.value)

    @on(Input.Changed, "#saves-search")
    def _on_search_changed(self, event: Input.Changed) -> None:
        self._save_selection.set_filter(event.value)
        self._render_saves()

    @on(Button.Pressed)
    def _on_button(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "saves-play":
                self.run_worker(self._save_actions.toggle_play(), group="actions")
            case "saves-console":
                self._nav.request_screen(Screen.CONSOLE)
            case "saves-create":
                self._nav.request_screen(Screen.CREATE)
            case "saves-modify":
                self._nav.request_screen(Screen.MODIFY)
            case "saves-delete":
                self._nav.request_screen(Screen.DELETE)
            case "create-version":
                self._nav.open_version_picker(self._on_version_chosen)
            case "create-confirm":
                self._submit_create()
            case "modify-confirm":
                self._submit_modify()
            case "delete-confirm":
                self.run_worker(self._save_actions.delete_save(), group="actions")
            case "version-cancel":
                self._nav.cancel_version()
            case "create-cancel" | "modify-cancel" | "delete-cancel" | "console-back":
                self._nav.request_screen(Screen.SAVES)

    @on(OptionList.OptionSelected, "#version-list")
    def _on_version_selected(self, event: OptionList.OptionSelected) -> None:
        self._nav.choose_version(event.option.id or str(event.option.prompt))

    @on(Input.Submitted, "#console-input")
    def _on_console_command(self, event: Input.Submitted) -> None:
        command = event.value.strip()
        if not command:
            return
        event.input.value = ""
        self.run_worker(self._send_console_command(command), group="console")

    async def _send_console_command(self, command: str) -> None:
        session = self._nav.console_session
        if session is None:
            return
        result = await session.send_command(command)
        if isinstance(result, Err):
            self.notify(result.describe(), title="Command failed", severity="error")

    def _on_version_chosen(self, version: str | None) -> None:
        if version is not None:
            self._create_version = version
            self.query_one("#create-version", Button).label = version
        self._nav.request_screen(Screen.CREATE)

    async def _load_versions(self) -> None:
        versions = await self._save_actions.load_versions()
        option_list = self.query_one("#version-list", OptionList)
        option_list.clear_options()
        option_list.add_options([Option(version, id=version) for version in versions])
        option_list.focus()

    def _validated_values(self, screen: Screen, form_id: str) -> dict | None:
        raw = self.query_one(form_id, PropertyForm).collect()
        if self._schema is None:
            return {}
        try:
            return self._schema.validate(raw)
        except PropertyValueError as exc:
            self.show_error(screen, Err("PropertyInvalid", str(exc)))
            return None

    def _submit_create(self) -> None:
        name_input = self.query_one("#create-name", Input)
        name = name_input.value.strip()
        if not name:
            self.show_error(Screen.CREATE, Err("InvalidName", "the save needs a name"))
            name_input.focus()
            return
        if self._create_version is None:
            self.show_error(Screen.CREATE, Err("VersionNotFound", "choose a server version"))
            return
        values = self._validated_values(Screen.CREATE, "#create-form")
        if values is None:
            return
        self.run_worker(self._create(name, self._create_version, values), group="actions")

    async def _create(self, name: str, version: str, values: dict) -> None:
        result = await self._save_actions.create_save(name, version, values)
        if isinstance(result, Ok):
            self.query_one("#create-name", Input).value = ""

    def _submit_modify(self) -> None:
        values = self._validated_values(Screen.MODIFY, "#modify-form")
        if values is None:
            return
        self.run_worker(self._save_actions.modify_save(values), group="actions")
