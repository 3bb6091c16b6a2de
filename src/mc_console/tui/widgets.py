"""UI widgets for the save manager Textual console."""

from __future__ import annotations

from typing import Any

from rich.markup import escape
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.widgets import DataTable, Input, Label, Log, Select, Static, Switch

from ..properties import (
    BooleanProperty,
    IntegerEnumProperty,
    IntegerProperty,
    Property,
    StringEnumProperty,
    TextProperty,
)
from ..state import SaveRecord, SaveStatus

STATUS_LABELS = {
    SaveStatus.OFFLINE: "[dim]offline[/]",
    SaveStatus.LOADING: "[yellow]loading[/]",
    SaveStatus.ONLINE: "[green]online[/]",
    SaveStatus.SHUTDOWN: "[red]shutting down[/]",
}


def describe_save(record: SaveRecord) -> tuple[str, str]:
    """Return the (created, version) columns shown for a save."""

    created = str(record.metadata.get("mc-manager-create-time") or "")[:16]
    version = str(record.metadata.get("mc-manager-server-version") or "")
    return created, version


class SaveTable(DataTable):
    """Table of saves keyed by save name."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(cursor_type="row", zebra_stripes=True, **kwargs)

    def on_mount(self) -> None:
        self.add_column("Name", key="name")
        self.add_column("Status", key="status")
        self.add_column("Created", key="created")
        self.add_column("Version", key="version")

    def show(self, records: list[SaveRecord], selected: str | None) -> None:
        """Replace the rows with ``records`` and keep ``selected`` under the cursor."""

        self.clear()
        for record in records:
            created, version = describe_save(record)
            self.add_row(
                record.name,
                STATUS_LABELS[record.status],
                created,
                version,
                key=record.name,
            )
        if selected is not None and selected in {r.name for r in records}:
            self.move_cursor(row=self.get_row_index(selected))

    def set_status(self, name: str, status: SaveStatus) -> None:
        if name in self.rows:
            self.update_cell(name, "status", STATUS_LABELS[status])


class PropertyForm(VerticalScroll):
    """Inputs for a list of save properties, one row per property."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._properties: list[Property] = []

    def _widget_id(self, prop: Property) -> str:
        return f"{self.id}-{prop.name}"

    def set_properties(self, properties: list[Property]) -> None:
        self.remove_children()
        self._properties = list(properties)
        for prop in self._properties:
            self.mount(Horizontal(Label(prop.label), self._build(prop), classes="form-row"))

    def _build(self, prop: Property) -> Any:
        widget_id = self._widget_id(prop)
        match prop:
            case BooleanProperty():
                return Switch(value=prop.default, id=widget_id)
            case IntegerEnumProperty() | StringEnumProperty():
                return Select(prop.options(), value=prop.default, allow_blank=False, id=widget_id)
            case IntegerProperty():
                return Input(str(prop.default), type="integer", id=widget_id)
            case TextProperty():
                return Input(prop.default, id=widget_id)

    def load(self, metadata: dict[str, Any]) -> None:
        """Fill every input from a save's current metadata."""

        for prop in self._properties:
            if prop.name not in metadata or metadata[prop.name] is None:
                continue
            value = metadata[prop.name]
            widget = self.query_one(f"#{self._widget_id(prop)}")
            match prop:
                case BooleanProperty():
                    widget.value = prop.parse(value)
                case IntegerEnumProperty() | StringEnumProperty():
                    widget.value = prop.parse(value)
                case _:
                    widget.value = prop.display(value)

    def collect(self) -> dict[str, Any]:
        """Return the raw value of every input, keyed by property name."""

        values: dict[str, Any] = {}
        for prop in self._properties:
            values[prop.name] = self.query_one(f"#{self._widget_id(prop)}").value
        return values


class ConsolePane(Vertical):
    """Live transcript of a save's console plus a command input."""

    def compose(self) -> ComposeResult:
        yield Static("", id="console-title")
        yield Log(id="console-log", highlight=False)
        yield Input(placeholder="command (prefix with / for server commands)", id="console-input")

    def reset(self, save_name: str) -> None:
        self.query_one("#console-title", Static).update(f"[bold]{escape(save_name)}[/bold] console")
        self.query_one("#console-log", Log).clear()

    def write(self, text: str) -> None:
        self.query_one("#console-log", Log).write(text)
