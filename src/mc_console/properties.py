"""Typed save property descriptors parsed from the server schema.

Each property kind is its own frozen dataclass carrying its validation and
serialization rules. The server describes kinds by name (``boolean``,
``integer``, ``integer-enum``, ``string-enum``, ``string``); that string is
only looked at once, in :func:`parse_property`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

LOG = logging.getLogger(__name__)


class PropertyValueError(ValueError):
    """Raised when a raw input value is not valid for its property."""

    def __init__(self, prop: str, message: str) -> None:
        super().__init__(f"{prop}: {message}")
        self.prop = prop


@dataclass(frozen=True, slots=True)
class BooleanProperty:
    name: str
    label: str
    default: bool = False
    writable: bool = True
    desc: str = ""

    def parse(self, raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("true", "1", "yes", "on"):
            return True
        if text in ("false", "0", "no", "off"):
            return False
        raise PropertyValueError(self.name, f"expected a boolean, got {raw!r}")

    def display(self, value: Any) -> str:
        return "Yes" if self.parse(value) else "No"


@dataclass(frozen=True, slots=True)
class IntegerProperty:
    name: str
    label: str
    default: int = 0
    minimum: int | None = None
    maximum: int | None = None
    writable: bool = True
    desc: str = ""

    def parse(self, raw: Any) -> int:
        if isinstance(raw, bool):
            raise PropertyValueError(self.name, "expected an integer")
        if isinstance(raw, int):
            number = raw
        else:
            text = str(raw).strip()
            try:
                number = int(text)
            except ValueError:
                raise PropertyValueError(self.name, f"expected an integer, got {raw!r}") from None
        if self.minimum is not None and number < self.minimum:
            raise PropertyValueError(self.name, f"must be at least {self.minimum}")
        if self.maximum is not None and number > self.maximum:
            raise PropertyValueError(self.name, f"must be at most {self.maximum}")
        return number

    def display(self, value: Any) -> str:
        return str(value)


@dataclass(frozen=True, slots=True)
class IntegerEnumProperty:
    """Enum whose value is the index of the chosen label."""

    name: str
    label: str
    members: tuple[str, ...] = ()
    default: int = 0
    writable: bool = True
    desc: str = ""

    def parse(self, raw: Any) -> int:
        try:
            index = int(raw)
        except (TypeError, ValueError):
            raise PropertyValueError(self.name, f"expected a member index, got {raw!r}") from None
        if not 0 <= index < len(self.members):
            raise PropertyValueError(self.name, f"index {index} out of range")
        return index

    def display(self, value: Any) -> str:
        return self.members[self.parse(value)]

    def options(self) -> list[tuple[str, int]]:
        return [(label, index) for index, label in enumerate(self.members)]


@dataclass(frozen=True, slots=True)
class StringEnumProperty:
    """Enum of ``(value, label)`` pairs; the value is what gets stored."""

    name: str
    label: str
    members: tuple[tuple[str, str], ...] = ()
    default: str = ""
    writable: bool = True
    desc: str = ""

    def parse(self, raw: Any) -> str:
        text = str(raw)
        if any(value == text for value, _ in self.members):
            return text
        raise PropertyValueError(self.name, f"{raw!r} is not one of the allowed values")

    def display(self, value: Any) -> str:
        for member, label in self.members:
            if member == value:
                return label
        return str(value)

    def options(self) -> list[tuple[str, str]]:
        return [(label, value) for value, label in self.members]


@dataclass(frozen=True, slots=True)
class TextProperty:
    name: str
    label: str
    default: str = ""
    writable: bool = True
    desc: str = ""

    def parse(self, raw: Any) -> str:
        if raw is None:
            return ""
        return str(raw).strip()

    def display(self, value: Any) -> str:
        return "" if value is None else str(value)


Property = Union[
    BooleanProperty,
    IntegerProperty,
    IntegerEnumProperty,
    StringEnumProperty,
    TextProperty,
]


def parse_property(name: str, spec: dict[str, Any]) -> Property:
    """Build a property descriptor from one schema entry."""

    kind = spec.get("type") or {}
    label = str(spec.get("label") or name)
    desc = str(spec.get("desc") or "")
    writable = spec.get("access", "write") == "write"

    match kind.get("name"):
        case "boolean":
            return BooleanProperty(name, label, bool(kind.get("default", False)), writable, desc)
        case "integer":
            return IntegerProperty(
                name,
                label,
                int(kind.get("default", 0)),
                kind.get("min"),
                kind.get("max"),
                writable,
                desc,
            )
        case "integer-enum":
            members = tuple(str(member) for member in kind.get("members", ()))
            return IntegerEnumProperty(
                name, label, members, int(kind.get("default", 0)), writable, desc
            )
        case "string-enum":
            pairs = tuple((str(value), str(text)) for value, text in kind.get("members", ()))
            default = kind.get("default", 0)
            # The server sends the index of the default pair.
            if isinstance(default, int) and 0 <= default < len(pairs):
                default_value = pairs[default][0]
            else:
                default_value = str(default)
            return StringEnumProperty(name, label, pairs, default_value, writable, desc)
        case _:
            return TextProperty(name, label, str(kind.get("default", "")), writable, desc)


@dataclass(slots=True)
class Schema:
    """All known properties plus the subset offered when creating a save."""

    properties: dict[str, Property] = field(default_factory=dict)
    create_properties: list[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> Schema:
        raw = payload.get("schema")
        if not isinstance(raw, dict):
            raw = {}
        properties: dict[str, Property] = {}
        for name, spec in raw.items():
            try:
                properties[name] = parse_property(name, spec)
            except (AttributeError, TypeError, ValueError) as exc:
                LOG.warning("Skipping malformed property %s: %s", name, exc)
        create = [
            name
            for name in payload.get("create_properties") or []
            if isinstance(name, str) and name in properties
        ]
        return cls(properties=properties, create_properties=create)

    def editable(self) -> list[Property]:
        return [prop for prop in self.properties.values() if prop.writable]

    def for_create(self) -> list[Property]:
        return [self.properties[name] for name in self.create_properties]

    def validate(self, raw_values: dict[str, Any]) -> dict[str, Any]:
        """Validate raw form values and return the typed value map.

        Unknown and read-only properties are rejected.
        """

        values: dict[str, Any] = {}
        for name, raw in raw_values.items():
            prop = self.properties.get(name)
            if prop is None:
                raise PropertyValueError(name, "unknown property")
            if not prop.writable:
                raise PropertyValueError(name, "property is read-only")
            values[name] = prop.parse(raw)
        return values
