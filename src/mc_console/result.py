"""Explicit success/failure values returned by awaited operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying the decoded response value."""

    value: T


@dataclass(frozen=True, slots=True)
class Err:
    """Failed outcome.

    ``kind`` is the machine-readable error name (``"InvalidName"``,
    ``"BadStatus"``, ``"TransportError"``...), ``detail`` the human-readable
    description and ``status`` the HTTP status when one was received.
    """

    kind: str
    detail: str = ""
    status: int | None = None

    def describe(self) -> str:
        if self.detail:
            return f"{self.kind}: {self.detail}"
        return self.kind


Result = Union[Ok[Any], Err]


class CancelToken:
    """Flag checked by coroutines after each suspension point."""

    __slots__ = ("_cancelled",)

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled
