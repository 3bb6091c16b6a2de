"""Mirror Python logging and stdout/stderr into the in-app log panel."""

from __future__ import annotations

import io
import logging
import sys
from collections import deque
from typing import TextIO

from textual.app import App
from textual.widgets import Log

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


class _PanelLogHandler(logging.Handler):
    """Logging handler that forwards records into the log panel."""

    def __init__(self, panel: LogPanelBridge) -> None:
        super().__init__()
        self._panel = panel

    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            message = self.format(record)
        except Exception:  # pragma: no cover
            self.handleError(record)
            return
        self._panel.submit(message)


class _StreamTap(io.TextIOBase):
    """Pass writes through to ``stream`` and copy complete lines to the panel."""

    def __init__(self, panel: LogPanelBridge, stream: TextIO | None, *, label: str) -> None:
        super().__init__()
        self._panel = panel
        self._stream = stream
        self._label = label
        self._buffer = ""

    def write(self, data: str) -> int:  # type: ignore[override]
        if not data:
            return 0
        if self._stream is not None:
            self._stream.write(data)

        self._buffer += data.replace("\r\n", "\n").replace("\r", "\n")
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._emit(line)
        return len(data)

    def flush(self) -> None:  # type: ignore[override]
        if self._stream is not None:
            self._stream.flush()
        if self._buffer:
            self._emit(self._buffer)
            self._buffer = ""

    @property
    def encoding(self) -> str:  # pragma: no cover - passthrough
        return getattr(self._stream, "encoding", None) or "utf-8"

    def _emit(self, line: str) -> None:
        if line:
            self._panel.submit(f"[{self._label}] {line}")


class LogPanelBridge:
    """Owns the handler and stream taps feeding a :class:`Log` widget.

    Lines produced before the widget exists are buffered and flushed once it
    is attached.
    """

    def __init__(self, app: App, *, max_buffer: int = 2000) -> None:
        self._app = app
        self._widget: Log | None = None
        self._buffer: deque[str] = deque(maxlen=max_buffer)
        self._handler: _PanelLogHandler | None = None
        self._original_stdout: TextIO | None = None
        self._original_stderr: TextIO | None = None
        self._stdout_tap: _StreamTap | None = None
        self._stderr_tap: _StreamTap | None = None

    def enable(self) -> None:
        logging.getLogger().setLevel(logging.DEBUG)
        if self._handler is None:
            handler = _PanelLogHandler(self)
            handler.setLevel(logging.DEBUG)
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logging.getLogger().addHandler(handler)
            self._handler = handler
        self._redirect_standard_streams()
        self._write("[dev] Log panel capturing logging + stdout/stderr")

    def disable(self) -> None:
        self._restore_standard_streams()
        if self._handler is not None:
            logging.getLogger().removeHandler(self._handler)
            self._handler = None

    def attach(self, widget: Log) -> None:
        self._widget = widget
        while self._buffer:
            widget.write_line(self._buffer.popleft())

    def submit(self, line: str) -> None:
        """Deliver ``line`` from any thread."""

        try:
            self._app.call_from_thread(self._write, line)
        except RuntimeError:
            # Already on the app's thread (or the app is not running yet).
            self._write(line)

    def _write(self, line: str) -> None:
        if not line:
            return
        if self._widget is None:
            self._buffer.append(line)
            return
        self._widget.write_line(line)

    def _redirect_standard_streams(self) -> None:
        if self._stdout_tap is not None or self._stderr_tap is not None:
            return
        self._original_stdout = sys.stdout
        self._original_stderr = sys.stderr
        self._stdout_tap = _StreamTap(self, self._original_stdout, label="stdout")
        self._stderr_tap = _StreamTap(self, self._original_stderr, label="stderr")
        sys.stdout = self._stdout_tap  # type: ignore[assignment]
        sys.stderr = self._stderr_tap  # type: ignore[assignment]

    def _restore_standard_streams(self) -> None:
        for tap in (self._stdout_tap, self._stderr_tap):
            if tap is not None:
                tap.flush()
        if self._original_stdout is not None:
            sys.stdout = self._original_stdout  # type: ignore[assignment]
            self._original_stdout = None
        if self._original_stderr is not None:
            sys.stderr = self._original_stderr  # type: ignore[assignment]
            self._original_stderr = None
        self._stdout_tap = None
        self._stderr_tap = None
