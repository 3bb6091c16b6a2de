"""Command-line entry point for launching the save manager console."""

from __future__ import annotations

import argparse
import sys

from . import __version__
from .api_client import SERVER_URL_ENV, resolve_server_url
from .console_session import DEFAULT_RECONNECT_DELAY
from .tui.app import AppConfig, SaveConsoleApp


def _positive_float(raw: str) -> float:
    try:
        value = float(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {raw!r}") from exc
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than zero: {raw!r}")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser for launching the TUI."""

    parser = argparse.ArgumentParser(
        prog="mc-console",
        description="Manage Minecraft server saves from the terminal",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mc-console {__version__}",
    )
    parser.add_argument(
        "--server",
        default=resolve_server_url(None),
        help=f"Base URL of the save manager (default: ${SERVER_URL_ENV} or http://127.0.0.1:1234)",
    )
    parser.add_argument(
        "--poll-interval",
        type=_positive_float,
        default=1.0,
        help="Seconds between status poll ticks (default: 1.0)",
    )
    parser.add_argument(
        "--reconnect-delay",
        type=_positive_float,
        default=DEFAULT_RECONNECT_DELAY,
        help=f"Seconds to wait before reconnecting a console stream (default: {DEFAULT_RECONNECT_DELAY})",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=10.0,
        help="HTTP request timeout in seconds (default: 10.0)",
    )
    parser.add_argument(
        "--dev-log-panel",
        action="store_true",
        help="Show the live developer log panel inside the TUI",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse CLI arguments and run the TUI."""

    args = build_parser().parse_args(argv)
    config = AppConfig(
        server_url=args.server.rstrip("/"),
        poll_interval=args.poll_interval,
        reconnect_delay=args.reconnect_delay,
        request_timeout=args.timeout,
        show_log_panel=args.dev_log_panel,
    )
    app = SaveConsoleApp(config)
    app.run()
    return 0


def run(argv: list[str] | None = None) -> None:
    """Execute the CLI and exit the current process."""

    sys.exit(main(argv))


if __name__ == "__main__":  # pragma: no cover
    run()
