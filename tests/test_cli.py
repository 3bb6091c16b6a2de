from __future__ import annotations

import pytest

from mc_console import cli


def parse_cli_args(
    monkeypatch: pytest.MonkeyPatch,
    env_value: str | None,
    extra: list[str] | None = None,
):
    """Helper to construct parsed args with a controlled environment."""

    if env_value is None:
        monkeypatch.delenv("MC_CONSOLE_SERVER", raising=False)
    else:
        monkeypatch.setenv("MC_CONSOLE_SERVER", env_value)

    return cli.build_parser().parse_args(extra or [])


def test_server_default_is_local_when_env_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    """Without MC_CONSOLE_SERVER the console talks to the local default address."""

    args = parse_cli_args(monkeypatch, None)

    assert args.server == "http://127.0.0.1:1234"


def test_server_default_uses_env_when_set(monkeypatch: pytest.MonkeyPatch) -> None:
    """If MC_CONSOLE_SERVER is set, it becomes the default server URL."""

    args = parse_cli_args(monkeypatch, "http://saves.lan:8080/")

    assert args.server == "http://saves.lan:8080"


def test_timing_options_have_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    args = parse_cli_args(monkeypatch, None)

    assert args.poll_interval == 1.0
    assert args.reconnect_delay == 3.0
    assert args.timeout == 10.0
    assert args.dev_log_panel is False


def test_options_parse(monkeypatch: pytest.MonkeyPatch) -> None:
    """Explicit options override the defaults."""

    args = parse_cli_args(
        monkeypatch,
        None,
        ["--server", "https://remote", "--poll-interval", "0.5", "--dev-log-panel"],
    )

    assert args.server == "https://remote"
    assert args.poll_interval == 0.5
    assert args.dev_log_panel is True


def test_non_positive_interval_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    with pytest.raises(SystemExit):
        parse_cli_args(monkeypatch, None, ["--reconnect-delay", "0"])
