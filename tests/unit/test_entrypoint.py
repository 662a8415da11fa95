from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI

from pagebot import entrypoint
from pagebot.core.config import ConfigSnapshot


class StubRunner:
    def __init__(self, exc: BaseException | None = None) -> None:
        self.calls: list[tuple[Any, dict[str, Any]]] = []
        self.exc = exc

    def __call__(self, app, **kwargs: Any) -> None:
        self.calls.append((app, kwargs))
        if self.exc is not None:
            raise self.exc


def _snapshot(**server: Any) -> ConfigSnapshot:
    return ConfigSnapshot.from_mapping({"server": server})


def test_resolve_bind_uses_settings() -> None:
    assert entrypoint.resolve_bind(_snapshot(host="127.0.0.1", port=8080), {}) == ("127.0.0.1", 8080)


def test_resolve_bind_prefers_port_env() -> None:
    assert entrypoint.resolve_bind(_snapshot(port=8080), {"PORT": "5000"}) == ("0.0.0.0", 5000)


@pytest.mark.parametrize("value", ["eighty", "0", "70000", "-1"])
def test_resolve_bind_ignores_invalid_port_env(value: str, caplog) -> None:
    assert entrypoint.resolve_bind(_snapshot(port=8080), {"PORT": value}) == ("0.0.0.0", 8080)
    assert "Ignoring" in caplog.text


def test_main_runs_app_with_resolved_bind(restore_root_logger, settings_path: Path, ready_store) -> None:
    runner = StubRunner()

    code = entrypoint.main(
        ["--settings", str(settings_path)], runner=runner, environ={"PORT": "4321"}, env={}
    )

    assert code == 0
    app, kwargs = runner.calls[0]
    assert isinstance(app, FastAPI)
    assert kwargs == {"host": "0.0.0.0", "port": 4321, "log_level": "info"}
    assert app.state.store.path == settings_path


def test_cli_flags_override_environment(restore_root_logger, settings_path: Path, ready_store) -> None:
    runner = StubRunner()

    entrypoint.main(
        [
            "--settings",
            str(settings_path),
            "--host",
            "127.0.0.1",
            "--port",
            "9000",
            "--log-level",
            "warn",
        ],
        runner=runner,
        environ={"PORT": "4321"},
        env={},
    )

    _app, kwargs = runner.calls[0]
    assert kwargs == {"host": "127.0.0.1", "port": 9000, "log_level": "warning"}


def test_settings_path_from_environment(
    restore_root_logger, settings_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("PAGEBOT_SETTINGS_PATH", str(settings_path))
    monkeypatch.setenv("PAGEBOT_LOG_LEVEL", "debug")
    runner = StubRunner()

    code = entrypoint.main([], runner=runner, environ={}, env=entrypoint.load_environment())

    assert code == 0
    app, kwargs = runner.calls[0]
    assert app.state.store.path == settings_path
    assert kwargs["log_level"] == "debug"
    assert settings_path.exists()


def test_runner_failure_returns_one(restore_root_logger, settings_path: Path, caplog) -> None:
    runner = StubRunner(OSError("address already in use"))

    code = entrypoint.main(["--settings", str(settings_path)], runner=runner, environ={}, env={})

    assert code == 1
    assert "Failed to start server." in caplog.text


def test_keyboard_interrupt_is_a_clean_exit(restore_root_logger, settings_path: Path) -> None:
    runner = StubRunner(KeyboardInterrupt())

    assert entrypoint.main(["--settings", str(settings_path)], runner=runner, environ={}, env={}) == 0
