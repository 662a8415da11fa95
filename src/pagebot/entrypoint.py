"""
CLI entrypoint that hosts the webhook app under uvicorn.

Process-level knobs come from ``PAGEBOT_*`` environment variables (or a
``.env`` file) through Dynaconf; the user-editable settings live in the JSON
store. A ``PORT`` variable set by the hosting platform wins over the
configured ``server.port``.
"""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import uvicorn
from dynaconf import Dynaconf

from .app import create_app
from .core.config import DEFAULT_SETTINGS_PATH, ConfigSnapshot, ConfigStore
from .logging_setup import configure_logging

LOGGER = logging.getLogger(__name__)
ENVVAR_PREFIX = "PAGEBOT"


def load_environment(**overrides: Any) -> Dynaconf:
    """Read ``PAGEBOT_*`` variables (and ``.env``) into a settings object."""
    return Dynaconf(envvar_prefix=ENVVAR_PREFIX, load_dotenv=True, environments=False, **overrides)


def resolve_bind(snapshot: ConfigSnapshot, environ: Mapping[str, str]) -> tuple[str, int]:
    """Pick host and port; a valid ``PORT`` environment variable wins."""
    host = snapshot.server.host or "0.0.0.0"
    port = snapshot.server.port
    env_port = environ.get("PORT")
    if env_port:
        try:
            candidate = int(env_port)
        except ValueError:
            LOGGER.warning("Ignoring invalid PORT value %r; using %d.", env_port, port)
        else:
            if 0 < candidate < 65536:
                port = candidate
            else:
                LOGGER.warning("Ignoring out-of-range PORT value %d; using %d.", candidate, port)
    return host, port


_UVICORN_LEVELS = ("critical", "error", "warning", "info", "debug", "trace")


def _uvicorn_log_level(name: str | None) -> str:
    level = (name or "info").lower()
    if level == "warn":
        return "warning"
    return level if level in _UVICORN_LEVELS else "info"


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Messenger page webhook service.")
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help=f"Path to the JSON settings file (default: {DEFAULT_SETTINGS_PATH}).",
    )
    parser.add_argument("--host", default=None, help="Bind address (overrides server.host).")
    parser.add_argument(
        "--port", type=int, default=None, help="Bind port (overrides PORT and server.port)."
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: logging.level from settings).",
    )
    parser.add_argument(
        "--dashboard-dir",
        type=Path,
        default=None,
        help="Directory with static dashboard assets served under /dashboard.",
    )
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: Callable[..., Any] | None = None,
    environ: Mapping[str, str] | None = None,
    env: Dynaconf | None = None,
) -> int:
    args = parse_args(argv)
    environ = os.environ if environ is None else environ
    env = env if env is not None else load_environment()
    runner = runner or uvicorn.run

    settings_path = args.settings or Path(env.get("SETTINGS_PATH", str(DEFAULT_SETTINGS_PATH)))
    store = ConfigStore(settings_path)
    snapshot = store.snapshot()
    log_level = args.log_level or env.get("LOG_LEVEL")
    configure_logging(log_level, settings=snapshot.logging)

    dashboard_dir = args.dashboard_dir or env.get("DASHBOARD_DIR")
    host, port = resolve_bind(snapshot, environ)
    host = args.host or host
    port = args.port or port

    try:
        app = create_app(store, dashboard_dir=dashboard_dir)
        LOGGER.info("Server listening on http://%s:%s%s", host, port, snapshot.webhook_path)
        runner(
            app,
            host=host,
            port=port,
            log_level=_uvicorn_log_level(log_level or snapshot.logging.level),
        )
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except Exception:
        LOGGER.exception("Failed to start server.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["load_environment", "main", "parse_args", "resolve_bind"]
