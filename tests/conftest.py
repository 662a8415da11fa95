from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any

import pytest

from pagebot.core.config import MINIMAL_TEMPLATE, ConfigStore
from pagebot.core.contracts import CommentRecord, HandlerRegistry


def _write_json(path: Path, data: Any) -> None:
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


class RecordingHandlers:
    """Handler set that records invocations and can be told to fail per kind."""

    def __init__(self, *, expected: int = 1, fail_on: frozenset[str] = frozenset()) -> None:
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.fail_on = fail_on
        self.expected = expected
        self.done = asyncio.Event()

    async def _record(self, kind: str, *args: Any) -> None:
        self.calls.append((kind, args))
        if len(self.calls) >= self.expected:
            self.done.set()
        if kind in self.fail_on:
            raise RuntimeError(f"{kind} handler exploded")

    async def on_message(
        self, message: dict[str, Any], sender_id: str | None, recipient_id: str | None, ts: int
    ) -> None:
        await self._record("message", message, sender_id, recipient_id, ts)

    async def on_postback(
        self, postback: dict[str, Any], sender_id: str | None, recipient_id: str | None, ts: int
    ) -> None:
        await self._record("postback", postback, sender_id, recipient_id, ts)

    async def on_comment(self, comment: CommentRecord, entry_id: str | None) -> None:
        await self._record("comment", comment, entry_id)

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _args in self.calls]

    def registry(self) -> HandlerRegistry:
        return HandlerRegistry(
            on_message=self.on_message,
            on_postback=self.on_postback,
            on_comment=self.on_comment,
        )


@pytest.fixture
def recorder_cls() -> type[RecordingHandlers]:
    return RecordingHandlers


@pytest.fixture
def write_json():
    return _write_json


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "config.json"


@pytest.fixture
def complete_settings() -> dict[str, Any]:
    """Minimal template with every required field filled in."""

    data = copy.deepcopy(MINIMAL_TEMPLATE)
    data["facebook"].update(
        {
            "pageAccessToken": "EAAB-page-token",
            "verifyToken": "s3cret-verify",
            "pageId": "1029384756",
            "appSecret": "app-secret",
        }
    )
    return data


@pytest.fixture
def ready_store(settings_path: Path, complete_settings: dict[str, Any]) -> ConfigStore:
    """Store backed by a fully configured settings file."""

    _write_json(settings_path, complete_settings)
    return ConfigStore(settings_path)


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    """Two messaging events (message + postback) and one new-comment change."""

    return {
        "object": "page",
        "entry": [
            {
                "id": "1029384756",
                "time": 1700000000000,
                "messaging": [
                    {
                        "sender": {"id": "111"},
                        "recipient": {"id": "1029384756"},
                        "timestamp": 1700000000001,
                        "message": {"mid": "m_1", "text": "hello there"},
                    },
                    {
                        "sender": {"id": "222"},
                        "recipient": {"id": "1029384756"},
                        "timestamp": 1700000000002,
                        "postback": {"title": "Get Started", "payload": "GET_STARTED"},
                    },
                ],
            },
            {
                "id": "1029384756",
                "time": 1700000000100,
                "changes": [
                    {
                        "field": "feed",
                        "value": {
                            "item": "comment",
                            "verb": "add",
                            "comment_id": "post_1_comment_9",
                            "post_id": "post_1",
                            "from": {"id": "333", "name": "Ada"},
                            "message": "Nice post!",
                            "created_time": 1700000000,
                        },
                    }
                ],
            },
        ],
    }


@pytest.fixture
def restore_root_logger():
    """Undo handler/level changes made to the root logger by a test."""

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
