"""
Self-healing JSON settings store with Pydantic-validated snapshots.

The store owns the user-editable ``config.json``. A minimal template is
written when the file is absent, a corrupt file is quarantined next to the
original and replaced by the template, and every read is merged on top of
operational fallbacks so callers always receive a complete configuration.
None of the public operations raise; failures are logged and resolved to a
safe default.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

MINIMAL_TEMPLATE: dict[str, Any] = {
    "app": {
        "name": "FB Page Bot",
        "version": "3.0.0",
        "author": "IRFAN",
    },
    "facebook": {
        "pageAccessToken": "",
        "verifyToken": "xx",
        "pageId": "",
        "appSecret": "",
    },
    "server": {
        "webhookPath": "/webhook",
    },
}

# Runtime-only defaults; never persisted.
FALLBACK_DEFAULTS: dict[str, Any] = {
    "app": {
        "name": "FB Page Bot",
        "version": "3.0.0",
        "author": "IRFAN",
    },
    "facebook": {
        "pageAccessToken": "",
        "verifyToken": "xx",
        "pageId": "",
        "appSecret": "",
    },
    "bot": {
        "name": "Page Bot",
        "prefix": "/",
        "timezone": "UTC",
        "autoRestart": False,
        "maxRetries": 3,
        "cooldown": 500,
    },
    "logging": {
        "level": "info",
        "retentionDays": 7,
        "logToFile": False,
        "logToConsole": True,
    },
    "security": {
        "adminUIDs": [],
        "allowedDomains": ["*"],
        "rateLimit": {
            "windowMs": 900000,  # 15 minutes
            "max": 100,
        },
    },
    "features": {
        "enableBroadcast": False,
        "enableAnalytics": False,
        "enableAutoReplies": True,
        "enableScheduledPosts": False,
        "enableMultiLanguage": False,
        "enableWebDashboard": True,
    },
    "pluginDefaults": {
        "autoInstallDeps": False,
        "hotReload": False,
        "maxExecutionTime": 5000,
        "memoryLimitMB": 50,
    },
    "server": {
        "port": 3000,
        "host": "0.0.0.0",
        "webhookPath": "/webhook",
        "enableHealthCheck": True,
        "enableMetrics": True,
    },
}

DEFAULT_SETTINGS_PATH = Path("config.json")


def deep_merge(target: dict[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge ``source`` into ``target`` in place and return ``target``.

    Mappings are merged key by key; lists and scalars replace the target
    value wholesale.
    """
    for key, value in source.items():
        if isinstance(value, Mapping):
            if not isinstance(target.get(key), dict):
                target[key] = {}
            deep_merge(target[key], value)
        else:
            target[key] = value
    return target


def _collect_missing(
    template: Mapping[str, Any], data: Any, prefix: str, missing: list[str]
) -> None:
    current = data if isinstance(data, Mapping) else {}
    for key, template_value in template.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(template_value, Mapping):
            _collect_missing(template_value, current.get(key), path, missing)
            continue
        value = current.get(key)
        if value is None or value == "":
            missing.append(path)


class _Section(BaseModel):
    model_config = ConfigDict(
        extra="allow", frozen=True, populate_by_name=True, coerce_numbers_to_str=True
    )


_MAX_PRUNE_PASSES = 5


def _prune(data: dict[str, Any], loc: tuple[Any, ...]) -> str | None:
    """Delete the deepest mapping key along ``loc``; return its dot path."""
    node: Any = data
    path: list[str] = []
    for index, part in enumerate(loc):
        if not isinstance(node, dict) or part not in node:
            break
        path.append(str(part))
        child = node[part]
        last = index == len(loc) - 1
        if last or not isinstance(child, dict) or loc[index + 1] not in child:
            del node[part]
            return ".".join(path)
        node = child
    return None


def _validate_section(section_cls: type[_Section], key: str, raw: dict[str, Any]) -> _Section:
    # Invalid fields fall back to their defaults one by one; valid siblings stay.
    for _ in range(_MAX_PRUNE_PASSES):
        try:
            return section_cls.model_validate(raw)
        except ValidationError as exc:
            dropped = [p for p in (_prune(raw, tuple(e["loc"])) for e in exc.errors()) if p]
            if not dropped:
                break
            logger.warning(
                "Invalid '%s' settings %s; using defaults for those fields.",
                key,
                ", ".join(sorted(set(dropped))),
            )
    logger.warning("Invalid '%s' settings; using defaults for this section.", key)
    return section_cls.model_validate(FALLBACK_DEFAULTS.get(key, {}))


class AppSettings(_Section):
    """Application identity."""

    name: str = Field(default="FB Page Bot")
    version: str = Field(default="3.0.0")
    author: str | None = Field(default="IRFAN")


class FacebookSettings(_Section):
    """Page credentials used by the webhook and the Graph API client."""

    page_access_token: str | None = Field(default="", alias="pageAccessToken")
    verify_token: str | None = Field(default="xx", alias="verifyToken")
    page_id: str | None = Field(default="", alias="pageId")
    app_secret: str | None = Field(default="", alias="appSecret")


class BotSettings(_Section):
    name: str = Field(default="Page Bot")
    prefix: str = Field(default="/")
    timezone: str = Field(default="UTC")
    auto_restart: bool = Field(default=False, alias="autoRestart")
    max_retries: int = Field(default=3, ge=0, alias="maxRetries")
    cooldown: int = Field(default=500, ge=0)


class LoggingSettings(_Section):
    """Log level and transport toggles."""

    level: str = Field(default="info")
    retention_days: int = Field(default=7, ge=0, alias="retentionDays")
    log_to_file: bool = Field(default=False, alias="logToFile")
    log_to_console: bool = Field(default=True, alias="logToConsole")


class RateLimitSettings(_Section):
    window_ms: int = Field(default=900000, gt=0, alias="windowMs")
    max: int = Field(default=100, gt=0)


class SecuritySettings(_Section):
    admin_uids: list[str] = Field(default_factory=list, alias="adminUIDs")
    allowed_domains: list[str] = Field(default_factory=lambda: ["*"], alias="allowedDomains")
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings, alias="rateLimit")


class FeatureFlags(_Section):
    """Boolean feature switches; unknown flags are kept as extras."""

    enable_broadcast: bool = Field(default=False, alias="enableBroadcast")
    enable_analytics: bool = Field(default=False, alias="enableAnalytics")
    enable_auto_replies: bool = Field(default=True, alias="enableAutoReplies")
    enable_scheduled_posts: bool = Field(default=False, alias="enableScheduledPosts")
    enable_multi_language: bool = Field(default=False, alias="enableMultiLanguage")
    enable_web_dashboard: bool = Field(default=True, alias="enableWebDashboard")


class PluginDefaults(_Section):
    auto_install_deps: bool = Field(default=False, alias="autoInstallDeps")
    hot_reload: bool = Field(default=False, alias="hotReload")
    max_execution_time: int = Field(default=5000, gt=0, alias="maxExecutionTime")
    memory_limit_mb: int = Field(default=50, gt=0, alias="memoryLimitMB")


class ServerSettings(_Section):
    """HTTP listener and routing options."""

    port: int = Field(default=3000, gt=0, lt=65536)
    host: str = Field(default="0.0.0.0")
    webhook_path: str = Field(default="/webhook", alias="webhookPath")
    enable_health_check: bool = Field(default=True, alias="enableHealthCheck")
    enable_metrics: bool = Field(default=True, alias="enableMetrics")


class ConfigSnapshot(BaseModel):
    """
    Validated, immutable view of the merged configuration.

    Built per request from ``ConfigStore.get_config``. A section that fails
    validation is replaced by its fallback so the snapshot is always complete.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    app: AppSettings = Field(default_factory=AppSettings)
    facebook: FacebookSettings = Field(default_factory=FacebookSettings)
    bot: BotSettings = Field(default_factory=BotSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    plugin_defaults: PluginDefaults = Field(default_factory=PluginDefaults, alias="pluginDefaults")
    server: ServerSettings = Field(default_factory=ServerSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ConfigSnapshot:
        sections: dict[str, _Section] = {}
        for name, field in cls.model_fields.items():
            key = field.alias or name
            raw = data.get(key)
            sections[name] = _validate_section(
                field.annotation, key, copy.deepcopy(raw) if isinstance(raw, Mapping) else {}
            )
        return cls(**sections)

    @property
    def webhook_path(self) -> str:
        path = self.server.webhook_path or "/webhook"
        return path if path.startswith("/") else f"/{path}"


class ConfigStore:
    """
    Owner of the on-disk settings file.

    Every read goes back to disk so out-of-band edits are honoured without a
    restart.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        return self._path

    @property
    def backup_path(self) -> Path:
        return self._path.with_name(f"{self._path.name}.bak")

    def ensure_file(self) -> None:
        """Write the minimal template when the settings file does not exist."""
        try:
            if self._path.exists():
                return
            self._write_json(MINIMAL_TEMPLATE)
            logger.info("Created default configuration at %s", self._path)
        except OSError as exc:
            logger.warning("Failed to create default config file %s: %s", self._path, exc)

    def load_raw(self) -> dict[str, Any]:
        """
        Return the settings exactly as stored on disk.

        Unreadable files yield the minimal template. Unparseable files are
        copied to ``<path>.bak`` and reset to the template.
        """
        self.ensure_file()
        try:
            contents = self._path.read_bytes()
        except OSError as exc:
            logger.warning("Failed to read %s: %s", self._path, exc)
            return copy.deepcopy(MINIMAL_TEMPLATE)
        try:
            data = json.loads(contents)
        except ValueError:
            data = None
        if isinstance(data, dict):
            return data
        self._quarantine(contents)
        return copy.deepcopy(MINIMAL_TEMPLATE)

    def get_config(self) -> dict[str, Any]:
        """Fallback defaults with the on-disk settings merged on top."""
        merged = copy.deepcopy(FALLBACK_DEFAULTS)
        return deep_merge(merged, self.load_raw())

    def snapshot(self) -> ConfigSnapshot:
        return ConfigSnapshot.from_mapping(self.get_config())

    def get_missing_keys(self) -> list[str]:
        """Dot paths of required template fields that are empty, null, or absent."""
        missing: list[str] = []
        _collect_missing(MINIMAL_TEMPLATE, self.load_raw(), "", missing)
        return missing

    def save(self, config: Mapping[str, Any]) -> bool:
        """Persist ``config`` as pretty-printed JSON. Returns False on failure."""
        try:
            self._write_json(config)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning("Failed to save %s: %s", self._path, exc)
            return False
        return True

    def _quarantine(self, contents: bytes) -> None:
        backup = self.backup_path
        try:
            backup.write_bytes(contents)
            self._write_json(MINIMAL_TEMPLATE)
        except OSError as exc:
            logger.warning("Invalid JSON in %s and quarantine failed: %s", self._path, exc)
            return
        logger.warning(
            "Invalid JSON in %s. A backup was saved to %s and the default template will be used.",
            self._path,
            backup,
        )

    def _write_json(self, data: Mapping[str, Any]) -> None:
        # Whole-file replace so concurrent readers see either old or new content.
        text = json.dumps(data, indent=2)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "FALLBACK_DEFAULTS",
    "MINIMAL_TEMPLATE",
    "AppSettings",
    "BotSettings",
    "ConfigSnapshot",
    "ConfigStore",
    "FacebookSettings",
    "FeatureFlags",
    "LoggingSettings",
    "PluginDefaults",
    "RateLimitSettings",
    "SecuritySettings",
    "ServerSettings",
    "deep_merge",
]
