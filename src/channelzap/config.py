"""Configuration and persisted preferences for channelzap."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .logging_utils import get_logger

CONFIG_PATH = Path.home() / ".config" / "channelzap" / "config.yaml"

LAST_PLAYED_ID_KEY = "last_played_id"
PLAYLIST_SOURCE_KEY = "playlist_url"
CONTROLS_ENABLED_KEY = "video_controls"

log = get_logger(__name__)


@dataclass(slots=True)
class AppConfig:
    """Top level application configuration."""

    playlist_source: Optional[str] = None
    controls_enabled: bool = False
    last_played_id: Optional[str] = None
    default_channel_id: str = "1"
    default_group: Optional[str] = None
    preferred_player: Optional[str] = None


# Preference key -> (AppConfig attribute, value type)
_PREFERENCE_FIELDS: dict[str, tuple[str, type]] = {
    LAST_PLAYED_ID_KEY: ("last_played_id", str),
    PLAYLIST_SOURCE_KEY: ("playlist_source", str),
    CONTROLS_ENABLED_KEY: ("controls_enabled", bool),
}

# Config file key -> AppConfig attribute
_CONFIG_KEYS: dict[str, str] = {
    PLAYLIST_SOURCE_KEY: "playlist_source",
    CONTROLS_ENABLED_KEY: "controls_enabled",
    LAST_PLAYED_ID_KEY: "last_played_id",
    "default_channel_id": "default_channel_id",
    "default_group": "default_group",
    "player": "preferred_player",
}


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _clean_scalar(value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, str):
            return decoded
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return value


def _parse_bool(value: object, *, default: bool = False) -> bool:
    """Coerce *value* into a boolean flag."""

    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "yes", "on", "1"}:
            return True
        if normalized in {"false", "no", "off", "0"}:
            return False
    return default


def _parse_config(raw: str) -> dict[str, object]:
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        pass
    else:
        return data if isinstance(data, dict) else {}

    result: dict[str, object] = {}
    for line in raw.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, separator, value = stripped.partition(":")
        if not separator:
            log.warning("Ignoring malformed configuration line: %s", line)
            continue
        result[key.strip()] = _clean_scalar(value)
    return result


def _dump_config(config: AppConfig) -> str:
    lines: list[str] = []
    for key, attribute in _CONFIG_KEYS.items():
        value = getattr(config, attribute)
        if value is None:
            continue
        if isinstance(value, bool):
            lines.append(f"{key}: {'true' if value else 'false'}")
        else:
            lines.append(f"{key}: {json.dumps(str(value), ensure_ascii=False)}")
    lines.append("")
    return "\n".join(lines)


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load configuration from *path* or return defaults."""

    config_path = path or CONFIG_PATH
    if not config_path.exists():
        log.info("Configuration file missing at %s; using defaults", config_path)
        return AppConfig()
    log.debug("Loading configuration from %s", config_path)
    data = _parse_config(config_path.read_text(encoding="utf8"))
    config = AppConfig()
    for key, attribute in _CONFIG_KEYS.items():
        if key not in data or data[key] is None:
            continue
        value = data[key]
        if attribute == "controls_enabled":
            config.controls_enabled = _parse_bool(value)
        else:
            text = str(value).strip()
            if text:
                setattr(config, attribute, text)
    log.info("Loaded configuration from %s", config_path)
    return config


def save_config(config: AppConfig, path: Optional[Path] = None) -> None:
    """Persist *config* to disk at *path*."""

    config_path = path or CONFIG_PATH
    _ensure_parent(config_path)
    config_path.write_text(_dump_config(config), encoding="utf8")
    log.debug("Configuration saved to %s", config_path)


class Preferences:
    """String/bool key-value store persisted in the configuration file.

    Only the last-played channel, the playlist source and the controls flag
    are stored. Every write is saved immediately; a failing write is logged
    and the in-memory value is kept.
    """

    def __init__(self, config: Optional[AppConfig] = None, path: Optional[Path] = None) -> None:
        self.config = config if config is not None else AppConfig()
        self.path = path or CONFIG_PATH

    def _field(self, key: str, kind: type) -> str:
        try:
            attribute, field_type = _PREFERENCE_FIELDS[key]
        except KeyError:
            raise KeyError(f"Unknown preference key: {key}") from None
        if field_type is not kind:
            raise KeyError(f"Preference {key} is not a {kind.__name__} value")
        return attribute

    def get_string(self, key: str) -> Optional[str]:
        return getattr(self.config, self._field(key, str))

    def set_string(self, key: str, value: Optional[str]) -> None:
        setattr(self.config, self._field(key, str), value)
        self._save()

    def get_bool(self, key: str) -> bool:
        return bool(getattr(self.config, self._field(key, bool)))

    def set_bool(self, key: str, value: bool) -> None:
        setattr(self.config, self._field(key, bool), bool(value))
        self._save()

    def _save(self) -> None:
        try:
            save_config(self.config, self.path)
        except OSError as exc:
            log.warning("Failed to save preferences to %s: %s", self.path, exc)


__all__ = [
    "AppConfig",
    "CONFIG_PATH",
    "CONTROLS_ENABLED_KEY",
    "LAST_PLAYED_ID_KEY",
    "PLAYLIST_SOURCE_KEY",
    "Preferences",
    "load_config",
    "save_config",
]
