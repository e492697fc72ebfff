from __future__ import annotations

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Mapping, TypedDict


class SettingsStoreError(RuntimeError):
    """Raised when a settings file cannot be saved."""


class LanguageServerSettings(TypedDict, total=False):
    remote_host: str
    remote_port: int
    poll_interval_ms: int
    log_traffic: bool


class ProjectSettings(TypedDict, total=False):
    root: str


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6005
DEFAULT_POLL_INTERVAL_MS = 100

DEFAULT_SETTINGS: dict[str, Any] = {
    "language_server": {
        "remote_host": DEFAULT_HOST,
        "remote_port": DEFAULT_PORT,
        "poll_interval_ms": DEFAULT_POLL_INTERVAL_MS,
        "log_traffic": False,
    },
    "project": {
        "root": "",
    },
}


def deep_merge_defaults(data: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Merge defaults into data without overwriting explicitly provided values."""
    merged = deepcopy(dict(data))
    for key, default_value in defaults.items():
        if key not in merged:
            merged[key] = deepcopy(default_value)
            continue
        current = merged[key]
        if isinstance(current, dict) and isinstance(default_value, dict):
            merged[key] = deep_merge_defaults(current, default_value)
    return merged


def dot_get(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    if not key:
        return data
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return default
        current = current[part]
    return current


def dot_set(data: dict[str, Any], key: str, value: Any) -> None:
    if not key:
        raise ValueError("Key cannot be empty.")
    current: dict[str, Any] = data
    parts = key.split(".")
    for part in parts[:-1]:
        next_value = current.get(part)
        if not isinstance(next_value, dict):
            next_value = {}
            current[part] = next_value
        current = next_value
    current[parts[-1]] = value


def normalize_language_server_settings(raw: Mapping[str, Any] | None) -> LanguageServerSettings:
    data = dict(DEFAULT_SETTINGS["language_server"])
    if isinstance(raw, Mapping):
        data.update(raw)
    data["remote_host"] = str(data.get("remote_host") or DEFAULT_HOST).strip() or DEFAULT_HOST
    data["remote_port"] = _clamped_int(data.get("remote_port"), DEFAULT_PORT, 1, 65535)
    data["poll_interval_ms"] = _clamped_int(data.get("poll_interval_ms"), DEFAULT_POLL_INTERVAL_MS, 10, 5000)
    data["log_traffic"] = bool(data.get("log_traffic", False))
    return LanguageServerSettings(**data)


def _clamped_int(value: object, default: int, low: int, high: int) -> int:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        number = default
    return max(low, min(high, number))


class JsonSettingsStore:
    """JSON-backed settings with defaults and dot-key helpers.

    A missing file yields the defaults. An unreadable or non-object file also
    yields the defaults and records ``last_error`` instead of raising, so a
    broken settings file never prevents connecting with defaults.
    """

    def __init__(self, path: Path | str | None, defaults: Mapping[str, Any] | None = None) -> None:
        self.path = Path(path) if path else None
        self.defaults: dict[str, Any] = deepcopy(dict(defaults if defaults is not None else DEFAULT_SETTINGS))
        self.data: dict[str, Any] = deep_merge_defaults({}, self.defaults)
        self.dirty: bool = False
        self.last_error: str | None = None

    def load(self) -> dict[str, Any]:
        self.last_error = None
        loaded: dict[str, Any] = {}
        if self.path is not None and self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                self.last_error = str(exc)
                raw = {}
            if isinstance(raw, dict):
                loaded = raw
            else:
                self.last_error = (
                    f"Settings root in '{self.path}' must be a JSON object, "
                    f"found {type(raw).__name__}."
                )
        self.data = deep_merge_defaults(loaded, self.defaults)
        self.dirty = False
        return self.data

    def save(self) -> None:
        if self.path is None:
            self.dirty = False
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.data, indent=2, sort_keys=True), encoding="utf-8")
        except OSError as exc:
            raise SettingsStoreError(f"Could not write settings file '{self.path}': {exc}") from exc
        self.dirty = False
        self.last_error = None

    def get(self, key: str, default: Any = None) -> Any:
        return dot_get(self.data, key, default)

    def set(self, key: str, value: Any) -> bool:
        if self.get(key) == value:
            return False
        dot_set(self.data, key, value)
        self.dirty = True
        return True

    def language_server(self) -> LanguageServerSettings:
        return normalize_language_server_settings(self.get("language_server", {}))

    def project_root(self) -> str:
        return str(self.get("project.root", "") or "").strip()
