"""JSON-backed user settings with default merging and change notification."""
from __future__ import annotations

import json
import logging
import math
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

SETTINGS_FILE = "scrollguard_settings.json"
THRESHOLD_MIN = 3
THRESHOLD_MAX = 50
THRESHOLD_DEFAULT = 10
DEFAULT_SITE_IDS = ("x",)
SETTINGS_PATH_ENV_VAR = "SCROLLGUARD_SETTINGS_PATH"

SettingsCallback = Callable[["Settings"], None]

_LOGGER = logging.getLogger("ScrollGuard.Settings")


def default_settings_path() -> Path:
    """SCROLLGUARD_SETTINGS_PATH when set, otherwise the per-user config directory."""
    env = os.environ.get(SETTINGS_PATH_ENV_VAR)
    if env:
        return Path(env).expanduser()
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "ScrollGuard" / SETTINGS_FILE


def _frozen(mapping: Mapping[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class SiteSettings:
    enabled: bool = True
    optional_feeds: Mapping[str, bool] = field(default_factory=lambda: _frozen({}))

    def to_json(self) -> Dict[str, Any]:
        return {"enabled": bool(self.enabled), "optionalFeeds": {key: bool(value) for key, value in self.optional_feeds.items()}}


@dataclass(frozen=True)
class Settings:
    """Immutable snapshot; every load or notification yields a new instance."""

    sites: Mapping[str, SiteSettings]
    threshold: int = THRESHOLD_DEFAULT

    def site(self, site_id: str) -> SiteSettings:
        return self.sites.get(site_id) or SiteSettings()

    def to_json(self) -> Dict[str, Any]:
        return {
            "sites": {site_id: entry.to_json() for site_id, entry in self.sites.items()},
            "threshold": int(self.threshold),
        }

    def with_site(self, site_id: str, **changes: Any) -> "Settings":
        current = self.site(site_id)
        enabled = bool(changes.get("enabled", current.enabled))
        feeds = changes.get("optional_feeds", current.optional_feeds)
        sites = dict(self.sites)
        sites[site_id] = SiteSettings(enabled=enabled, optional_feeds=_frozen(feeds))
        return Settings(sites=_frozen(sites), threshold=self.threshold)

    def with_threshold(self, threshold: Any) -> "Settings":
        return Settings(sites=self.sites, threshold=threshold)


def normalize_threshold(value: Any) -> int:
    """Coerce into [THRESHOLD_MIN, THRESHOLD_MAX]; unusable values fall back to the default.

    Null, booleans and blank strings count as numbers (0, 0/1, 0) and so
    clamp to the minimum rather than falling back.
    """
    if value is None or isinstance(value, bool):
        value = int(bool(value))
    elif isinstance(value, str) and not value.strip():
        value = 0
    try:
        numeric = float(value)
    except (TypeError, ValueError, OverflowError):
        return THRESHOLD_DEFAULT
    if not math.isfinite(numeric):
        return THRESHOLD_DEFAULT
    rounded = int(math.floor(numeric + 0.5))
    return max(THRESHOLD_MIN, min(THRESHOLD_MAX, rounded))


def default_settings(site_ids: tuple[str, ...] = DEFAULT_SITE_IDS) -> Settings:
    sites = {site_id: SiteSettings(enabled=True, optional_feeds=_frozen({})) for site_id in site_ids}
    return Settings(sites=_frozen(sites), threshold=THRESHOLD_DEFAULT)


def _coerce_feeds(raw: Any) -> Dict[str, bool]:
    if not isinstance(raw, dict):
        return {}
    return {str(key): bool(value) for key, value in raw.items()}


def merge_settings(stored: Any, site_ids: tuple[str, ...] = DEFAULT_SITE_IDS) -> Settings:
    """Overlay a (possibly partial or malformed) persisted value on the defaults."""
    defaults = default_settings(site_ids)
    if not isinstance(stored, dict):
        return defaults
    stored_sites = stored.get("sites")
    if not isinstance(stored_sites, dict):
        stored_sites = {}
    sites: Dict[str, SiteSettings] = {}
    for site_id in site_ids:
        base = defaults.sites[site_id]
        entry = stored_sites.get(site_id)
        if not isinstance(entry, dict):
            sites[site_id] = base
            continue
        enabled = bool(entry.get("enabled", base.enabled))
        feeds = dict(base.optional_feeds)
        feeds.update(_coerce_feeds(entry.get("optionalFeeds")))
        sites[site_id] = SiteSettings(enabled=enabled, optional_feeds=_frozen(feeds))
    threshold = normalize_threshold(stored.get("threshold")) if "threshold" in stored else defaults.threshold
    return Settings(sites=_frozen(sites), threshold=threshold)


class SettingsStore:
    """Persists Settings to disk and notifies subscribers when the stored value changes."""

    def __init__(self, path: Path, *, site_ids: tuple[str, ...] = DEFAULT_SITE_IDS) -> None:
        self._path = Path(path)
        self._site_ids = tuple(site_ids)
        self._lock = threading.Lock()
        self._subscribers: List[SettingsCallback] = []
        self._last_known: Optional[Settings] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Settings:
        settings = merge_settings(self._read_raw(), self._site_ids)
        self._last_known = settings
        return settings

    def save(self, settings: Settings) -> Settings:
        normalized = Settings(sites=settings.sites, threshold=normalize_threshold(settings.threshold))
        payload = normalized.to_json()
        self._write_raw(payload)
        merged = merge_settings(payload, self._site_ids)
        self._last_known = merged
        self._notify(merged)
        return merged

    def clear(self) -> Settings:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        defaults = default_settings(self._site_ids)
        self._last_known = defaults
        self._notify(defaults)
        return defaults

    def refresh(self) -> Optional[Settings]:
        """Re-read the file after an external edit; notify only when the merged value differs."""
        previous = self._last_known
        current = merge_settings(self._read_raw(), self._site_ids)
        if previous is not None and current == previous:
            return None
        self._last_known = current
        self._notify(current)
        return current

    def subscribe(self, callback: SettingsCallback) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    pass

        return _unsubscribe

    def _notify(self, settings: Settings) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(settings)
            except Exception as exc:
                _LOGGER.warning("Settings subscriber failed: %s", exc, exc_info=exc)

    def _read_raw(self) -> Any:
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.debug("Failed to read settings from %s: %s", self._path, exc)
            return None

    def _write_raw(self, payload: Mapping[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self._path)
