"""
Settings Manager
Handles persistent application settings in user home directory
"""
import json
import os
from pathlib import Path
from typing import Any, Dict
import threading

from .relay_router import DEFAULT_RELAYS
from .search_orchestrator import PLAYLIST_GENERATOR_URL


class SettingsManager:
    """Manages application settings with persistence"""

    REQUIRED_RELAY_ENDPOINTS = DEFAULT_RELAYS

    DEFAULT_SETTINGS = {
        # Upstream
        "playlist_generator_url": PLAYLIST_GENERATOR_URL,

        # Relays
        "relay_endpoints": [dict(r) for r in DEFAULT_RELAYS],
        "relay_timeout_seconds": 10.0,
        "relay_user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",

        # Search
        "search_max_tracks": 50,
        "suggest_min_chars": 2,
        "search_cache_ttl_seconds": 300.0,
        "search_cache_size": 100,

        # Service
        "service_default_limit": 10,
    }

    # key: (type, check a usable value passes)
    NUMERIC_SETTINGS = {
        "relay_timeout_seconds": (float, lambda v: v > 0),
        "search_max_tracks": (int, lambda v: v >= 0),
        "suggest_min_chars": (int, lambda v: v >= 1),
        "search_cache_ttl_seconds": (float, lambda v: v >= 0),
        "search_cache_size": (int, lambda v: v >= 1),
        "service_default_limit": (int, lambda v: 1 <= v <= 50),
    }

    def __init__(self):
        # Settings stored in user home
        data_dir = str(os.environ.get("TUNESCOUT_DATA_DIR", "") or "").strip()
        self.settings_dir = Path(data_dir).expanduser() if data_dir else (Path.home() / ".tunescout")
        self.settings_dir.mkdir(parents=True, exist_ok=True)
        self.settings_file = self.settings_dir / "settings.json"

        self._lock = threading.RLock()
        self._settings: Dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load settings from file"""
        with self._lock:
            if self.settings_file.exists():
                try:
                    with open(self.settings_file, 'r') as f:
                        loaded = json.load(f)
                    if not isinstance(loaded, dict):
                        raise ValueError("settings root must be an object")
                    # Merge with defaults (adds new keys if they don't exist)
                    self._settings = {**self._defaults(), **loaded}
                except Exception as e:
                    print(f"Error loading settings: {e}")
                    self._settings = self._defaults()
            else:
                self._settings = self._defaults()

            changed = self._ensure_required_relays()
            if changed and self.settings_file.exists():
                self._save()

    def _defaults(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self.DEFAULT_SETTINGS))

    def _ensure_required_relays(self) -> bool:
        # Keep the baseline relays available; user-added relays stay in front.
        existing = self._settings.get("relay_endpoints", [])
        if not isinstance(existing, list):
            existing = []
        normalized = []
        templates = set()
        for item in existing + [dict(r) for r in self.REQUIRED_RELAY_ENDPOINTS]:
            if isinstance(item, str):
                item = {"name": item.strip(), "template": item.strip()}
            if not isinstance(item, dict):
                continue
            template = str(item.get("template") or "").strip()
            if not template or template in templates:
                continue
            templates.add(template)
            normalized.append(item)
        changed = normalized != existing
        self._settings["relay_endpoints"] = normalized
        if self._repair_numbers():
            changed = True
        return changed

    def _coerce(self, key: str, value):
        """Return the numeric value for key, or None when value is unusable"""
        kind, valid = self.NUMERIC_SETTINGS[key]
        if isinstance(value, bool):
            return None
        try:
            number = kind(value)
        except (TypeError, ValueError, OverflowError):
            return None
        return number if valid(number) else None

    def _repair_numbers(self) -> bool:
        # Unusable numbers fall back to defaults so a bad file cannot stop startup.
        changed = False
        for key in self.NUMERIC_SETTINGS:
            value = self._settings.get(key)
            number = self._coerce(key, value)
            if number is None:
                number = self.DEFAULT_SETTINGS[key]
            if number != value:
                self._settings[key] = number
                changed = True
        return changed

    def validate(self, updates: Dict[str, Any]) -> Dict[str, str]:
        """Map each unusable key in updates to the reason it was rejected"""
        errors = {}
        for key, value in (updates or {}).items():
            if key in self.NUMERIC_SETTINGS and self._coerce(key, value) is None:
                errors[key] = f"invalid value {value!r}"
        if "relay_endpoints" in (updates or {}) and not isinstance(updates["relay_endpoints"], list):
            errors["relay_endpoints"] = "expected a list of relays"
        return errors

    def _save(self):
        """Save settings to file"""
        with self._lock:
            try:
                with open(self.settings_file, 'w') as f:
                    json.dump(self._settings, f, indent=2)
            except Exception as e:
                print(f"Error saving settings: {e}")

    def get(self, key: str, default=None) -> Any:
        """Get a setting value"""
        with self._lock:
            return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        """Set a setting value and save"""
        with self._lock:
            self._settings[str(key)] = value
            self._repair_numbers()
            self._save()

    def update(self, settings_dict: Dict[str, Any]):
        """Update multiple settings at once"""
        with self._lock:
            self._settings.update(dict(settings_dict or {}))
            self._ensure_required_relays()
            self._save()

    def get_all(self) -> Dict[str, Any]:
        """Get all settings"""
        with self._lock:
            return self._settings.copy()

    def reset(self):
        """Reset to default settings"""
        with self._lock:
            self._settings = self._defaults()
            self._ensure_required_relays()
            self._save()
