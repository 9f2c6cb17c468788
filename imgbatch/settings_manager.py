from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .image_engine.decoder import TARGET_FORMATS
from .logger import get_logger
from .path_utils import abs_path_str

_logger = get_logger("settings")

SETTINGS_ENV = "IMGBATCH_SETTINGS"
_MAX_BYTE = 255
_MAX_QUALITY = 100


def default_settings_path() -> str:
    env = (os.getenv(SETTINGS_ENV) or "").strip()
    if env:
        return abs_path_str(env)
    return abs_path_str(Path.home() / ".imgbatch" / "settings.json")


class SettingsManager:
    def __init__(self, settings_path: str | None = None):
        self.settings_path = abs_path_str(settings_path) if settings_path else default_settings_path()
        self._settings: dict[str, Any] = {}
        self.load()

    DEFAULTS: dict[str, Any] = {
        "edge_threshold": 30,
        "target_format": "png",
        "quality": 90,
        "max_workers": 0,
    }

    def load(self) -> None:
        try:
            if os.path.exists(self.settings_path):
                with open(self.settings_path, encoding="utf-8") as f:
                    data = json.load(f)
                    if isinstance(data, dict):
                        self._settings = data
                        _logger.debug("settings loaded: %s", self.settings_path)
                        return
                    _logger.warning("settings ignored (not a JSON object): %s", self.settings_path)
        except (OSError, ValueError) as e:
            _logger.warning("settings load failed: %s", e)
        self._settings = {}

    def save(self) -> None:
        try:
            os.makedirs(os.path.dirname(self.settings_path), exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
            _logger.debug("settings saved: %s", self.settings_path)
        except OSError as e:
            _logger.error("settings save failed: %s", e)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._settings:
            return self._settings[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def has(self, key: str) -> bool:
        return key in self._settings

    def set(self, key: str, value: Any) -> None:
        self._settings[key] = value
        self.save()

    @property
    def data(self) -> dict[str, Any]:
        return self._settings

    def _int_in_range(self, key: str, low: int, high: int | None) -> int:
        val = self.get(key)
        if isinstance(val, int) and not isinstance(val, bool) and val >= low and (high is None or val <= high):
            return val
        _logger.warning("invalid %s in settings: %r; using %r", key, val, self.DEFAULTS[key])
        return self.DEFAULTS[key]

    @property
    def edge_threshold(self) -> int:
        return self._int_in_range("edge_threshold", 0, _MAX_BYTE)

    @property
    def quality(self) -> int:
        return self._int_in_range("quality", 1, _MAX_QUALITY)

    @property
    def max_workers(self) -> int:
        """Worker processes for batch runs; 0 means one per CPU."""
        return self._int_in_range("max_workers", 0, None)

    @property
    def target_format(self) -> str:
        val = self.get("target_format")
        if isinstance(val, str) and val.lower() in TARGET_FORMATS:
            return val.lower()
        _logger.warning("invalid target_format in settings: %r; using %r", val, self.DEFAULTS["target_format"])
        return self.DEFAULTS["target_format"]
