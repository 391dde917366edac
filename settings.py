# settings.py
import json
import logging
from pathlib import Path
from typing import Any, Dict

SETTINGS_FILE = Path("settings.json")

DEFAULTS: Dict[str, Any] = {
    "base_url": "http://localhost:3000",
    "sensor_id": "VIRTUAL_SENSOR_001",
    "reading_interval_ms": 3000,
    "sync_interval_ms": 30000,
    "connect_delay_ms": 2000,
    "upload_timeout_s": 10.0,
    "dark_mode": False,
    "last_export_dir": "",
}

logger = logging.getLogger(__name__)

_MISSING = object()


class SettingsManager:
    def __init__(self, path: Path = SETTINGS_FILE) -> None:
        self.path = path
        self._data: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        if self.path.exists():
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except json.JSONDecodeError:
                logger.warning("Fichero de ajustes corrupto (%s), usando valores por defecto", self.path)
                self._data = {}
        else:
            self._data = {}

    def save(self) -> None:
        self.path.write_text(json.dumps(self._data, indent=4), encoding="utf-8")

    def get(self, key: str, default: Any = _MISSING) -> Any:
        if default is _MISSING:
            default = DEFAULTS.get(key)
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
