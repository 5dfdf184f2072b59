"""Config store: optional config file layered over env, plus runtime overrides."""
import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger(__name__)


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into a flat dict. Missing or invalid files yield {}."""
    if not path.exists():
        logger.debug("No config file at %s; using env and defaults", path)
        return {}
    try:
        raw = path.read_text()
    except OSError as e:
        logger.warning("Could not read config file %s: %s", path, e)
        return {}

    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        elif suffix == ".json":
            data = json.loads(raw)
        else:
            logger.warning("Unsupported config file type (want .yaml/.yml/.json): %s", path)
            return {}
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        logger.warning("Could not parse config file %s: %s", path, e)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Config file %s must hold a mapping, got %s", path, type(data).__name__)
        return {}
    return data


class ConfigStore:
    """
    Builds a Settings instance from env, an optional config file and pushed overrides.

    Precedence: overrides > config file > env > class defaults. A failed rebuild keeps
    the previous Settings so a bad push never takes the service down.
    """

    def __init__(self, settings_cls: type, config_file_path: Optional[str] = None):
        self._settings_cls = settings_cls
        self._file_path = Path(config_file_path).expanduser().resolve() if config_file_path else None
        self._overrides: dict[str, Any] = {}
        self._current: Optional[Any] = None
        self._lock = threading.RLock()

    def _file_values(self) -> dict[str, Any]:
        return read_config_file(self._file_path) if self._file_path else {}

    def _build(self) -> Any:
        env_values = self._settings_cls().model_dump()
        return self._settings_cls(**{**env_values, **self._file_values(), **self._overrides})

    def load(self) -> None:
        """(Re)build settings from scratch. Called at import time and on reload."""
        with self._lock:
            try:
                self._current = self._build()
            except Exception as e:
                if self._current is None:
                    raise
                logger.warning("Config reload failed validation; keeping previous settings: %s", e)

    def get_settings(self) -> Any:
        with self._lock:
            if self._current is None:
                self.load()
            return self._current

    def update(self, overrides: dict[str, Any]) -> None:
        """Apply runtime overrides (e.g. from tests or an admin push)."""
        with self._lock:
            previous = dict(self._overrides)
            self._overrides.update(overrides)
            try:
                self._current = self._build()
            except Exception as e:
                self._overrides = previous
                logger.warning("Config override rejected; keeping previous settings: %s", e)

    def clear_overrides(self) -> None:
        with self._lock:
            self._overrides.clear()
            self._current = self._build()
