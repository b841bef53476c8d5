"""Configuration management for pystoresync.

Values are resolved from environment variables first and then from a JSON
file in the user's config directory (``~/.config/pystoresync/config.json``).
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from .exceptions import StoreConfigError
from .utils import DEFAULT_API_URL, DEFAULT_MAX_WORKERS

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"

ENV_PREFIX = "PYSTORESYNC_"


class Config:
    """Layered configuration: environment variables override the config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ``$PYSTORESYNC_CONFIG_DIR`` or ``~/.config/pystoresync``.
        """
        if config_dir is None:
            env_dir = os.environ.get(f"{ENV_PREFIX}CONFIG_DIR")
            if env_dir:
                config_dir = Path(env_dir)
            else:
                config_dir = Path.home() / ".config" / "pystoresync"
        self.config_dir = config_dir
        self._file_values: Optional[dict[str, Any]] = None

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_dir / CONFIG_FILE_NAME

    def _load_file(self) -> dict[str, Any]:
        if self._file_values is not None:
            return self._file_values

        path = self.get_config_path()
        values: dict[str, Any] = {}
        if path.exists():
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise StoreConfigError(f"Cannot read config file {path}: {e}") from e
            if not isinstance(data, dict):
                raise StoreConfigError(f"Config file {path} must hold a JSON object")
            values = data
            logger.debug(f"Loaded configuration from {path}")
        self._file_values = values
        return values

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a setting by name.

        Args:
            name: Setting name (lowercase, e.g. ``api_url``)
            default: Value returned if the setting is not set anywhere

        Returns:
            The environment value, the file value, or ``default``
        """
        env_value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
        if env_value:
            return env_value
        return self._load_file().get(name, default)

    @property
    def api_url(self) -> str:
        return self.get("api_url", DEFAULT_API_URL)

    @property
    def api_key(self) -> Optional[str]:
        return self.get("api_key")

    @property
    def store_id(self) -> Optional[str]:
        return self.get("store_id")

    @property
    def max_workers(self) -> int:
        value = self.get("max_workers", DEFAULT_MAX_WORKERS)
        try:
            workers = int(value)
        except (TypeError, ValueError) as e:
            raise StoreConfigError(f"Invalid max_workers value: {value!r}") from e
        if workers < 1:
            raise StoreConfigError("max_workers must be at least 1")
        return workers

    def save(self, **values: Any) -> None:
        """Persist settings to the config file.

        ``None`` values remove the setting.

        Args:
            **values: Settings to store
        """
        data = dict(self._load_file())
        for name, value in values.items():
            if value is None:
                data.pop(name, None)
            else:
                data[name] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        path = self.get_config_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        # Config may hold an API key
        path.chmod(0o600)
        self._file_values = data
        logger.debug(f"Saved configuration to {path}")


config = Config()
