# src/seeker/core/config.py
"""
Seeker - Self-hosted File Browser - Configuration Management
Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import constants
from .exceptions import ConfigurationError

log = logging.getLogger(__name__)

# --- Default Configuration Values ---
# Central source of truth for all application settings and their defaults.

DEFAULT_SETTINGS = {
    # Server settings
    "host": constants.DEFAULT_HOST,
    "port": constants.DEFAULT_PORT,
    "log_level": "INFO",
    "data_dir": "",  # empty means the config directory

    # Mount allowlist: [{"id": ..., "path": ..., "label": ...}]
    "mounts": [],

    # Directory listing
    "directory_cache_ttl_seconds": constants.DIRECTORY_CACHE_TTL,
    "directory_cache_max_entries": constants.DIRECTORY_CACHE_MAX_ENTRIES,
    "large_directory_threshold": constants.LARGE_DIRECTORY_THRESHOLD,
    "default_page_size": constants.DEFAULT_PAGE_SIZE,
    "stat_batch_size": constants.STAT_BATCH_SIZE,
    "max_text_file_bytes": constants.MAX_TEXT_FILE_BYTES,

    # Chunked uploads
    "upload_chunk_size": constants.UPLOAD_CHUNK_SIZE,
    "upload_max_age_hours": constants.UPLOAD_MAX_AGE_HOURS,
    "upload_cleanup_interval_seconds": constants.UPLOAD_CLEANUP_INTERVAL,

    # Thumbnails
    "thumbnail_width": constants.THUMBNAIL_SIZE[0],
    "thumbnail_height": constants.THUMBNAIL_SIZE[1],
    "thumbnail_quality": constants.THUMBNAIL_QUALITY,
    "pdf_render_timeout_seconds": constants.PDF_RENDER_TIMEOUT,
    "pdf_render_dpi": constants.PDF_RENDER_DPI,
}


class ConfigManager:
    """
    JSON-backed settings. Missing keys fall back to DEFAULT_SETTINGS; a missing
    file is created with the defaults on first run.
    """

    def __init__(self, config_file: Optional[Path] = None, persist: bool = True):
        if config_file:
            self.config_file: Optional[Path] = Path(config_file)
        else:
            self.config_file = constants.CONFIG_FILE if persist else None
        self.persist = persist
        self._values: Dict[str, Any] = dict(DEFAULT_SETTINGS)
        if self.config_file is not None:
            self._values.update(self._read())

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "ConfigManager":
        """Builds an in-memory configuration, used by tests and embedding code."""
        manager = cls(persist=False)
        manager._values.update(values)
        return manager

    def _read(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            log.info(f"No config file at {self.config_file}, writing defaults")
            self._write()
            return {}

        try:
            with self.config_file.open("r", encoding="utf-8") as f:
                user_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.error(f"Unreadable config file {self.config_file}, using defaults: {e}")
            return {}

        if not isinstance(user_config, dict):
            log.error(f"Config file {self.config_file} must hold a JSON object, using defaults")
            return {}
        log.info(f"Configuration loaded from {self.config_file}")
        return user_config

    def _write(self):
        """Writes the settings through a temp file so a crash never leaves half a config."""
        if not self.persist or self.config_file is None:
            return
        tmp_file = self.config_file.with_suffix(self.config_file.suffix + ".tmp")
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with tmp_file.open("w", encoding="utf-8") as f:
                json.dump(self._values, f, indent=4)
            tmp_file.replace(self.config_file)
        except OSError as e:
            log.error(f"Failed to save config file {self.config_file}: {e}")
            raise ConfigurationError(f"Cannot save configuration: {e}") from e

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_int(self, key: str) -> int:
        """Numeric setting, falling back to the default when the stored value is unusable."""
        value = self._values.get(key)
        try:
            return int(value)
        except (TypeError, ValueError):
            log.warning(f"Invalid value {value!r} for '{key}', using {DEFAULT_SETTINGS.get(key)!r}")
            return int(DEFAULT_SETTINGS[key])

    def set(self, key: str, value: Any):
        self.update({key: value})

    def update(self, values: Dict[str, Any]):
        """Applies several settings and saves once."""
        unknown = sorted(set(values) - set(DEFAULT_SETTINGS))
        if unknown:
            log.warning(f"Setting unknown configuration keys: {', '.join(unknown)}")
        self._values.update(values)
        self._write()

    def reset_to_defaults(self):
        self._values = dict(DEFAULT_SETTINGS)
        self._write()
        log.info("Configuration has been reset to defaults.")

    # --- Typed accessors ---

    @property
    def data_dir(self) -> Path:
        configured = self.get("data_dir")
        if configured:
            return Path(configured)
        if self.config_file is not None:
            return self.config_file.parent
        return constants.CONFIG_PATH

    @property
    def mounts(self) -> List[Dict[str, Any]]:
        value = self.get("mounts") or []
        if not isinstance(value, list):
            raise ConfigurationError("'mounts' must be a list of {id, path, label} objects")
        return value
