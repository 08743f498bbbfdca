"""Tests for JSON-backed configuration."""

import json

import pytest

from seeker.core.config import DEFAULT_SETTINGS, ConfigManager
from seeker.core.exceptions import ConfigurationError


def test_first_run_writes_defaults(tmp_path):
    config_file = tmp_path / "config" / "config.json"
    manager = ConfigManager(config_file)

    assert config_file.exists()
    assert json.loads(config_file.read_text())["port"] == 3000
    assert manager.data_dir == config_file.parent


def test_user_values_override_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"port": 8080, "mounts": [{"id": "m", "path": "/srv"}]}))

    manager = ConfigManager(config_file)
    assert manager.get("port") == 8080
    assert manager.get("directory_cache_ttl_seconds") == DEFAULT_SETTINGS["directory_cache_ttl_seconds"]
    assert manager.mounts == [{"id": "m", "path": "/srv"}]


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{not json")

    manager = ConfigManager(config_file)
    assert manager.get("port") == DEFAULT_SETTINGS["port"]


def test_set_persists(tmp_path):
    config_file = tmp_path / "config.json"
    manager = ConfigManager(config_file)
    manager.set("thumbnail_quality", 60)

    assert ConfigManager(config_file).get("thumbnail_quality") == 60


def test_in_memory_config_and_bad_mounts(tmp_path):
    manager = ConfigManager.from_dict({"data_dir": str(tmp_path), "mounts": "not-a-list"})
    assert manager.config_file is None
    assert manager.data_dir == tmp_path
    with pytest.raises(ConfigurationError):
        _ = manager.mounts


@pytest.mark.asyncio
async def test_container_wires_services_from_config(container, mount_root, tmp_path):
    assert container.uploads.chunk_size == 4
    assert container.thumbnails.size == (32, 32)
    assert container.guard.authorize(str(mount_root / "docs")).allowed
    assert (tmp_path / "state" / "main.db").exists()
    assert (tmp_path / "state" / "thumb.db").exists()


def test_non_object_file_falls_back_to_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("[1, 2, 3]")

    assert ConfigManager(config_file).get("port") == DEFAULT_SETTINGS["port"]


def test_numeric_settings_tolerate_bad_values(tmp_path):
    manager = ConfigManager.from_dict({"stat_batch_size": "64", "upload_chunk_size": "lots"})
    assert manager.get_int("stat_batch_size") == 64
    assert manager.get_int("upload_chunk_size") == DEFAULT_SETTINGS["upload_chunk_size"]


def test_update_saves_once_and_reset_restores_defaults(tmp_path):
    config_file = tmp_path / "config.json"
    manager = ConfigManager(config_file)
    manager.update({"port": 9000, "log_level": "DEBUG"})
    assert json.loads(config_file.read_text())["port"] == 9000
    assert not config_file.with_suffix(".json.tmp").exists()

    manager.reset_to_defaults()
    assert ConfigManager(config_file).get("port") == DEFAULT_SETTINGS["port"]
