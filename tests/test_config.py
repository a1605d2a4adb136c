"""Tests for configuration loading."""

import json

import pytest

from noteweave.config import ConfigManager, DatabaseType, NoteweaveConfig


class TestNoteweaveConfig:
    def test_defaults(self, config_home):
        config = NoteweaveConfig()
        assert config.max_path_conflict_attempts == 100
        assert config.srs_mature_interval == 21
        assert config.database_type == DatabaseType.FILESYSTEM
        assert config.data_dir == config_home / ".noteweave"
        assert config.database_path == config_home / ".noteweave" / "noteweave.db"

    def test_env_variables(self, config_home, monkeypatch):
        monkeypatch.setenv("NOTEWEAVE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("NOTEWEAVE_DATABASE_TYPE", "memory")
        monkeypatch.setenv("NOTEWEAVE_MAX_PATH_CONFLICT_ATTEMPTS", "3")

        config = NoteweaveConfig()
        assert config.log_level == "DEBUG"
        assert config.database_type == DatabaseType.MEMORY
        assert config.max_path_conflict_attempts == 3

    def test_rejects_non_positive_limits(self, config_home):
        with pytest.raises(ValueError):
            NoteweaveConfig(max_path_conflict_attempts=0)

    def test_is_test_env(self, app_config):
        assert app_config.is_test_env


class TestConfigManager:
    def test_missing_file_returns_defaults(self, tmp_path, config_home):
        manager = ConfigManager(config_dir=tmp_path / "nowhere")
        config = manager.load_config()
        assert config.log_level == "INFO"
        assert not manager.config_file.exists()

    def test_save_and_load(self, tmp_path, config_home):
        manager = ConfigManager(config_dir=tmp_path / "conf")
        manager.save_config(NoteweaveConfig(log_level="WARNING", srs_new_card_limit=5))

        saved = json.loads(manager.config_file.read_text())
        assert saved["log_level"] == "WARNING"

        loaded = manager.load_config()
        assert loaded.log_level == "WARNING"
        assert loaded.srs_new_card_limit == 5

    def test_env_overrides_file(self, tmp_path, config_home, monkeypatch):
        manager = ConfigManager(config_dir=tmp_path / "conf")
        manager.save_config(NoteweaveConfig(log_level="WARNING"))

        monkeypatch.setenv("NOTEWEAVE_LOG_LEVEL", "ERROR")
        assert manager.load_config().log_level == "ERROR"

    def test_config_dir_from_env(self, tmp_path, config_home, monkeypatch):
        monkeypatch.setenv("NOTEWEAVE_CONFIG_DIR", str(tmp_path / "custom"))
        manager = ConfigManager()
        assert manager.config_file == tmp_path / "custom" / "config.json"

    def test_invalid_json_exits(self, tmp_path, config_home):
        manager = ConfigManager(config_dir=tmp_path)
        manager.config_file.write_text("{not json")
        with pytest.raises(SystemExit):
            manager.load_config()
