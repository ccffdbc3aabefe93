import sys
import os
import json
import logging

# --- Add src directory to sys.path ---
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import config
from config_manager import ConfigManager


def test_defaults_without_file(tmp_path):
    manager = ConfigManager(str(tmp_path))
    loaded = manager.load()
    assert loaded["base_currency"] == "SGD"
    assert manager.default_label == ""
    assert manager.db_path == os.path.join(str(tmp_path), config.DB_FILENAME)
    assert manager.logging_level == logging.INFO


def test_load_merges_and_normalizes(tmp_path):
    (tmp_path / config.ENGINE_CONFIG_FILENAME).write_text(
        json.dumps(
            {
                "base_currency": " usd ",
                "default_label": "all books",
                "logging_level": "debug",
                "theme": "dark",
            }
        ),
        encoding="utf-8",
    )
    manager = ConfigManager(str(tmp_path))
    loaded = manager.load()
    assert manager.base_currency == "USD"
    assert manager.default_label == "all books"
    assert manager.logging_level == logging.DEBUG
    assert "theme" not in loaded


def test_invalid_values_fall_back(tmp_path):
    (tmp_path / config.ENGINE_CONFIG_FILENAME).write_text(
        json.dumps({"base_currency": "", "default_label": 5, "logging_level": "LOUD"}),
        encoding="utf-8",
    )
    manager = ConfigManager(str(tmp_path))
    manager.load()
    assert manager.base_currency == config.BASE_CURRENCY
    assert manager.default_label == config.DEFAULT_LABEL
    assert manager.logging_level == config.LOGGING_LEVEL


def test_corrupt_file_keeps_defaults(tmp_path):
    (tmp_path / config.ENGINE_CONFIG_FILENAME).write_text("{not json", encoding="utf-8")
    manager = ConfigManager(str(tmp_path))
    assert manager.load()["base_currency"] == config.BASE_CURRENCY


def test_save_round_trip(tmp_path):
    manager = ConfigManager(str(tmp_path))
    assert manager.save({"default_label": "core"})
    reloaded = ConfigManager(str(tmp_path))
    reloaded.load()
    assert reloaded.default_label == "core"


def test_app_data_dir_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "engine-data"
    monkeypatch.setenv(config.DATA_DIR_ENV_VAR, str(target))
    assert config.get_app_data_dir() == str(target)
    assert target.is_dir()
