# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          config_manager.py
 Purpose:       Settings file handling for the performance engine.
                Loads engine_config.json from the app data directory and
                merges it over the defaults in config.py.
-------------------------------------------------------------------------------
"""

import os
import json
import logging
from typing import Dict, Any, Optional

import config


class ConfigManager:
    def __init__(self, app_data_path: str):
        self.app_data_path = app_data_path
        self.CONFIG_FILE = os.path.join(app_data_path, config.ENGINE_CONFIG_FILENAME)
        self.engine_config = self._get_default_engine_config()

    def _get_default_engine_config(self) -> Dict[str, Any]:
        return {
            "base_currency": config.BASE_CURRENCY,
            "default_label": config.DEFAULT_LABEL,
            "db_path": os.path.join(self.app_data_path, config.DB_FILENAME),
            "logging_level": logging.getLevelName(config.LOGGING_LEVEL),
        }

    def load(self) -> Dict[str, Any]:
        if os.path.exists(self.CONFIG_FILE):
            try:
                with open(self.CONFIG_FILE, "r", encoding="utf-8") as f:
                    loaded = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logging.error(f"Error loading engine config {self.CONFIG_FILE}: {e}")
                return self.engine_config
            if not isinstance(loaded, dict):
                logging.error(f"Engine config {self.CONFIG_FILE} is not a JSON object, ignoring.")
                return self.engine_config
            for key, value in loaded.items():
                if key not in self.engine_config:
                    logging.warning(f"Ignoring unknown engine config key: {key}")
                    continue
                self.engine_config[key] = value
            self._validate_engine_config()
        return self.engine_config

    def _validate_engine_config(self):
        base = self.engine_config.get("base_currency")
        if not isinstance(base, str) or not base.strip():
            self.engine_config["base_currency"] = config.BASE_CURRENCY
        else:
            self.engine_config["base_currency"] = base.strip().upper()
        if not isinstance(self.engine_config.get("default_label"), str):
            self.engine_config["default_label"] = config.DEFAULT_LABEL

    @property
    def base_currency(self) -> str:
        return self.engine_config["base_currency"]

    @property
    def default_label(self) -> str:
        return self.engine_config["default_label"]

    @property
    def db_path(self) -> str:
        return self.engine_config["db_path"]

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(str(self.engine_config.get("logging_level", "")).upper())
        return level if isinstance(level, int) else config.LOGGING_LEVEL

    def save(self, config_dict: Optional[Dict[str, Any]] = None) -> bool:
        if config_dict is not None:
            self.engine_config.update(config_dict)
        try:
            with open(self.CONFIG_FILE, "w", encoding="utf-8") as f:
                json.dump(self.engine_config, f, indent=4)
            return True
        except OSError as e:
            logging.error(f"Error saving engine config: {e}")
            return False
