#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper configuration management utilities.

The configuration is a dictionary loaded from YAML or JSON file that remembers
where it came from, so relative paths inside are resolved against the location
of the configuration file.
"""

import logging
import os
from typing import Any, Optional

from typing_extensions import Self

from sbkeeper.exceptions import SBKConfigError, SBKKeyError
from sbkeeper.utils.misc import get_abs_path, load_configuration
from sbkeeper.utils.schema_validator import check_config

logger = logging.getLogger(__name__)


class Config(dict):
    """sbkeeper configuration.

    Dictionary supporting nested key addressing with path separator, file based
    loading and resolution of relative paths.

    :cvar SEP: Path separator used for nested key addressing.
    """

    SEP = "/"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.config_dir = os.getcwd()
        self.config_name = ""
        self.search_paths: list[str] = []

    @classmethod
    def create_from_file(cls, file_path: str) -> Self:
        """Create configuration object from file.

        :param file_path: Path to the configuration file to load.
        :return: Configuration object with loaded data and set search paths.
        """
        cfg_abs_path = os.path.abspath(file_path)
        cfg = cls(load_configuration(cfg_abs_path))
        cfg.config_dir = os.path.dirname(cfg_abs_path)
        cfg.config_name = os.path.basename(cfg_abs_path)
        cfg.search_paths = [cfg.config_dir]
        logger.debug(f"Configuration loaded from {cfg_abs_path}")
        return cfg

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Get configuration value with nested key support.

        :param key: Key name, nested keys are separated by '/'.
        :param default: Default value in case that item doesn't exist, defaults to None.
        :return: Configuration value or default if key not found.
        """
        try:
            return self[key]
        except SBKKeyError:
            return default

    def __getitem__(self, key: str) -> Any:
        """Get configuration value by key path.

        :param key: Configuration key or '/' separated path to nested value.
        :raises SBKKeyError: Key doesn't exist in configuration.
        :return: Configuration value at the specified key path.
        """
        source: Any = self
        for part in key.split(self.SEP):
            if not isinstance(source, dict) or dict.get(source, part) is None:
                raise SBKKeyError(f"The {key} doesn't exist in configuration")
            source = dict.__getitem__(source, part)
        return source

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        try:
            self[key]
        except SBKKeyError:
            return False
        return True

    def get_str(self, key: str, default: Optional[str] = None) -> str:
        """Get the key value as string.

        :param key: Key name of the configuration entry.
        :param default: Default value if configuration doesn't contain the key.
        :raises SBKConfigError: The value is not a string.
        :return: Configuration value as string.
        """
        ret = self.get(key, default)
        if not isinstance(ret, str):
            raise SBKConfigError(f"The value is not string at key: {key}")
        return ret

    def get_bool(self, key: str, default: Optional[bool] = None) -> bool:
        """Get the key value as boolean.

        :param key: Key name of the configuration entry.
        :param default: Default value if configuration doesn't contain the key.
        :raises SBKConfigError: The value is not a boolean.
        :return: Boolean value from configuration.
        """
        ret = self.get(key, default)
        if not isinstance(ret, bool):
            raise SBKConfigError(f"The value is not boolean at key: {key}")
        return ret

    def get_float(self, key: str, default: Optional[float] = None) -> float:
        """Get the key value as float number.

        :param key: Key name of the configuration entry.
        :param default: Default value if configuration doesn't contain the key.
        :raises SBKConfigError: The value is not a number.
        :return: Number from configuration.
        """
        ret = self.get(key, default)
        if isinstance(ret, bool) or not isinstance(ret, (int, float)):
            raise SBKConfigError(f"The value is not a number at key: {key}")
        return float(ret)

    def get_dict(self, key: str, default: Optional[dict] = None) -> dict:
        """Get the key value as dictionary.

        :param key: Key name of the configuration entry.
        :param default: Default value if configuration doesn't contain the key.
        :raises SBKConfigError: The value is not a dictionary.
        :return: Sub configuration as dictionary.
        """
        ret = self.get(key, default)
        if not isinstance(ret, dict):
            raise SBKConfigError(f"The value is not dictionary at key: {key}")
        return ret

    def get_list(self, key: str, default: Optional[list] = None) -> list:
        """Get the key value as list.

        :param key: Key name of the configuration entry.
        :param default: Default value if configuration doesn't contain the key.
        :raises SBKConfigError: The value is not a list.
        :return: Configuration value as list.
        """
        ret = self.get(key, default)
        if not isinstance(ret, list):
            raise SBKConfigError(f"The value is not list at key: {key}")
        return ret

    def get_path(self, key: str, default: Optional[str] = None) -> str:
        """Get the absolute path, relative paths are resolved against configuration directory.

        The path doesn't have to exist.

        :param key: Key path to config with path.
        :param default: Default path if configuration doesn't contain the key.
        :return: The absolute path.
        """
        return get_abs_path(self.get_str(key, default), base_dir=self.config_dir)

    def check(self, schemas: list[dict[str, Any]]) -> None:
        """Check configuration against validation schemas.

        :param schemas: List of validation schemas.
        """
        check_config(dict(self), schemas, search_paths=self.search_paths)
