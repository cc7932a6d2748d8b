#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper - signed boot images and dbx revocation for UEFI Secure Boot.

The package builds signed unified kernel images and, when revocation is enabled,
keeps the firmware forbidden signature database (dbx) in sync with images that
were superseded, while never blacklisting the image that is supposed to boot or
its designated fallback.
"""

import os
from typing import Optional, Union

from packaging.version import Version, parse
from platformdirs import PlatformDirs


def get_sbkeeper_version() -> Version:
    """Get sbkeeper version information.

    :return: Parsed version object.
    """
    from .__version__ import __version__ as sbkeeper_version

    return parse(sbkeeper_version)


def value_to_bool(value: Optional[Union[bool, int, str]]) -> bool:
    """Convert value to boolean from various input formats.

    Supports conversion from string representations like "True", "true", "T", "1"
    and standard Python truthy/falsy values for other types.

    :param value: Value to convert to boolean (string, int, bool, or None).
    :return: Boolean representation of the input value.
    """
    if isinstance(value, str):
        return value in ("True", "true", "T", "1")
    return bool(value)


version = get_sbkeeper_version()

__author__ = "NXP"
__license__ = "BSD-3-Clause"
__version__ = str(version)

SBKEEPER_VERSION_BASE = version.base_version

SBKEEPER_PLATFORM_DIRS = PlatformDirs(
    appauthor="nxp",
    appname="sbkeeper",
    version=SBKEEPER_VERSION_BASE,
)

SBKEEPER_DEBUG = value_to_bool(os.environ.get("SBKEEPER_DEBUG"))

SBKEEPER_DEBUG_LOGGING_DISABLED = value_to_bool(os.environ.get("SBKEEPER_DEBUG_LOGGING_DISABLED"))
SBKEEPER_DEBUG_LOG_FILE = os.environ.get(
    "SBKEEPER_DEBUG_LOG_FILE", os.path.join(SBKEEPER_PLATFORM_DIRS.user_log_dir, "debug.log")
)

# default location of the configuration file used by the command line tool
SBKEEPER_CONFIG = os.environ.get("SBKEEPER_CONFIG", "/etc/sbkeeper.yaml")

SBKEEPER_YML_INDENT = 2
