#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper pytest configuration and shared test fixtures."""

import os

import pytest

from tests.cli_runner import CliRunner

os.environ["SBKEEPER_DEBUG_LOGGING_DISABLED"] = "True"

# pylint: disable=wrong-import-position
from sbkeeper.crypto.keys import KeyReference, resolve_key_reference  # noqa: E402
from sbkeeper.image.kernels import ImageConfig  # noqa: E402
from sbkeeper.settings import KeeperConfig  # noqa: E402
from tests.firmware import FakeFirmware  # noqa: E402
from tests.misc import create_key_pair, write_bytes  # noqa: E402


@pytest.fixture
def cli_runner() -> CliRunner:
    """Get CLI runner instance for testing.

    :return: CliRunner instance for testing CLI commands.
    """
    return CliRunner()


@pytest.fixture
def keys_dir(tmp_path) -> str:
    """Directory with DB and KEK key pairs."""
    path = str(tmp_path / "keys")
    create_key_pair(path, "DB")
    create_key_pair(path, "KEK")
    return path


@pytest.fixture
def db_key(keys_dir) -> KeyReference:
    return resolve_key_reference(keys_dir, "DB")


@pytest.fixture
def kek_key(keys_dir) -> KeyReference:
    return resolve_key_reference(keys_dir, "KEK")


@pytest.fixture
def firmware(tmp_path) -> FakeFirmware:
    """Emulated tools and firmware with an empty efivars directory."""
    return FakeFirmware(str(tmp_path / "efivars"))


@pytest.fixture
def keeper_config(tmp_path, keys_dir) -> KeeperConfig:
    """Settings with revocation enabled and two image configurations, web and api.

    Kernel of each configuration holds ``kernel-<name>-1`` until a test rewrites it.
    """
    configs = {}
    for name in ("web", "api"):
        kernel = write_bytes(str(tmp_path / "src" / name / "vmlinuz"), f"kernel-{name}-1".encode())
        initrd = write_bytes(
            str(tmp_path / "src" / f"initramfs-{name}.img"), f"initramfs-{name}".encode()
        )
        configs[name] = ImageConfig(name=name, kernel=kernel, initrd=(initrd,), cmdline="quiet")
    return KeeperConfig(
        revocation=True,
        keys_dir=keys_dir,
        esp_dir=str(tmp_path / "esp"),
        output_dir="EFI/Linux",
        ledger_dir=str(tmp_path / "ledger"),
        backup_dir=str(tmp_path / "backups"),
        efivars_dir=str(tmp_path / "efivars"),
        retry_delay=0,
        configs=configs,
    )


@pytest.fixture
def tests_root_dir() -> str:
    """Get the root directory of tests.

    :return: Absolute path to the tests root directory.
    """
    return os.path.dirname(os.path.abspath(__file__))
