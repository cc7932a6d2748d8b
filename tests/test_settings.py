#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of sbkeeper settings."""

import os
import uuid

import pytest
import yaml

from sbkeeper.exceptions import SBKConfigError
from sbkeeper.image.kernels import ImageConfig
from sbkeeper.revocation.dbx import EFIVARS_DIR
from sbkeeper.revocation.extractor import ExtractorBackend
from sbkeeper.settings import SBKEEPER_OWNER_GUID, KeeperConfig
from sbkeeper.utils.config import Config
from sbkeeper.utils.misc import write_file
from tests.misc import write_bytes


def _load(tmp_path, content: dict) -> KeeperConfig:
    path = str(tmp_path / "etc" / "sbkeeper.yaml")
    write_file(yaml.safe_dump(content), path)
    return KeeperConfig.load_from_config(Config.create_from_file(path))


def test_defaults(tmp_path):
    config = _load(tmp_path, {"revocation": False})

    assert config.revocation is False
    assert config.keys_dir == "/etc/efi-keys"
    assert config.image_dir == "/boot/EFI/Linux"
    assert config.ledger_dir == "/var/lib/sbkeeper/ledger"
    assert config.backup_dir == "/var/lib/sbkeeper/backups"
    assert config.efivars_dir == EFIVARS_DIR
    assert config.owner_guid == SBKEEPER_OWNER_GUID
    assert config.retry_delay == 1.0
    assert config.extractor == ExtractorBackend.NATIVE
    assert (config.kek_key_name, config.db_key_name) == ("KEK", "DB")
    assert config.splash is None and config.os_release is None and config.stub is None
    assert config.configs == {}
    assert config.extra_sign == ()
    assert config.tools == {}


def test_full_configuration(tmp_path):
    etc = tmp_path / "etc"
    config = _load(
        tmp_path,
        {
            "revocation": True,
            "keys_dir": "keys",
            "esp_dir": "/efi",
            "output_dir": "EFI/sbkeeper",
            "owner_guid": "00112233-4455-6677-8899-aabbccddeeff",
            "retry_delay": 0,
            "extractor": "tool",
            "cmdline_default": "quiet rw",
            "splash": "splash.bmp",
            "configs": {
                "linux": {"kernel": "/usr/lib/modules/6.10/vmlinuz", "initrd": ["initramfs.img"]},
                "linux-lts": {"kernel": "vmlinuz-lts", "cmdline": "ro"},
            },
            "extra_sign": ["/efi/EFI/BOOT/BOOTX64.EFI"],
            "tools": {"update_var": "/opt/efitools/efi-updatevar"},
        },
    )

    assert config.revocation
    assert config.keys_dir == str(etc / "keys")
    assert config.image_dir == "/efi/EFI/sbkeeper"
    assert config.owner_guid == uuid.UUID("00112233-4455-6677-8899-aabbccddeeff")
    assert config.retry_delay == 0.0
    assert config.extractor == ExtractorBackend.TOOL
    assert config.splash == str(etc / "splash.bmp")
    assert config.configs == {
        "linux": ImageConfig(
            "linux", "/usr/lib/modules/6.10/vmlinuz", (str(etc / "initramfs.img"),), "quiet rw"
        ),
        "linux-lts": ImageConfig("linux-lts", str(etc / "vmlinuz-lts"), (), "ro"),
    }
    assert config.extra_sign == ("/efi/EFI/BOOT/BOOTX64.EFI",)
    assert config.tools == {"update_var": "/opt/efitools/efi-updatevar"}


@pytest.mark.parametrize(
    "content",
    [
        {"revocaton": True},
        {"revocation": "yes"},
        {"retry_delay": -1},
        {"extractor": "openssl"},
        {"owner_guid": "nobody"},
        {"configs": {"../web": {"kernel": "/vmlinuz"}}},
        {"configs": {"web": {"initrd": ["a.img"]}}},
        {"configs": {"web": {"kernel": "/vmlinuz", "options": "x"}}},
        {"tools": {"signer": "openssl"}},
    ],
)
def test_invalid_configuration(tmp_path, content):
    with pytest.raises(SBKConfigError):
        _load(tmp_path, content)


def test_discovered_configurations(tmp_path):
    modules_dir = tmp_path / "modules"
    kernel = write_bytes(str(modules_dir / "6.10.0" / "vmlinuz"), b"kernel")
    write_bytes(str(modules_dir / "6.10.0" / "pkgbase"), b"linux\n")
    config = _load(
        tmp_path,
        {
            "cmdline_default": "quiet",
            "modules_dir": str(modules_dir),
            "boot_dir": str(tmp_path / "boot"),
        },
    )
    assert config.get_image_configs() == {"linux": ImageConfig("linux", kernel, (), "quiet")}


def test_explicit_configurations_win(tmp_path):
    config = _load(tmp_path, {"configs": {"web": {"kernel": "/vmlinuz"}}, "modules_dir": "/nonexistent"})
    assert list(config.get_image_configs()) == ["web"]


def test_template_is_valid_configuration(tmp_path):
    template = KeeperConfig.get_config_template()
    assert "===== Revocation [Optional] =====" in template
    assert "modules_dir" not in template

    path = str(tmp_path / "sbkeeper.yaml")
    write_file(template, path)
    config = KeeperConfig.load_from_config(Config.create_from_file(path))
    assert config.cmdline_default == "quiet rw"
    assert list(config.configs) == ["linux"]
    assert os.path.isabs(config.configs["linux"].kernel)
