#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper settings.

The configuration file is validated, merged over built-in defaults and turned into
an immutable :class:`KeeperConfig` that is passed to every component.
"""

import copy
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from typing_extensions import Self

from sbkeeper.image.kernels import BOOT_DIR, MODULES_DIR, ImageConfig, discover_kernels
from sbkeeper.revocation.dbx import EFIVARS_DIR
from sbkeeper.revocation.extractor import ExtractorBackend
from sbkeeper.revocation.ledger import BackupStore
from sbkeeper.utils.config import Config
from sbkeeper.utils.misc import get_abs_path
from sbkeeper.utils.schema_validator import CommentedConfig, SBKMerger
from sbkeeper.utils.tools import ToolRole

logger = logging.getLogger(__name__)

# owner of the signatures sbkeeper appends to dbx
SBKEEPER_OWNER_GUID = uuid.UUID("5bd4c4a1-3b3f-4a1e-9c0d-7b1f5d2ae8c3")

DEFAULTS: dict[str, Any] = {
    "revocation": False,
    "keys_dir": "/etc/efi-keys",
    "esp_dir": "/boot",
    "output_dir": "EFI/Linux",
    "ledger_dir": "/var/lib/sbkeeper/ledger",
    "backup_dir": "/var/lib/sbkeeper/backups",
    "efivars_dir": EFIVARS_DIR,
    "owner_guid": str(SBKEEPER_OWNER_GUID),
    "retry_delay": 1.0,
    "extractor": ExtractorBackend.NATIVE.label,
    "kek_key_name": "KEK",
    "db_key_name": "DB",
    "cmdline_default": "",
    "splash": "",
    "os_release": "",
    "stub": "",
    "modules_dir": MODULES_DIR,
    "boot_dir": BOOT_DIR,
    "configs": {},
    "extra_sign": [],
    "tools": {},
}


def _optional_path(config: Config, key: str) -> Optional[str]:
    return config.get_path(key) if config.get_str(key, "") else None


@dataclass(frozen=True)
class KeeperConfig:
    """Resolved sbkeeper configuration, all paths are absolute."""

    revocation: bool = False
    keys_dir: str = DEFAULTS["keys_dir"]
    esp_dir: str = DEFAULTS["esp_dir"]
    output_dir: str = DEFAULTS["output_dir"]
    ledger_dir: str = DEFAULTS["ledger_dir"]
    backup_dir: str = DEFAULTS["backup_dir"]
    efivars_dir: str = EFIVARS_DIR
    owner_guid: uuid.UUID = SBKEEPER_OWNER_GUID
    retry_delay: float = 1.0
    extractor: ExtractorBackend = ExtractorBackend.NATIVE
    kek_key_name: str = "KEK"
    db_key_name: str = "DB"
    cmdline_default: str = ""
    splash: Optional[str] = None
    os_release: Optional[str] = None
    stub: Optional[str] = None
    modules_dir: str = MODULES_DIR
    boot_dir: str = BOOT_DIR
    configs: dict[str, ImageConfig] = field(default_factory=dict)
    extra_sign: tuple[str, ...] = field(default_factory=tuple)
    tools: dict[str, str] = field(default_factory=dict)

    @property
    def image_dir(self) -> str:
        """Directory of the signed images."""
        return os.path.join(self.esp_dir, self.output_dir)

    def get_image_configs(self) -> dict[str, ImageConfig]:
        """Get image configurations, discovering installed kernels when none are configured.

        :return: Image configurations keyed by name.
        """
        if self.configs:
            return self.configs
        return discover_kernels(self.modules_dir, self.boot_dir, self.cmdline_default)

    @classmethod
    def get_validation_schemas(cls) -> list[dict[str, Any]]:
        """Get validation schemas of the configuration file.

        :return: List of validation schemas.
        """
        path = {"type": "string", "minLength": 1}
        schema: dict[str, Any] = {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "revocation": {
                    "type": "boolean",
                    "title": "Revocation",
                    "description": "Blacklist superseded images in the firmware dbx variable.",
                    "template_value": False,
                },
                "keys_dir": {
                    **path,
                    "title": "Keys directory",
                    "description": "Directory with the DB and KEK private keys and certificates.",
                    "template_value": DEFAULTS["keys_dir"],
                },
                "esp_dir": {
                    **path,
                    "title": "EFI system partition",
                    "description": "Mount point of the EFI system partition.",
                    "template_value": DEFAULTS["esp_dir"],
                },
                "output_dir": {
                    **path,
                    "title": "Output directory",
                    "description": "Directory of the signed images, relative to the EFI system partition.",
                    "template_value": DEFAULTS["output_dir"],
                },
                "ledger_dir": {
                    **path,
                    "title": "Ledger directory",
                    "description": "Directory keeping the signature list of every revoked image.",
                    "template_value": DEFAULTS["ledger_dir"],
                },
                "backup_dir": {
                    **path,
                    "title": "Backup directory",
                    "description": "Directory keeping the digest of the fallback image of every configuration.",
                    "template_value": DEFAULTS["backup_dir"],
                },
                "efivars_dir": {
                    **path,
                    "title": "EFI variables directory",
                    "description": "Mount point of efivarfs.",
                    "template_value": DEFAULTS["efivars_dir"],
                },
                "owner_guid": {
                    "type": "string",
                    "format": "guid",
                    "title": "Owner GUID",
                    "description": "Owner GUID of the signatures appended to dbx.",
                    "template_value": DEFAULTS["owner_guid"],
                },
                "retry_delay": {
                    "type": "number",
                    "minimum": 0,
                    "title": "Retry delay",
                    "description": "Seconds to wait before a failed dbx write is retried.",
                    "template_value": DEFAULTS["retry_delay"],
                },
                "extractor": {
                    "type": "string",
                    "enum": ExtractorBackend.labels(),
                    "title": "PE/COFF digest extractor",
                    "description": "Read stored hashes in process or with sig-list-to-certs.",
                    "template_value": DEFAULTS["extractor"],
                },
                "kek_key_name": {
                    **path,
                    "title": "KEK key name",
                    "description": "Base name of the key pair signing dbx updates.",
                    "template_value": DEFAULTS["kek_key_name"],
                },
                "db_key_name": {
                    **path,
                    "title": "DB key name",
                    "description": "Base name of the key pair signing boot images.",
                    "template_value": DEFAULTS["db_key_name"],
                },
                "cmdline_default": {
                    "type": "string",
                    "title": "Default kernel command line",
                    "description": "Command line of configurations that don't define their own.",
                    "template_value": "quiet rw",
                },
                "splash": {
                    "type": "string",
                    "title": "Splash image",
                    "description": "Optional boot splash bitmap embedded into the images.",
                },
                "os_release": {
                    "type": "string",
                    "title": "OS release file",
                    "description": "Optional os-release file embedded into the images.",
                },
                "stub": {
                    "type": "string",
                    "title": "EFI stub",
                    "description": "Optional EFI stub, ukify default is used when empty.",
                },
                "modules_dir": {
                    **path,
                    "title": "Kernel modules directory",
                    "description": "Directory scanned for installed kernels when no configuration is defined.",
                    "skip_in_template": True,
                },
                "boot_dir": {
                    **path,
                    "title": "Boot directory",
                    "description": "Directory with initramfs and microcode images of discovered kernels.",
                    "skip_in_template": True,
                },
                "configs": {
                    "type": "object",
                    "title": "Image configurations",
                    "description": "Signed images keyed by name. Installed kernels are discovered when empty.",
                    "propertyNames": {"pattern": f"^{BackupStore.NAME_PATTERN.pattern}$"},
                    "additionalProperties": {
                        "type": "object",
                        "required": ["kernel"],
                        "additionalProperties": False,
                        "properties": {
                            "kernel": path,
                            "initrd": {"type": "array", "items": path},
                            "cmdline": {"type": "string"},
                        },
                    },
                    "template_value": {
                        "linux": {
                            "kernel": "/usr/lib/modules/6.10.0-arch1-1/vmlinuz",
                            "initrd": ["/boot/intel-ucode.img", "/boot/initramfs-linux.img"],
                            "cmdline": "",
                        }
                    },
                },
                "extra_sign": {
                    "type": "array",
                    "items": path,
                    "title": "Extra binaries",
                    "description": "EFI binaries signed in place with the DB key, e.g. boot loaders.",
                    "template_value": [],
                },
                "tools": {
                    "type": "object",
                    "propertyNames": {"enum": ToolRole.labels()},
                    "additionalProperties": {"type": "string", "minLength": 1},
                    "title": "External tools",
                    "description": "Executables overriding the default tool of a role.",
                    "template_value": {},
                },
            },
        }
        return [schema]

    @classmethod
    def get_config_template(cls) -> str:
        """Get commented configuration template.

        :return: Configuration template in YAML format.
        """
        return CommentedConfig("sbkeeper configuration", cls.get_validation_schemas()).get_template()

    @classmethod
    def load_from_config(cls, config: Config) -> Self:
        """Create settings from configuration file content.

        :param config: Loaded configuration.
        :raises SBKConfigError: Invalid configuration.
        :return: Resolved settings.
        """
        config.check(cls.get_validation_schemas())
        merged = Config(SBKMerger().merge(copy.deepcopy(DEFAULTS), copy.deepcopy(dict(config))))
        merged.config_dir = config.config_dir
        merged.search_paths = config.search_paths

        cmdline_default = merged.get_str("cmdline_default", "")
        configs = {}
        for name, image in merged.get_dict("configs").items():
            configs[name] = ImageConfig(
                name=name,
                kernel=merged.get_path(f"configs/{name}/kernel"),
                initrd=tuple(
                    get_abs_path(item, base_dir=merged.config_dir)
                    for item in image.get("initrd", [])
                ),
                cmdline=image.get("cmdline") or cmdline_default,
            )

        return cls(
            revocation=merged.get_bool("revocation"),
            keys_dir=merged.get_path("keys_dir"),
            esp_dir=merged.get_path("esp_dir"),
            output_dir=merged.get_str("output_dir"),
            ledger_dir=merged.get_path("ledger_dir"),
            backup_dir=merged.get_path("backup_dir"),
            efivars_dir=merged.get_path("efivars_dir"),
            owner_guid=uuid.UUID(merged.get_str("owner_guid")),
            retry_delay=merged.get_float("retry_delay"),
            extractor=ExtractorBackend.from_label(merged.get_str("extractor")),
            kek_key_name=merged.get_str("kek_key_name"),
            db_key_name=merged.get_str("db_key_name"),
            cmdline_default=cmdline_default,
            splash=_optional_path(merged, "splash"),
            os_release=_optional_path(merged, "os_release"),
            stub=_optional_path(merged, "stub"),
            modules_dir=merged.get_path("modules_dir"),
            boot_dir=merged.get_path("boot_dir"),
            configs=configs,
            extra_sign=tuple(
                get_abs_path(item, base_dir=merged.config_dir)
                for item in merged.get_list("extra_sign")
            ),
            tools=dict(merged.get_dict("tools")),
        )
