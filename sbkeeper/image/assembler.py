#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Unified kernel image assembly and signing.

Images are assembled by ``ukify build`` from the kernel, initial ramdisks and
command line and signed by ``sbsign`` with the DB key. Assembly happens in a
temporary directory, only the signed result lands in the EFI system partition.
"""

import logging
import os
import tempfile

from sbkeeper.crypto.keys import KeyReference
from sbkeeper.exceptions import SBKToolInvocationError
from sbkeeper.image.kernels import ImageConfig
from sbkeeper.settings import KeeperConfig
from sbkeeper.utils.tools import ToolRole, ToolRunner

logger = logging.getLogger(__name__)


class UkiAssembler:
    """Builds and signs unified kernel images.

    :cvar IMAGE_SUFFIX: Suffix of the signed image file name.
    :cvar BACKUP_SUFFIX: Suffix appended to the image file name of a backup.
    """

    IMAGE_SUFFIX = "-signed.efi"
    BACKUP_SUFFIX = ".bak"

    def __init__(self, config: KeeperConfig, key: KeyReference, tools: ToolRunner) -> None:
        """Initialize the assembler.

        :param config: sbkeeper settings.
        :param key: DB key pair used for signing.
        :param tools: Runner of ukify and sbsign.
        """
        self.config = config
        self.key = key
        self.tools = tools

    def output_path(self, name: str) -> str:
        """Get location of the signed image of a configuration.

        :param name: Configuration name.
        :return: Path in the EFI system partition.
        """
        return os.path.join(self.config.image_dir, name + self.IMAGE_SUFFIX)

    def backup_path(self, name: str) -> str:
        """Get location of the backup image of a configuration.

        :param name: Configuration name.
        :return: Path next to the signed image.
        """
        return self.output_path(name) + self.BACKUP_SUFFIX

    def sign(self, input_path: str, output_path: str) -> None:
        """Sign EFI binary with the DB key.

        :param input_path: Binary to sign.
        :param output_path: Signed binary, may be the same as input.
        """
        self.tools.run(
            ToolRole.SBSIGN,
            "--key",
            self.key.private_key,
            "--cert",
            self.key.certificate,
            "--output",
            output_path,
            input_path,
        )

    def build(self, image: ImageConfig) -> str:
        """Assemble and sign image of a configuration.

        An existing image of the configuration is replaced.

        :param image: Image configuration.
        :raises SBKToolInvocationError: An input is missing or a tool failed.
        :return: Path to the signed image.
        """
        for path in (image.kernel, *image.initrd):
            if not os.path.isfile(path):
                raise SBKToolInvocationError(f"Input {path} of image '{image.name}' doesn't exist")

        output = self.output_path(image.name)
        with tempfile.TemporaryDirectory(prefix="sbkeeper-") as temp_dir:
            unsigned = os.path.join(temp_dir, f"{image.name}.efi")
            args = ["build", f"--linux={image.kernel}"]
            args.extend(f"--initrd={initrd}" for initrd in image.initrd)
            cmdline = image.cmdline or self.config.cmdline_default
            if cmdline:
                args.append(f"--cmdline={cmdline}")
            if self.config.splash:
                args.append(f"--splash={self.config.splash}")
            if self.config.os_release:
                args.append(f"--os-release=@{self.config.os_release}")
            if self.config.stub:
                args.append(f"--stub={self.config.stub}")
            args.append(f"--output={unsigned}")
            self.tools.run(ToolRole.UKIFY, *args)

            os.makedirs(os.path.dirname(output), exist_ok=True)
            self.sign(unsigned, output)
        logger.info(f"Created signed image {output}")
        return output

    def sign_extra(self) -> list[str]:
        """Sign the extra binaries in place.

        :return: Binaries that failed to be signed.
        """
        failed = []
        for path in self.config.extra_sign:
            if not os.path.isfile(path):
                logger.error(f"Extra binary {path} doesn't exist")
                failed.append(path)
                continue
            try:
                self.sign(path, path)
            except SBKToolInvocationError as exc:
                logger.error(f"Failed to sign {path}: {exc.description}")
                failed.append(path)
            else:
                logger.info(f"Signed {path}")
        return failed
