#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Discovery of installed kernels.

Kernel packages install the kernel as ``<modules_dir>/<version>/vmlinuz`` next to
a ``pkgbase`` file naming the package. The initramfs generated for the package is
expected as ``<boot_dir>/initramfs-<pkgbase>.img`` and microcode images found in
the boot directory are loaded before it.
"""

import glob
import logging
import os
from dataclasses import dataclass, field

from sbkeeper.utils.misc import load_text

logger = logging.getLogger(__name__)

MODULES_DIR = "/usr/lib/modules"
BOOT_DIR = "/boot"
MICROCODE_IMAGES = ("amd-ucode.img", "intel-ucode.img")


@dataclass(frozen=True)
class ImageConfig:
    """Inputs of one signed boot image.

    :param name: Configuration name, also the base name of the produced image.
    :param kernel: Path to the kernel.
    :param initrd: Paths to the initial ramdisks in load order.
    :param cmdline: Kernel command line, empty to use the default one.
    """

    name: str
    kernel: str
    initrd: tuple[str, ...] = field(default_factory=tuple)
    cmdline: str = ""


def discover_kernels(
    modules_dir: str = MODULES_DIR, boot_dir: str = BOOT_DIR, cmdline: str = ""
) -> dict[str, ImageConfig]:
    """Build image configurations for the installed kernel packages.

    :param modules_dir: Directory with kernel modules of the installed kernels.
    :param boot_dir: Directory with initramfs and microcode images.
    :param cmdline: Kernel command line used by all the configurations.
    :return: Image configurations keyed by package name.
    """
    microcode = [
        os.path.join(boot_dir, name)
        for name in MICROCODE_IMAGES
        if os.path.isfile(os.path.join(boot_dir, name))
    ]
    configs: dict[str, ImageConfig] = {}
    for kernel in sorted(glob.glob(os.path.join(modules_dir, "*", "vmlinuz"))):
        pkgbase_path = os.path.join(os.path.dirname(kernel), "pkgbase")
        if not os.path.isfile(pkgbase_path):
            logger.debug(f"Skipping {kernel}, it doesn't belong to a kernel package")
            continue
        name = load_text(pkgbase_path).strip()
        initramfs = os.path.join(boot_dir, f"initramfs-{name}.img")
        initrd = [*microcode, initramfs] if os.path.isfile(initramfs) else list(microcode)
        if name in configs:
            logger.warning(f"Kernel package {name} is installed more than once, using {kernel}")
        configs[name] = ImageConfig(name=name, kernel=kernel, initrd=tuple(initrd), cmdline=cmdline)
        logger.info(f"Discovered kernel {name}: {kernel}")
    return configs
