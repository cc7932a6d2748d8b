#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of installed kernel discovery."""

import os

from sbkeeper.image.kernels import ImageConfig, discover_kernels
from tests.misc import write_bytes


def _install_kernel(modules_dir: str, version: str, pkgbase: str = "") -> str:
    kernel = write_bytes(os.path.join(modules_dir, version, "vmlinuz"), b"kernel " + version.encode())
    if pkgbase:
        write_bytes(os.path.join(modules_dir, version, "pkgbase"), pkgbase.encode() + b"\n")
    return kernel


def test_discover_kernels(tmp_path):
    modules_dir = str(tmp_path / "modules")
    boot_dir = str(tmp_path / "boot")
    linux = _install_kernel(modules_dir, "6.10.0-arch1-1", "linux")
    lts = _install_kernel(modules_dir, "6.6.40-1-lts", "linux-lts")
    _install_kernel(modules_dir, "6.9.0-custom")
    intel = write_bytes(os.path.join(boot_dir, "intel-ucode.img"), b"ucode")
    initramfs = write_bytes(os.path.join(boot_dir, "initramfs-linux.img"), b"initramfs")

    configs = discover_kernels(modules_dir, boot_dir, "quiet")

    assert configs == {
        "linux": ImageConfig("linux", linux, (intel, initramfs), "quiet"),
        "linux-lts": ImageConfig("linux-lts", lts, (intel,), "quiet"),
    }


def test_discover_nothing(tmp_path):
    assert discover_kernels(str(tmp_path / "modules"), str(tmp_path / "boot")) == {}


def test_microcode_order(tmp_path):
    modules_dir = str(tmp_path / "modules")
    boot_dir = str(tmp_path / "boot")
    _install_kernel(modules_dir, "6.10.0", "linux")
    intel = write_bytes(os.path.join(boot_dir, "intel-ucode.img"), b"intel")
    amd = write_bytes(os.path.join(boot_dir, "amd-ucode.img"), b"amd")

    assert discover_kernels(modules_dir, boot_dir)["linux"].initrd == (amd, intel)
