#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of external tool invocation."""

import subprocess

import pytest

from sbkeeper.exceptions import SBKConfigError, SBKToolInvocationError
from sbkeeper.utils.tools import ToolRole, ToolRunner


class RecordingRunner(ToolRunner):
    def __init__(self, returncode=0, stdout="", stderr="", executables=None):
        super().__init__(executables)
        self.result = (returncode, stdout, stderr)
        self.commands = []

    def execute(self, command):
        self.commands.append(command)
        return subprocess.CompletedProcess(command, *self.result)


def test_default_executables():
    runner = ToolRunner()
    assert runner.executable(ToolRole.HASH_TO_ESL) == "hash-to-efi-sig-list"
    assert runner.executable(ToolRole.UPDATE_VAR) == "efi-updatevar"
    assert runner.executable(ToolRole.SBSIGN) == "sbsign"


def test_executable_override():
    runner = RecordingRunner(stdout="done\n", executables={"update_var": "/opt/efitools/efi-updatevar"})
    assert runner.run(ToolRole.UPDATE_VAR, "-a", "-f", "x.auth", "dbx") == "done\n"
    assert runner.commands == [["/opt/efitools/efi-updatevar", "-a", "-f", "x.auth", "dbx"]]


def test_unknown_role():
    with pytest.raises(SBKConfigError):
        ToolRunner({"signer": "openssl"})


def test_failure():
    runner = RecordingRunner(returncode=3, stderr="Operation not permitted\n")
    with pytest.raises(SBKToolInvocationError) as exc_info:
        runner.run(ToolRole.CHATTR, "+i", "/sys/firmware/efi/efivars/dbx")
    assert exc_info.value.returncode == 3
    assert exc_info.value.output == "Operation not permitted"
    assert "chattr failed with exit code 3" in str(exc_info.value)


def test_arguments_are_strings():
    runner = RecordingRunner()
    runner.run(ToolRole.LSATTR, "-d", 1)
    assert runner.commands == [["lsattr", "-d", "1"]]


def test_missing_executable():
    runner = ToolRunner({"ukify": "/nonexistent/sbkeeper-test/ukify"})
    with pytest.raises(SBKToolInvocationError, match="Cannot start"):
        runner.run(ToolRole.UKIFY, "build")
