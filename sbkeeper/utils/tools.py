#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""External tool invocation.

sbkeeper delegates signature list creation, authenticated variable signing,
variable updates, immutable attribute handling and image assembly to well known
command line tools (efitools, e2fsprogs, systemd-ukify, sbsigntools). Each tool
is addressed by its role so the executable can be replaced in configuration.
"""

import logging
import shlex
import subprocess
from typing import Optional, Union

from sbkeeper.exceptions import SBKConfigError, SBKToolInvocationError
from sbkeeper.utils.sbk_enum import SbkEnum

logger = logging.getLogger(__name__)


class ToolRole(SbkEnum):
    """Roles of external tools, description holds the default executable."""

    HASH_TO_ESL = (0, "hash_to_esl", "hash-to-efi-sig-list")
    ESL_TO_HASH = (1, "esl_to_hash", "sig-list-to-certs")
    SIGN_ESL = (2, "sign_esl", "sign-efi-sig-list")
    UPDATE_VAR = (3, "update_var", "efi-updatevar")
    CHATTR = (4, "chattr", "chattr")
    LSATTR = (5, "lsattr", "lsattr")
    UKIFY = (6, "ukify", "ukify")
    SBSIGN = (7, "sbsign", "sbsign")


class ToolRunner:
    """Runs external tools by role and turns failures into exceptions."""

    def __init__(self, executables: Optional[dict[str, str]] = None) -> None:
        """Initialize the runner.

        :param executables: Mapping of role label to executable overriding the defaults.
        :raises SBKConfigError: Unknown tool role in the mapping.
        """
        self.executables: dict[ToolRole, str] = {
            role: role.description or role.label for role in ToolRole
        }
        for label, executable in (executables or {}).items():
            if label not in ToolRole.labels():
                raise SBKConfigError(f"Unknown tool role '{label}'")
            self.executables[ToolRole.from_label(label)] = executable

    def executable(self, role: ToolRole) -> str:
        """Get executable configured for the role.

        :param role: Tool role.
        :return: Executable name or path.
        """
        return self.executables[role]

    def execute(self, command: list[str]) -> "subprocess.CompletedProcess[str]":
        """Execute command and capture its output.

        :param command: Command line as list of arguments.
        :raises SBKToolInvocationError: The process can't be started.
        :return: Completed process.
        """
        try:
            return subprocess.run(command, check=False, capture_output=True, text=True)
        except OSError as exc:
            raise SBKToolInvocationError(f"Cannot start {command[0]}: {exc}") from exc

    def run(self, role: ToolRole, *args: Union[str, int]) -> str:
        """Run tool in given role.

        :param role: Tool role.
        :param args: Command line arguments.
        :raises SBKToolInvocationError: The tool failed.
        :return: Standard output of the tool.
        """
        command = [self.executable(role), *(str(arg) for arg in args)]
        logger.debug(f"Running: {shlex.join(command)}")
        process = self.execute(command)
        if process.returncode != 0:
            output = (process.stderr or process.stdout or "").strip()
            raise SBKToolInvocationError(
                f"{command[0]} failed with exit code {process.returncode}: {output}",
                returncode=process.returncode,
                output=output,
            )
        return process.stdout or ""
