#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper exception classes.

This module defines the hierarchy of custom exception classes used throughout
sbkeeper for consistent error handling and reporting.
"""

from typing import Optional

#######################################################################
# # sbkeeper Exceptions
#######################################################################


class SBKError(Exception):
    """sbkeeper Base Exception.

    Base exception class for all sbkeeper related errors. It provides consistent
    error formatting across the package.

    :cvar fmt: Default error message format template.
    """

    fmt = "sbkeeper: {description}"

    def __init__(self, desc: Optional[str] = None) -> None:
        """Initialize the base sbkeeper Exception.

        :param desc: Optional description of the exception.
        """
        super().__init__()
        self.description = desc

    def __str__(self) -> str:
        """Return string representation of the exception.

        :return: Formatted exception message as string.
        """
        return self.fmt.format(description=self.description or "Unknown Error")


class SBKValueError(SBKError, ValueError):
    """sbkeeper standard value error exception."""


class SBKKeyError(SBKError, KeyError):
    """sbkeeper Key Error exception for missing dictionary keys."""


class SBKFileNotFoundError(FileNotFoundError, SBKError):
    """sbkeeper file not found exception."""

    def __init__(self, desc: Optional[str] = None) -> None:
        """Initialize the file not found exception.

        :param desc: Description of the missing file.
        """
        super().__init__(desc)
        self.description = desc


class SBKParsingError(SBKError):
    """Binary data could not be parsed.

    Raised when an EFI signature list or signature database is truncated or has
    inconsistent size fields.
    """


class SBKConfigError(SBKError):
    """Malformed inputs.

    Raised for invalid configuration files, invalid configuration names or
    digests and key material that cannot be resolved unambiguously.
    """


class SBKToolInvocationError(SBKError):
    """External process failed.

    Raised when an external tool exits with non-zero status, cannot be started
    or when its input file does not exist.
    """

    def __init__(
        self, desc: Optional[str] = None, returncode: Optional[int] = None, output: str = ""
    ) -> None:
        """Initialize the tool invocation error.

        :param desc: Description of the failure.
        :param returncode: Exit code of the failed process, None if it did not start.
        :param output: Captured output of the process.
        """
        super().__init__(desc)
        self.returncode = returncode
        self.output = output


class SBKNotIndexedError(SBKError):
    """PE/COFF digest requested for a digest with no stored signature list."""


class SBKFirmwareRaceError(SBKError):
    """Retry budget exhausted on a firmware variable write."""
