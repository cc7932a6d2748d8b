#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper application utilities and error handling."""

import logging
import sys
from functools import wraps
from typing import Any, Callable, Optional

import click

from sbkeeper import SBKEEPER_DEBUG_LOG_FILE, SBKEEPER_DEBUG_LOGGING_DISABLED
from sbkeeper.exceptions import SBKError

logger = logging.getLogger(__name__)


class SBKAppError(SBKError):
    """Non-fatal application error with an exit code.

    :cvar fmt: Format string template for error message display.
    """

    fmt = "{description}"

    def __init__(self, desc: Optional[str] = None, error_code: int = 1) -> None:
        """Initialize the application error.

        :param desc: Description to print out on command line, defaults to None
        :param error_code: Error code passed to OS, defaults to 1
        """
        super().__init__(desc)
        self.error_code = error_code


def catch_sbk_error(function: Callable) -> Callable:
    """Turn exceptions into an error message and exit code.

    SBKAppError exits with its own error code (1 by default), SBKError and
    AssertionError exit with 2 and any other exception with 3. Details go to the
    debug log.

    :param function: The function to be decorated.
    :return: The decorated function.
    """

    @wraps(function)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return function(*args, **kwargs)
        except SBKAppError as app_exc:
            if app_exc.description:
                click.echo(f"{app_exc.__class__.__name__}: {app_exc}", err=True)
            if 0 < app_exc.error_code < 256:
                sys.exit(app_exc.error_code)
            sys.exit(1)
        except (AssertionError, SBKError) as sbk_exc:
            click.echo(f"{sbk_exc.__class__.__name__}: {sbk_exc}", err=True)
            logger.debug(str(sbk_exc), exc_info=True)
            if not SBKEEPER_DEBUG_LOGGING_DISABLED:
                click.secho(
                    f"See debug log file: {SBKEEPER_DEBUG_LOG_FILE} for more info", fg="yellow"
                )
            sys.exit(2)
        except (Exception, KeyboardInterrupt) as base_exc:  # pylint: disable=broad-except
            click.echo(f"GENERAL ERROR: {type(base_exc).__name__}: {base_exc}", err=True)
            logger.debug(str(base_exc), exc_info=True)
            if not SBKEEPER_DEBUG_LOGGING_DISABLED:
                click.secho(
                    f"See debug log file: {SBKEEPER_DEBUG_LOG_FILE} for more info.", fg="yellow"
                )
            sys.exit(3)

    return wrapper
