#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the application error handling and logging."""

import io
import logging

import pytest

from sbkeeper.apps.utils import sbk_logger
from sbkeeper.apps.utils.utils import SBKAppError, catch_sbk_error
from sbkeeper.exceptions import SBKConfigError


def _raise(exc):
    @catch_sbk_error
    def function():
        raise exc

    return function


@pytest.mark.parametrize(
    "exc,code",
    [
        (SBKAppError("some images failed"), 1),
        (SBKAppError("custom", error_code=4), 4),
        (SBKConfigError("bad configuration"), 2),
        (AssertionError("broken invariant"), 2),
        (RuntimeError("unexpected"), 3),
    ],
)
def test_exit_codes(exc, code, capsys):
    with pytest.raises(SystemExit) as exc_info:
        _raise(exc)()
    assert exc_info.value.code == code
    assert str(exc) in capsys.readouterr().err


def test_success_passes_value():
    assert catch_sbk_error(lambda: 5)() == 5


@pytest.fixture
def test_logger():
    logger = logging.getLogger("sbkeeper.tests.logger")
    yield logger
    logger.handlers.clear()


def test_logger_install(test_logger):
    stream = io.StringIO()
    sbk_logger.install(logging.INFO, stream, logger=test_logger, create_debug_logger=False)

    test_logger.debug("hidden")
    test_logger.info("shown")
    test_logger.error("\x1b[31mcolored\x1b[0m")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "INFO:sbkeeper.tests.logger:shown" in output
    # the stream is not a terminal, colors are stripped
    assert "\x1b[" not in output
    assert "colored" in output


def test_logger_forced_colors(test_logger):
    stream = io.StringIO()
    sbk_logger.install(stream=stream, colored=True, logger=test_logger, create_debug_logger=False)
    test_logger.warning("warning")
    assert "\x1b[" in stream.getvalue()


def test_formatter_keeps_non_string_messages():
    formatter = sbk_logger.ColoredFormatter(colored=False)
    record = logging.LogRecord("sbkeeper", logging.INFO, __file__, 1, 42, None, None)
    assert formatter.format(record).endswith("42")
