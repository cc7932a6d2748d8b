#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of miscellaneous utilities."""

import os

import pytest

from sbkeeper.exceptions import SBKError, SBKFileNotFoundError
from sbkeeper.utils.misc import (
    find_dir,
    find_file,
    find_first,
    get_abs_path,
    get_printable_path,
    load_binary,
    load_configuration,
    load_text,
    write_file,
)


def test_find_first():
    assert find_first([1, 2, 3, 4], lambda x: x % 2 == 0) == 2
    assert find_first([1, 3], lambda x: x % 2 == 0) is None


def test_write_and_load(tmp_path):
    path = str(tmp_path / "nested" / "dir" / "file.bin")
    assert write_file(b"\x00\x01", path, mode="wb") == 2
    assert load_binary(path) == b"\x00\x01"
    text_path = str(tmp_path / "file.txt")
    write_file("text", text_path)
    assert load_text(text_path) == "text"


def test_find_file_in_search_paths(tmp_path):
    write_file("x", str(tmp_path / "b" / "config.yaml"))
    assert find_file("config.yaml", search_paths=[str(tmp_path / "a"), str(tmp_path / "b")]) == str(
        tmp_path / "b" / "config.yaml"
    )
    assert find_file("missing.yaml", search_paths=[str(tmp_path)], raise_exc=False) == ""
    with pytest.raises(SBKFileNotFoundError):
        find_file(str(tmp_path / "missing.yaml"))
    assert find_dir(str(tmp_path / "b")) == str(tmp_path / "b")


def test_file_not_found_description(tmp_path):
    missing = str(tmp_path / "missing.yaml")
    with pytest.raises(SBKFileNotFoundError) as exc_info:
        find_file(missing)
    assert exc_info.value.description == f"Path '{missing}' not found"
    assert isinstance(exc_info.value, FileNotFoundError)
    assert missing in str(exc_info.value)


def test_get_abs_path(tmp_path):
    assert get_abs_path("keys", str(tmp_path)) == os.path.join(str(tmp_path), "keys")
    assert get_abs_path("/etc/../etc/keys", str(tmp_path)) == "/etc/keys"


def test_get_printable_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert get_printable_path(str(tmp_path / "out" / "a.yaml")) == os.path.join("out", "a.yaml")
    assert get_printable_path("/etc/sbkeeper.yaml") == "/etc/sbkeeper.yaml"


def test_load_configuration(tmp_path):
    yaml_path = str(tmp_path / "config.yaml")
    write_file("revocation: true\nconfigs:\n  web:\n    kernel: /boot/vmlinuz\n", yaml_path)
    assert load_configuration(yaml_path) == {
        "revocation": True,
        "configs": {"web": {"kernel": "/boot/vmlinuz"}},
    }
    json_path = str(tmp_path / "config.json")
    write_file('{"revocation": false}', json_path)
    assert load_configuration(json_path) == {"revocation": False}


@pytest.mark.parametrize("content", ["", "- a\n- b\n", "key: [unclosed\n"])
def test_load_invalid_configuration(tmp_path, content):
    path = str(tmp_path / "config.yaml")
    write_file(content, path)
    with pytest.raises(SBKError):
        load_configuration(path)


def test_load_missing_configuration(tmp_path):
    with pytest.raises(SBKError, match="Can't load configuration file"):
        load_configuration(str(tmp_path / "missing.yaml"))
