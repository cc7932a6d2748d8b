#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the hash helpers."""

import hashlib

import pytest

from sbkeeper.crypto.hash import (
    EnumHashAlgorithm,
    get_file_digest,
    get_hash,
    get_hash_length,
    normalize_digest,
)
from sbkeeper.exceptions import SBKConfigError, SBKFileNotFoundError
from tests.misc import write_bytes


@pytest.mark.parametrize(
    "algorithm,length",
    [
        (EnumHashAlgorithm.SHA1, 20),
        (EnumHashAlgorithm.SHA256, 32),
        (EnumHashAlgorithm.SHA384, 48),
        (EnumHashAlgorithm.SHA512, 64),
    ],
)
def test_hash_length(algorithm, length):
    assert get_hash_length(algorithm) == length
    assert len(get_hash(b"data", algorithm)) == length


def test_file_digest(tmp_path):
    # larger than one read chunk
    data = bytes(range(256)) * 5000
    path = write_bytes(str(tmp_path / "image.efi"), data)
    assert get_file_digest(path) == hashlib.sha256(data).hexdigest()
    assert get_file_digest(path, EnumHashAlgorithm.SHA384) == hashlib.sha384(data).hexdigest()


def test_file_digest_missing_file(tmp_path):
    with pytest.raises(SBKFileNotFoundError):
        get_file_digest(str(tmp_path / "missing.efi"))


def test_normalize_digest():
    digest = hashlib.sha256(b"x").hexdigest()
    assert normalize_digest(digest.upper()) == digest


@pytest.mark.parametrize(
    "digest",
    ["", "abc", "g" * 64, "a" * 63, "a" * 65, " " + "a" * 64, None],
)
def test_normalize_invalid_digest(digest):
    with pytest.raises(SBKConfigError):
        normalize_digest(digest)
