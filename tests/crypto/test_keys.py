#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of key material resolution."""

import os
import shutil

import pytest

from sbkeeper.crypto.keys import load_certificate, load_private_key, resolve_key_reference
from sbkeeper.exceptions import SBKConfigError
from tests.misc import create_key_pair, write_bytes


def test_resolve(tmp_path):
    keys_dir = str(tmp_path / "keys")
    key, cert = create_key_pair(keys_dir, "DB")

    reference = resolve_key_reference(keys_dir, "DB")

    assert reference.name == "DB"
    assert reference.private_key == key
    assert reference.certificate == cert
    assert "DB" in str(reference)


def test_resolve_case_insensitive(tmp_path):
    keys_dir = str(tmp_path / "keys")
    key, cert = create_key_pair(keys_dir, "kek", key_ext=".KEY", cert_ext=".Crt")
    reference = resolve_key_reference(keys_dir, "KEK")
    assert (reference.private_key, reference.certificate) == (key, cert)


def test_resolve_extension_order(tmp_path):
    keys_dir = str(tmp_path / "keys")
    # private key in .pem, certificate in .cer, both in DER
    key, cert = create_key_pair(keys_dir, "DB", key_ext=".pem", cert_ext=".cer", der=True)
    reference = resolve_key_reference(keys_dir, "DB")
    assert (reference.private_key, reference.certificate) == (key, cert)
    assert load_private_key(key).public_key() is not None
    assert load_certificate(cert).subject is not None


def test_resolve_prefers_crt(tmp_path):
    keys_dir = str(tmp_path / "keys")
    key, cert = create_key_pair(keys_dir, "DB")
    shutil.copy(cert, os.path.join(keys_dir, "DB.cer"))
    assert resolve_key_reference(keys_dir, "DB").certificate == cert


def test_resolve_ambiguous(tmp_path):
    keys_dir = str(tmp_path / "keys")
    key, _ = create_key_pair(keys_dir, "DB")
    shutil.copy(key, os.path.join(keys_dir, "db.key"))
    with pytest.raises(SBKConfigError, match="Ambiguous"):
        resolve_key_reference(keys_dir, "DB")


def test_resolve_missing_certificate(tmp_path):
    keys_dir = str(tmp_path / "keys")
    _, cert = create_key_pair(keys_dir, "DB")
    os.remove(cert)
    with pytest.raises(SBKConfigError, match="No file for DB"):
        resolve_key_reference(keys_dir, "DB")


def test_resolve_missing_directory(tmp_path):
    with pytest.raises(SBKConfigError):
        resolve_key_reference(str(tmp_path / "keys"), "DB")


def test_resolve_mismatch(tmp_path):
    keys_dir = str(tmp_path / "keys")
    create_key_pair(keys_dir, "DB")
    _, other_cert = create_key_pair(str(tmp_path / "other"), "DB")
    shutil.copy(other_cert, os.path.join(keys_dir, "DB.crt"))
    with pytest.raises(SBKConfigError, match="doesn't match"):
        resolve_key_reference(keys_dir, "DB")


def test_resolve_encrypted_key(tmp_path):
    keys_dir = str(tmp_path / "keys")
    create_key_pair(keys_dir, "DB", password=b"secret")
    with pytest.raises(SBKConfigError, match="encrypted"):
        resolve_key_reference(keys_dir, "DB")


def test_load_invalid_files(tmp_path):
    garbage = write_bytes(str(tmp_path / "garbage.pem"), b"-----BEGIN GARBAGE-----\n")
    with pytest.raises(SBKConfigError):
        load_private_key(garbage)
    with pytest.raises(SBKConfigError):
        load_certificate(garbage)
