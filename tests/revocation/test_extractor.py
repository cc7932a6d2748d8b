#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Tests of the PE/COFF digest extraction."""

import hashlib
import os

import pytest

from sbkeeper.exceptions import SBKNotIndexedError, SBKValueError
from sbkeeper.revocation.esl import EFI_CERT_X509_GUID, SignatureData, SignatureList
from sbkeeper.revocation.extractor import ExtractorBackend, PECOFFDigestExtractor
from sbkeeper.revocation.ledger import RevocationEntry, RevocationLedger
from sbkeeper.utils.tools import ToolRole
from tests.firmware import ZERO_OWNER, pecoff_digest
from tests.misc import write_bytes

IMAGE = b"signed image"
DIGEST = hashlib.sha256(IMAGE).hexdigest()

BACKENDS = [ExtractorBackend.NATIVE, ExtractorBackend.TOOL]


def _entry(tmp_path, blob: bytes) -> RevocationEntry:
    path = write_bytes(str(tmp_path / "ledger" / f"{DIGEST}.esl"), blob)
    return RevocationEntry(DIGEST, blob, path)


@pytest.mark.parametrize("backend", BACKENDS)
def test_extract_from_ledger_entry(tmp_path, firmware, backend):
    image = write_bytes(str(tmp_path / "image.efi"), IMAGE)
    entry = RevocationLedger(str(tmp_path / "ledger"), firmware).get_or_create(DIGEST, image)

    extractor = PECOFFDigestExtractor(firmware, backend)
    assert extractor.extract(entry) == pecoff_digest(IMAGE)
    assert extractor.extract(entry) != DIGEST


def test_result_is_cached(tmp_path, firmware):
    image = write_bytes(str(tmp_path / "image.efi"), IMAGE)
    entry = RevocationLedger(str(tmp_path / "ledger"), firmware).get_or_create(DIGEST, image)
    extractor = PECOFFDigestExtractor(firmware, ExtractorBackend.TOOL)

    extractor.extract(entry)
    extractor.extract(entry)
    assert len(firmware.calls_of(ToolRole.ESL_TO_HASH)) == 1
    assert entry.pecoff_digest == pecoff_digest(IMAGE)


def test_tool_backend_requires_runner():
    with pytest.raises(SBKValueError):
        PECOFFDigestExtractor(backend=ExtractorBackend.TOOL)


@pytest.mark.parametrize("backend", BACKENDS)
def test_missing_blob(tmp_path, firmware, backend):
    entry = _entry(tmp_path, SignatureList.create_sha256([bytes(32)], ZERO_OWNER).export())
    os.remove(entry.path)
    with pytest.raises(SBKNotIndexedError):
        PECOFFDigestExtractor(firmware, backend).extract(entry)


@pytest.mark.parametrize("backend", BACKENDS)
def test_malformed_blob(tmp_path, firmware, backend):
    entry = _entry(tmp_path, b"\x01" * 40)
    with pytest.raises(SBKNotIndexedError):
        PECOFFDigestExtractor(firmware, backend).extract(entry)


@pytest.mark.parametrize("backend", BACKENDS)
def test_more_hashes_in_blob(tmp_path, firmware, backend):
    blob = SignatureList.create_sha256([bytes(32), b"\x01" * 32], ZERO_OWNER).export()
    with pytest.raises(SBKNotIndexedError):
        PECOFFDigestExtractor(firmware, backend).extract(_entry(tmp_path, blob))


def test_certificate_list(tmp_path, firmware):
    blob = SignatureList(EFI_CERT_X509_GUID, [SignatureData(ZERO_OWNER, b"c" * 32)]).export()
    with pytest.raises(SBKNotIndexedError):
        PECOFFDigestExtractor(firmware).extract(_entry(tmp_path, blob))
