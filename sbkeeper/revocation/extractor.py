#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""PE/COFF digest extraction from stored revocation entries.

The firmware compares Authenticode (PE/COFF) hashes, which skip the embedded
signature directory and therefore differ from the plain file digest. The hash is
captured in the ledger blob at revocation time, this module reads it back.
"""

import logging
import os
import tempfile
from typing import Optional

from sbkeeper.exceptions import (
    SBKNotIndexedError,
    SBKParsingError,
    SBKToolInvocationError,
    SBKValueError,
)
from sbkeeper.revocation.esl import EFI_CERT_SHA256_GUID, SHA256_SIZE, SignatureList
from sbkeeper.revocation.ledger import RevocationEntry
from sbkeeper.utils.misc import load_binary
from sbkeeper.utils.sbk_enum import SbkEnum
from sbkeeper.utils.tools import ToolRole, ToolRunner

logger = logging.getLogger(__name__)


class ExtractorBackend(SbkEnum):
    """How the embedded hash is read from a signature list."""

    NATIVE = (0, "native", "Parse the signature list in process")
    TOOL = (1, "tool", "Run sig-list-to-certs and read the hash sidecar file")


class PECOFFDigestExtractor:
    """Derive the PE/COFF digest of a revoked image from its ledger entry."""

    def __init__(
        self,
        tools: Optional[ToolRunner] = None,
        backend: ExtractorBackend = ExtractorBackend.NATIVE,
    ) -> None:
        """Initialize the extractor.

        :param tools: Tool runner, required by the tool backend.
        :param backend: Extraction backend.
        """
        if backend == ExtractorBackend.TOOL and tools is None:
            raise SBKValueError("Tool backend requires a tool runner")
        self.tools = tools
        self.backend = backend

    def extract(self, entry: RevocationEntry) -> str:
        """Get PE/COFF digest stored in the entry.

        The result is cached on the entry.

        :param entry: Revocation entry with its blob stored in the ledger.
        :raises SBKNotIndexedError: The blob is missing or malformed.
        :return: Lowercase hexadecimal digest.
        """
        if entry.pecoff_digest:
            return entry.pecoff_digest
        if not entry.blob or not os.path.isfile(entry.path):
            raise SBKNotIndexedError(f"No signature list stored for {entry.digest}")

        if self.backend == ExtractorBackend.TOOL:
            raw = self._extract_with_tool(entry)
        else:
            raw = self._extract_native(entry)
        if len(raw) != SHA256_SIZE:
            raise SBKNotIndexedError(
                f"Signature list of {entry.digest} holds {len(raw)} byte(s) instead of a SHA-256 hash"
            )
        entry.pecoff_digest = raw.hex()
        logger.debug(f"PE/COFF digest of {entry.digest} is {entry.pecoff_digest}")
        return entry.pecoff_digest

    @staticmethod
    def _extract_native(entry: RevocationEntry) -> bytes:
        try:
            signature_list = SignatureList.parse(entry.blob)
        except SBKParsingError as exc:
            raise SBKNotIndexedError(
                f"Malformed signature list for {entry.digest}: {exc.description}"
            ) from exc
        if signature_list.signature_type != EFI_CERT_SHA256_GUID:
            raise SBKNotIndexedError(
                f"Signature list for {entry.digest} has type {signature_list.signature_type}"
            )
        if len(signature_list.signatures) != 1:
            raise SBKNotIndexedError(
                f"Signature list for {entry.digest} holds {len(signature_list.signatures)} entries"
            )
        return signature_list.signatures[0].data

    def _extract_with_tool(self, entry: RevocationEntry) -> bytes:
        assert self.tools
        with tempfile.TemporaryDirectory(prefix="sbkeeper-") as temp_dir:
            prefix = os.path.join(temp_dir, "entry")
            try:
                self.tools.run(ToolRole.ESL_TO_HASH, entry.path, prefix)
            except SBKToolInvocationError as exc:
                raise SBKNotIndexedError(
                    f"Cannot extract hash of {entry.digest}: {exc.description}"
                ) from exc
            # the tool writes one <prefix>-<n>.hash file per hash in the list
            sidecars = sorted(name for name in os.listdir(temp_dir) if name.endswith(".hash"))
            if sidecars != ["entry-0.hash"]:
                raise SBKNotIndexedError(
                    f"Signature list for {entry.digest} doesn't hold exactly one hash"
                )
            return load_binary(os.path.join(temp_dir, sidecars[0]))
