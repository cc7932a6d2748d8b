#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Removal of protected image digests from dbx."""

import logging
import os
from typing import Iterable, Mapping, Optional

from sbkeeper.crypto.hash import normalize_digest
from sbkeeper.exceptions import SBKNotIndexedError
from sbkeeper.revocation.dbx import DbxSynchronizer
from sbkeeper.revocation.extractor import PECOFFDigestExtractor
from sbkeeper.revocation.ledger import BackupStore, RevocationLedger

logger = logging.getLogger(__name__)


class BlacklistPruner:
    """Keeps the current image and the live backups out of dbx.

    The image that is about to boot and the fallback image of every configuration
    are protected: their PE/COFF digests must never stay blacklisted.
    """

    def __init__(
        self,
        ledger: RevocationLedger,
        backups: BackupStore,
        extractor: PECOFFDigestExtractor,
        synchronizer: DbxSynchronizer,
    ) -> None:
        self.ledger = ledger
        self.backups = backups
        self.extractor = extractor
        self.synchronizer = synchronizer

    def protected_digests(
        self, current: Optional[str] = None, installed: Iterable[str] = ()
    ) -> list[str]:
        """Get plain digests that must not be blacklisted.

        :param current: Digest of the image being installed, if any.
        :param installed: Digests of other images present in the EFI system partition.
        :return: Current digest first, then the installed and live backup digests, no duplicates.
        """
        candidates = [current] if current else []
        candidates.extend(installed)
        candidates.extend(record.digest for record in self.backups.records())
        protected: list[str] = []
        for digest in candidates:
            digest = normalize_digest(digest)
            if digest not in protected:
                protected.append(digest)
        return protected

    def prune(
        self,
        current: Optional[str] = None,
        installed: Iterable[str] = (),
        image_paths: Optional[Mapping[str, str]] = None,
    ) -> list[str]:
        """Remove protected digests from dbx.

        The revocation entry of a protected digest is fetched from the ledger, or
        created when the image file is known. A protected digest that never entered
        the revocation flow and has no known file can't be blacklisted and is skipped.

        :param current: Digest of the image being installed, if any.
        :param installed: Digests of other images present in the EFI system partition.
        :param image_paths: Image files by digest, used to create missing entries.
        :raises SBKFirmwareRaceError: A deletion didn't succeed within the retry budget.
        :raises SBKToolInvocationError: A missing entry couldn't be created.
        :return: Protected digests whose PE/COFF digest couldn't be determined.
        """
        paths = {normalize_digest(digest): path for digest, path in (image_paths or {}).items()}
        unverified = []
        for digest in self.protected_digests(current, installed):
            entry = self.ledger.find(digest)
            if entry is None and os.path.isfile(paths.get(digest, "")):
                entry = self.ledger.get_or_create(digest, paths[digest])
            if entry is None:
                logger.debug(f"{digest} was never revoked")
                continue
            try:
                pecoff_digest = self.extractor.extract(entry)
            except SBKNotIndexedError as exc:
                logger.error(f"Can't verify {digest} is not blacklisted: {exc.description}")
                unverified.append(digest)
                continue
            if self.synchronizer.remove_digest(pecoff_digest):
                logger.info(f"Protected image {digest} is no longer blacklisted")
        return unverified
