#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Revocation ledger and backup records.

The ledger is a content addressed store: for every image digest that entered the
revocation flow it keeps the single-entry EFI signature list produced from the
signed image at that time. The PE/COFF digest inside cannot be recomputed once
the image is gone, so blobs are written once and never overwritten or removed.

Backup records remember, per configuration name, the digest of the most recently
removed image. That image is the fallback that must stay bootable.
"""

import logging
import os
import re
import tempfile
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from sbkeeper.crypto.hash import normalize_digest
from sbkeeper.exceptions import SBKConfigError, SBKToolInvocationError
from sbkeeper.utils.misc import load_binary, load_text
from sbkeeper.utils.tools import ToolRole, ToolRunner

logger = logging.getLogger(__name__)


class RevocationEntry:
    """Stored signature list of one image digest.

    :param digest: Plain content digest of the image.
    :param blob: Single-entry EFI signature list built from the image.
    :param path: Location of the blob in the ledger.
    """

    def __init__(self, digest: str, blob: bytes, path: str) -> None:
        self.digest = digest
        self.blob = blob
        self.path = path
        # filled in by the PE/COFF digest extractor
        self.pecoff_digest: Optional[str] = None

    def __eq__(self, obj: Any) -> bool:
        return (
            isinstance(obj, RevocationEntry) and obj.digest == self.digest and obj.blob == self.blob
        )

    def __hash__(self) -> int:
        return hash((self.digest, self.blob))

    def __repr__(self) -> str:
        return f"RevocationEntry({self.digest})"


class RevocationLedger:
    """Content addressed store of revocation entries.

    :cvar BLOB_EXTENSION: Extension of the stored signature lists.
    """

    BLOB_EXTENSION = ".esl"

    def __init__(self, ledger_dir: str, tools: ToolRunner) -> None:
        """Initialize the ledger.

        :param ledger_dir: Directory holding one blob per digest.
        :param tools: Runner of the external signature list builder.
        """
        self.ledger_dir = ledger_dir
        self.tools = tools

    def blob_path(self, digest: str) -> str:
        """Get canonical location of the blob for a digest.

        :param digest: Plain content digest.
        :return: Path to the blob.
        """
        return os.path.join(self.ledger_dir, normalize_digest(digest) + self.BLOB_EXTENSION)

    def find(self, digest: str) -> Optional[RevocationEntry]:
        """Load entry without creating it.

        :param digest: Plain content digest.
        :return: Entry or None when no blob is stored for the digest.
        """
        path = self.blob_path(digest)
        if not os.path.isfile(path):
            return None
        return RevocationEntry(digest=normalize_digest(digest), blob=load_binary(path), path=path)

    def get_or_create(self, digest: str, image_path: str) -> RevocationEntry:
        """Get entry for a digest, building it from the image when missing.

        :param digest: Plain content digest of the image.
        :param image_path: Path to the signed image the digest was computed from.
        :raises SBKToolInvocationError: Image doesn't exist or the builder failed.
        :return: Stored entry.
        """
        entry = self.find(digest)
        if entry:
            return entry

        if not os.path.isfile(image_path):
            raise SBKToolInvocationError(f"Image {image_path} doesn't exist")
        os.makedirs(self.ledger_dir, exist_ok=True)
        path = self.blob_path(digest)
        fd, temp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=self.ledger_dir)
        os.close(fd)
        try:
            self.tools.run(ToolRole.HASH_TO_ESL, image_path, temp_path)
            if not os.path.getsize(temp_path):
                raise SBKToolInvocationError(
                    f"Signature list builder produced no output for {image_path}"
                )
            try:
                os.link(temp_path, path)
            except FileExistsError:
                logger.warning(f"Revocation entry {digest} appeared concurrently, keeping it")
        finally:
            os.unlink(temp_path)

        logger.info(f"Recorded revocation entry {digest} for {image_path}")
        entry = self.find(digest)
        assert entry
        return entry

    def list(self) -> Iterator[RevocationEntry]:
        """Enumerate all persisted entries.

        Every call rescans the ledger directory.

        :return: Iterator of entries.
        """
        if not os.path.isdir(self.ledger_dir):
            return
        with os.scandir(self.ledger_dir) as scan:
            names = sorted(item.name for item in scan if item.is_file())
        for name in names:
            stem, extension = os.path.splitext(name)
            if extension != self.BLOB_EXTENSION or not re.fullmatch("[0-9a-f]{64}", stem):
                continue
            entry = self.find(stem)
            if entry:
                yield entry


@dataclass(frozen=True)
class BackupRecord:
    """Digest of the most recently removed image of a configuration."""

    config_name: str
    digest: str


class BackupStore:
    """One live backup record per configuration name."""

    NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._@+-]*")

    def __init__(self, backup_dir: str) -> None:
        self.backup_dir = backup_dir

    def _path(self, config_name: str) -> str:
        if not isinstance(config_name, str) or not self.NAME_PATTERN.fullmatch(config_name):
            raise SBKConfigError(f"Invalid configuration name: {config_name!r}")
        return os.path.join(self.backup_dir, config_name)

    def record(self, config_name: str, digest: str) -> BackupRecord:
        """Store backup record, replacing the previous one for the configuration.

        :param config_name: Configuration name.
        :param digest: Plain content digest of the removed image.
        :return: The new live record.
        """
        path = self._path(config_name)
        record = BackupRecord(config_name=config_name, digest=normalize_digest(digest))
        os.makedirs(self.backup_dir, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=self.backup_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.digest + "\n")
            os.replace(temp_path, path)
        except BaseException:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
        logger.info(f"Backup of '{config_name}' is now {record.digest}")
        return record

    def get(self, config_name: str) -> Optional[BackupRecord]:
        """Get live backup record of a configuration.

        :param config_name: Configuration name.
        :raises SBKConfigError: The stored record is malformed.
        :return: Backup record or None.
        """
        path = self._path(config_name)
        if not os.path.isfile(path):
            return None
        try:
            digest = normalize_digest(load_text(path).strip())
        except SBKConfigError as exc:
            raise SBKConfigError(f"Malformed backup record {path}: {exc.description}") from exc
        return BackupRecord(config_name=config_name, digest=digest)

    def records(self) -> list[BackupRecord]:
        """Get all live backup records, ordered by configuration name.

        :return: List of backup records.
        """
        if not os.path.isdir(self.backup_dir):
            return []
        records = []
        for name in sorted(os.listdir(self.backup_dir)):
            if not self.NAME_PATTERN.fullmatch(name) or not os.path.isfile(
                os.path.join(self.backup_dir, name)
            ):
                continue
            record = self.get(name)
            if record:
                records.append(record)
        return records

    def items(self) -> dict[str, str]:
        """Get live backup digests keyed by configuration name.

        :return: Dictionary of configuration name to digest.
        """
        return {record.config_name: record.digest for record in self.records()}
