#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Synchronization of revocation entries with the firmware dbx variable.

The forbidden signature database is exposed by efivarfs as a file holding a
4 byte attribute word followed by concatenated EFI signature lists. Linux marks
efivarfs files immutable by default; the flag is cleared only for the duration of
a write batch. Writes go through authenticated updates signed with the KEK key.
"""

import logging
import os
import struct
import tempfile
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional

from sbkeeper.crypto.hash import normalize_digest
from sbkeeper.crypto.keys import KeyReference
from sbkeeper.exceptions import (
    SBKFirmwareRaceError,
    SBKParsingError,
    SBKToolInvocationError,
    SBKValueError,
)
from sbkeeper.revocation.esl import (
    EFI_CERT_SHA256_GUID,
    EFI_IMAGE_SECURITY_DATABASE_GUID,
    SignatureDatabase,
)
from sbkeeper.revocation.ledger import RevocationEntry
from sbkeeper.utils.misc import find_first, load_binary
from sbkeeper.utils.sbk_enum import SbkEnum
from sbkeeper.utils.tools import ToolRole, ToolRunner

logger = logging.getLogger(__name__)

EFIVARS_DIR = "/sys/firmware/efi/efivars"
ATTRIBUTES_FORMAT = "<I"
ATTRIBUTES_SIZE = struct.calcsize(ATTRIBUTES_FORMAT)


class MutabilityState(SbkEnum):
    """Immutable attribute state of the variable backing file."""

    MUTABLE = (0, "mutable", "Variable file can be written")
    IMMUTABLE = (1, "immutable", "Variable file has the immutable attribute set")
    ABSENT = (2, "absent", "Variable file doesn't exist")


@dataclass(frozen=True)
class DbxRecord:
    """Signature in dbx addressed by its list and signature index."""

    list_index: int
    signature_index: int
    digest: str

    @property
    def coordinate(self) -> str:
        """Coordinate in the form accepted by efi-updatevar."""
        return f"{self.list_index}-{self.signature_index}"


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget of a firmware write.

    :param attempts: Total number of write attempts.
    :param delay: Seconds to wait before the next attempt.
    :param sleep: Function used to wait, replaceable in tests.
    """

    attempts: int = 2
    delay: float = 1.0
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False)

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise SBKValueError(f"Retry policy needs at least one attempt, got {self.attempts}")
        if self.delay < 0:
            raise SBKValueError(f"Retry delay can't be negative, got {self.delay}")


class FirmwareVariable:
    """Authenticated UEFI variable exposed through efivarfs."""

    def __init__(
        self,
        tools: ToolRunner,
        efivars_dir: str = EFIVARS_DIR,
        name: str = "dbx",
        guid: uuid.UUID = EFI_IMAGE_SECURITY_DATABASE_GUID,
    ) -> None:
        """Initialize the variable.

        :param tools: Runner of chattr and lsattr.
        :param efivars_dir: Mount point of efivarfs.
        :param name: Variable name.
        :param guid: Vendor GUID of the variable.
        """
        self.tools = tools
        self.efivars_dir = efivars_dir
        self.name = name
        self.guid = guid

    @property
    def path(self) -> str:
        """Path to the efivarfs backing file."""
        return os.path.join(self.efivars_dir, f"{self.name}-{self.guid}")

    @property
    def exists(self) -> bool:
        """Whether the variable exists."""
        return os.path.isfile(self.path)

    def __repr__(self) -> str:
        return f"FirmwareVariable({self.name}-{self.guid})"

    def read(self) -> bytes:
        """Read variable payload without the attribute word.

        :raises SBKParsingError: The backing file is shorter than the attribute word.
        :return: Payload, empty when the variable doesn't exist.
        """
        if not self.exists:
            return b""
        data = load_binary(self.path)
        if len(data) < ATTRIBUTES_SIZE:
            raise SBKParsingError(f"Variable {self.name} is truncated ({len(data)} byte(s))")
        return data[ATTRIBUTES_SIZE:]

    def records(self) -> list[DbxRecord]:
        """Get SHA-256 signatures stored in the variable.

        Signatures of other types keep their indexes but are not listed.

        :return: List of records in storage order.
        """
        database = SignatureDatabase.parse(self.read())
        return [
            DbxRecord(
                list_index=record.list_index,
                signature_index=record.signature_index,
                digest=record.digest,
            )
            for record in database.records()
            if record.signature_type == EFI_CERT_SHA256_GUID
        ]

    def get_state(self) -> MutabilityState:
        """Get immutable attribute state of the backing file.

        :return: Current state.
        """
        if not self.exists:
            return MutabilityState.ABSENT
        output = self.tools.run(ToolRole.LSATTR, "-d", self.path)
        flags = output.split()[0] if output.split() else ""
        return MutabilityState.IMMUTABLE if "i" in flags else MutabilityState.MUTABLE

    def set_state(self, state: MutabilityState) -> None:
        """Set immutable attribute of the backing file.

        Missing backing file is left alone, the variable gets created by its first write.

        :param state: Requested state, MUTABLE or IMMUTABLE.
        :raises SBKValueError: ABSENT requested.
        """
        if state == MutabilityState.ABSENT:
            raise SBKValueError("Variable state can be set to mutable or immutable only")
        if not self.exists:
            logger.debug(f"{self.path} doesn't exist, not changing its attributes")
            return
        flag = "+i" if state == MutabilityState.IMMUTABLE else "-i"
        self.tools.run(ToolRole.CHATTR, flag, self.path)
        logger.debug(f"Variable {self.name} is {state.label}")

    @contextmanager
    def writable(self) -> Iterator["FirmwareVariable"]:
        """Keep the variable mutable for the duration of the block.

        :return: Iterator yielding this variable.
        """
        self.set_state(MutabilityState.MUTABLE)
        try:
            yield self
        finally:
            self.set_state(MutabilityState.IMMUTABLE)


class DbxSynchronizer:
    """Applies revocation entries to the firmware dbx variable."""

    def __init__(
        self,
        variable: FirmwareVariable,
        key: KeyReference,
        tools: ToolRunner,
        owner_guid: uuid.UUID,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        """Initialize the synchronizer.

        :param variable: The dbx variable.
        :param key: KEK key pair signing the authenticated updates.
        :param tools: Runner of sign-efi-sig-list and efi-updatevar.
        :param owner_guid: Owner GUID of the appended signatures.
        :param retry_policy: Retry budget of deletions.
        """
        self.variable = variable
        self.key = key
        self.tools = tools
        self.owner_guid = owner_guid
        self.retry_policy = retry_policy or RetryPolicy()

    def find_record(self, pecoff_digest: str) -> Optional[DbxRecord]:
        """Find the first dbx record with given digest.

        :param pecoff_digest: PE/COFF digest.
        :return: Record or None.
        """
        digest = normalize_digest(pecoff_digest)
        return find_first(self.variable.records(), lambda record: record.digest == digest)

    def append_entries(self, entries: Iterable[RevocationEntry]) -> set[RevocationEntry]:
        """Append signature lists of the entries to dbx.

        All entries are written within one writable window. Failure of one entry
        doesn't stop the others.

        :param entries: Revocation entries to append.
        :return: Entries that failed to be appended.
        """
        entries = list(entries)
        failed: set[RevocationEntry] = set()
        if not entries:
            return failed

        with tempfile.TemporaryDirectory(prefix="sbkeeper-") as temp_dir:
            with self.variable.writable():
                for entry in entries:
                    auth_path = os.path.join(temp_dir, f"{entry.digest}.auth")
                    try:
                        self.tools.run(
                            ToolRole.SIGN_ESL,
                            "-a",
                            "-g",
                            str(self.owner_guid),
                            "-k",
                            self.key.private_key,
                            "-c",
                            self.key.certificate,
                            self.variable.name,
                            entry.path,
                            auth_path,
                        )
                        self.tools.run(
                            ToolRole.UPDATE_VAR, "-a", "-f", auth_path, self.variable.name
                        )
                    except SBKToolInvocationError as exc:
                        logger.error(f"Failed to append {entry.digest} to dbx: {exc.description}")
                        failed.add(entry)
                    else:
                        logger.debug(f"Appended {entry.digest} to dbx")

        logger.info(f"Appended {len(entries) - len(failed)} of {len(entries)} entries to dbx")
        return failed

    def _delete(self, record: DbxRecord) -> None:
        self.tools.run(
            ToolRole.UPDATE_VAR,
            "-d",
            record.coordinate,
            "-k",
            self.key.private_key,
            self.variable.name,
        )

    def remove_digest(self, pecoff_digest: str) -> bool:
        """Remove digest from dbx.

        Nothing is written when the digest isn't blacklisted. A failed deletion is
        retried after the policy delay, unless the digest disappeared meanwhile.

        :param pecoff_digest: PE/COFF digest to remove.
        :raises SBKFirmwareRaceError: The digest is still present after all attempts.
        :return: True if a deletion was issued, False if the digest wasn't present.
        """
        digest = normalize_digest(pecoff_digest)
        record = self.find_record(digest)
        if record is None:
            logger.debug(f"{digest} is not in dbx")
            return False

        reason = ""
        with self.variable.writable():
            for attempt in range(1, self.retry_policy.attempts + 1):
                assert record
                try:
                    self._delete(record)
                except SBKToolInvocationError as exc:
                    reason = exc.description or "deletion failed"
                else:
                    # coordinates may have shifted under a concurrent writer
                    record = self.find_record(digest)
                    if record is None:
                        logger.info(f"Removed {digest} from dbx")
                        return True
                    reason = "digest still present after deletion"
                if attempt == self.retry_policy.attempts:
                    break
                logger.warning(
                    f"Attempt {attempt} to remove {digest} from dbx failed ({reason}), "
                    f"retrying in {self.retry_policy.delay}s"
                )
                self.retry_policy.sleep(self.retry_policy.delay)
                record = self.find_record(digest)
                if record is None:
                    logger.info(f"{digest} disappeared from dbx meanwhile")
                    return True

        raise SBKFirmwareRaceError(
            f"Unable to remove {digest} from dbx after {self.retry_policy.attempts} attempt(s): "
            f"{reason}"
        )
