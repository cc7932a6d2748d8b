#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""EFI signature list (ESL) codec.

An EFI_SIGNATURE_LIST is a 28 byte header (signature type GUID, list size,
header size, signature size), an optional type specific header and an array of
EFI_SIGNATURE_DATA entries (16 byte owner GUID followed by the signature data).
Signature databases such as the content of the ``dbx`` variable are plain
concatenations of signature lists.
"""

import struct
import uuid
from dataclasses import dataclass
from typing import Iterator, Optional

from typing_extensions import Self

from sbkeeper.exceptions import SBKParsingError, SBKValueError
from sbkeeper.utils.abstract import BaseClass

EFI_CERT_SHA256_GUID = uuid.UUID("c1c41626-504c-4092-aca9-41f936934328")
EFI_CERT_X509_GUID = uuid.UUID("a5c059a1-94e4-4aa7-87b5-ab155c2bf072")
EFI_IMAGE_SECURITY_DATABASE_GUID = uuid.UUID("d719b2cb-3d3a-4596-a3bc-dad00e67656f")

SHA256_SIZE = 32
OWNER_SIZE = 16


@dataclass(frozen=True)
class SignatureData:
    """Single EFI_SIGNATURE_DATA entry."""

    owner: uuid.UUID
    data: bytes

    def export(self) -> bytes:
        """Export signature data entry.

        :return: Owner GUID in EFI byte order followed by the data.
        """
        return self.owner.bytes_le + self.data


@dataclass(frozen=True)
class SignatureRecord:
    """Signature located in a signature database by its coordinates."""

    list_index: int
    signature_index: int
    signature_type: uuid.UUID
    signature: SignatureData

    @property
    def digest(self) -> str:
        """Signature data as lowercase hex string."""
        return self.signature.data.hex()


class SignatureList(BaseClass):
    """EFI_SIGNATURE_LIST.

    :cvar HEADER_FORMAT: Struct format of the fixed header.
    """

    HEADER_FORMAT = "<16sIII"
    HEADER_SIZE = struct.calcsize(HEADER_FORMAT)

    def __init__(
        self,
        signature_type: uuid.UUID,
        signatures: list[SignatureData],
        signature_header: bytes = b"",
        signature_size: Optional[int] = None,
    ) -> None:
        """Initialize signature list.

        :param signature_type: GUID of the signature type.
        :param signatures: Signatures in the list, all of the same size.
        :param signature_header: Type specific header, empty for hash lists.
        :param signature_size: Size of one signature entry, derived from the first signature
            when not provided.
        :raises SBKValueError: Signatures of different sizes.
        """
        self.signature_type = signature_type
        self.signatures = signatures
        self.signature_header = signature_header
        if signature_size is None:
            signature_size = OWNER_SIZE + (len(signatures[0].data) if signatures else 0)
        if any(OWNER_SIZE + len(sig.data) != signature_size for sig in signatures):
            raise SBKValueError("All signatures in signature list must have the same size")
        self.signature_size = signature_size

    @classmethod
    def create_sha256(cls, digests: list[bytes], owner: uuid.UUID) -> Self:
        """Create SHA-256 hash list.

        :param digests: SHA-256 hashes to put into the list.
        :param owner: Owner GUID of all the entries.
        :raises SBKValueError: Invalid hash length.
        :return: Signature list.
        """
        if any(len(digest) != SHA256_SIZE for digest in digests):
            raise SBKValueError("SHA-256 hash must be 32 bytes long")
        return cls(
            EFI_CERT_SHA256_GUID,
            [SignatureData(owner, digest) for digest in digests],
            signature_size=OWNER_SIZE + SHA256_SIZE,
        )

    @property
    def size(self) -> int:
        """Total size of the exported list."""
        return (
            self.HEADER_SIZE
            + len(self.signature_header)
            + self.signature_size * len(self.signatures)
        )

    def __repr__(self) -> str:
        return f"SignatureList({self.signature_type}, {len(self.signatures)} signature(s))"

    def __str__(self) -> str:
        lines = [f"Signature type: {self.signature_type}", f"Signature size: {self.signature_size}"]
        lines.extend(f"  {sig.owner}: {sig.data.hex()}" for sig in self.signatures)
        return "\n".join(lines)

    def export(self) -> bytes:
        """Export signature list.

        :return: Binary EFI_SIGNATURE_LIST.
        """
        header = struct.pack(
            self.HEADER_FORMAT,
            self.signature_type.bytes_le,
            self.size,
            len(self.signature_header),
            self.signature_size,
        )
        return header + self.signature_header + b"".join(sig.export() for sig in self.signatures)

    @classmethod
    def parse_from(cls, data: bytes, offset: int = 0) -> tuple[Self, int]:
        """Parse signature list starting at given offset.

        :param data: Binary data.
        :param offset: Offset of the list in the data.
        :raises SBKParsingError: Truncated list or inconsistent size fields.
        :return: Tuple of parsed list and offset right after it.
        """
        if len(data) - offset < cls.HEADER_SIZE:
            raise SBKParsingError(f"Truncated signature list header at offset {offset}")
        type_bytes, list_size, header_size, signature_size = struct.unpack_from(
            cls.HEADER_FORMAT, data, offset
        )
        end = offset + list_size
        if list_size < cls.HEADER_SIZE + header_size or end > len(data):
            raise SBKParsingError(f"Invalid signature list size {list_size} at offset {offset}")
        if signature_size <= OWNER_SIZE:
            raise SBKParsingError(f"Invalid signature size {signature_size} at offset {offset}")
        body_start = offset + cls.HEADER_SIZE + header_size
        if (end - body_start) % signature_size:
            raise SBKParsingError(
                f"Signature list at offset {offset} is not a multiple of signature size"
            )
        signatures = [
            SignatureData(
                owner=uuid.UUID(bytes_le=data[position : position + OWNER_SIZE]),
                data=data[position + OWNER_SIZE : position + signature_size],
            )
            for position in range(body_start, end, signature_size)
        ]
        signature_list = cls(
            signature_type=uuid.UUID(bytes_le=type_bytes),
            signatures=signatures,
            signature_header=data[offset + cls.HEADER_SIZE : body_start],
            signature_size=signature_size,
        )
        return signature_list, end

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse exactly one signature list.

        :param data: Binary EFI_SIGNATURE_LIST.
        :raises SBKParsingError: Invalid data or trailing bytes.
        :return: Parsed signature list.
        """
        signature_list, end = cls.parse_from(data)
        if end != len(data):
            raise SBKParsingError(f"Unexpected {len(data) - end} byte(s) after signature list")
        return signature_list


class SignatureDatabase(BaseClass):
    """Sequence of signature lists, e.g. the payload of the dbx variable."""

    def __init__(self, lists: Optional[list[SignatureList]] = None) -> None:
        self.lists = lists or []

    def __repr__(self) -> str:
        return f"SignatureDatabase({len(self.lists)} list(s))"

    def __str__(self) -> str:
        return "\n".join(str(signature_list) for signature_list in self.lists)

    def __len__(self) -> int:
        return len(self.lists)

    def export(self) -> bytes:
        """Export signature database.

        :return: Concatenated signature lists.
        """
        return b"".join(signature_list.export() for signature_list in self.lists)

    @classmethod
    def parse(cls, data: bytes) -> Self:
        """Parse signature database.

        :param data: Concatenated signature lists, may be empty.
        :return: Parsed database.
        """
        lists = []
        offset = 0
        while offset < len(data):
            signature_list, offset = SignatureList.parse_from(data, offset)
            lists.append(signature_list)
        return cls(lists)

    def records(self) -> Iterator[SignatureRecord]:
        """Iterate over all signatures with their coordinates.

        :return: Iterator of signature records.
        """
        for list_index, signature_list in enumerate(self.lists):
            for signature_index, signature in enumerate(signature_list.signatures):
                yield SignatureRecord(
                    list_index=list_index,
                    signature_index=signature_index,
                    signature_type=signature_list.signature_type,
                    signature=signature,
                )
