#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper hash algorithms.

Plain content digests of boot images are computed here. They identify images in
the revocation ledger and in the backup records, independently of the PE/COFF
digest the firmware compares against.
"""

import re

from cryptography.hazmat.primitives import hashes

from sbkeeper.exceptions import SBKConfigError, SBKError
from sbkeeper.utils.misc import find_file
from sbkeeper.utils.sbk_enum import SbkEnum

# read images in chunks so large initrd-bearing images do not load at once
_CHUNK_SIZE = 1024 * 1024


class EnumHashAlgorithm(SbkEnum):
    """Hash algorithm enumeration."""

    SHA1 = (0, "sha1", "SHA1")
    SHA256 = (1, "sha256", "SHA256")
    SHA384 = (2, "sha384", "SHA384")
    SHA512 = (3, "sha512", "SHA512")


def get_hash_algorithm(algorithm: EnumHashAlgorithm) -> hashes.HashAlgorithm:
    """Get hash algorithm instance for specified algorithm type.

    :param algorithm: Hash algorithm type enumeration value.
    :raises SBKError: If the specified algorithm is not supported.
    :return: Instance of the corresponding hash algorithm class.
    """
    algo_cls = getattr(hashes, algorithm.label.upper(), None)
    if algo_cls is None:
        raise SBKError(f"Unsupported algorithm: hashes.{algorithm.label.upper()}")
    return algo_cls()  # pylint: disable=not-callable


def get_hash_length(algorithm: EnumHashAlgorithm) -> int:
    """Get hash algorithm binary length.

    :param algorithm: Hash algorithm type enumeration.
    :return: Length of hash digest in bytes.
    """
    return get_hash_algorithm(algorithm).digest_size


def get_hash(data: bytes, algorithm: EnumHashAlgorithm = EnumHashAlgorithm.SHA256) -> bytes:
    """Compute hash digest from input data using specified algorithm.

    :param data: Input data to be hashed.
    :param algorithm: Hash algorithm to use for computation.
    :return: Hash digest as bytes.
    """
    hash_obj = hashes.Hash(get_hash_algorithm(algorithm))
    hash_obj.update(data)
    return hash_obj.finalize()


def get_file_digest(path: str, algorithm: EnumHashAlgorithm = EnumHashAlgorithm.SHA256) -> str:
    """Compute plain content digest of a file.

    :param path: Path to the file.
    :param algorithm: Hash algorithm to use for computation.
    :return: Lowercase hexadecimal digest of the whole file.
    """
    hash_obj = hashes.Hash(get_hash_algorithm(algorithm))
    with open(find_file(path), "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hash_obj.update(chunk)
    return hash_obj.finalize().hex()


def normalize_digest(
    digest: str, algorithm: EnumHashAlgorithm = EnumHashAlgorithm.SHA256
) -> str:
    """Validate hexadecimal digest and return its lowercase form.

    :param digest: Digest in hexadecimal form.
    :param algorithm: Algorithm the digest is expected to come from.
    :raises SBKConfigError: Digest has invalid characters or length.
    :return: Lowercase digest.
    """
    length = get_hash_length(algorithm) * 2
    if not isinstance(digest, str) or not re.fullmatch(f"[0-9a-fA-F]{{{length}}}", digest):
        raise SBKConfigError(f"Invalid {algorithm.label} digest: {digest!r}")
    return digest.lower()
