#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Secure Boot key material resolution.

Key pairs (DB for image signing, KEK for dbx updates) are kept in a key directory
as a private key plus an X.509 certificate. A key is referenced by its base name;
the files are looked up case-insensitively in a fixed extension order exactly once,
at startup, and the result is an explicit :class:`KeyReference`.
"""

import logging
import os
from dataclasses import dataclass
from typing import Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_der_private_key,
    load_pem_private_key,
)

from sbkeeper.exceptions import SBKConfigError
from sbkeeper.utils.misc import load_binary

logger = logging.getLogger(__name__)

PRIVATE_KEY_EXTENSIONS = (".key", ".pem")
CERTIFICATE_EXTENSIONS = (".crt", ".cer", ".pem")

PrivateKeyType = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]


@dataclass(frozen=True)
class KeyReference:
    """Resolved signing key pair.

    :param name: Base name of the key pair, e.g. ``KEK``.
    :param private_key: Absolute path to the private key file.
    :param certificate: Absolute path to the certificate file.
    """

    name: str
    private_key: str
    certificate: str

    def __str__(self) -> str:
        return f"{self.name} ({self.private_key}, {self.certificate})"


def _is_pem(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN")


def load_private_key(path: str) -> PrivateKeyType:
    """Load unencrypted RSA or EC private key in PEM or DER encoding.

    :param path: Path to the private key file.
    :raises SBKConfigError: The key can't be loaded, is encrypted or has unsupported type.
    :return: Private key object.
    """
    data = load_binary(path)
    loader = load_pem_private_key if _is_pem(data) else load_der_private_key
    try:
        private_key = loader(data, None)
    except TypeError as exc:
        # external signing tools can't ask for a passphrase
        raise SBKConfigError(f"Private key {path} is encrypted: {exc}") from exc
    except (ValueError, UnsupportedAlgorithm) as exc:
        raise SBKConfigError(f"Cannot load private key {path}: {exc}") from exc
    if not isinstance(private_key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise SBKConfigError(f"Unsupported private key type in {path}")
    return private_key


def load_certificate(path: str) -> x509.Certificate:
    """Load X.509 certificate in PEM or DER encoding.

    :param path: Path to the certificate file.
    :raises SBKConfigError: The certificate can't be loaded.
    :return: Certificate object.
    """
    data = load_binary(path)
    try:
        if _is_pem(data):
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as exc:
        raise SBKConfigError(f"Cannot load certificate {path}: {exc}") from exc


def _lookup(keys_dir: str, name: str, extensions: tuple[str, ...], exclude: str = "") -> str:
    """Find the file for a key role using ordered, case-insensitive matching.

    The first extension that matches any file wins; more than one file matching
    the same extension makes the lookup ambiguous.
    """
    entries = sorted(
        entry
        for entry in os.listdir(keys_dir)
        if os.path.isfile(os.path.join(keys_dir, entry))
        and os.path.join(keys_dir, entry) != exclude
    )
    for extension in extensions:
        wanted = f"{name}{extension}".casefold()
        matches = [entry for entry in entries if entry.casefold() == wanted]
        if len(matches) > 1:
            raise SBKConfigError(
                f"Ambiguous key material for {name}{extension} in {keys_dir}: {', '.join(matches)}"
            )
        if matches:
            return os.path.join(keys_dir, matches[0])
    raise SBKConfigError(
        f"No file for {name} with any of {', '.join(extensions)} extensions found in {keys_dir}"
    )


def resolve_key_reference(keys_dir: str, name: str) -> KeyReference:
    """Resolve and verify key pair by its base name.

    :param keys_dir: Directory with the key material.
    :param name: Base name of the key pair (``DB``, ``KEK``...).
    :raises SBKConfigError: Missing, ambiguous or mismatching key material.
    :return: Key reference with absolute paths.
    """
    keys_dir = os.path.abspath(keys_dir)
    if not os.path.isdir(keys_dir):
        raise SBKConfigError(f"Keys directory {keys_dir} doesn't exist")

    private_key_path = _lookup(keys_dir, name, PRIVATE_KEY_EXTENSIONS)
    certificate_path = _lookup(keys_dir, name, CERTIFICATE_EXTENSIONS, exclude=private_key_path)

    private_key = load_private_key(private_key_path)
    certificate = load_certificate(certificate_path)
    key_public = private_key.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )
    cert_public = certificate.public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )
    if key_public != cert_public:
        raise SBKConfigError(
            f"Private key {private_key_path} doesn't match certificate {certificate_path}"
        )

    reference = KeyReference(name=name, private_key=private_key_path, certificate=certificate_path)
    logger.debug(f"Resolved key {reference}")
    return reference
