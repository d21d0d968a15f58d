from __future__ import annotations

import binascii
import logging
from dataclasses import dataclass, field
from typing import Any

from .backend import CryptoBackend, CryptographyBackend, check_encryption_key
from .errors import KeyImportError
from .fingerprint import fingerprint_from_raw, short_fingerprint
from .primitive import AES_KEY_LENGTH, b64d, b64e

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityKeyPair:
    """
    Local signing identity for a conversation.

    Attributes:
        signing_key: Private ECDSA key (stays inside the key store once initialized)
        verification_key: Matching public key
        public_key_b64: Exchangeable export of the public key (base64 raw point)
        fingerprint: SHA-256 hex of the exported public key
    """
    signing_key: Any = field(repr=False)
    verification_key: Any = field(repr=False)
    public_key_b64: str
    fingerprint: str


def generate_identity_keypair(backend: CryptoBackend | None = None) -> IdentityKeyPair:
    """
    Creates a fresh signing keypair and derives its exchange form + fingerprint.
    """
    backend = backend or CryptographyBackend()
    signing_key, verification_key = backend.generate_signing_keypair()
    raw = backend.export_public_key(verification_key)
    fingerprint = fingerprint_from_raw(raw)

    logger.debug("Generated new signing key pair (fingerprint %s)", short_fingerprint(fingerprint))

    return IdentityKeyPair(
        signing_key=signing_key,
        verification_key=verification_key,
        public_key_b64=b64e(raw),
        fingerprint=fingerprint,
    )


def peer_fingerprint_from_b64(public_key_b64: str, backend: CryptoBackend | None = None) -> str:
    """Fingerprint of a peer's exported key, after checking it imports."""
    backend = backend or CryptographyBackend()
    key = backend.import_public_key(public_key_b64)
    return fingerprint_from_raw(backend.export_public_key(key))


def generate_encryption_key(backend: CryptoBackend | None = None) -> bytes:
    """Random AES-256 key. Real conversations get theirs from the key agreement layer."""
    backend = backend or CryptographyBackend()
    return backend.random_bytes(AES_KEY_LENGTH)


def import_encryption_key(raw: bytes) -> bytes:
    return check_encryption_key(raw)


def import_encryption_key_b64(s: str) -> bytes:
    try:
        raw = b64d(s)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise KeyImportError(f"Encryption key is not valid base64: {e}") from e
    return check_encryption_key(raw)
