"""
Crypto capability used by the key store and the message engine.

The protocol logic only talks to a `CryptoBackend`; the default
implementation wraps the `cryptography` primitives in `primitive.py`.
A different vetted library can be dropped in by implementing the same
methods and passing the instance to `ConversationKeyStore` /
`MessageCryptoEngine`.
"""

import binascii
from typing import Any, Protocol, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric import ec

from .errors import DecryptionError, EncryptionError, KeyImportError
from .primitive import (
    AES_KEY_LENGTH,
    IV_LENGTH,
    aead_decrypt,
    aead_encrypt,
    ecdsa_keypair,
    ecdsa_pub_from_b64,
    ecdsa_pub_to_raw,
    rand_nonce,
    sign_ecdsa,
    verify_ecdsa,
)


class CryptoBackend(Protocol):
    iv_length: int

    def random_bytes(self, n: int) -> bytes: ...

    def aead_encrypt(self, key: bytes, plaintext: bytes) -> Tuple[bytes, bytes]: ...

    def aead_decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes) -> bytes: ...

    def generate_signing_keypair(self) -> Tuple[Any, Any]: ...

    def sign(self, signing_key: Any, data: bytes) -> str: ...

    def verify(self, verification_key: Any, signature_b64: str, data: bytes) -> bool: ...

    def export_public_key(self, verification_key: Any) -> bytes: ...

    def import_public_key(self, public_key_b64: str) -> Any: ...


class CryptographyBackend:
    """AES-256-GCM + ECDSA P-256/SHA-256 on top of `cryptography`."""

    iv_length = IV_LENGTH

    def random_bytes(self, n: int) -> bytes:
        return rand_nonce(n)

    def aead_encrypt(self, key: bytes, plaintext: bytes) -> Tuple[bytes, bytes]:
        # a fresh nonce is drawn inside aead_encrypt for every call
        try:
            return aead_encrypt(key, plaintext)
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Encryption failed: {e}") from e

    def aead_decrypt(self, key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
        try:
            return aead_decrypt(key, nonce, ciphertext)
        except InvalidTag as e:
            raise DecryptionError("Failed to decrypt message - invalid key or corrupted data") from e
        except (ValueError, TypeError) as e:
            raise DecryptionError(f"Failed to decrypt message: {e}") from e

    def generate_signing_keypair(self) -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
        return ecdsa_keypair()

    def sign(self, signing_key: ec.EllipticCurvePrivateKey, data: bytes) -> str:
        try:
            return sign_ecdsa(signing_key, data)
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Signing failed: {e}") from e

    def verify(self, verification_key: ec.EllipticCurvePublicKey, signature_b64: str, data: bytes) -> bool:
        return verify_ecdsa(verification_key, signature_b64, data)

    def export_public_key(self, verification_key: ec.EllipticCurvePublicKey) -> bytes:
        return ecdsa_pub_to_raw(verification_key)

    def import_public_key(self, public_key_b64: str) -> ec.EllipticCurvePublicKey:
        if not isinstance(public_key_b64, str) or not public_key_b64:
            raise KeyImportError("Peer public key must be a non-empty base64 string")
        try:
            return ecdsa_pub_from_b64(public_key_b64)
        except (binascii.Error, ValueError) as e:
            raise KeyImportError(f"Invalid P-256 public key: {e}") from e


def check_encryption_key(key: bytes) -> bytes:
    """Validate a raw symmetric conversation key."""
    if not isinstance(key, (bytes, bytearray)) or len(key) != AES_KEY_LENGTH:
        raise KeyImportError(f"Encryption key must be {AES_KEY_LENGTH} bytes")
    return bytes(key)
