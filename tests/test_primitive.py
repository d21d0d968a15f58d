"""
Primitive + Backend Tests

AES-256-GCM, ECDSA P-256 raw signatures, public key export/import.
"""

import pytest
from cryptography.exceptions import InvalidTag

from chat_e2ee.backend import CryptographyBackend
from chat_e2ee.errors import DecryptionError, KeyImportError
from chat_e2ee.primitive import (
    IV_LENGTH,
    TAG_LENGTH,
    aead_decrypt,
    aead_encrypt,
    b64d,
    b64e,
    ecdsa_keypair,
    ecdsa_pub_from_b64,
    ecdsa_pub_to_b64,
    ecdsa_pub_to_raw,
    sign_ecdsa,
    verify_ecdsa,
)


class TestAead:
    def test_roundtrip(self):
        key = b"\x01" * 32
        nonce, ct = aead_encrypt(key, b"Hello, World!")

        assert len(nonce) == IV_LENGTH
        assert len(ct) == len(b"Hello, World!") + TAG_LENGTH
        assert aead_decrypt(key, nonce, ct) == b"Hello, World!"

    def test_wrong_key(self):
        nonce, ct = aead_encrypt(b"\x01" * 32, b"secret")
        with pytest.raises(InvalidTag):
            aead_decrypt(b"\x02" * 32, nonce, ct)

    def test_backend_translates_invalid_tag(self):
        backend = CryptographyBackend()
        nonce, ct = backend.aead_encrypt(b"\x01" * 32, b"secret")
        with pytest.raises(DecryptionError):
            backend.aead_decrypt(b"\x02" * 32, nonce, ct)


class TestSignatures:
    def test_sign_verify(self):
        priv, pub = ecdsa_keypair()
        sig = sign_ecdsa(priv, b"payload")

        assert len(b64d(sig)) == 64  # raw r||s
        assert verify_ecdsa(pub, sig, b"payload") is True

    def test_verify_other_message(self):
        priv, pub = ecdsa_keypair()
        sig = sign_ecdsa(priv, b"payload")
        assert verify_ecdsa(pub, sig, b"payloaD") is False

    def test_verify_other_key(self):
        priv, _ = ecdsa_keypair()
        _, other_pub = ecdsa_keypair()
        assert verify_ecdsa(other_pub, sign_ecdsa(priv, b"m"), b"m") is False

    @pytest.mark.parametrize("sig", ["", "!!!", b64e(b"\x00" * 64), b64e(b"\x01" * 10)])
    def test_verify_malformed_signature(self, sig):
        _, pub = ecdsa_keypair()
        assert verify_ecdsa(pub, sig, b"m") is False


class TestPublicKeys:
    def test_raw_export_is_uncompressed_point(self):
        _, pub = ecdsa_keypair()
        raw = ecdsa_pub_to_raw(pub)
        assert len(raw) == 65
        assert raw[0] == 0x04

    def test_b64_roundtrip(self):
        _, pub = ecdsa_keypair()
        restored = ecdsa_pub_from_b64(ecdsa_pub_to_b64(pub))
        assert ecdsa_pub_to_raw(restored) == ecdsa_pub_to_raw(pub)

    @pytest.mark.parametrize("bad", ["", "####", b64e(b"\x04" + b"\x00" * 64)])
    def test_backend_import_rejects_malformed(self, bad):
        with pytest.raises(KeyImportError):
            CryptographyBackend().import_public_key(bad)
