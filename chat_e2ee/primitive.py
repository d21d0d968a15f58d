import base64
import binascii
import os
from typing import Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_LENGTH = 12          # 96-bit GCM nonce
TAG_LENGTH = 16         # 128-bit GCM tag, appended to the ciphertext
AES_KEY_LENGTH = 32     # AES-256
CURVE = ec.SECP256R1()  # P-256
COORDINATE_LENGTH = 32  # bytes per r / s component on P-256


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("utf-8")

def b64d(s: str) -> bytes:
    # strict: reject non-alphabet characters instead of silently skipping them
    return base64.b64decode(s.encode("utf-8"), validate=True)

def rand_nonce(n: int = IV_LENGTH) -> bytes:
    return os.urandom(n)

def ecdsa_keypair() -> Tuple[ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey]:
    priv = ec.generate_private_key(CURVE)
    return priv, priv.public_key()

def ecdsa_pub_to_raw(pub: ec.EllipticCurvePublicKey) -> bytes:
    return pub.public_bytes(serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint)

def ecdsa_pub_to_b64(pub: ec.EllipticCurvePublicKey) -> str:
    return b64e(ecdsa_pub_to_raw(pub))

def ecdsa_pub_from_b64(s: str) -> ec.EllipticCurvePublicKey:
    return ec.EllipticCurvePublicKey.from_encoded_point(CURVE, b64d(s))

def aead_encrypt(key32: bytes, plaintext: bytes, aad: bytes | None = None) -> tuple[bytes, bytes]:
    nonce = rand_nonce(IV_LENGTH)
    ct = AESGCM(key32).encrypt(nonce, plaintext, aad)
    return nonce, ct

def aead_decrypt(key32: bytes, nonce: bytes, ciphertext: bytes, aad: bytes | None = None) -> bytes:
    return AESGCM(key32).decrypt(nonce, ciphertext, aad)

def sign_ecdsa(priv: ec.EllipticCurvePrivateKey, msg: bytes) -> str:
    """
    Sign with ECDSA/SHA-256 and return the base64 of the raw r||s form.

    The raw form is what WebCrypto produces, so signatures made here verify
    in a browser peer and vice versa (DER is only used inside `cryptography`).
    """
    der = priv.sign(msg, ec.ECDSA(hashes.SHA256()))
    r, s = decode_dss_signature(der)
    raw = r.to_bytes(COORDINATE_LENGTH, "big") + s.to_bytes(COORDINATE_LENGTH, "big")
    return b64e(raw)

def verify_ecdsa(pub: ec.EllipticCurvePublicKey, sig_b64: str, msg: bytes) -> bool:
    try:
        raw = b64d(sig_b64)
    except (binascii.Error, ValueError):
        return False
    if len(raw) != 2 * COORDINATE_LENGTH:
        return False
    r = int.from_bytes(raw[:COORDINATE_LENGTH], "big")
    s = int.from_bytes(raw[COORDINATE_LENGTH:], "big")
    try:
        pub.verify(encode_dss_signature(r, s), msg, ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, ValueError):
        return False
