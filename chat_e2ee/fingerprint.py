"""
Identity fingerprints for out-of-band verification.

A fingerprint is the lowercase hex SHA-256 of the raw exported public
verification key. It only depends on the identity key, so rotating the
conversation's encryption key never changes it.
"""

import hashlib
import hmac

FINGERPRINT_HEX_LENGTH = 64


def fingerprint_from_raw(public_key_raw: bytes) -> str:
    return hashlib.sha256(public_key_raw).hexdigest()


def short_fingerprint(fingerprint: str, length: int = 16) -> str:
    """Truncated form used in log lines."""
    return f"{fingerprint[:length]}..."


def _normalize(fingerprint: str) -> str:
    return "".join(fingerprint.split()).lower()


def format_fingerprint(fingerprint: str, group: int = 4) -> str:
    """
    Render a fingerprint for humans to read aloud / compare.

    Example:
        "3fa9c012e4d7" -> "3FA9 C012 E4D7"
    """
    if group < 1:
        raise ValueError("group must be >= 1")
    fp = _normalize(fingerprint).upper()
    return " ".join(fp[i:i + group] for i in range(0, len(fp), group))


def fingerprints_match(a: str, b: str) -> bool:
    """
    Compare two fingerprints, ignoring case and display spacing.

    Constant-time so the comparison itself does not leak a prefix match.
    """
    return hmac.compare_digest(_normalize(a).encode("utf-8"), _normalize(b).encode("utf-8"))
