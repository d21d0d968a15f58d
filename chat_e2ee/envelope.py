"""
Wire envelope for one encrypted chat message.

JSON shape (camelCase on the wire):

    {
      "ciphertext": "<base64 AES-GCM output, tag appended>",
      "iv": "<base64, 12 bytes>",
      "signature": "<base64 ECDSA r||s over the ciphertext bytes>",
      "timestamp": 1718000000000,
      "keyGeneration": 1,
      "senderFingerprint": "<hex sha-256>"
    }
"""

import time
from typing import Any, Dict

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import EnvelopeError


def now_ms() -> int:
    return int(time.time() * 1000)


class EncryptedMessage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # older clients sent the ciphertext as "encryptedContent"
    ciphertext: str = Field(
        serialization_alias="ciphertext",
        validation_alias=AliasChoices("ciphertext", "encryptedContent"),
    )
    iv: str
    signature: str
    timestamp: int = Field(ge=0)
    key_generation: int = Field(ge=1, alias="keyGeneration")
    sender_fingerprint: str = Field(alias="senderFingerprint")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with wire field names."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "EncryptedMessage":
        try:
            return cls.model_validate(d)
        except ValidationError as e:
            raise EnvelopeError(f"Invalid message envelope: {e}") from e

    @classmethod
    def from_json(cls, s: str | bytes) -> "EncryptedMessage":
        try:
            return cls.model_validate_json(s)
        except ValidationError as e:
            raise EnvelopeError(f"Invalid message envelope: {e}") from e


class DecryptedMessage(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    content: str
    timestamp: int
    key_generation: int = Field(alias="keyGeneration")
    sender_fingerprint: str = Field(alias="senderFingerprint")
    is_verified: bool = Field(alias="isVerified")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
