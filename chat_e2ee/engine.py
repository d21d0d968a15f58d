"""
Message encryption for established conversations.

Send:    AES-256-GCM(plaintext) under the conversation key with a fresh IV,
         then ECDSA-sign the ciphertext bytes with the local identity key.
Receive: verify the signature if the peer key is known (result is reported,
         never fatal), then AES-GCM decrypt. Only the AEAD tag check can
         reject a message.

Confidentiality and authenticity fail independently: a bad signature
yields `is_verified=False` on an otherwise readable message, while a bad
tag raises `DecryptionError` for that message only.
"""

from __future__ import annotations

import binascii
import logging
from typing import Any, Mapping, Optional, Set, Union

from .config import Settings, load_settings
from .envelope import DecryptedMessage, EncryptedMessage, now_ms
from .errors import DecryptionError, EncryptionError, EnvelopeError
from .fingerprint import format_fingerprint, short_fingerprint
from .keys import IdentityKeyPair
from .keystore import ConversationKeyStore, KeyMaterialSnapshot
from .primitive import b64d, b64e

logger = logging.getLogger(__name__)

EnvelopeLike = Union[EncryptedMessage, Mapping[str, Any]]


def _coerce_envelope(envelope: EnvelopeLike) -> EncryptedMessage:
    if isinstance(envelope, EncryptedMessage):
        return envelope
    if isinstance(envelope, Mapping):
        return EncryptedMessage.from_dict(dict(envelope))
    raise EnvelopeError(f"Unsupported envelope type: {type(envelope).__name__}")


class MessageCryptoEngine:
    """Encrypts/decrypts messages using key material held by a `ConversationKeyStore`."""

    def __init__(self, store: ConversationKeyStore):
        self.store = store

    @property
    def backend(self):
        return self.store.backend

    def encrypt(self, conversation_id: str, plaintext: str) -> EncryptedMessage:
        """
        Encrypt and sign one outgoing message.

        A peer key is not needed to send.

        Raises:
            NotInitializedError: unknown conversation
            EncryptionError: the underlying primitive failed
        """
        with self.store.sequenced(conversation_id):
            entry = self.store._require(conversation_id)

            try:
                data = plaintext.encode("utf-8")
            except (AttributeError, UnicodeEncodeError) as e:
                raise EncryptionError(f"Plaintext must be a str: {e}") from e

            nonce, ciphertext = self.backend.aead_encrypt(entry.encryption_key, data)
            if len(nonce) != self.backend.iv_length:
                raise EncryptionError("Backend returned a nonce of unexpected length")

            # signature covers the ciphertext only, not the IV
            signature = self.backend.sign(entry.signing_key, ciphertext)

            return EncryptedMessage(
                ciphertext=b64e(ciphertext),
                iv=b64e(nonce),
                signature=signature,
                timestamp=now_ms(),
                key_generation=entry.generation,
                sender_fingerprint=entry.local_fingerprint,
            )

    def decrypt(self, conversation_id: str, envelope: EnvelopeLike) -> DecryptedMessage:
        """
        Verify (best effort) and decrypt one incoming message.

        Algorithm:
        1. Peer key bound -> verify signature over the ciphertext bytes,
           remember the outcome as is_verified (a failure is only logged)
        2. No peer key -> is_verified = False
        3. AES-GCM decrypt with the conversation's current key
        4. Return plaintext with the envelope's metadata

        Raises:
            NotInitializedError: unknown conversation
            EnvelopeError: payload malformed (bad base64, wrong IV length)
            DecryptionError: AEAD tag check failed (wrong key/epoch or tampering)
        """
        with self.store.sequenced(conversation_id):
            entry = self.store._require(conversation_id)
            message = _coerce_envelope(envelope)

            try:
                ciphertext = b64d(message.ciphertext)
                iv = b64d(message.iv)
            except (binascii.Error, ValueError) as e:
                raise EnvelopeError(f"Envelope is not valid base64: {e}") from e
            if len(iv) != self.backend.iv_length:
                raise EnvelopeError(
                    f"IV must be {self.backend.iv_length} bytes, got {len(iv)}"
                )

            is_verified = False
            if entry.peer_verification_key is not None:
                try:
                    is_verified = bool(
                        self.backend.verify(entry.peer_verification_key, message.signature, ciphertext)
                    )
                except Exception:
                    logger.exception("Signature verification raised in %s", conversation_id)
                    is_verified = False
                if not is_verified:
                    logger.warning(
                        "Message signature verification failed in %s (sender %s)",
                        conversation_id,
                        short_fingerprint(message.sender_fingerprint),
                    )
            else:
                logger.warning(
                    "Peer verification key not available for %s, skipping signature verification",
                    conversation_id,
                )

            try:
                plaintext = self.backend.aead_decrypt(entry.encryption_key, iv, ciphertext)
            except DecryptionError:
                logger.error(
                    "Decryption failed in %s (message generation %d, local generation %d)",
                    conversation_id,
                    message.key_generation,
                    entry.generation,
                )
                raise

            try:
                content = plaintext.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecryptionError("Decrypted payload is not valid UTF-8") from e

            return DecryptedMessage(
                content=content,
                timestamp=message.timestamp,
                key_generation=message.key_generation,
                sender_fingerprint=message.sender_fingerprint,
                is_verified=is_verified,
            )


class ChatEncryptionManager:
    """
    Convenience facade over a key store + engine pair.

    Usage:
    1. generate_signing_keypair() -> publish public_key_b64 / fingerprint.
    2. initialize_conversation(...) with the agreed encryption key.
    3. update_peer_verification_key(...) once the peer's key arrives.
    4. encrypt_message / decrypt_message (or try_decrypt) per message.
    5. rotate_conversation_key(...) when the key agreement layer re-keys.
    6. remove_conversation / cleanup on teardown.
    """

    def __init__(
        self,
        store: Optional[ConversationKeyStore] = None,
        engine: Optional[MessageCryptoEngine] = None,
        settings: Optional[Settings] = None,
    ):
        if store is None:
            store = ConversationKeyStore(settings=settings or load_settings())
        self.store = store
        self.engine = engine or MessageCryptoEngine(store)

    def generate_signing_keypair(self) -> IdentityKeyPair:
        return self.store.generate_identity_keypair()

    def format_fingerprint(self, fingerprint: str) -> str:
        """Fingerprint grouped for display, using the configured group size."""
        return format_fingerprint(fingerprint, self.store.settings.fingerprint_group)

    def initialize_conversation(
        self,
        conversation_id: str,
        shared_encryption_key: bytes,
        local_signing_key: Any,
        local_verification_key: Any,
        local_fingerprint: str,
        peer_verification_key_b64: Optional[str] = None,
        peer_fingerprint: Optional[str] = None,
    ) -> None:
        self.store.initialize(
            conversation_id,
            shared_encryption_key,
            local_signing_key,
            local_verification_key,
            local_fingerprint,
            peer_verification_key_b64,
            peer_fingerprint,
        )

    def initialize_with_identity(
        self,
        conversation_id: str,
        shared_encryption_key: bytes,
        identity: IdentityKeyPair,
        peer_verification_key_b64: Optional[str] = None,
        peer_fingerprint: Optional[str] = None,
    ) -> None:
        self.initialize_conversation(
            conversation_id,
            shared_encryption_key,
            identity.signing_key,
            identity.verification_key,
            identity.fingerprint,
            peer_verification_key_b64,
            peer_fingerprint,
        )

    def update_peer_verification_key(
        self, conversation_id: str, peer_verification_key_b64: str, peer_fingerprint: str
    ) -> None:
        self.store.bind_peer_key(conversation_id, peer_verification_key_b64, peer_fingerprint)

    def encrypt_message(self, conversation_id: str, plaintext: str) -> EncryptedMessage:
        return self.engine.encrypt(conversation_id, plaintext)

    def decrypt_message(self, conversation_id: str, envelope: EnvelopeLike) -> DecryptedMessage:
        return self.engine.decrypt(conversation_id, envelope)

    def try_decrypt(self, conversation_id: str, envelope: EnvelopeLike) -> Optional[DecryptedMessage]:
        """Like decrypt_message, but an unreadable message yields None instead of raising."""
        try:
            return self.engine.decrypt(conversation_id, envelope)
        except DecryptionError:
            return None

    def rotate_conversation_key(self, conversation_id: str, new_encryption_key: bytes) -> int:
        return self.store.rotate(conversation_id, new_encryption_key)

    def get_conversation_key_material(self, conversation_id: str) -> Optional[KeyMaterialSnapshot]:
        return self.store.snapshot(conversation_id)

    def is_conversation_initialized(self, conversation_id: str) -> bool:
        return self.store.is_initialized(conversation_id)

    def remove_conversation(self, conversation_id: str) -> None:
        self.store.remove(conversation_id)

    def get_conversation_generation(self, conversation_id: str) -> int:
        return self.store.generation_of(conversation_id)

    def get_active_conversation_ids(self) -> Set[str]:
        return self.store.active_conversation_ids()

    def cleanup(self) -> None:
        self.store.clear()
