"""Exceptions raised by the conversation encryption core."""


class ChatCryptoError(Exception):
    """Base exception for cryptographic errors"""
    pass


class NotInitializedError(ChatCryptoError):
    """Operation referenced a conversation that has no key material."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not initialized")


class ConversationExistsError(ChatCryptoError):
    """Re-initialisation refused because the conversation already has a bound peer."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(
            f"Conversation {conversation_id} already has peer key material; "
            "refusing to overwrite it"
        )


class KeyImportError(ChatCryptoError):
    """Malformed or corrupt key material."""
    pass


class EncryptionError(ChatCryptoError):
    pass


class DecryptionError(ChatCryptoError):
    """AEAD authentication failed: wrong key, tampered data or key-epoch mismatch."""
    pass


class EnvelopeError(DecryptionError):
    """Incoming wire payload is malformed (missing field, bad base64, bad IV length)."""
    pass
