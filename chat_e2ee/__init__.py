"""End-to-end encryption core for two-party chat conversations."""

from .primitive import (
    IV_LENGTH,
    b64e,
    b64d,
)

from .errors import (
    ChatCryptoError,
    NotInitializedError,
    ConversationExistsError,
    KeyImportError,
    EncryptionError,
    DecryptionError,
    EnvelopeError,
)

from .backend import (
    CryptoBackend,
    CryptographyBackend,
)

from .fingerprint import (
    fingerprint_from_raw,
    format_fingerprint,
    fingerprints_match,
)

from .keys import (
    IdentityKeyPair,
    generate_identity_keypair,
    generate_encryption_key,
    import_encryption_key,
    import_encryption_key_b64,
    peer_fingerprint_from_b64,
)

from .envelope import (
    EncryptedMessage,
    DecryptedMessage,
)

from .keystore import (
    ConversationKeyMaterial,
    KeyMaterialSnapshot,
    ConversationKeyStore,
)

from .engine import (
    MessageCryptoEngine,
    ChatEncryptionManager,
)

from .config import (
    Settings,
    load_settings,
    configure_logging,
)

__all__ = [
    # Encoding
    "IV_LENGTH",
    "b64e",
    "b64d",
    # Errors
    "ChatCryptoError",
    "NotInitializedError",
    "ConversationExistsError",
    "KeyImportError",
    "EncryptionError",
    "DecryptionError",
    "EnvelopeError",
    # Crypto capability
    "CryptoBackend",
    "CryptographyBackend",
    # Fingerprints
    "fingerprint_from_raw",
    "format_fingerprint",
    "fingerprints_match",
    # Keys
    "IdentityKeyPair",
    "generate_identity_keypair",
    "generate_encryption_key",
    "import_encryption_key",
    "import_encryption_key_b64",
    "peer_fingerprint_from_b64",
    # Wire format
    "EncryptedMessage",
    "DecryptedMessage",
    # Key material store
    "ConversationKeyMaterial",
    "KeyMaterialSnapshot",
    "ConversationKeyStore",
    # Message engine
    "MessageCryptoEngine",
    "ChatEncryptionManager",
    # Settings
    "Settings",
    "load_settings",
    "configure_logging",
]
