import pytest

from chat_e2ee.config import Settings
from chat_e2ee.engine import ChatEncryptionManager, MessageCryptoEngine
from chat_e2ee.keys import generate_encryption_key, generate_identity_keypair
from chat_e2ee.keystore import ConversationKeyStore
from chat_e2ee.primitive import b64d, b64e


def _flip_b64_byte(value: str, index: int = 0) -> str:
    raw = bytearray(b64d(value))
    raw[index] ^= 0x01
    return b64e(bytes(raw))


@pytest.fixture
def flip():
    """Return a helper that XORs one decoded byte of a base64 string."""
    return _flip_b64_byte


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def store(settings):
    return ConversationKeyStore(settings=settings)


@pytest.fixture
def engine(store):
    return MessageCryptoEngine(store)


@pytest.fixture
def shared_key():
    return generate_encryption_key()


@pytest.fixture
def alice_identity():
    return generate_identity_keypair()


@pytest.fixture
def bob_identity():
    return generate_identity_keypair()


@pytest.fixture
def alice(settings):
    return ChatEncryptionManager(store=ConversationKeyStore(settings=settings))


@pytest.fixture
def bob(settings):
    return ChatEncryptionManager(store=ConversationKeyStore(settings=settings))


@pytest.fixture
def paired(alice, bob, alice_identity, bob_identity, shared_key):
    """Alice and Bob share `room-42` with each other's verification keys bound."""
    alice.initialize_with_identity(
        "room-42", shared_key, alice_identity,
        bob_identity.public_key_b64, bob_identity.fingerprint,
    )
    bob.initialize_with_identity(
        "room-42", shared_key, bob_identity,
        alice_identity.public_key_b64, alice_identity.fingerprint,
    )
    return alice, bob
