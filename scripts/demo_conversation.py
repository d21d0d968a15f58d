"""
Two-party encrypted conversation walkthrough.

Demonstrates:
1. Identity keys + fingerprint comparison
2. Conversation setup with a shared key (normally from the key agreement layer)
3. Signed + encrypted messages in both directions
4. Key rotation, and what happens when only one side rotates
5. Tamper detection
"""

import sys
from pathlib import Path

# Add parent directory to path so we can import chat_e2ee
sys.path.insert(0, str(Path(__file__).parent.parent))

from chat_e2ee import (
    ChatEncryptionManager,
    DecryptionError,
    fingerprints_match,
    generate_encryption_key,
)
from chat_e2ee.config import configure_logging


def main() -> None:
    configure_logging()

    print("=" * 60)
    print("SETUP: Identities")
    print("=" * 60)

    alice = ChatEncryptionManager()
    bob = ChatEncryptionManager()

    alice_id = alice.generate_signing_keypair()
    bob_id = bob.generate_signing_keypair()

    print(f"Alice fingerprint: {alice.format_fingerprint(alice_id.fingerprint)}")
    print(f"Bob fingerprint:   {bob.format_fingerprint(bob_id.fingerprint)}")

    # Out of band, Bob reads Alice's fingerprint back to her
    assert fingerprints_match(alice_id.fingerprint, bob.format_fingerprint(alice_id.fingerprint))
    print("✓ Fingerprints compared out of band")

    print("\n" + "=" * 60)
    print("SETUP: Conversation room-42 (generation 1)")
    print("=" * 60)

    k1 = generate_encryption_key()
    alice.initialize_with_identity("room-42", k1, alice_id, bob_id.public_key_b64, bob_id.fingerprint)
    bob.initialize_with_identity("room-42", k1, bob_id, alice_id.public_key_b64, alice_id.fingerprint)
    print("✓ Both sides initialized")

    print("\n" + "=" * 60)
    print("MESSAGES")
    print("=" * 60)

    e1 = alice.encrypt_message("room-42", "hello")
    print(f"Alice -> Bob (wire): {e1.to_json()[:80]}...")
    r1 = bob.decrypt_message("room-42", e1.to_dict())
    print(f"✓ Bob reads: {r1.content!r} (verified={r1.is_verified}, generation={r1.key_generation})")

    reply = bob.encrypt_message("room-42", "hi Alice")
    r_reply = alice.decrypt_message("room-42", reply)
    print(f"✓ Alice reads: {r_reply.content!r} (verified={r_reply.is_verified})")

    print("\n" + "=" * 60)
    print("ROTATION")
    print("=" * 60)

    k2 = generate_encryption_key()
    alice.rotate_conversation_key("room-42", k2)
    e2 = alice.encrypt_message("room-42", "world")
    print(f"Alice rotated -> generation {e2.key_generation}")

    if bob.try_decrypt("room-42", e2) is None:
        print("✓ Bob (still generation 1) cannot read the generation 2 message")

    bob.rotate_conversation_key("room-42", k2)
    r2 = bob.decrypt_message("room-42", e2)
    print(f"✓ Bob rotated too and reads: {r2.content!r} (generation {r2.key_generation})")

    print("\n" + "=" * 60)
    print("TAMPERING")
    print("=" * 60)

    e3 = alice.encrypt_message("room-42", "do not touch")
    tampered = e3.to_dict()
    ct = tampered["ciphertext"]
    tampered["ciphertext"] = ("B" if ct[0] == "A" else "A") + ct[1:]
    try:
        bob.decrypt_message("room-42", tampered)
        print("✗ Tampered message was accepted")
    except DecryptionError:
        print("✓ Tampered ciphertext rejected")

    alice.cleanup()
    bob.cleanup()
    print("\n✓ Cleanup complete")


if __name__ == "__main__":
    main()
