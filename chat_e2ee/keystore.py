"""
In-memory key material store, one entry per conversation.

The store owns every key handle for a conversation. Entries are created by
`initialize`, optionally enriched with the peer's verification key, rotated
in place and dropped on teardown. Nothing is persisted; call `clear()` on
logout to bound how long secrets stay in memory.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Set

from .backend import CryptoBackend, CryptographyBackend, check_encryption_key
from .config import Settings, load_settings
from .envelope import now_ms
from .errors import ConversationExistsError, NotInitializedError
from .fingerprint import fingerprint_from_raw, short_fingerprint
from .keys import IdentityKeyPair, generate_identity_keypair

logger = logging.getLogger(__name__)


@dataclass
class ConversationKeyMaterial:
    """
    Live key material for one conversation. Never handed out to callers.

    Attributes:
        encryption_key: AES-256 key for the current generation
        signing_key: Local private signing key
        verification_key: Local public verification key
        peer_verification_key: Remote public key, None until bound
        generation: Key epoch, starts at 1 and only ever goes up by one
        local_fingerprint: Fingerprint of verification_key
        peer_fingerprint: Peer fingerprint as supplied by the caller, None until known
        created_at: Epoch ms of initialization or of the last rotation
    """
    encryption_key: bytes = field(repr=False)
    signing_key: Any = field(repr=False)
    verification_key: Any = field(repr=False)
    local_fingerprint: str
    peer_verification_key: Optional[Any] = field(default=None, repr=False)
    peer_fingerprint: Optional[str] = None
    generation: int = 1
    created_at: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class KeyMaterialSnapshot:
    """Read-only view of an entry, without the secret keys."""
    conversation_id: str
    generation: int
    created_at: int
    local_fingerprint: str
    peer_fingerprint: Optional[str]
    verification_key: Any = field(repr=False)
    peer_verification_key: Optional[Any] = field(default=None, repr=False)

    @property
    def has_peer_key(self) -> bool:
        return self.peer_verification_key is not None


class _ConversationLock:
    """RLock plus the number of threads holding or waiting on it."""
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class ConversationKeyStore:
    def __init__(self, backend: CryptoBackend | None = None, settings: Settings | None = None):
        self.backend = backend or CryptographyBackend()
        self.settings = settings or load_settings()
        self._entries: Dict[str, ConversationKeyMaterial] = {}
        self._locks: Dict[str, _ConversationLock] = {}
        self._locks_guard = threading.Lock()

    # ---- sequencing ----

    def _checkout_lock(self, conversation_id: str) -> _ConversationLock:
        with self._locks_guard:
            slot = self._locks.get(conversation_id)
            if slot is None:
                slot = _ConversationLock()
                self._locks[conversation_id] = slot
            slot.users += 1
            return slot

    def _return_lock(self, conversation_id: str, slot: _ConversationLock) -> None:
        with self._locks_guard:
            slot.users -= 1
            # a lock is only discarded once nobody holds or awaits it
            if slot.users == 0 and self._locks.get(conversation_id) is slot:
                del self._locks[conversation_id]

    @contextmanager
    def sequenced(self, conversation_id: str) -> Iterator[None]:
        """
        Serialize operations on one conversation.

        Initialization, rotation, binding, removal and the engine's
        encrypt/decrypt all run under this lock, so a message is always
        processed with a single key epoch. Different conversations never
        contend. The lock exists only while some thread holds or waits on it.
        """
        slot = self._checkout_lock(conversation_id)
        try:
            with slot.lock:
                yield
        finally:
            self._return_lock(conversation_id, slot)

    # ---- lifecycle ----

    def generate_identity_keypair(self) -> IdentityKeyPair:
        return generate_identity_keypair(self.backend)

    def initialize(
        self,
        conversation_id: str,
        shared_encryption_key: bytes,
        local_signing_key: Any,
        local_verification_key: Any,
        local_fingerprint: str,
        peer_public_key: Optional[str] = None,
        peer_fingerprint: Optional[str] = None,
    ) -> None:
        """
        Create (or replace) the entry for `conversation_id` at generation 1.

        If `peer_public_key` is given it is imported and bound immediately;
        a missing `peer_fingerprint` is then derived from the key.

        Raises:
            KeyImportError: malformed peer key or encryption key
            ConversationExistsError: the entry has a bound peer and
                `settings.reject_reinitialize` is set
        """
        encryption_key = check_encryption_key(shared_encryption_key)

        peer_key = None
        if peer_public_key:
            peer_key = self.backend.import_public_key(peer_public_key)
            if peer_fingerprint is None:
                peer_fingerprint = fingerprint_from_raw(self.backend.export_public_key(peer_key))

        with self.sequenced(conversation_id):
            existing = self._entries.get(conversation_id)
            if existing is not None and existing.peer_verification_key is not None:
                if self.settings.reject_reinitialize:
                    raise ConversationExistsError(conversation_id)
                logger.warning(
                    "Re-initializing conversation %s which already has a bound peer key "
                    "(peer %s); previous key material is discarded",
                    conversation_id,
                    short_fingerprint(existing.peer_fingerprint or ""),
                )

            self._entries[conversation_id] = ConversationKeyMaterial(
                encryption_key=encryption_key,
                signing_key=local_signing_key,
                verification_key=local_verification_key,
                local_fingerprint=local_fingerprint,
                peer_verification_key=peer_key,
                peer_fingerprint=peer_fingerprint,
            )

        logger.debug("Initialized conversation %s (generation 1)", conversation_id)

    def bind_peer_key(self, conversation_id: str, peer_public_key: str, peer_fingerprint: str) -> None:
        with self.sequenced(conversation_id):
            entry = self._require(conversation_id)
            # import before touching the entry so a bad key leaves it unchanged
            peer_key = self.backend.import_public_key(peer_public_key)
            entry.peer_verification_key = peer_key
            entry.peer_fingerprint = peer_fingerprint

        logger.debug(
            "Updated peer verification key for %s (peer %s)",
            conversation_id,
            short_fingerprint(peer_fingerprint),
        )

    def rotate(self, conversation_id: str, new_encryption_key: bytes) -> int:
        """
        Swap in a new encryption key and advance the generation by one.

        Identity keys and fingerprints are untouched. Returns the new generation.
        """
        with self.sequenced(conversation_id):
            entry = self._require(conversation_id)
            key = check_encryption_key(new_encryption_key)
            entry.encryption_key = key
            entry.generation += 1
            entry.created_at = now_ms()
            generation = entry.generation

        logger.debug("Rotated keys for %s (generation %d)", conversation_id, generation)
        return generation

    def remove(self, conversation_id: str) -> None:
        with self.sequenced(conversation_id):
            self._entries.pop(conversation_id, None)
        logger.debug("Removed conversation %s", conversation_id)

    def clear(self) -> None:
        for conversation_id in list(self._entries):
            self.remove(conversation_id)
        logger.debug("Cleanup complete")

    # ---- queries ----

    def _require(self, conversation_id: str) -> ConversationKeyMaterial:
        """Live entry, for the message engine only. Raises NotInitializedError if unknown."""
        entry = self._entries.get(conversation_id)
        if entry is None:
            raise NotInitializedError(conversation_id)
        return entry

    def is_initialized(self, conversation_id: str) -> bool:
        return conversation_id in self._entries

    def generation_of(self, conversation_id: str) -> int:
        """Current generation, or 0 for an unknown conversation."""
        entry = self._entries.get(conversation_id)
        return entry.generation if entry is not None else 0

    def active_conversation_ids(self) -> Set[str]:
        return set(self._entries)

    def snapshot(self, conversation_id: str) -> Optional[KeyMaterialSnapshot]:
        entry = self._entries.get(conversation_id)
        if entry is None:
            return None
        return KeyMaterialSnapshot(
            conversation_id=conversation_id,
            generation=entry.generation,
            created_at=entry.created_at,
            local_fingerprint=entry.local_fingerprint,
            peer_fingerprint=entry.peer_fingerprint,
            verification_key=entry.verification_key,
            peer_verification_key=entry.peer_verification_key,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._entries
