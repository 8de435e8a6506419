from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from .encryption import Encryption, create_default_encryption
from .models import ProfileState, SessionHolder, SessionState
from .observable import Observable
from .storage import InMemoryStorage, StorageKeys, SyncStore, storage_keys


logger = logging.getLogger(__name__)


class SessionStore:
    """
    Observable profile/session state bridged to a storage adapter.

    - `profile` is persisted as plain JSON through an `on_set` hook; an empty
      profile deletes the stored record.
    - `session` is serialized, encrypted under `encryption_key`, and written
      before the observable changes. `set_session(None)` deletes the record.
    - Any serialization, encryption or storage failure aborts the write with
      both storage and observables untouched.

    The storage adapter is owned exclusively by one store instance.
    """

    def __init__(
        self,
        *,
        api_key: str,
        store: Optional[SyncStore] = None,
        encryption: Optional[Encryption] = None,
        encryption_key: Optional[str] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")
        self._keys: StorageKeys = storage_keys(api_key)
        self._store: SyncStore = store if store is not None else InMemoryStorage()
        self._encryption: Encryption = encryption or create_default_encryption()
        # TODO: require a dedicated encryption_key once callers have migrated off the API key.
        self._encryption_key = encryption_key or api_key

        self.profile: Observable[ProfileState] = Observable(self._load_profile())
        self.session: Observable[SessionHolder] = Observable(SessionHolder())
        self.profile.on_set(self._persist_profile)

    @property
    def keys(self) -> StorageKeys:
        return self._keys

    # -------- Profile --------
    def _load_profile(self) -> ProfileState:
        raw = self._store.get(self._keys.state)
        if not raw:
            return ProfileState()
        try:
            return ProfileState.from_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable stored profile")
            return ProfileState()

    def _persist_profile(self, value: ProfileState) -> None:
        if value.is_empty():
            self._store.delete(self._keys.state)
        else:
            self._store.set(self._keys.state, value.to_json())

    def set_profile(self, value: ProfileState) -> None:
        self.profile.set(value)

    def clear_profile(self) -> None:
        self.profile.set(ProfileState())

    # -------- Session --------
    async def set_session(self, value: Optional[SessionState]) -> None:
        if value is not None:
            ciphertext = await self._encryption.encrypt(self._encryption_key, value.to_json())
            self._store.set(self._keys.session, ciphertext)
        else:
            self._store.delete(self._keys.session)
        self.session.set(SessionHolder(initialized=True, value=value))

    async def read_session(self) -> Optional[SessionState]:
        """Read and decrypt the stored session without touching the observable.

        Returns None when nothing is stored, or when the stored record cannot be
        decrypted or parsed; such a session is unrecoverable.
        """
        stored = self._store.get(self._keys.session)
        if not stored:
            return None
        try:
            plaintext = await self._encryption.decrypt(self._encryption_key, stored)
        except Exception as ex:
            # Adapters may fail in their own way on tamper or key mismatch.
            logger.warning(
                "Stored session could not be decrypted (%s); treating as absent",
                type(ex).__name__,
            )
            return None
        try:
            return SessionState.from_json(plaintext)
        except ValidationError:
            logger.warning("Stored session is not valid session JSON; treating as absent")
            return None

    def mark_session_loaded(self, value: Optional[SessionState]) -> None:
        self.session.set(SessionHolder(initialized=True, value=value))

    def reset_session(self) -> None:
        """Forget the in-memory session so the next load reads storage again."""
        self.session.set(SessionHolder())


__all__ = ["SessionStore"]
