"""Encrypt-and-persist operations for one vault record."""

import asyncio

from loguru import logger

from solgen.models import SeedGroup
from solgen.vault.codec import (
    decrypt_groups,
    encrypt_groups,
    vault_from_blob,
    vault_to_blob,
)
from solgen.vault.store import VaultStore


class VaultRepository:
    """Loads and saves the wallet collection stored under one key.

    Saves are single-flight per key: concurrent callers queue on the
    store's lock for that key, and each writes a full encrypted snapshot.
    Key stretching runs in a worker thread so the event loop stays free.
    """

    def __init__(self, store: VaultStore, key: str = "wallets_encrypted") -> None:
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def exists(self) -> bool:
        return await self._store.get(self._key) is not None

    async def load(self, password: str) -> list[SeedGroup]:
        """Decrypt the stored collection.

        Returns:
            The stored seed groups, or an empty list if nothing is stored.

        Raises:
            DecryptionFailedError: Wrong password or corrupted record.
        """
        blob = await self._store.get(self._key)
        if blob is None:
            logger.info("No wallet data found under '{}'", self._key)
            return []

        vault = vault_from_blob(blob)
        groups = await asyncio.to_thread(decrypt_groups, vault, password)
        logger.info(
            "Vault unlocked: {} seed groups, {} wallets",
            len(groups),
            sum(len(g.wallets) for g in groups),
        )
        return groups

    async def save(self, groups: list[SeedGroup], password: str) -> None:
        """Encrypt and persist a snapshot of the collection."""
        snapshot = [group.model_copy(deep=True) for group in groups]
        async with self._store.lock(self._key):
            vault = await asyncio.to_thread(encrypt_groups, snapshot, password)
            await self._store.set(self._key, vault_to_blob(vault))
        logger.debug("Vault '{}' saved ({} seed groups)", self._key, len(snapshot))

    async def clear(self) -> bool:
        async with self._store.lock(self._key):
            return await self._store.remove(self._key)
