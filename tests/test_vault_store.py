"""Tests for the SQLite vault store and the vault repository."""

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
import pytest_asyncio

from solgen.exceptions import CorruptVaultError, DecryptionFailedError
from solgen.models import SeedGroup, WalletKeypair
from solgen.vault import VaultRepository, VaultStore


@pytest_asyncio.fixture
async def store(tmp_path: Path) -> AsyncIterator[VaultStore]:
    """Connected store in a temporary directory."""
    async with VaultStore(tmp_path / "data" / "solgen.db") as s:
        yield s


@pytest.fixture
def group() -> SeedGroup:
    return SeedGroup(
        seed="word " * 11 + "last",
        wallets=[WalletKeypair(address="Addr1111", private_key="aa" * 64)],
    )


class TestVaultStore:
    """Tests for VaultStore."""

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """Connecting creates the database directory."""
        db_path = tmp_path / "nested" / "dir" / "solgen.db"
        async with VaultStore(db_path):
            pass
        assert db_path.exists()

    @pytest.mark.asyncio
    async def test_get_missing_key(self, store: VaultStore) -> None:
        """Unknown keys return None."""
        assert await store.get("missing") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, store: VaultStore) -> None:
        """Stored values are returned unchanged."""
        await store.set("k", "value")
        assert await store.get("k") == "value"

    @pytest.mark.asyncio
    async def test_set_overwrites(self, store: VaultStore) -> None:
        """Setting an existing key replaces its value."""
        await store.set("k", "one")
        await store.set("k", "two")
        assert await store.get("k") == "two"

    @pytest.mark.asyncio
    async def test_remove(self, store: VaultStore) -> None:
        """Removing reports whether the key existed."""
        await store.set("k", "value")
        assert await store.remove("k") is True
        assert await store.remove("k") is False
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path: Path) -> None:
        """Values survive reconnecting to the same file."""
        db_path = tmp_path / "solgen.db"
        async with VaultStore(db_path) as s:
            await s.set("k", "value")
        async with VaultStore(db_path) as s:
            assert await s.get("k") == "value"

    @pytest.mark.asyncio
    async def test_requires_connection(self, tmp_path: Path) -> None:
        """Operations before connect() fail loudly."""
        s = VaultStore(tmp_path / "solgen.db")
        with pytest.raises(RuntimeError, match="not connected"):
            await s.get("k")

    def test_lock_is_per_key(self, tmp_path: Path) -> None:
        """Each key gets one lock, reused across calls."""
        s = VaultStore(tmp_path / "solgen.db")
        assert s.lock("a") is s.lock("a")
        assert s.lock("a") is not s.lock("b")


class TestVaultRepository:
    """Tests for VaultRepository."""

    @pytest.mark.asyncio
    async def test_load_empty(self, store: VaultStore) -> None:
        """Loading with nothing stored yields an empty collection."""
        repository = VaultRepository(store)
        assert await repository.exists() is False
        assert await repository.load("password123") == []

    @pytest.mark.asyncio
    async def test_save_and_load(self, store: VaultStore, group: SeedGroup) -> None:
        """Saved groups load back with the same password."""
        repository = VaultRepository(store)
        await repository.save([group], "password123")

        assert await repository.exists() is True
        assert await repository.load("password123") == [group]

    @pytest.mark.asyncio
    async def test_stored_record_is_encrypted(
        self, store: VaultStore, group: SeedGroup
    ) -> None:
        """The stored blob holds only ciphertext, iv and salt."""
        repository = VaultRepository(store, key="wallets_encrypted")
        await repository.save([group], "password123")

        blob = await store.get("wallets_encrypted")
        assert blob is not None
        assert set(json.loads(blob)) == {"ciphertext", "iv", "salt"}
        assert "aa" * 64 not in blob

    @pytest.mark.asyncio
    async def test_wrong_password(self, store: VaultStore, group: SeedGroup) -> None:
        """Loading with the wrong password fails."""
        repository = VaultRepository(store)
        await repository.save([group], "password123")
        with pytest.raises(DecryptionFailedError):
            await repository.load("wrongpassword")

    @pytest.mark.asyncio
    async def test_corrupt_record(self, store: VaultStore) -> None:
        """A garbage record is reported as corrupt."""
        await store.set("wallets_encrypted", "garbage")
        with pytest.raises(CorruptVaultError):
            await VaultRepository(store).load("password123")

    @pytest.mark.asyncio
    async def test_save_snapshots_input(
        self, store: VaultStore, group: SeedGroup
    ) -> None:
        """Mutating the groups after save does not change what was stored."""
        repository = VaultRepository(store)
        groups = [group]
        await repository.save(groups, "password123")
        group.wallets[0].balance = 42.0

        loaded = await repository.load("password123")
        assert loaded[0].wallets[0].balance is None

    @pytest.mark.asyncio
    async def test_concurrent_saves_are_serialized(
        self, store: VaultStore, group: SeedGroup
    ) -> None:
        """Concurrent saves queue; the last one to start wins."""
        repository = VaultRepository(store)
        second = group.model_copy(deep=True)
        second.wallets[0].balance = 2.0

        await asyncio.gather(
            repository.save([group], "password123"),
            repository.save([group, second], "password123"),
        )

        loaded = await repository.load("password123")
        assert len(loaded) == 2

    @pytest.mark.asyncio
    async def test_clear(self, store: VaultStore, group: SeedGroup) -> None:
        """Clearing removes the record."""
        repository = VaultRepository(store)
        await repository.save([group], "password123")
        assert await repository.clear() is True
        assert await repository.exists() is False
