"""Wallet session management over the encrypted vault.

Holds the decrypted seed groups and the vault password while unlocked,
and re-encrypts the whole collection after every change.
"""

from typing import TYPE_CHECKING

from loguru import logger
from pydantic import SecretStr

from solgen.exceptions import DuplicateSeedError, InvalidInputError, VaultLockedError
from solgen.models import IMPORTED_SUFFIX, SeedGroup
from solgen.vault.repository import VaultRepository
from solgen.wallet.derivation import (
    derive_wallet,
    derive_wallets,
    generate_mnemonic,
    normalize_mnemonic,
    validate_mnemonic,
)

if TYPE_CHECKING:
    from solgen.rpc.client import SolanaRpcClient


class WalletManager:
    """Manages seed groups, derived wallets and their persistence.

    Usage:
        manager = WalletManager(repository, client)
        await manager.unlock("my_password")

        # Generate a new seed with three wallets
        group = await manager.create_seed_group(3)

        # Append a wallet at the next derivation index
        await manager.add_wallet(0)

        # Backup text for the user to store offline
        print(manager.export_backup(0))
    """

    MIN_PASSWORD_LENGTH = 8

    def __init__(
        self,
        repository: VaultRepository,
        client: "SolanaRpcClient | None" = None,
        balance_concurrency: int = 4,
    ) -> None:
        """Initialize wallet manager.

        Args:
            repository: Encrypted storage for the collection.
            client: RPC client for balances. Without one, balances stay unknown.
            balance_concurrency: Parallel balance lookups.
        """
        self._repository = repository
        self._client = client
        self._balance_concurrency = balance_concurrency
        self._password: SecretStr | None = None
        self._groups: list[SeedGroup] = []

    @property
    def unlocked(self) -> bool:
        return self._password is not None

    @property
    def groups(self) -> list[SeedGroup]:
        """Seed groups of the unlocked vault."""
        self._require_unlocked()
        return self._groups

    def _require_unlocked(self) -> str:
        if self._password is None:
            raise VaultLockedError("Vault is locked. Unlock it first.")
        return self._password.get_secret_value()

    def get_group(self, group_index: int) -> SeedGroup:
        """Seed group at a position; negative indices are rejected."""
        self._require_unlocked()
        if not 0 <= group_index < len(self._groups):
            raise IndexError(f"No seed group at index {group_index}")
        return self._groups[group_index]

    # =========================================================================
    # Session
    # =========================================================================

    async def unlock(self, password: str) -> list[SeedGroup]:
        """Decrypt the stored collection with a password.

        A vault with nothing stored yet unlocks to an empty collection,
        and the password becomes the vault password on first save.

        Raises:
            ValueError: If a new vault's password is too short.
            DecryptionFailedError: If the password is wrong.
        """
        if not await self._repository.exists():
            if len(password) < self.MIN_PASSWORD_LENGTH:
                raise ValueError(
                    f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters"
                )
        self._groups = await self._repository.load(password)
        self._password = SecretStr(password)
        return self._groups

    def lock(self) -> None:
        """Forget the password and the decrypted wallets."""
        self._password = None
        self._groups = []
        logger.info("Vault locked")

    async def save(self) -> None:
        """Encrypt and persist the current collection."""
        password = self._require_unlocked()
        await self._repository.save(self._groups, password)

    async def change_password(self, new_password: str) -> None:
        """Re-encrypt the vault under a new password."""
        self._require_unlocked()
        if len(new_password) < self.MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters"
            )
        # Switch only once the vault is stored under the new password
        await self._repository.save(self._groups, new_password)
        self._password = SecretStr(new_password)
        logger.info("Vault password changed")

    # =========================================================================
    # Seed Groups
    # =========================================================================

    async def create_seed_group(self, count: int = 1) -> SeedGroup:
        """Generate a new seed phrase and derive `count` wallets from it."""
        self._require_unlocked()
        if count < 1:
            raise InvalidInputError("Wallet count must be at least 1")

        seed = generate_mnemonic()
        group = SeedGroup(seed=seed, wallets=derive_wallets(seed, count))
        await self._load_group_balances(group)

        self._groups.append(group)
        await self.save()
        logger.info("Created seed group with {} wallets", count)
        return group

    def has_seed(self, phrase: str) -> bool:
        """Check whether a seed phrase is already in the vault."""
        target = normalize_mnemonic(phrase)
        return any(normalize_mnemonic(g.mnemonic) == target for g in self.groups)

    async def recover_seed_group(self, phrase: str, count: int = 1) -> SeedGroup:
        """Import an existing seed phrase.

        Raises:
            InvalidMnemonicError: If the phrase is invalid.
            DuplicateSeedError: If the phrase is already in the vault.
        """
        self._require_unlocked()
        if count < 1:
            raise InvalidInputError("Wallet count must be at least 1")

        cleaned = validate_mnemonic(phrase)
        if self.has_seed(cleaned):
            raise DuplicateSeedError("This seed phrase has already been imported!")

        group = SeedGroup(
            seed=f"{cleaned}{IMPORTED_SUFFIX}",
            wallets=derive_wallets(cleaned, count),
        )
        await self._load_group_balances(group)

        self._groups.append(group)
        await self.save()
        logger.info("Recovered seed group with {} wallets", count)
        return group

    async def delete_seed_group(self, group_index: int) -> None:
        """Delete a seed group and all of its wallets."""
        self.get_group(group_index)
        del self._groups[group_index]
        await self.save()
        logger.info("Deleted seed group {}", group_index)

    # =========================================================================
    # Wallets
    # =========================================================================

    async def add_wallet(self, group_index: int) -> SeedGroup:
        """Append a wallet at the next derivation index of a group."""
        group = self.get_group(group_index)
        existing = {w.address for w in group.wallets}
        index = len(group.wallets)
        wallet = derive_wallet(group.mnemonic, index)
        # After a deletion the next index can collide with a kept wallet
        while wallet.address in existing:
            index += 1
            wallet = derive_wallet(group.mnemonic, index)
        group.wallets.append(wallet)
        await self.save()
        logger.info("Added wallet {} to seed group {}", wallet.short_address, group_index)
        return group

    async def delete_wallet(self, group_index: int, wallet_index: int) -> None:
        """Remove a wallet; removing the last one deletes the whole group."""
        group = self.get_group(group_index)
        if not 0 <= wallet_index < len(group.wallets):
            raise IndexError(f"No wallet at index {wallet_index}")

        if len(group.wallets) == 1:
            await self.delete_seed_group(group_index)
            return

        removed = group.wallets.pop(wallet_index)
        await self.save()
        logger.info("Deleted wallet {}", removed.short_address)

    # =========================================================================
    # Balances
    # =========================================================================

    async def _load_group_balances(self, group: SeedGroup) -> None:
        if self._client is None:
            return
        balances = await self._client.get_balances(
            [w.address for w in group.wallets],
            max_concurrency=self._balance_concurrency,
        )
        for wallet in group.wallets:
            wallet.balance = balances.get(wallet.address)

    async def refresh_balances(self, group_index: int | None = None) -> None:
        """Refresh cached balances of one group, or of every group."""
        if group_index is None:
            targets = list(self.groups)
        else:
            targets = [self.get_group(group_index)]
        for group in targets:
            await self._load_group_balances(group)

    # =========================================================================
    # Export
    # =========================================================================

    def export_backup(self, group_index: int) -> str:
        """Plain-text backup of a seed and its keys.

        The result contains secrets; it is meant to be written where the
        user asked and never logged.
        """
        group = self.get_group(group_index)
        lines = ["Seed Phrase:", group.mnemonic, "", "Wallets:"]
        for i, wallet in enumerate(group.wallets, start=1):
            lines.append(f"Wallet {i}:")
            lines.append(f"Address: {wallet.address}")
            lines.append(f"Private Key: {wallet.private_key}")
            lines.append("")
        return "\n".join(lines)
