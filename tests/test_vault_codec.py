"""Tests for vault encryption and serialization."""

import base64
import json

import pytest

from solgen.exceptions import CorruptVaultError, DecryptionFailedError
from solgen.models import EncryptedVault, SeedGroup, WalletKeypair
from solgen.vault.codec import (
    IV_SIZE,
    SALT_SIZE,
    decrypt_groups,
    decrypt_vault,
    deserialize_groups,
    encrypt_groups,
    encrypt_vault,
    serialize_groups,
    vault_from_blob,
    vault_to_blob,
)


@pytest.fixture
def sample_groups() -> list[SeedGroup]:
    """Two seed groups with fake keys."""
    return [
        SeedGroup(
            seed="word " * 11 + "last",
            wallets=[
                WalletKeypair(address="Addr1111", private_key="aa" * 64, balance=1.5),
                WalletKeypair(address="Addr2222", private_key="bb" * 64),
            ],
        ),
        SeedGroup(
            seed="other " * 11 + "phrase (imported)",
            wallets=[WalletKeypair(address="Addr3333", private_key="cc" * 64)],
        ),
    ]


class TestEncryptVault:
    """Tests for encrypt_vault / decrypt_vault."""

    def test_round_trip_empty_collection(self) -> None:
        """An empty collection decrypts back to '[]'."""
        vault = encrypt_vault("[]", "test")
        assert decrypt_vault(vault, "test") == "[]"

    def test_component_sizes(self) -> None:
        """Salt is 16 bytes and IV is 12 bytes, all base64."""
        vault = encrypt_vault("[]", "test")
        assert len(base64.b64decode(vault.salt)) == SALT_SIZE
        assert len(base64.b64decode(vault.iv)) == IV_SIZE
        # AES-GCM appends a 16-byte tag
        assert len(base64.b64decode(vault.ciphertext)) == len("[]") + 16

    def test_non_deterministic(self) -> None:
        """Encrypting the same input twice gives different output."""
        first = encrypt_vault("[]", "test")
        second = encrypt_vault("[]", "test")
        assert first.salt != second.salt
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_wrong_password(self) -> None:
        """A wrong password fails decryption."""
        vault = encrypt_vault("[]", "test")
        with pytest.raises(DecryptionFailedError):
            decrypt_vault(vault, "wrong")

    def test_tampered_ciphertext(self) -> None:
        """Modified ciphertext fails authentication."""
        vault = encrypt_vault("secret data", "test")
        raw = bytearray(base64.b64decode(vault.ciphertext))
        raw[0] ^= 0x01
        tampered = EncryptedVault(
            ciphertext=base64.b64encode(bytes(raw)).decode(),
            iv=vault.iv,
            salt=vault.salt,
        )
        with pytest.raises(DecryptionFailedError):
            decrypt_vault(tampered, "test")

    def test_invalid_base64(self) -> None:
        """Non-base64 components are reported as corrupt."""
        vault = encrypt_vault("[]", "test")
        broken = EncryptedVault(ciphertext="!!!", iv=vault.iv, salt=vault.salt)
        with pytest.raises(CorruptVaultError):
            decrypt_vault(broken, "test")

    def test_wrong_iv_length(self) -> None:
        """An IV that is not 12 bytes is reported as corrupt."""
        vault = encrypt_vault("[]", "test")
        broken = EncryptedVault(
            ciphertext=vault.ciphertext,
            iv=base64.b64encode(b"\x00" * 8).decode(),
            salt=vault.salt,
        )
        with pytest.raises(CorruptVaultError, match="IV"):
            decrypt_vault(broken, "test")

    def test_unicode_password(self) -> None:
        """Passwords are UTF-8 encoded before stretching."""
        vault = encrypt_vault("[]", "pässwörd🔑")
        assert decrypt_vault(vault, "pässwörd🔑") == "[]"


class TestGroupSerialization:
    """Tests for seed group (de)serialization."""

    def test_round_trip(self, sample_groups: list[SeedGroup]) -> None:
        """Encrypted groups decrypt to equal groups."""
        vault = encrypt_groups(sample_groups, "password123")
        assert decrypt_groups(vault, "password123") == sample_groups

    def test_uses_camel_case_private_key(self, sample_groups: list[SeedGroup]) -> None:
        """Serialized wallets use the privateKey field name."""
        data = json.loads(serialize_groups(sample_groups))
        wallet = data[0]["wallets"][0]
        assert wallet["privateKey"] == "aa" * 64
        assert "private_key" not in wallet

    def test_reads_legacy_json(self) -> None:
        """Vault JSON written by earlier versions parses."""
        text = json.dumps(
            [
                {
                    "seed": "a b c",
                    "wallets": [{"address": "X", "privateKey": "00", "balance": None}],
                }
            ]
        )
        groups = deserialize_groups(text)
        assert groups[0].wallets[0].private_key == "00"
        assert groups[0].wallets[0].balance is None

    def test_schema_mismatch_is_corrupt(self) -> None:
        """Decrypted JSON that is not a list of groups fails closed."""
        vault = encrypt_vault(json.dumps({"not": "a list"}), "test")
        with pytest.raises(CorruptVaultError):
            decrypt_groups(vault, "test")

    def test_empty_wallet_list_is_corrupt(self) -> None:
        """A group without wallets fails validation."""
        with pytest.raises(CorruptVaultError):
            deserialize_groups(json.dumps([{"seed": "a b c", "wallets": []}]))

    def test_invalid_json_is_corrupt(self) -> None:
        """Decrypted text that is not JSON fails closed."""
        with pytest.raises(CorruptVaultError):
            deserialize_groups("not json")


class TestBlob:
    """Tests for the persisted record format."""

    def test_blob_round_trip(self) -> None:
        """A vault survives rendering to and parsing from a blob."""
        vault = encrypt_vault("[]", "test")
        assert vault_from_blob(vault_to_blob(vault)) == vault

    def test_blob_fields(self) -> None:
        """The blob is a JSON object with exactly three fields."""
        blob = json.loads(vault_to_blob(encrypt_vault("[]", "test")))
        assert set(blob) == {"ciphertext", "iv", "salt"}

    def test_blob_not_json(self) -> None:
        """A non-JSON blob is corrupt."""
        with pytest.raises(CorruptVaultError):
            vault_from_blob("garbage")

    def test_blob_missing_field(self) -> None:
        """A blob without a salt is corrupt."""
        with pytest.raises(CorruptVaultError):
            vault_from_blob(json.dumps({"ciphertext": "YQ==", "iv": "YQ=="}))
