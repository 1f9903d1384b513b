"""Encrypted vault layer.

Provides:
- Codec: password-based AES-GCM encryption of the wallet collection
- VaultStore: SQLite key-value storage for the encrypted record
- VaultRepository: single-flight load/save of one vault
"""

from solgen.vault.codec import (
    decrypt_groups,
    decrypt_vault,
    deserialize_groups,
    encrypt_groups,
    encrypt_vault,
    serialize_groups,
)
from solgen.vault.repository import VaultRepository
from solgen.vault.store import VaultStore

__all__ = [
    "VaultRepository",
    "VaultStore",
    "decrypt_groups",
    "decrypt_vault",
    "deserialize_groups",
    "encrypt_groups",
    "encrypt_vault",
    "serialize_groups",
]
