"""Password-based encryption of the wallet collection.

Format (fixed for compatibility with existing vaults):
    - 16-byte random salt, 12-byte random IV, fresh on every encryption
    - PBKDF2-HMAC-SHA256, 100,000 iterations -> 256-bit key
    - AES-256-GCM over the UTF-8 plaintext (tag appended to ciphertext)
    - each component standard-base64 encoded

The password is only ever held for the duration of a call.
"""

import base64
import binascii
import json
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import TypeAdapter, ValidationError

from solgen.exceptions import CorruptVaultError, DecryptionFailedError
from solgen.models import EncryptedVault, SeedGroup

SALT_SIZE = 16
IV_SIZE = 12
KEY_SIZE = 32
PBKDF2_ITERATIONS = 100_000

_groups_adapter = TypeAdapter(list[SeedGroup])


def derive_key(password: str, salt: bytes) -> bytes:
    """Stretch a password into a 256-bit AES key."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(password.encode("utf-8"))


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _b64decode(text: str, field: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CorruptVaultError(f"Invalid base64 in vault field '{field}'") from e


def encrypt_vault(plaintext: str, password: str) -> EncryptedVault:
    """Encrypt vault plaintext under a password.

    Non-deterministic: the same input encrypts to a new salt, IV and
    ciphertext every time.
    """
    salt = os.urandom(SALT_SIZE)
    iv = os.urandom(IV_SIZE)
    key = derive_key(password, salt)
    ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
    return EncryptedVault(
        ciphertext=_b64encode(ciphertext),
        iv=_b64encode(iv),
        salt=_b64encode(salt),
    )


def decrypt_vault(vault: EncryptedVault, password: str) -> str:
    """Decrypt a vault and return its plaintext.

    Raises:
        DecryptionFailedError: Wrong password or tampered ciphertext.
        CorruptVaultError: Components are not valid base64 or have bad sizes.
    """
    salt = _b64decode(vault.salt, "salt")
    iv = _b64decode(vault.iv, "iv")
    ciphertext = _b64decode(vault.ciphertext, "ciphertext")

    if len(iv) != IV_SIZE:
        raise CorruptVaultError(f"Vault IV must be {IV_SIZE} bytes, got {len(iv)}")
    if not salt:
        raise CorruptVaultError("Vault salt is empty")

    key = derive_key(password, salt)
    try:
        plain = AESGCM(key).decrypt(iv, ciphertext, None)
    except InvalidTag as e:
        raise DecryptionFailedError(
            "Failed to decrypt vault: wrong password or corrupted data"
        ) from e

    try:
        return plain.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CorruptVaultError("Decrypted vault is not valid UTF-8") from e


# =============================================================================
# Serialization
# =============================================================================


def serialize_groups(groups: list[SeedGroup]) -> str:
    """Serialize seed groups to canonical JSON text."""
    return _groups_adapter.dump_json(groups, by_alias=True).decode("utf-8")


def deserialize_groups(text: str) -> list[SeedGroup]:
    """Parse decrypted JSON text into seed groups, failing closed.

    Raises:
        CorruptVaultError: If the text does not match the vault schema.
    """
    try:
        return _groups_adapter.validate_json(text)
    except ValidationError as e:
        raise CorruptVaultError(
            f"Decrypted vault failed validation ({e.error_count()} errors)"
        ) from e


def encrypt_groups(groups: list[SeedGroup], password: str) -> EncryptedVault:
    return encrypt_vault(serialize_groups(groups), password)


def decrypt_groups(vault: EncryptedVault, password: str) -> list[SeedGroup]:
    return deserialize_groups(decrypt_vault(vault, password))


def vault_to_blob(vault: EncryptedVault) -> str:
    """Render the persisted record: {"ciphertext", "iv", "salt"}."""
    return vault.model_dump_json()


def vault_from_blob(blob: str) -> EncryptedVault:
    """Parse a persisted record.

    Raises:
        CorruptVaultError: If the record is not JSON or lacks a field.
    """
    try:
        data = json.loads(blob)
    except json.JSONDecodeError as e:
        raise CorruptVaultError("Stored vault is not valid JSON") from e
    try:
        return EncryptedVault.model_validate(data)
    except ValidationError as e:
        raise CorruptVaultError("Stored vault is missing ciphertext, iv or salt") from e
