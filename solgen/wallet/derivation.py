"""Deterministic Solana wallet derivation from BIP-39 mnemonics.

Wallet i of a seed lives at m/44'/501'/i'/0' (SLIP-10 ed25519), the scheme
used by Phantom and Solflare and by every vault written so far. Changing it
would silently orphan existing wallets.
"""

import json

from bip_utils import Bip32Slip10Ed25519
from mnemonic import Mnemonic
from solders.keypair import Keypair

from solgen.exceptions import InvalidInputError, InvalidMnemonicError
from solgen.models import WalletKeypair

DERIVATION_PATH = "m/44'/501'/{}'/0'"
MNEMONIC_STRENGTH = 256  # 24 words
VALID_WORD_COUNTS = (12, 24)
SECRET_KEY_LENGTH = 64

_wordlist = Mnemonic("english")


def generate_mnemonic() -> str:
    """Generate a fresh 24-word seed phrase (256 bits of entropy)."""
    return _wordlist.generate(strength=MNEMONIC_STRENGTH)


def normalize_mnemonic(phrase: str) -> str:
    """Collapse whitespace and lowercase a user-supplied phrase."""
    return " ".join(phrase.lower().split())


def validate_mnemonic(phrase: str) -> str:
    """Validate a seed phrase and return it normalized.

    Args:
        phrase: User-supplied seed phrase.

    Returns:
        The normalized phrase.

    Raises:
        InvalidMnemonicError: If the word count is not 12 or 24, or the
            checksum does not match.
    """
    cleaned = normalize_mnemonic(phrase)
    word_count = len(cleaned.split())
    if word_count not in VALID_WORD_COUNTS:
        raise InvalidMnemonicError(
            f"Seed phrase must be 12 or 24 words, got {word_count}"
        )
    if not _wordlist.check(cleaned):
        raise InvalidMnemonicError("Invalid seed phrase. Please check for typos.")
    return cleaned


def _seed_bytes(mnemonic: str) -> bytes:
    return Mnemonic.to_seed(validate_mnemonic(mnemonic), passphrase="")


def _derive_from_seed(seed: bytes, index: int) -> WalletKeypair:
    node = Bip32Slip10Ed25519.FromSeed(seed).DerivePath(DERIVATION_PATH.format(index))
    keypair = Keypair.from_seed(node.PrivateKey().Raw().ToBytes())
    return WalletKeypair(
        address=str(keypair.pubkey()),
        private_key=bytes(keypair).hex(),
    )


def derive_wallet(mnemonic: str, index: int) -> WalletKeypair:
    """Derive the single wallet at a given index."""
    if index < 0:
        raise InvalidInputError(f"Derivation index must be >= 0, got {index}")
    return _derive_from_seed(_seed_bytes(mnemonic), index)


def derive_wallets(mnemonic: str, count: int) -> list[WalletKeypair]:
    """Derive the first `count` wallets of a seed phrase.

    Pure and prefix-stable: derive_wallets(m, n + 1)[:n] == derive_wallets(m, n).

    Raises:
        InvalidMnemonicError: If the phrase is invalid.
        InvalidInputError: If count is negative.
    """
    if count < 0:
        raise InvalidInputError(f"Wallet count must be >= 0, got {count}")
    seed = _seed_bytes(mnemonic)
    return [_derive_from_seed(seed, i) for i in range(count)]


def keypair_from_secret(secret: str) -> Keypair:
    """Parse a secret key from its text encoding.

    Accepts a JSON array of 64 byte values or a hex string.

    Raises:
        InvalidInputError: If the text is neither encoding or the key is invalid.
    """
    text = secret.strip()
    raw: bytes
    if text.startswith("["):
        try:
            values = json.loads(text)
            raw = bytes(values)
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Invalid secret key array: {e}") from e
    else:
        try:
            raw = bytes.fromhex(text.removeprefix("0x"))
        except ValueError as e:
            raise InvalidInputError("Secret key must be a JSON byte array or hex") from e

    if len(raw) != SECRET_KEY_LENGTH:
        raise InvalidInputError(
            f"Secret key must be {SECRET_KEY_LENGTH} bytes, got {len(raw)}"
        )
    try:
        return Keypair.from_bytes(raw)
    except Exception as e:
        raise InvalidInputError(f"Invalid secret key: {e}") from e
