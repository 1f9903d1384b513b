"""Wallet management module.

Provides seed phrase generation, deterministic wallet derivation and the
unlocked wallet session.
"""

from solgen.wallet.derivation import (
    derive_wallet,
    derive_wallets,
    generate_mnemonic,
    keypair_from_secret,
    validate_mnemonic,
)
from solgen.wallet.manager import WalletManager

__all__ = [
    "WalletManager",
    "derive_wallet",
    "derive_wallets",
    "generate_mnemonic",
    "keypair_from_secret",
    "validate_mnemonic",
]
