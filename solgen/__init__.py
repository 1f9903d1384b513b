"""SolGen: HD Solana wallets in an encrypted vault, with resilient RPC transfers."""

__version__ = "0.1.0"
