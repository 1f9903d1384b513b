"""Custom exceptions for the SolGen wallet manager."""


class InvalidInputError(ValueError):
    """Raised when an address, amount or secret key is malformed.

    Always fatal: input errors are never retried.
    """

    pass


class InvalidMnemonicError(InvalidInputError):
    """Raised when a seed phrase has the wrong length or a bad checksum."""

    pass


# =============================================================================
# Vault Layer Exceptions
# =============================================================================


class VaultError(Exception):
    """Base exception for vault-related errors."""

    pass


class DecryptionFailedError(VaultError):
    """Raised when a vault cannot be decrypted.

    Covers a wrong password as well as a tampered or truncated ciphertext.
    The caller may prompt for the password again and retry from scratch.
    """

    pass


class CorruptVaultError(DecryptionFailedError):
    """Raised when a stored blob or decrypted payload fails schema validation."""

    pass


class VaultLockedError(VaultError):
    """Raised when a session operation needs an unlocked vault."""

    pass


class DuplicateSeedError(VaultError):
    """Raised when recovering a seed phrase that is already in the vault."""

    pass


# =============================================================================
# RPC Layer Exceptions
# =============================================================================


class RpcError(Exception):
    """Base exception for RPC errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(RpcError):
    """Raised when an endpoint throttles us (HTTP 403/429 or equivalent)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        status_code: int | None = 429,
    ) -> None:
        super().__init__(message, status_code=status_code)


class TransientError(RpcError):
    """Raised for network or provider errors worth retrying elsewhere."""

    pass


class ExhaustedEndpointsError(RpcError):
    """Raised when every endpoint has been tried twice without success.

    Attributes:
        attempts: Number of attempts made before giving up.
    """

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransactionFailedError(RpcError):
    """Raised when a transaction is rejected by preflight or fails on-chain."""

    pass


class TransactionUnconfirmedError(RpcError):
    """Raised when a submitted transaction could not be confirmed.

    The transaction may still land, so it is never re-signed and resent.

    Attributes:
        signature: Signature of the transaction that was submitted.
    """

    def __init__(self, message: str, signature: str) -> None:
        super().__init__(message)
        self.signature = signature


# =============================================================================
# Transfer Layer Exceptions
# =============================================================================


class TransferError(Exception):
    """Base exception for batch transfer precondition failures."""

    pass


class NoTargetsError(TransferError):
    """Raised when a mass deposit has no wallets to fund."""

    pass


class InsufficientBalanceError(TransferError):
    """Raised when the source wallet cannot cover the requested total.

    Attributes:
        address: Address of the source wallet that needs a deposit.
    """

    def __init__(self, message: str, address: str) -> None:
        super().__init__(message)
        self.address = address


class ReserveViolationError(TransferError):
    """Raised when a transfer would leave the source below the fee reserve."""

    pass
