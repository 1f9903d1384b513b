"""Domain models for the SolGen wallet manager."""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from time import time

from pydantic import BaseModel, Field

from solgen.exceptions import InvalidInputError

# Lamports are the integer base unit of SOL
LAMPORTS_PER_SOL = 1_000_000_000

# Legacy marker appended to seeds recovered from user input
IMPORTED_SUFFIX = " (imported)"


def lamports_to_sol(lamports: int) -> float:
    """Convert an integer lamport amount to SOL."""
    return lamports / LAMPORTS_PER_SOL


def sol_to_lamports(amount: float | Decimal | str) -> int:
    """Convert a SOL amount to lamports, truncating sub-lamport dust.

    Raises:
        InvalidInputError: If the amount is not a finite number.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise InvalidInputError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise InvalidInputError(f"Invalid amount: {amount!r}")
    return int((value * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))


def short_address(address: str) -> str:
    """Return shortened address for display (AbCd...WxYz)."""
    if len(address) <= 10:
        return address
    return f"{address[:4]}...{address[-4:]}"


# =============================================================================
# Vault Contents
# =============================================================================


class WalletKeypair(BaseModel):
    """A derived wallet: public address, secret key and cached balance.

    Field aliases match the JSON written by earlier vault versions.
    """

    model_config = {"populate_by_name": True, "extra": "forbid"}

    address: str = Field(..., min_length=1, description="Base58 public key")
    private_key: str = Field(
        ...,
        alias="privateKey",
        min_length=1,
        description="Hex-encoded 64-byte ed25519 secret key",
    )
    balance: float | None = Field(
        default=None,
        description="Last known balance in SOL, None when unknown",
    )

    @property
    def short_address(self) -> str:
        return short_address(self.address)


class SeedGroup(BaseModel):
    """Wallets derived from one mnemonic, in derivation index order.

    Invariants:
        - wallets is never empty (empty groups are deleted)
        - wallets[i] was derived at index i
    """

    model_config = {"extra": "forbid"}

    seed: str = Field(..., min_length=1, description="Mnemonic as stored")
    wallets: list[WalletKeypair] = Field(..., min_length=1)

    @property
    def mnemonic(self) -> str:
        """The seed phrase without the legacy import marker."""
        return self.seed.removesuffix(IMPORTED_SUFFIX)

    @property
    def imported(self) -> bool:
        return self.seed.endswith(IMPORTED_SUFFIX)

    @property
    def funding_wallet(self) -> WalletKeypair:
        """First wallet of the group, the source of mass deposits."""
        return self.wallets[0]


class EncryptedVault(BaseModel):
    """Encrypted wallet collection as persisted: three base64 strings."""

    model_config = {"frozen": True, "extra": "forbid"}

    ciphertext: str = Field(..., min_length=1)
    iv: str = Field(..., min_length=1)
    salt: str = Field(..., min_length=1)


# =============================================================================
# Transfer Results
# =============================================================================


class DepositResult(BaseModel):
    """Result of a mass deposit: one transaction funding every target."""

    model_config = {"frozen": True}

    signature: str
    source: str
    targets: list[str]
    amount_each: float = Field(..., gt=0)
    completed_at: float = Field(default_factory=time)

    @property
    def total(self) -> float:
        return self.amount_each * len(self.targets)


class WithdrawOutcome(BaseModel):
    """Outcome of withdrawing from a single wallet."""

    model_config = {"frozen": True}

    address: str
    amount: float = Field(default=0.0, ge=0)
    signature: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.signature is not None and self.error is None


class WithdrawReport(BaseModel):
    """Per-wallet outcomes of a mass withdraw."""

    model_config = {"frozen": True}

    destination: str
    outcomes: list[WithdrawOutcome] = Field(default_factory=list)
    completed_at: float = Field(default_factory=time)

    @property
    def succeeded(self) -> list[WithdrawOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[WithdrawOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def total_withdrawn(self) -> float:
        return sum(o.amount for o in self.succeeded)
