"""Configuration architecture using pydantic-settings for typed environment loading."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RPC_ENDPOINTS = [
    "https://solana-rpc.publicnode.com",
    "https://api.mainnet-beta.solana.com",
]


class NetworkConfig(BaseSettings):
    """Solana RPC network configuration.

    Read live: callers go through load_network_config() on every request
    so that an edited RPC_ENDPOINT or REQUEST_DELAY applies immediately.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Empty means "use the default endpoint list"
    rpc_endpoint: str = ""
    # Milliseconds between outbound requests
    request_delay: int = Field(default=2000, ge=0)
    default_endpoints: list[str] = Field(
        default_factory=lambda: list(DEFAULT_RPC_ENDPOINTS),
        min_length=1,
    )
    request_timeout: float = Field(default=30.0, gt=0)

    @property
    def endpoints(self) -> list[str]:
        """Endpoints to use: the user override replaces the defaults."""
        override = self.rpc_endpoint.strip()
        if override:
            return [override]
        return list(self.default_endpoints)


class VaultConfig(BaseSettings):
    """Vault storage and session configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOLGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Path("data")
    storage_key: str = "wallets_encrypted"
    balance_concurrency: int = Field(default=4, ge=1)

    @property
    def db_path(self) -> Path:
        return self.data_dir / "solgen.db"


class Settings:
    """Root settings aggregating all configuration sections."""

    def __init__(self) -> None:
        self.network = NetworkConfig()
        self.vault = VaultConfig()


# Global settings instance - lazily loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_network_config() -> NetworkConfig:
    """Read network configuration fresh from the environment."""
    return NetworkConfig()


def update_network_config(
    rpc_endpoint: str | None = None,
    request_delay: int | None = None,
) -> NetworkConfig:
    """Apply user overrides to the running process.

    Args:
        rpc_endpoint: Single endpoint to use instead of the defaults.
                      An empty string restores the defaults.
        request_delay: Minimum delay between requests in milliseconds.

    Returns:
        The configuration as it will be seen by the next request.
    """
    if rpc_endpoint is not None:
        os.environ["RPC_ENDPOINT"] = rpc_endpoint.strip()
    if request_delay is not None:
        if request_delay < 0:
            raise ValueError("Request delay must be >= 0")
        os.environ["REQUEST_DELAY"] = str(request_delay)
    return load_network_config()
