"""Application configuration using pydantic-settings.

Only a wallet *address* is configured: the simulator never signs anything.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Ethereum RPC
    # ======================
    ethereum_rpc_url: str = Field(
        default="https://eth.llamarpc.com",
        description="Ethereum mainnet JSON-RPC endpoint",
    )
    ethereum_chain_id: int = Field(default=1, description="Expected chain id of the RPC endpoint")
    rpc_timeout_seconds: float = Field(default=30.0, description="Per-request RPC timeout")

    # ======================
    # Simulation
    # ======================
    wallet_address: str = Field(
        default=ZERO_ADDRESS,
        description="Address used as sender and recipient of simulated swaps",
    )
    quote_timeout_seconds: float = Field(
        default=10.0, description="Deadline for collecting quotes from all routes"
    )
    swap_deadline_seconds: int = Field(
        default=1200, description="Swap deadline window encoded into router calls"
    )
    default_slippage_percent: float = Field(
        default=0.5, description="Slippage tolerance used when the caller omits one (percent)"
    )
    v3_fee_tiers: list[int] = Field(
        default=[100, 500, 3000, 10000],
        description="Uniswap V3 fee tiers quoted per hop, in hundredths of a bip",
    )
    default_gas_limit: int = Field(
        default=200_000, description="Gas limit used when estimation reverts"
    )
    fallback_gas_price_wei: int = Field(
        default=30_000_000_000, description="Gas price used when eth_gasPrice fails"
    )

    # ======================
    # Token metadata
    # ======================
    cache_token_metadata: bool = Field(
        default=False, description="Keep resolved token metadata for the process lifetime"
    )
    token_list_url: Optional[str] = Field(
        default=None, description="Optional token list (Uniswap format) for extra symbols"
    )
    token_list_ttl_seconds: int = Field(default=86400, description="Token list refresh interval")

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("wallet_address")
    @classmethod
    def validate_wallet_address(cls, v: str) -> str:
        if not Web3.is_address(v):
            raise ValueError(f"Invalid wallet address: {v}")
        return Web3.to_checksum_address(v)

    @field_validator("v3_fee_tiers")
    @classmethod
    def validate_fee_tiers(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("At least one V3 fee tier is required")
        if any(tier <= 0 or tier >= 1_000_000 for tier in v):
            raise ValueError(f"Fee tiers must be in (0, 1000000): {v}")
        return sorted(set(v))

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def has_wallet(self) -> bool:
        """Check if a real sender address is configured."""
        return self.wallet_address != ZERO_ADDRESS

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "ethereum": {
                "rpc": self._redact_url(self.ethereum_rpc_url),
                "chain_id": self.ethereum_chain_id,
            },
            "wallet_configured": self.has_wallet,
            "simulation": {
                "quote_timeout_seconds": self.quote_timeout_seconds,
                "swap_deadline_seconds": self.swap_deadline_seconds,
                "default_slippage_percent": self.default_slippage_percent,
                "v3_fee_tiers": self.v3_fee_tiers,
            },
            "token_list": self.token_list_url or "(disabled)",
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and API keys embedded in an RPC URL."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        if "@" in rest:
            _, rest = rest.rsplit("@", 1)
            rest = f"***@{rest}"
        host, sep, path = rest.partition("/")
        # Providers like Infura/Alchemy put the key in the last path segment
        if sep and path:
            segments = path.split("/")
            if len(segments[-1]) >= 16:
                segments[-1] = "***"
            path = "/".join(segments)
        return f"{proto}://{host}{sep}{path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
