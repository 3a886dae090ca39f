"""Application configuration using pydantic-settings.

Values come from environment variables or a local .env file. The target
network block describes the EVM chain the wallet must be on before any quote
or swap is started.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from zenithswap.chains import NativeCurrency, TargetNetwork


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Resolver backend
    # ======================
    resolver_api_url: str = Field(
        default="http://localhost:8080", description="Base URL of the resolver backend"
    )
    api_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    poll_interval: float = Field(
        default=15.0, gt=0, description="Seconds between swap status polls"
    )

    # ======================
    # Target EVM network
    # ======================
    target_chain_id: int = Field(default=80002, description="Required EVM chain ID")
    target_chain_name: str = Field(default="Polygon Amoy", description="Chain display name")
    target_rpc_url: str = Field(
        default="https://rpc-amoy.polygon.technology/", description="Chain RPC URL"
    )
    target_explorer_url: str = Field(
        default="https://amoy.polygonscan.com/", description="Block explorer URL"
    )
    native_currency_name: str = Field(default="POL", description="Native currency name")
    native_currency_symbol: str = Field(default="POL", description="Native currency symbol")
    native_currency_decimals: int = Field(default=18, description="Native currency decimals")

    # ======================
    # Swap limits
    # ======================
    min_swap_amount: Decimal = Field(
        default=Decimal("0.001"), gt=0, description="Minimum swap amount (human units)"
    )
    max_swap_amount: Decimal = Field(
        default=Decimal("10"), gt=0, description="Maximum swap amount (demo limit)"
    )

    # ======================
    # Session
    # ======================
    storage_path: str = Field(
        default="./data/session.json", description="File backing the session store"
    )
    wallet_prompt_timeout: Optional[float] = Field(
        default=None, description="Seconds to wait on a wallet prompt (None = forever)"
    )
    assume_completed_when_missing: bool = Field(
        default=False,
        description="Treat a swap unknown to the resolver as completed when a tx hash is known",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    log_level: str = Field(default="INFO", description="Log level when debug is off")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def target_network(self) -> TargetNetwork:
        """Build the target network record used by the wallet gateway."""
        return TargetNetwork(
            chain_id=self.target_chain_id,
            name=self.target_chain_name,
            rpc_urls=(self.target_rpc_url,),
            explorer_urls=(self.target_explorer_url,),
            native_currency=NativeCurrency(
                name=self.native_currency_name,
                symbol=self.native_currency_symbol,
                decimals=self.native_currency_decimals,
            ),
        )

    def get_safe_dict(self) -> dict:
        """Return a printable settings dict."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "resolver_api_url": self.resolver_api_url,
            "poll_interval": self.poll_interval,
            "target_chain": {
                "id": self.target_chain_id,
                "name": self.target_chain_name,
                "rpc": self.target_rpc_url,
            },
            "limits": {
                "min": str(self.min_swap_amount),
                "max": str(self.max_swap_amount),
            },
            "storage_path": self.storage_path,
            "assume_completed_when_missing": self.assume_completed_when_missing,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
