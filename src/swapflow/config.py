"""Application configuration using pydantic-settings.

Holds the swaps backend endpoints, gas policy constants and the location
of the persisted key/value store used by the gas price cache.
"""

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug logging")

    # ======================
    # Swaps API
    # ======================
    swaps_api_url: str = Field(
        default="https://api.metaswap.codefi.network",
        description="Base URL of the swaps backend (liveness, trades)",
    )
    gas_api_url: str = Field(
        default="https://api.metaswap.codefi.network",
        description="Base URL of the gas price service",
    )
    request_timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    quote_timeout_ms: int = Field(
        default=10000, description="Time the aggregator may spend collecting quotes"
    )

    # ======================
    # Gas policy
    # ======================
    gas_price_cache_ttl_ms: int = Field(
        default=30000, description="Validity window of cached gas price estimates"
    )
    gas_limit_multiplier: Decimal = Field(
        default=Decimal("1.4"), description="Safety multiplier applied to the gas estimate"
    )

    # ======================
    # Swap flow
    # ======================
    default_slippage: Decimal = Field(
        default=Decimal("2"), description="Default slippage tolerance in percent"
    )
    quote_polling_interval_seconds: float = Field(
        default=60.0, description="Quote refresh interval (0 = polling disabled)"
    )
    native_symbol: str = Field(default="ETH", description="Symbol of the chain's native asset")
    transaction_origin: str = Field(
        default="metamask", description="Origin reported to the transaction subsystem"
    )

    # ======================
    # Storage
    # ======================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/swapflow.db",
        description="Database URL of the persisted key/value store",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def polling_enabled(self) -> bool:
        return self.quote_polling_interval_seconds > 0

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "database_url": self._redact_url(self.database_url),
            "swaps": {
                "api": self.swaps_api_url,
                "gas_api": self.gas_api_url,
                "request_timeout": self.request_timeout,
                "quote_timeout_ms": self.quote_timeout_ms,
                "polling_interval": self.quote_polling_interval_seconds,
            },
            "gas": {
                "cache_ttl_ms": self.gas_price_cache_ttl_ms,
                "limit_multiplier": str(self.gas_limit_multiplier),
            },
            "default_slippage": str(self.default_slippage),
            "native_symbol": self.native_symbol,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact sensitive parts of database URL."""
        if "://" in url and "@" in url:
            proto, rest = url.split("://", 1)
            if "@" in rest:
                creds, host = rest.rsplit("@", 1)
                if ":" in creds:
                    user, _ = creds.split(":", 1)
                    return f"{proto}://{user}:***@{host}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
