"""
Configuration management for the BurnerPay payment service.

Loads settings from .env via pydantic-settings.

Security notes:
    - The burner signing key is never part of the settings; it lives in the
      secret store (services/secret_store.py) and is created on demand.
    - validate_production_settings() refuses the in-memory yield backend and
      plaintext secret storage in production.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Chain RPC (Monad Testnet) ───────────────────────────────────
    chain_rpc_url: str = "https://testnet-rpc.monad.xyz"
    chain_id: int = 10143
    chain_explorer_url: str = "https://testnet.monadexplorer.com"
    native_symbol: str = "MON"
    confirmation_timeout_seconds: float = 120.0
    confirmation_poll_seconds: float = 1.0
    transfer_gas_limit: int = 21_000   # plain native transfer
    sweep_gas_limit: int = 21_000

    # ── Yield Vault ─────────────────────────────────────────────────
    yield_backend: str = "mock"   # "mock" (in-memory) | "contract"
    yield_vault_address: str = "0x36509F86A748b413a82e510Afc580974cC3F5151"
    yield_contract_gas_limit: int = 150_000
    mock_yield_apr: float = 0.0   # simple interest for the mock backend

    # ── Price Source ────────────────────────────────────────────────
    price_api_url: str = "https://api.coingecko.com/api/v3/simple/price"
    price_native_id: str = "monad"
    price_reference_id: str = "tether"
    price_timeout_seconds: float = 10.0
    fiat_currency: str = "try"
    fallback_native_usd: float = 5.0    # 1 MON = 5 USD
    fallback_usd_fiat: float = 35.0     # 1 USD = 35 TRY

    # ── Payment ─────────────────────────────────────────────────────
    payment_fiat_amount: float = 50.0

    # ── Discovery ───────────────────────────────────────────────────
    discovery_timeout_seconds: float = 60.0
    proximity_poll_seconds: float = 0.5
    optical_scheme: str = "ethereum"

    # ── Secret Storage ──────────────────────────────────────────────
    database_url: str = "sqlite:///./data/burnerpay.db"
    secret_store_key: str = ""   # Fernet key; empty = plaintext at rest

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    cors_origins: str = "http://localhost:8081,http://127.0.0.1:8081,http://localhost:19006,http://127.0.0.1:19006"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if self.yield_backend != "contract":
                raise ValueError(
                    "YIELD_BACKEND must be 'contract' in production. "
                    "The mock backend keeps yield positions in memory only."
                )
            if not self.secret_store_key:
                raise ValueError(
                    "SECRET_STORE_KEY must be set in production. "
                    "It encrypts the burner signing key at rest."
                )
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if self.yield_backend == "mock":
                warnings.append("YIELD_BACKEND=mock (yield positions are in-memory)")
            if not self.secret_store_key:
                warnings.append("SECRET_STORE_KEY empty (burner key stored in plaintext)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
