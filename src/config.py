"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from LEDGERWATCH_* environment variables (or .env file)."""

    # --- App ---
    app_name: str = "ledgerwatch"
    app_version: str = "0.1.0"
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Transport ---
    reader: str = "json_rpc"  # json_rpc | memory
    rpc_endpoints: list[str] = ["https://api.mainnet-beta.solana.com"]
    rpc_commitment: str = "confirmed"
    rpc_timeout_seconds: float = Field(default=10.0, gt=0)

    # --- Polling ---
    default_cadence_ms: int = Field(default=1000, gt=0)
    max_keys_per_chunk: int = Field(default=99, gt=0, le=100)
    max_concurrent_chunks: int = Field(default=10, gt=0)

    model_config = {
        "env_prefix": "LEDGERWATCH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache
def get_settings() -> Settings:
    return Settings()
