"""Application configuration using pydantic-settings.

Values come from environment variables (or a local .env file) and can be
overridden per run by command line flags.
"""

from functools import lru_cache
from typing import Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Migration and client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Chain RPC
    # ======================
    rpc_url: str = Field(
        default="https://data-seed-prebsc-1-s1.binance.org:8545",
        description="JSON-RPC endpoint used when none is given on the command line",
    )
    rpc_timeout: float = Field(default=30.0, description="HTTP timeout per RPC request (seconds)")

    # ======================
    # Event scan
    # ======================
    from_block: int = Field(default=0, description="First block scanned for migration events")
    to_block: Union[int, str] = Field(default="latest", description="Last block scanned ('latest' or a number)")
    log_chunk_size: int = Field(default=5000, description="Block window per eth_getLogs request")

    # ======================
    # Batch import
    # ======================
    batch_size: int = Field(default=25, description="Users per importUserDepositsBatch call")
    confirmation_timeout: float = Field(
        default=180.0, description="Deadline for a batch transaction receipt (seconds)"
    )
    receipt_poll_interval: float = Field(default=2.0, description="Receipt polling interval (seconds)")
    gas_multiplier: float = Field(default=1.2, description="Safety factor applied to estimated gas")

    # ======================
    # Safety Guards
    # ======================
    dry_run: bool = Field(default=False, description="Estimate gas only, never broadcast")
    skip_migrated: bool = Field(
        default=False, description="Drop users the target already reports as migrated"
    )

    # ======================
    # Client session
    # ======================
    poll_interval: float = Field(default=10.0, description="Vault state refresh interval (seconds)")

    debug: bool = Field(default=False, description="Enable debug logging")

    @field_validator("to_block", mode="before")
    @classmethod
    def _parse_to_block(cls, value):
        if isinstance(value, str) and value.strip().isdigit():
            return int(value.strip())
        return value

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "rpc_url": self.redact_url(self.rpc_url),
            "rpc_timeout": self.rpc_timeout,
            "from_block": self.from_block,
            "to_block": self.to_block,
            "log_chunk_size": self.log_chunk_size,
            "batch_size": self.batch_size,
            "confirmation_timeout": self.confirmation_timeout,
            "gas_multiplier": self.gas_multiplier,
            "dry_run": self.dry_run,
            "skip_migrated": self.skip_migrated,
            "debug": self.debug,
        }

    @staticmethod
    def redact_url(url: str) -> str:
        """Redact credentials and API keys embedded in an RPC URL."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        if "@" in rest:
            creds, host = rest.rsplit("@", 1)
            user = creds.split(":", 1)[0]
            rest = f"{user}:***@{host}"
        # Infura/Alchemy style keys live in the last path segment
        host, _, path = rest.partition("/")
        segments = path.split("/") if path else []
        if segments and len(segments[-1]) >= 16:
            segments[-1] = "***"
        redacted = host + ("/" + "/".join(segments) if segments else "")
        return f"{proto}://{redacted}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
