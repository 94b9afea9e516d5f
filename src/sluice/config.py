"""Configuration management for SLUICE using Pydantic Settings."""

from decimal import Decimal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sluice.faucet.window import parse_timezone


class SluiceConfig(BaseSettings):
    """SLUICE service configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    # Quotas
    daily_limit_per_identity: Decimal = Field(
        default=Decimal("100"), alias="SLUICE_DAILY_LIMIT_PER_IDENTITY", gt=0
    )
    daily_limit_per_destination: Decimal | None = Field(
        default=None, alias="SLUICE_DAILY_LIMIT_PER_DESTINATION", gt=0
    )
    window_timezone: str = Field(default="UTC", alias="SLUICE_WINDOW_TIMEZONE")

    # Eligibility
    min_identity_score: float | None = Field(
        default=1.0, alias="SLUICE_MIN_IDENTITY_SCORE", ge=0
    )
    default_claim_amount: Decimal = Field(
        default=Decimal("1"), alias="SLUICE_DEFAULT_CLAIM_AMOUNT", gt=0
    )
    max_claim_amount: Decimal | None = Field(default=None, alias="SLUICE_MAX_CLAIM_AMOUNT", gt=0)

    # Chain
    rpc_endpoint: str | None = Field(default=None, alias="SLUICE_RPC_ENDPOINT")
    token_address: str | None = Field(default=None, alias="SLUICE_TOKEN_ADDRESS")
    wallet_private_key: SecretStr | None = Field(default=None, alias="SLUICE_WALLET_PRIVATE_KEY")
    wallet_private_key_file: str | None = Field(
        default=None, alias="SLUICE_WALLET_PRIVATE_KEY_FILE"
    )
    transfer_timeout_seconds: float = Field(
        default=120.0, alias="SLUICE_TRANSFER_TIMEOUT_SECONDS", gt=0
    )

    # Storage
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
    lock_timeout_seconds: float = Field(default=30.0, alias="SLUICE_LOCK_TIMEOUT_SECONDS", gt=0)

    # HTTP and observability
    host: str = Field(default="0.0.0.0", alias="SLUICE_HOST")  # noqa: S104
    port: int = Field(default=8080, alias="SLUICE_PORT", ge=1, le=65535)
    log_level: str = Field(default="INFO", alias="SLUICE_LOG_LEVEL")
    log_format: str = Field(default="json", alias="SLUICE_LOG_FORMAT")

    @field_validator("window_timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        parse_timezone(value)
        return value

    @property
    def destination_limit(self) -> Decimal:
        """Per-destination daily limit, falling back to the identity limit."""
        if self.daily_limit_per_destination is None:
            return self.daily_limit_per_identity
        return self.daily_limit_per_destination

    @property
    def transfers_enabled(self) -> bool:
        """Whether the service can execute transfers itself."""
        return bool(
            self.rpc_endpoint and (self.wallet_private_key or self.wallet_private_key_file)
        )
