"""Application settings.

All values are loaded from environment variables (or a .env file) once per
process. Secrets such as the Stripe webhook signing secret live here and are
injected into the adapters that need them; nothing reads them per request.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from creditledger.core.config.enums import Environment


class TierRuleConfig(BaseModel):
    """One row of the tier classification table."""

    match: str = Field(..., min_length=1, description="Case-insensitive substring to look for")
    tier: str = Field(..., description="Tier assigned when the substring matches")
    credit_limit: int = Field(..., gt=0, description="Credits granted per period")


DEFAULT_TIER_RULES = [
    TierRuleConfig(match="enterprise", tier="enterprise", credit_limit=10000),
    TierRuleConfig(match="premium", tier="premium", credit_limit=2000),
]


class Settings(BaseSettings):
    """Creditledger backend settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Creditledger"
    ENVIRONMENT: Environment = Environment.LOCAL
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_V1_PREFIX: str = "/api/v1"
    RUN_ALEMBIC_MIGRATIONS: bool = False
    API_REQUEST_TIMEOUT_SECONDS: float = Field(30.0, gt=0)

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "creditledger"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_DB: str = "creditledger"
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[str] = None
    db_pool_size: int = 20
    db_pool_max_overflow: int = 40

    # Stripe
    STRIPE_ENABLED: bool = True
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Ledger policy
    FREE_TIER_CREDIT_LIMIT: int = Field(10, gt=0)
    TIER_RULES: list[TierRuleConfig] = Field(default_factory=lambda: list(DEFAULT_TIER_RULES))
    TIER_DEFAULT_NAME: str = "basic"
    TIER_DEFAULT_CREDIT_LIMIT: int = Field(500, gt=0)
    ACCOUNT_METADATA_KEYS: list[str] = ["account_id", "userId"]
    LEDGER_RECENT_ENTRIES_LIMIT: int = 100

    # Durable store behaviour
    STORE_TIMEOUT_SECONDS: float = Field(5.0, gt=0)
    STORE_MAX_ATTEMPTS: int = Field(3, ge=1)
    STORE_RETRY_MAX_WAIT_SECONDS: float = 1.0

    # Idempotency store retention
    PROCESSED_EVENT_RETENTION_DAYS: int = Field(30, ge=1)
    PROCESSED_EVENT_PURGE_INTERVAL_SECONDS: int = 3600

    @field_validator("TIER_DEFAULT_NAME")
    @classmethod
    def _default_tier_is_paid(cls, value: str) -> str:
        if value.lower() == "free":
            raise ValueError("The default paid tier cannot be 'free'")
        return value.lower()

    @model_validator(mode="after")
    def _assemble_db_uri(self) -> "Settings":
        if not self.SQLALCHEMY_ASYNC_DATABASE_URI:
            self.SQLALCHEMY_ASYNC_DATABASE_URI = (
                f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
            )
        return self

    @property
    def is_local(self) -> bool:
        """Whether running in a local or test environment."""
        return self.ENVIRONMENT in (Environment.LOCAL, Environment.TEST)
