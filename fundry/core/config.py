"""
Application configuration module.

Loads settings from environment variables (or .env file) using pydantic-settings.
All sensitive values (DB credentials, payment gateway keys) come from the
environment, never hardcoded.
"""

from decimal import Decimal
from enum import Enum

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OverfundingPolicy(str, Enum):
    """What to do with a commitment that would push a campaign past its goal."""

    REJECT = "reject"
    FLAG = "flag"
    ALLOW = "allow"


class Settings(BaseSettings):
    """
    Central configuration for the Fundry Crowdfunding API.

    Environment variables are loaded automatically from .env if present.
    In production, these should be injected via the container orchestrator
    (e.g., Kubernetes Secrets, AWS Parameter Store).
    """

    PROJECT_NAME: str = "Fundry Crowdfunding API"
    API_V1_STR: str = "/api/v1"

    # ── SQLite mode (no external DB required) ──
    USE_SQLITE: bool = False

    # ── PostgreSQL connection parameters ──
    # Empty defaults let USE_SQLITE=true start without PG variables; the
    # validator below still fails fast when PostgreSQL mode is misconfigured.
    POSTGRES_USER: str = ""
    POSTGRES_PASSWORD: str = ""
    POSTGRES_SERVER: str = ""
    POSTGRES_DB: str = ""
    POSTGRES_PORT: int = 5432

    @model_validator(mode="after")
    def _require_pg_credentials_unless_sqlite(self) -> "Settings":
        """Fail fast if PostgreSQL credentials are missing in production mode."""
        if not self.USE_SQLITE:
            missing = [
                name
                for name in (
                    "POSTGRES_USER",
                    "POSTGRES_PASSWORD",
                    "POSTGRES_SERVER",
                    "POSTGRES_DB",
                )
                if not getattr(self, name)
            ]
            if missing:
                vars_list = ", ".join(missing)
                raise ValueError(
                    f"PostgreSQL mode requires these environment variables: "
                    f"{vars_list}.\n\n"
                    f"Either export them (or put them in .env):\n"
                    f"       POSTGRES_USER=fundry_user\n"
                    f"       POSTGRES_PASSWORD=fundry_password\n"
                    f"       POSTGRES_SERVER=127.0.0.1\n"
                    f"       POSTGRES_DB=fundry_db\n\n"
                    f"or skip PostgreSQL entirely (in-memory SQLite):\n"
                    f"       USE_SQLITE=true uvicorn fundry.main:app"
                )
        return self

    # ── Connection pool tuning ──
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds to wait for a connection from the pool
    DB_POOL_RECYCLE: int = 1800  # seconds before a connection is recycled

    # ── CORS ──
    # Comma-separated list of allowed origins. "*" in dev, restrict in prod.
    CORS_ORIGINS: str = "*"

    # ── Logging ──
    LOG_LEVEL: str = "INFO"
    LOG_FILE_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_FILE_BACKUP_COUNT: int = 5

    # ── Cache (campaign funding stats) ──
    CACHE_ENABLED: bool = True
    CACHE_TTL: float = 30.0
    CACHE_MAX_SIZE: int = 1000

    # ── Circuit breakers (database + payment gateway) ──
    CB_FAILURE_THRESHOLD: int = 5
    CB_RECOVERY_TIMEOUT: float = 30.0

    # ── Investment terms ──
    # Fee is a step function: PLATFORM_FEE_RATE applies only to amounts
    # strictly above PLATFORM_FEE_THRESHOLD.
    PLATFORM_FEE_RATE: Decimal = Decimal("0.05")
    PLATFORM_FEE_THRESHOLD: Decimal = Decimal("1000")
    # Platform-wide per-investment ceiling, independent of any campaign goal.
    PLATFORM_MAX_INVESTMENT: Decimal = Decimal("5000")
    COOLING_OFF_HOURS: int = 48
    DEFAULT_VALUATION_CAP: Decimal = Decimal("1000000")
    OVERFUNDING_POLICY: OverfundingPolicy = OverfundingPolicy.REJECT

    # ── Payment gateway ──
    PAYMENT_GATEWAY_URL: str = ""
    PAYMENT_GATEWAY_API_KEY: str = ""
    PAYMENT_GATEWAY_TIMEOUT: float = 10.0
    PAYMENT_WEBHOOK_SECRET: str = ""

    # ── Misc ──
    DEBUG: bool = False

    @model_validator(mode="after")
    def _check_investment_terms(self) -> "Settings":
        if not Decimal("0") <= self.PLATFORM_FEE_RATE < Decimal("1"):
            raise ValueError("PLATFORM_FEE_RATE must be a fraction in [0, 1)")
        if self.PLATFORM_MAX_INVESTMENT <= 0:
            raise ValueError("PLATFORM_MAX_INVESTMENT must be positive")
        if self.COOLING_OFF_HOURS < 0:
            raise ValueError("COOLING_OFF_HOURS must not be negative")
        return self

    @property
    def DATABASE_URL(self) -> str:
        """Construct the async database DSN.

        Returns an in-memory SQLite URL when ``USE_SQLITE`` is enabled,
        otherwise a PostgreSQL DSN for asyncpg.
        """
        if self.USE_SQLITE:
            return "sqlite+aiosqlite://"
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
