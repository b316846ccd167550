"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a Snowflake account.
"""

from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "TrainLog Progress API"
    api_version: str = "v1"

    # Authentication
    jwt_secret: str = Field(
        default="",
        description="Shared secret used to verify HS256 bearer tokens. Required."
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm accepted for bearer tokens"
    )

    # Snowflake Configuration
    snowflake_account: str = Field(
        default="",
        description="Snowflake account identifier"
    )
    snowflake_user: str = Field(
        default="",
        description="Snowflake service account username"
    )
    snowflake_password: str = Field(
        default="",
        description="Snowflake service account password"
    )
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to RSA private key file for key-pair authentication"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Base64-encoded private key (for deployment, alternative to file path)"
    )
    snowflake_database: str = Field(
        default="TRAINLOG",
        description="Snowflake database name"
    )
    snowflake_schema: str = Field(
        default="PROGRESS",
        description="Snowflake schema name"
    )
    snowflake_warehouse: str = Field(
        default="COMPUTE_WH",
        description="Snowflake warehouse for query execution"
    )
    snowflake_role: Optional[str] = Field(
        default=None,
        description="Snowflake role to use (optional)"
    )
    snowflake_network_timeout: int = Field(
        default=30,
        description="Seconds before a Snowflake request gives up. The store's timeout is the only one we have."
    )
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real Snowflake connection. Enables local dev without DB."
    )
    entries_table: str = Field(
        default="activity_entries",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Table holding activity entries"
    )

    # Progress Analytics
    reference_timezone: str = Field(
        default="UTC",
        description="IANA zone used for calendar days (streaks, weekly buckets, date-only bounds)"
    )
    default_page_limit: int = Field(
        default=30,
        ge=1,
        description="Page size when the client doesn't send one"
    )
    max_page_limit: int = Field(
        default=100,
        ge=1,
        description="Largest page size a client may request"
    )
    default_period_days: int = Field(
        default=30,
        ge=1,
        description="Trailing window for /stats when no period is given"
    )
    max_period_days: int = Field(
        default=3660,
        ge=1,
        description="Longest trailing window /stats accepts"
    )
    streak_window_days: int = Field(
        default=30,
        ge=1,
        description="How far back the streak walk looks. Also the largest possible streak."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("reference_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown time zone: {value}")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.reference_timezone)

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.jwt_secret:
            missing.append("JWT_SECRET")

        # Snowflake only required if not in mock mode
        if not self.snowflake_mock_mode:
            if not self.snowflake_account:
                missing.append("SNOWFLAKE_ACCOUNT")
            if not self.snowflake_user:
                missing.append("SNOWFLAKE_USER")
            # Need either password or private key
            if not (
                self.snowflake_password
                or self.snowflake_private_key_path
                or self.snowflake_private_key_base64
            ):
                missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, you can call get_settings.cache_clear() to reset.
    """
    return Settings()
