"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app and the operational
scripts share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AnyHttpUrl, EmailStr, Field, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


class JobberSettings(BaseSettings):
    """Credentials and endpoints for the Jobber API."""

    model_config = _SETTINGS_CONFIG

    client_id: str = Field(..., validation_alias="JOBBER_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="JOBBER_CLIENT_SECRET")
    token_url: AnyHttpUrl = Field(
        "https://api.getjobber.com/api/oauth/token",
        validation_alias="JOBBER_TOKEN_URL",
    )
    graphql_url: AnyHttpUrl = Field(
        "https://api.getjobber.com/api/graphql",
        validation_alias="JOBBER_GRAPHQL_URL",
    )
    graphql_version: str = Field("2024-12-05", validation_alias="JOBBER_GRAPHQL_VERSION")
    request_timeout_seconds: float = Field(
        10.0,
        validation_alias="JOBBER_REQUEST_TIMEOUT",
        description="Upper bound for every call to the Jobber API.",
    )
    default_token_lifetime_seconds: int = Field(
        3600,
        validation_alias="JOBBER_DEFAULT_TOKEN_LIFETIME",
        description="Lifetime given to seeded tokens stored without an explicit expiry.",
    )


class TokenStoreSettings(BaseSettings):
    """Where OAuth tokens live and how eagerly they are refreshed."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="TOKEN_STORE_BACKEND"
    )
    database_path: str = Field(
        "data/jobber_tools.db",
        validation_alias="DATABASE_PATH",
        description="SQLite file holding tokens, accounts and usage logs.",
    )
    timeout_seconds: float = Field(10.0, validation_alias="TOKEN_STORE_TIMEOUT")
    refresh_margin_seconds: int = Field(
        300,
        validation_alias="TOKEN_REFRESH_MARGIN_SECONDS",
        description="Tokens expiring within this window are refreshed before use.",
    )


class AWSSettings(BaseSettings):
    """Settings for the optional DynamoDB token backend."""

    model_config = _SETTINGS_CONFIG

    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _SETTINGS_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class MailerSettings(BaseSettings):
    """Outbound transactional email configuration."""

    model_config = _SETTINGS_CONFIG

    mailer_address: EmailStr = Field(..., validation_alias="MAILER_ADDRESS")
    resend_api_key: Optional[str] = Field(None, validation_alias="RESEND_API_KEY")
    resend_api_url: HttpUrl = Field(
        "https://api.resend.com/emails", validation_alias="RESEND_API_URL"
    )
    sender_name: str = Field("Jobber.Tools", validation_alias="MAILER_SENDER_NAME")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _SETTINGS_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    project_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="PROJECT_URL",
        description="Public URL of the deployment, without trailing slash.",
    )
    jobber: JobberSettings = Field(default_factory=JobberSettings)
    token_store: TokenStoreSettings = Field(default_factory=TokenStoreSettings)
    aws: AWSSettings = Field(default_factory=AWSSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    mailer: MailerSettings = Field(default_factory=MailerSettings)


def load_settings(env_file: Optional[str] = None) -> AppSettings:
    """Build settings, reading every section from ``env_file`` instead of ``.env``.

    Nested sections are created by their own ``default_factory`` and would
    otherwise fall back to the default ``.env`` path.
    """
    if env_file is None:
        return AppSettings()  # type: ignore[call-arg]
    source = {"_env_file": env_file}
    return AppSettings(  # type: ignore[call-arg]
        **source,
        jobber=JobberSettings(**source),
        token_store=TokenStoreSettings(**source),
        aws=AWSSettings(**source),
        security=SecuritySettings(**source),
        mailer=MailerSettings(**source),
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return load_settings()


__all__ = [
    "AppSettings",
    "AWSSettings",
    "JobberSettings",
    "MailerSettings",
    "SecuritySettings",
    "TokenStoreSettings",
    "get_settings",
    "load_settings",
]
