"""Configuration management for the admin session service."""

import json
import logging
from functools import lru_cache
from typing import Annotated

import boto3
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 32


def get_aws_secrets(secret_name: str, region_name: str) -> dict:
    """Fetch a JSON secret from AWS Secrets Manager."""
    session = boto3.session.Session()
    client = session.client(
        service_name='secretsmanager',
        region_name=region_name
    )
    response = client.get_secret_value(SecretId=secret_name)
    return json.loads(response['SecretString'])


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env.

    Instances are frozen; the app factory builds one at startup and hands it
    to every component that needs it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    # Token signing
    # May stay empty when token_secret_name points at AWS Secrets Manager
    token_secret_key: str = Field(default="", description="Shared HMAC secret for access tokens")
    token_secret_name: str | None = Field(
        default=None,
        description="Secrets Manager entry whose token_secret_key replaces the local value",
    )
    token_algorithm: str = Field(default="HS256")
    token_issuer: str = Field(default="admin")
    aws_region: str = Field(default="us-east-2")

    # Lifetimes (milliseconds)
    access_expire_millis: int = Field(default=5 * 60 * 1000, description="Access token lifetime")
    refresh_expire_millis: int = Field(default=30 * 60 * 1000, description="Session TTL")

    # Paths served without an access token (exact match)
    skip_paths: Annotated[list[str], NoDecode] = Field(default=["/login", "/health"])

    # Authority required for administrative session revocation
    admin_authority: str = Field(default="ROLE_ADMIN")

    # Optional admin account seeded into the in-memory user directory
    bootstrap_admin_username: str | None = Field(default=None)
    bootstrap_admin_password: str | None = Field(default=None)

    # Server Configuration
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    server_env: str = Field(default="development")

    # Redis Configuration
    redis_url: str | None = Field(default=None)
    session_key_prefix: str = Field(default="user:")

    # CORS Configuration
    cors_origins: Annotated[list[str], NoDecode] = Field(default=["http://localhost:3000"])

    # Logging
    log_level: str = Field(default="INFO")

    @field_validator("cors_origins", "skip_paths", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("refresh_expire_millis")
    @classmethod
    def check_session_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("refresh_expire_millis must be positive")
        return v

    @model_validator(mode="after")
    def check_secret(self) -> "Settings":
        if self.token_secret_name:
            return self
        if len(self.token_secret_key) < MIN_SECRET_LENGTH:
            raise ValueError(
                f"token_secret_key must be at least {MIN_SECRET_LENGTH} characters"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.server_env.lower() == "production"


def load_settings(**overrides) -> Settings:
    """Build settings, resolving the signing secret from AWS when configured."""
    settings = Settings(**overrides)
    if not settings.token_secret_name:
        return settings

    secrets = get_aws_secrets(settings.token_secret_name, settings.aws_region)
    secret = secrets.get("token_secret_key", "")
    if len(secret) < MIN_SECRET_LENGTH:
        raise ValueError(
            f"AWS secret {settings.token_secret_name} has no usable token_secret_key"
        )
    logger.info(f"Loaded token secret from AWS secret {settings.token_secret_name}")
    return settings.model_copy(update={"token_secret_key": secret})


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return load_settings()
