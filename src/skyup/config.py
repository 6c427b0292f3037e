"""SkyUp backend configuration loaded from environment variables."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """SkyUp backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SKYUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service
    service_name: str = Field(default="skyup-backend", description="Service name")
    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=3500, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Database
    database_url: str = Field(
        default="sqlite:///./skyup.db",
        description="SQLAlchemy database URL",
        validate_default=True,
    )
    auto_migrate_on_startup: bool = Field(
        default=True,
        description="Apply schema files on startup (dev friendly)",
    )
    list_default_limit: int = Field(default=100, description="Default page size for listings")
    list_max_limit: int = Field(default=1000, description="Max page size for listings")

    # Admin authentication
    admin_email: str = Field(default="", description="Email of the single admin identity")
    admin_password: SecretStr = Field(default=SecretStr(""), description="Shared admin password")
    admin_subject_id: str = Field(default="admin-1", description="Subject id embedded in admin tokens")
    token_secret: SecretStr = Field(default=SecretStr(""), description="HMAC secret for access tokens")
    token_ttl_seconds: int = Field(default=86400, description="Access token lifetime in seconds")

    # Invoices
    invoice_prefix: str = Field(default="SDS", description="Literal prefix of invoice numbers")
    invoice_sequence_name: str = Field(default="invoice", description="Counter row used for serials")
    invoice_timezone: str = Field(
        default="Asia/Kolkata",
        description="Timezone used to decide which financial year a receipt falls in",
    )

    # Resume relay (Cloudinary)
    cloudinary_cloud_name: str = Field(default="", description="Cloudinary cloud name")
    cloudinary_api_key: str = Field(default="", description="Cloudinary API key")
    cloudinary_api_secret: SecretStr = Field(default=SecretStr(""), description="Cloudinary API secret")
    resume_folder: str = Field(default="skyup/resumes", description="Cloudinary folder for resumes")
    resume_max_bytes: int = Field(default=10 * 1024 * 1024, description="Max resume size in bytes")
    resume_allowed_types: list[str] = Field(
        default=["application/pdf"],
        description="Accepted resume content types",
    )

    # CORS configuration
    cors_allowed_origins: list[str] = Field(
        default=["https://skyup-digital.vercel.app"],
        description="Allowed CORS origins",
    )
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials in CORS requests")
    cors_allowed_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    cors_allowed_headers: list[str] = Field(
        default=["Authorization", "Content-Type"],
        description="Allowed request headers",
    )

    trusted_hosts: list[str] = Field(default_factory=list, description="Trusted hostnames")
    max_request_body_bytes: int = Field(
        default=1024 * 1024,
        description="Max body size for JSON endpoints; uploads get resume_max_bytes plus multipart overhead",
    )

    @property
    def admin_password_value(self) -> str:
        return self.admin_password.get_secret_value()

    @property
    def token_secret_value(self) -> str:
        return self.token_secret.get_secret_value()

    @property
    def db_backend(self) -> Literal["postgres", "sqlite", "other"]:
        url = self.database_url.lower()
        if url.startswith("postgresql"):
            return "postgres"
        if url.startswith("sqlite"):
            return "sqlite"
        return "other"

    @field_validator("database_url", mode="before")
    @classmethod
    def prefer_global_database_url(cls, v: str) -> str:
        """Allow DATABASE_URL to override when SKYUP_DATABASE_URL is unset."""
        if os.environ.get("SKYUP_DATABASE_URL"):
            return v
        global_url = os.environ.get("DATABASE_URL")
        return global_url or v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {v}")
        return v

    @field_validator("list_default_limit", "resume_max_bytes", "max_request_body_bytes")
    @classmethod
    def validate_positive_ints(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("list_max_limit")
    @classmethod
    def validate_list_limit(cls, v: int, info) -> int:
        default_limit = info.data.get("list_default_limit", 100)
        if v < default_limit:
            raise ValueError("list_max_limit must be >= list_default_limit")
        return v

    @field_validator("invoice_prefix")
    @classmethod
    def validate_invoice_prefix(cls, v: str) -> str:
        if not v or "/" in v:
            raise ValueError("invoice_prefix must be non-empty and must not contain '/'")
        return v


settings = Settings()


def skyup_clock() -> datetime:
    """Return the server clock used for created_at and token issuance."""
    return datetime.now(timezone.utc)
