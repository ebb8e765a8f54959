"""Configuration for the invoice compliance service"""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

ROOT_DIR = Path(__file__).resolve().parents[1]
SERVICE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Configuration for the invoice compliance service."""

    # Service metadata
    SERVICE_NAME: str = "Invoice Compliance Engine"
    SERVICE_VERSION: str = "1.0.0"
    APP_HOST: str = Field(
        default="0.0.0.0",
        validation_alias=AliasChoices("HOST", "APP_HOST"),
    )
    APP_PORT: int = Field(
        default=8204,
        validation_alias=AliasChoices("PORT", "APP_PORT"),
    )
    APP_ENV: str = "development"
    DEBUG: bool = Field(
        default=True,
        validation_alias=AliasChoices("DEBUG", "APP_DEBUG"),
    )

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = str(ROOT_DIR / "logs")

    # CORS
    CORS_ORIGINS: str = "*"
    CORS_ALLOW_CREDENTIALS: bool = True

    # Paperless-ngx (OCR / document storage)
    PAPERLESS_URL: str = Field(
        default="http://localhost:8000",
        validation_alias=AliasChoices("PAPERLESS_URL", "PAPERLESS_BASE_URL"),
    )
    PAPERLESS_TOKEN: Optional[str] = None
    PAPERLESS_TIMEOUT: float = 30.0

    # Paperless-AI (RAG contract validation)
    PAPERLESSAI_URL: str = "http://localhost:3000"
    PAPERLESSAI_USER: Optional[str] = None
    PAPERLESSAI_PASSWORD: Optional[str] = None
    PAPERLESSAI_TIMEOUT: float = 120.0

    # LLM Configuration (field extraction)
    OPENAI_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("OPENAI_API_KEY", "API_KEY"),
    )
    LLM_MODEL: str = Field(
        default="gpt-4o-mini",
        validation_alias="LLM_MODEL",
    )
    LLM_TEMPERATURE: float = Field(
        default=0.1,
        validation_alias="LLM_TEMPERATURE",
    )

    # PostgreSQL Configuration
    POSTGRES_HOST: str = Field(
        default="localhost",
        validation_alias=AliasChoices("POSTGRES_HOST", "DB_HOST"),
    )
    POSTGRES_PORT: int = Field(
        default=5432,
        validation_alias=AliasChoices("POSTGRES_PORT", "DB_PORT"),
    )
    POSTGRES_USER: str = Field(
        default="postgres",
        validation_alias=AliasChoices("POSTGRES_USER", "DB_USER"),
    )
    POSTGRES_PASSWORD: str = Field(
        default="postgres",
        validation_alias=AliasChoices("POSTGRES_PASSWORD", "DB_PASSWORD"),
    )
    POSTGRES_DB: str = Field(
        default="invoice_db",
        validation_alias=AliasChoices("POSTGRES_DB", "DB_NAME"),
    )
    POSTGRES_POOL_MIN_SIZE: int = 1
    POSTGRES_POOL_MAX_SIZE: int = 10
    # Connect at startup; repositories connect lazily otherwise
    POSTGRES_CONNECT_ON_STARTUP: bool = False

    # Rule set storage: "memory" or "postgres"
    RULE_SET_STORE: str = "memory"

    # Batch processing
    BATCH_MAX_DOCUMENTS: int = 50
    BATCH_CONCURRENCY: int = 5
    BIR_BATCH_MAX_DOCUMENTS: int = 25
    BIR_BATCH_CONCURRENCY: int = 3

    # Upload polling
    UPLOAD_POLL_MAX_ATTEMPTS: int = 50
    UPLOAD_POLL_INTERVAL_SECONDS: float = 2.0

    model_config = SettingsConfigDict(
        env_file=[str(SERVICE_DIR / ".env"), str(ROOT_DIR / ".env")],
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()
