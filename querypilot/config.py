"""
Application Configuration

Pydantic-based settings management using environment variables.
Every group also honours the legacy variable names used by earlier
deployments (AZURE_OPENAI_KEY, DISABLE_EMBEDDINGS, ENTITIES_DB_URL, ...).

Usage:
    from querypilot.config import get_settings

    settings = get_settings()
    print(settings.llm.azure_deployment)
    print(settings.schemas.entities_path)
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

NOISY_LOGGERS = ("openai", "httpx", "httpcore", "chromadb")


class LLMSettings(BaseSettings):
    """Chat-completion provider configuration."""

    provider: Literal["azure", "openai"] = Field(
        default="azure", description="Which chat-completion API to call"
    )

    # Azure OpenAI configuration
    azure_api_key: str | None = Field(
        None,
        description="Azure OpenAI API key",
        validation_alias=AliasChoices("LLM_AZURE_API_KEY", "AZURE_OPENAI_KEY"),
    )
    azure_endpoint: str | None = Field(
        None,
        description="Azure OpenAI resource endpoint",
        validation_alias=AliasChoices("LLM_AZURE_ENDPOINT", "AZURE_OPENAI_ENDPOINT"),
    )
    azure_deployment: str = Field(
        default="gpt-4o-mini",
        description="Azure chat deployment name",
        validation_alias=AliasChoices("LLM_AZURE_DEPLOYMENT", "AZURE_OPENAI_DEPLOYMENT"),
    )
    azure_api_version: str = Field(
        default="2024-08-01-preview",
        description="Azure OpenAI API version",
        validation_alias=AliasChoices("LLM_AZURE_API_VERSION", "AZURE_OPENAI_API_VERSION"),
    )

    # OpenAI configuration
    openai_api_key: str | None = Field(None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI chat model")

    # Sampling and budgets
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for SQL generation and planning",
    )
    sql_max_tokens: int = Field(default=700, gt=0, description="Token budget for SQL generation")
    planner_max_tokens: int = Field(
        default=600, gt=0, description="Token budget per self-correcting planner attempt"
    )
    validator_max_tokens: int = Field(
        default=800, gt=0, description="Token budget for the semantic validator"
    )
    analysis_max_tokens: int = Field(
        default=600, gt=0, description="Token budget for question analysis"
    )
    timeout: int = Field(default=30, gt=0, description="Request timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("azure_api_key", "azure_endpoint", "openai_api_key", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def is_configured(self) -> bool:
        """True when the selected provider has every credential it needs."""
        if self.provider == "azure":
            return bool(self.azure_api_key and self.azure_endpoint and self.azure_deployment)
        return bool(self.openai_api_key)

    @property
    def model_name(self) -> str:
        """Model (or Azure deployment) sent with each request."""
        return self.azure_deployment if self.provider == "azure" else self.openai_model


class EmbeddingSettings(BaseSettings):
    """Schema retrieval embedding configuration."""

    disabled: bool = Field(
        default=True,
        description="Turn retrieval off and fall back to keyword routing",
        validation_alias=AliasChoices("EMBEDDINGS_DISABLED", "DISABLE_EMBEDDINGS"),
    )
    method: Literal["local", "azure"] = Field(
        default="local",
        description="Embed locally (MiniLM) or through the Azure embeddings API",
        validation_alias=AliasChoices("EMBEDDINGS_METHOD", "EMBEDDING_METHOD"),
    )
    azure_deployment: str = Field(
        default="text-embedding-3-large",
        description="Azure embeddings deployment name",
        validation_alias=AliasChoices("EMBEDDINGS_AZURE_DEPLOYMENT", "AZURE_OPENAI_EMBEDDING"),
    )
    chunk_size: int = Field(
        default=4000,
        gt=0,
        description="Character budget for each schema chunk",
    )
    top_k: int = Field(
        default=5,
        gt=0,
        le=50,
        description="Number of chunks returned by a search",
    )

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDINGS_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: str) -> str:
        """Accept any casing for the method name."""
        return v.lower() if isinstance(v, str) else v


class SchemaSettings(BaseSettings):
    """Locations and prompt bounds for the schema definition files."""

    entities_path: Path = Field(
        default=Path("entities_prod_definition.txt"),
        description="Entities model definition file",
        validation_alias=AliasChoices("SCHEMA_ENTITIES_PATH", "ENTITIES_SCHEMA_PATH"),
    )
    dms_path: Path = Field(
        default=Path("dms_prod_definition.txt"),
        description="DMS model definition file",
        validation_alias=AliasChoices("SCHEMA_DMS_PATH", "DMS_SCHEMA_PATH"),
    )
    fallback_extension: str = Field(
        default=".ttxt",
        description="Alternate extension tried when a .txt file is missing (and vice versa)",
    )
    max_tables: int = Field(default=200, gt=0, description="Tables listed in a summary")
    max_columns_per_table: int = Field(
        default=50, gt=0, description="Columns listed per table in a summary"
    )

    model_config = SettingsConfigDict(
        env_prefix="SCHEMA_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("fallback_extension")
    @classmethod
    def validate_extension(cls, v: str) -> str:
        """Ensure the fallback extension starts with a dot."""
        return v if v.startswith(".") else f".{v}"


class DatabaseSettings(BaseSettings):
    """Target database connections and execution gate."""

    entities_url: str | None = Field(
        None,
        description="MySQL URL for the entities database",
        validation_alias=AliasChoices("DATABASE_ENTITIES_URL", "ENTITIES_DB_URL"),
    )
    dms_url: str | None = Field(
        None,
        description="MySQL URL for the DMS database",
        validation_alias=AliasChoices("DATABASE_DMS_URL", "DMS_DB_URL"),
    )
    execute_automatically: bool = Field(
        default=False,
        description="Run generated SQL against the target database",
        validation_alias=AliasChoices(
            "DATABASE_EXECUTE_AUTOMATICALLY", "EXECUTE_SQL_AUTOMATICALLY"
        ),
    )
    query_timeout: int = Field(default=30, gt=0, description="Query timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("entities_url", "dms_url", mode="before")
    @classmethod
    def normalize_url(cls, v: str | None) -> str | None:
        """Treat empty strings as missing."""
        if v == "":
            return None
        return v

    @field_validator("entities_url", "dms_url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Only MySQL URLs are supported."""
        if v is None:
            return v
        parsed = urlparse(v)
        scheme = parsed.scheme.split("+")[0].lower() if parsed.scheme else ""
        if scheme != "mysql":
            raise ValueError("Database URLs must use the mysql scheme.")
        if not parsed.hostname:
            raise ValueError("Database URLs must include a host.")
        return v


class PipelineSettings(BaseSettings):
    """Generation pipeline behaviour."""

    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Planner attempts allowed beyond the first",
    )
    max_result_limit: int = Field(
        default=100,
        gt=0,
        description="Largest LIMIT an accepted plan may apply",
    )
    validation_mode: Literal["advisory", "strict"] = Field(
        default="advisory",
        description="advisory fails open; strict only executes validated SQL",
    )
    validator_max_chunks: int = Field(
        default=5,
        gt=0,
        description="Schema chunks shown to the semantic validator",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound on a whole pipeline request",
    )

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        extra="ignore",
    )


class LoggingSettings(BaseSettings):
    """
    LOG_* settings applied to the root logger.

    The SDK loggers (openai, httpx, chromadb) log every request at INFO, so
    they are held at LOG_LIBRARY_LEVEL unless that is set lower.
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Root log level",
    )
    library_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Level for openai, httpx and chromadb loggers",
    )
    format: str = Field(
        default="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
    )
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S")
    file: Path | None = Field(
        default=None,
        description="Also write records to this file",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        extra="ignore",
    )

    def configure(self) -> None:
        handlers: list[logging.Handler] = [logging.StreamHandler()]
        if self.file:
            self.file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.file))

        logging.basicConfig(
            level=self.level,
            format=self.format,
            datefmt=self.date_format,
            handlers=handlers,
            force=True,
        )
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(self.library_level)


class Settings(BaseSettings):
    """
    Everything the server, CLI and pipeline read at startup.

    Top-level fields come from unprefixed variables; each nested group has
    its own prefix and its own legacy aliases.

    Environment Variables:
        ENVIRONMENT: development, staging or production
        APP_NAME: Shown in logs and the root endpoint
        API_HOST / API_PORT: API server bind address (PORT is also accepted)
        CORS_ORIGINS: Comma-separated allowed origins
        LLM_*: Chat-completion provider (see LLMSettings)
        EMBEDDINGS_*: Retrieval embeddings (see EmbeddingSettings)
        SCHEMA_*: Schema definition files (see SchemaSettings)
        DATABASE_*: Target databases (see DatabaseSettings)
        PIPELINE_*: Retry budget and validation policy (see PipelineSettings)
        LOG_*: Logging configuration (see LoggingSettings)

    Example:
        >>> settings = get_settings()
        >>> settings.pipeline.validation_mode
        'advisory'
        >>> settings.embeddings.disabled
        True
    """

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    app_name: str = Field(default="QueryPilot", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(
        default=5050,
        gt=0,
        le=65535,
        description="API server port",
        validation_alias=AliasChoices("API_PORT", "PORT"),
    )
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embeddings: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    schemas: SchemaSettings = Field(default_factory=SchemaSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """CORS origins split into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def model_post_init(self, __context) -> None:
        """Configure logging and record what was loaded."""
        self.logging.configure()
        logger = logging.getLogger(__name__)
        logger.info(
            f"Settings loaded for {self.app_name} ({self.environment})",
            extra={
                "environment": self.environment,
                "llm_provider": self.llm.provider,
                "llm_configured": self.llm.is_configured,
                "embeddings_disabled": self.embeddings.disabled,
                "embedding_method": self.embeddings.method,
                "validation_mode": self.pipeline.validation_mode,
                "execute_automatically": self.database.execute_automatically,
            },
        )


_DOTENV_PATH = Path(__file__).resolve().parents[1] / ".env"


def _apply_dotenv_precedence() -> None:
    env_source = os.getenv("QUERYPILOT_ENV_SOURCE", "dotenv").lower()
    if env_source not in {"dotenv", "envfile", "file"}:
        return
    if _DOTENV_PATH.exists():
        load_dotenv(_DOTENV_PATH, override=True)


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, built once after .env has been applied."""
    _apply_dotenv_precedence()
    return Settings()


def clear_settings_cache() -> None:
    """Drop the cached Settings so the next get_settings() re-reads the environment."""
    get_settings.cache_clear()
