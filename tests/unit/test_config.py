"""
Unit tests for configuration module.

Tests settings loading, legacy variable names, validation and caching.
"""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from querypilot.config import (
    DatabaseSettings,
    EmbeddingSettings,
    LLMSettings,
    LoggingSettings,
    PipelineSettings,
    SchemaSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)


class TestLLMSettings:
    """Test chat-completion provider configuration."""

    def test_defaults_are_unconfigured(self):
        """No credentials means generation is unavailable."""
        settings = LLMSettings()

        assert settings.provider == "azure"
        assert settings.azure_deployment == "gpt-4o-mini"
        assert settings.temperature == 0.2
        assert settings.sql_max_tokens == 700
        assert settings.planner_max_tokens == 600
        assert settings.validator_max_tokens == 800
        assert settings.is_configured is False

    def test_legacy_azure_variables(self, monkeypatch):
        """AZURE_OPENAI_* names configure the Azure provider."""
        monkeypatch.setenv("AZURE_OPENAI_KEY", "azure-key")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")
        monkeypatch.setenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4o")

        settings = LLMSettings()

        assert settings.azure_api_key == "azure-key"
        assert settings.azure_endpoint == "https://example.openai.azure.com"
        assert settings.model_name == "gpt-4o"
        assert settings.is_configured is True

    def test_empty_key_is_treated_as_missing(self, monkeypatch):
        """An empty key does not count as configured."""
        monkeypatch.setenv("AZURE_OPENAI_KEY", "  ")
        monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")

        settings = LLMSettings()

        assert settings.azure_api_key is None
        assert settings.is_configured is False

    def test_openai_provider(self, monkeypatch):
        """LLM_PROVIDER=openai only needs the OpenAI key."""
        monkeypatch.setenv("LLM_PROVIDER", "openai")
        monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")

        settings = LLMSettings()

        assert settings.is_configured is True
        assert settings.model_name == "gpt-4o-mini"

    def test_temperature_range(self, monkeypatch):
        """Temperature above 2.0 is rejected."""
        monkeypatch.setenv("LLM_TEMPERATURE", "3.5")

        with pytest.raises(ValidationError):
            LLMSettings()


class TestEmbeddingSettings:
    """Test retrieval configuration."""

    def test_disabled_by_default(self):
        """Embeddings are off unless explicitly enabled."""
        settings = EmbeddingSettings()

        assert settings.disabled is True
        assert settings.method == "local"
        assert settings.chunk_size == 4000
        assert settings.top_k == 5

    def test_legacy_variables(self, monkeypatch):
        """DISABLE_EMBEDDINGS and EMBEDDING_METHOD are honoured."""
        monkeypatch.setenv("DISABLE_EMBEDDINGS", "false")
        monkeypatch.setenv("EMBEDDING_METHOD", "AZURE")

        settings = EmbeddingSettings()

        assert settings.disabled is False
        assert settings.method == "azure"

    def test_unknown_method_rejected(self, monkeypatch):
        """Only local and azure are valid methods."""
        monkeypatch.setenv("EMBEDDING_METHOD", "cohere")

        with pytest.raises(ValidationError):
            EmbeddingSettings()


class TestSchemaSettings:
    """Test schema file configuration."""

    def test_defaults(self):
        settings = SchemaSettings()

        assert settings.entities_path == Path("entities_prod_definition.txt")
        assert settings.dms_path == Path("dms_prod_definition.txt")
        assert settings.fallback_extension == ".ttxt"
        assert settings.max_tables == 200
        assert settings.max_columns_per_table == 50

    def test_legacy_path_variables(self, monkeypatch):
        monkeypatch.setenv("ENTITIES_SCHEMA_PATH", "/schemas/entities.txt")
        monkeypatch.setenv("DMS_SCHEMA_PATH", "/schemas/dms.txt")

        settings = SchemaSettings()

        assert settings.entities_path == Path("/schemas/entities.txt")
        assert settings.dms_path == Path("/schemas/dms.txt")

    def test_extension_gets_a_dot(self):
        """A fallback extension without a dot is normalised."""
        settings = SchemaSettings(fallback_extension="ttxt")

        assert settings.fallback_extension == ".ttxt"


class TestDatabaseSettings:
    """Test target database configuration."""

    def test_defaults(self):
        settings = DatabaseSettings()

        assert settings.entities_url is None
        assert settings.dms_url is None
        assert settings.execute_automatically is False

    def test_legacy_url_variables(self, monkeypatch):
        monkeypatch.setenv("ENTITIES_DB_URL", "mysql://reader:pw@db:3306/entities")
        monkeypatch.setenv("DMS_DB_URL", "mysql://reader:pw@db:3306/dms")
        monkeypatch.setenv("EXECUTE_SQL_AUTOMATICALLY", "true")

        settings = DatabaseSettings()

        assert settings.entities_url == "mysql://reader:pw@db:3306/entities"
        assert settings.dms_url == "mysql://reader:pw@db:3306/dms"
        assert settings.execute_automatically is True

    def test_empty_url_is_none(self, monkeypatch):
        monkeypatch.setenv("ENTITIES_DB_URL", "")

        assert DatabaseSettings().entities_url is None

    def test_non_mysql_url_rejected(self, monkeypatch):
        """Only MySQL URLs are accepted."""
        monkeypatch.setenv("DMS_DB_URL", "postgresql://user:pw@db:5432/dms")

        with pytest.raises(ValidationError, match="mysql scheme"):
            DatabaseSettings()

    def test_url_without_host_rejected(self, monkeypatch):
        monkeypatch.setenv("DMS_DB_URL", "mysql:///dms")

        with pytest.raises(ValidationError, match="host"):
            DatabaseSettings()


class TestPipelineSettings:
    """Test pipeline behaviour configuration."""

    def test_defaults(self):
        settings = PipelineSettings()

        assert settings.max_retries == 3
        assert settings.max_result_limit == 100
        assert settings.validation_mode == "advisory"

    def test_strict_mode(self, monkeypatch):
        monkeypatch.setenv("PIPELINE_VALIDATION_MODE", "strict")

        assert PipelineSettings().validation_mode == "strict"

    def test_invalid_mode_rejected(self, monkeypatch):
        monkeypatch.setenv("PIPELINE_VALIDATION_MODE", "sometimes")

        with pytest.raises(ValidationError):
            PipelineSettings()


class TestLoggingSettings:
    """Test root logger setup."""

    def test_sdk_loggers_held_at_library_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_LIBRARY_LEVEL", "ERROR")

        LoggingSettings().configure()

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.ERROR
        assert logging.getLogger("chromadb").level == logging.ERROR

    def test_log_file_directory_created(self, tmp_path):
        log_file = tmp_path / "logs" / "querypilot.log"

        LoggingSettings(file=log_file).configure()
        logging.getLogger("querypilot.test").warning("written")

        assert log_file.exists()


class TestSettings:
    """Test the root settings object."""

    def test_port_aliases(self, monkeypatch):
        """PORT is accepted as the API port."""
        monkeypatch.setenv("PORT", "8080")

        assert Settings().api_port == 8080

    def test_cors_origin_list(self):
        settings = Settings(cors_origins="http://a.test, http://b.test,")

        assert settings.cors_origin_list == ["http://a.test", "http://b.test"]

    def test_get_settings_is_cached(self):
        """get_settings returns the same instance until the cache is cleared."""
        first = get_settings()
        second = get_settings()
        assert first is second

        clear_settings_cache()
        assert get_settings() is not first
