"""
Pytest configuration and shared fixtures.

This module provides fixtures and configuration used across all tests:
a scripted LLM provider, small schema definition files for both target
databases, and settings pointing at them.
"""

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from querypilot.config import (
    DatabaseSettings,
    EmbeddingSettings,
    LLMSettings,
    PipelineSettings,
    SchemaSettings,
    Settings,
    clear_settings_cache,
)
from querypilot.connectors.base import BaseConnector, QueryResult
from querypilot.database.catalog import load_schemas
from querypilot.llm.base import BaseLLMProvider
from querypilot.llm.models import LLMRequest, LLMResponse, LLMUsage

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 1 second)")
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


# ============================================================================
# Environment Isolation
# ============================================================================

ISOLATED_ENV_VARS = (
    "AZURE_OPENAI_KEY",
    "AZURE_OPENAI_ENDPOINT",
    "AZURE_OPENAI_DEPLOYMENT",
    "AZURE_OPENAI_API_VERSION",
    "AZURE_OPENAI_EMBEDDING",
    "LLM_PROVIDER",
    "LLM_AZURE_API_KEY",
    "LLM_AZURE_ENDPOINT",
    "LLM_OPENAI_API_KEY",
    "DISABLE_EMBEDDINGS",
    "EMBEDDINGS_DISABLED",
    "EMBEDDING_METHOD",
    "EMBEDDINGS_METHOD",
    "ENTITIES_DB_URL",
    "DMS_DB_URL",
    "DATABASE_ENTITIES_URL",
    "DATABASE_DMS_URL",
    "EXECUTE_SQL_AUTOMATICALLY",
    "DATABASE_EXECUTE_AUTOMATICALLY",
    "ENTITIES_SCHEMA_PATH",
    "DMS_SCHEMA_PATH",
    "SCHEMA_ENTITIES_PATH",
    "SCHEMA_DMS_PATH",
    "PIPELINE_VALIDATION_MODE",
    "PIPELINE_MAX_RETRIES",
    "PORT",
    "API_PORT",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """
    Keep host configuration out of tests.

    Runs in an empty working directory so no .env file is picked up, and
    clears the cached settings before and after each test.
    """
    for name in ISOLATED_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("QUERYPILOT_ENV_SOURCE", "environment")
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Capture logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG)
    yield


# ============================================================================
# Scripted LLM Provider
# ============================================================================


class ScriptedLLMProvider(BaseLLMProvider):
    """
    Provider that replays queued responses in order.

    Queue strings (sent as-is), dicts (JSON encoded) or exceptions (raised).
    Every request is recorded for assertions on prompts.
    """

    def __init__(self, responses=None):
        super().__init__(provider_name="scripted")
        self.responses = list(responses or [])
        self.requests: list[LLMRequest] = []

    def queue(self, *responses) -> "ScriptedLLMProvider":
        self.responses.extend(responses)
        return self

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> LLMRequest:
        return self.requests[-1]

    async def generate(self, request: LLMRequest) -> LLMResponse:
        self.requests.append(request)
        if not self.responses:
            raise RuntimeError("No scripted response left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        content = item if isinstance(item, str) else json.dumps(item)
        return LLMResponse(
            content=content,
            model="scripted-model",
            usage=LLMUsage(prompt_tokens=8, completion_tokens=4, total_tokens=12),
            provider=self.provider_name,
        )


@pytest.fixture
def llm():
    """Empty scripted provider; queue responses in the test."""
    return ScriptedLLMProvider()


# ============================================================================
# Schema Fixtures
# ============================================================================

ENTITIES_SCHEMA = """// Entities model definitions
model entity {
  entity_id        Int      @id
  name             String?
  is_deleted       Int?
  computed_phones  String?
  computed_emails  String?
}

model entity_property {
  id           Int     @id
  entity_id    Int
  property_id  String
  value        String?
  @@index([entity_id])
}

model people {
  id          Int     @id
  entity_id   Int
  first_name  String?
  last_name   String?
}

model address {
  id         Int     @id
  entity_id  Int
  city       String?
  zip_code   String?
}

model param_country {
  id    Int    @id
  name  String
}
"""

DMS_SCHEMA = """// DMS model definitions
model leads_tickets {
  id                     Int      @id
  master_ticket_prefix   String?
  ticket_number          String?
  master_ticket_crm_id   Int?
  assigned_to            Int?
  leads_transactions_id  Int?
  is_delete              Int?
  deleted_at             DateTime?
}

model leads_notes {
  id                     Int     @id
  leads_transactions_id  Int?
  note                   String?
}

model users {
  id          Int     @id
  first_name  String?
  last_name   String?
}

model payment_batch {
  id          Int      @id
  batch_date  DateTime?
}
"""


@pytest.fixture
def schema_files(tmp_path) -> dict[str, Path]:
    """Write both schema definition files and return their paths."""
    entities = tmp_path / "entities_prod_definition.txt"
    dms = tmp_path / "dms_prod_definition.txt"
    entities.write_text(ENTITIES_SCHEMA, encoding="utf-8")
    dms.write_text(DMS_SCHEMA, encoding="utf-8")
    return {"entities": entities, "dms": dms}


@pytest.fixture
def catalogs(schema_files):
    """Parsed catalogs for both databases."""
    return load_schemas(schema_files["entities"], schema_files["dms"])


@pytest.fixture
def make_settings(schema_files):
    """
    Factory for Settings pointing at the fixture schema files.

    Usage:
        settings = make_settings(validation_mode="strict", execute=True)
    """

    def _make(
        validation_mode: str = "advisory",
        execute: bool = False,
        embeddings_disabled: bool = True,
        max_retries: int = 3,
        request_timeout_seconds: float = 120.0,
        **database,
    ) -> Settings:
        return Settings(
            llm=LLMSettings(provider="openai", openai_api_key="sk-test-key"),
            embeddings=EmbeddingSettings(disabled=embeddings_disabled, chunk_size=200),
            schemas=SchemaSettings(
                entities_path=schema_files["entities"],
                dms_path=schema_files["dms"],
            ),
            database=DatabaseSettings(execute_automatically=execute, **database),
            pipeline=PipelineSettings(
                validation_mode=validation_mode,
                max_retries=max_retries,
                request_timeout_seconds=request_timeout_seconds,
            ),
        )

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    """Default settings: advisory validation, no execution, embeddings off."""
    return make_settings()


# ============================================================================
# Fake Connector
# ============================================================================


class FakeConnector(BaseConnector):
    """In-memory connector returning canned rows or raising a canned error."""

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        super().__init__(host="fake", port=3306, database="test", user="reader", password="")
        self.rows = rows or []
        self.error = error
        self.executed: list[tuple[str, list[Any] | None]] = []
        self.closed = False

    async def connect(self) -> None:
        self._connected = True

    async def execute(self, query, params=None, timeout=None) -> QueryResult:
        self.executed.append((query, params))
        if self.error:
            raise self.error
        return QueryResult(
            rows=self.rows,
            row_count=len(self.rows),
            columns=list(self.rows[0]) if self.rows else [],
            execution_time_ms=1.0,
        )

    async def close(self) -> None:
        self.closed = True
        self._connected = False


@pytest.fixture
def make_connector():
    """
    Factory for fake connectors.

    Usage:
        connector = make_connector(rows=[{"id": 1}])
        connector = make_connector(error=QueryError("Unknown column"))
    """
    return FakeConnector
