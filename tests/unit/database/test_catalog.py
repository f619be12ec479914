"""Unit tests for schema catalog parsing and summaries."""

import pytest

from querypilot.database.catalog import (
    SchemaFileNotFound,
    load_schemas,
    parse_schema,
    resolve_schema_path,
    summarize,
)
from querypilot.models.query import TargetDatabase


class TestParseSchema:
    """Test model block parsing."""

    def test_tables_and_columns(self):
        text = """
model people {
  id          Int     @id
  first_name  String?
  // nickname String?
  @@index([entity_id])
}
"""
        catalog = parse_schema(text, TargetDatabase.ENTITIES)

        assert catalog.database == TargetDatabase.ENTITIES
        assert catalog.tables == ("people",)
        assert catalog.columns_by_table["people"] == ("id", "first_name")

    def test_non_identifier_lines_skipped(self):
        """Lines whose first token is not an identifier are ignored."""
        text = "model t {\n  id Int\n  1bad Int\n  \"quoted\" String\n}\n"

        catalog = parse_schema(text, TargetDatabase.DMS)

        assert catalog.columns_by_table["t"] == ("id",)

    def test_duplicate_model_keeps_first(self):
        text = "model t {\n  a Int\n}\nmodel t {\n  b Int\n}\n"

        catalog = parse_schema(text, TargetDatabase.DMS)

        assert catalog.tables == ("t",)
        assert catalog.columns_by_table["t"] == ("a",)

    def test_empty_text(self):
        catalog = parse_schema("", TargetDatabase.DMS)

        assert catalog.tables == ()
        assert catalog.columns_by_table == {}

    def test_has_table_is_case_insensitive(self, catalogs):
        assert catalogs[TargetDatabase.DMS].has_table("LEADS_TICKETS") is True
        assert catalogs[TargetDatabase.DMS].has_table("entity") is False


class TestResolveSchemaPath:
    """Test alternate-extension fallback."""

    def test_existing_path_returned(self, schema_files):
        assert resolve_schema_path(schema_files["dms"]) == schema_files["dms"]

    def test_txt_falls_back_to_ttxt(self, tmp_path):
        (tmp_path / "entities.ttxt").write_text("model a {\n id Int\n}\n")

        resolved = resolve_schema_path(tmp_path / "entities.txt")

        assert resolved == tmp_path / "entities.ttxt"

    def test_ttxt_falls_back_to_txt(self, tmp_path):
        (tmp_path / "dms.txt").write_text("model a {\n id Int\n}\n")

        resolved = resolve_schema_path(tmp_path / "dms.ttxt")

        assert resolved == tmp_path / "dms.txt"

    def test_missing_raises(self, tmp_path):
        with pytest.raises(SchemaFileNotFound, match="Schema file not found"):
            resolve_schema_path(tmp_path / "missing.txt")


class TestLoadSchemas:
    """Test loading both catalogs."""

    def test_loads_both(self, schema_files):
        catalogs = load_schemas(schema_files["entities"], schema_files["dms"])

        assert "entity_property" in catalogs[TargetDatabase.ENTITIES].tables
        assert "leads_tickets" in catalogs[TargetDatabase.DMS].tables

    def test_missing_dms_raises(self, schema_files, tmp_path):
        with pytest.raises(SchemaFileNotFound):
            load_schemas(schema_files["entities"], tmp_path / "nope.txt")


class TestSummarize:
    """Test bounded summaries."""

    def test_format(self, catalogs):
        summary = summarize(catalogs[TargetDatabase.DMS])

        assert summary.splitlines()[0].startswith("- leads_tickets: id, master_ticket_prefix")
        assert "- users: id, first_name, last_name" in summary

    def test_table_and_column_caps(self, catalogs):
        summary = summarize(catalogs[TargetDatabase.DMS], max_tables=2, max_columns_per_table=1)

        assert summary.splitlines() == ["- leads_tickets: id", "- leads_notes: id"]

    def test_deterministic(self, catalogs):
        catalog = catalogs[TargetDatabase.ENTITIES]

        assert summarize(catalog) == summarize(catalog)
