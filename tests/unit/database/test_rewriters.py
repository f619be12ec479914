"""Unit tests for the known-issue SQL rewriters."""

from querypilot.database.rewriters import (
    KNOWN_ISSUE_REWRITERS,
    KnownIssueRewriter,
    apply_known_issue_rewriters,
    collapse_tautologies,
    entity_property_qualifiers,
    strip_invalid_entity_property_deleted_at,
)
from querypilot.models.query import TargetDatabase


class TestEntityPropertyDeletedAt:
    """Test removal of deleted_at filters on entity_property."""

    def test_alias_filter_removed(self):
        sql = (
            "SELECT e.name FROM entity e JOIN entity_property ep ON ep.entity_id = e.entity_id "
            "WHERE ep.deleted_at IS NULL AND ep.property_id = 'phone'"
        )

        rewritten = strip_invalid_entity_property_deleted_at(sql)

        assert rewritten.endswith("WHERE ep.property_id = 'phone'")
        assert "deleted_at" not in rewritten
        assert "1=1" not in rewritten

    def test_trailing_filter_removed(self):
        sql = "SELECT value FROM entity_property WHERE property_id = 'email' AND entity_property.deleted_at IS NULL"

        rewritten = strip_invalid_entity_property_deleted_at(sql)

        assert rewritten == "SELECT value FROM entity_property WHERE property_id = 'email'"

    def test_sole_filter_removes_where(self):
        sql = "SELECT value FROM entity_property AS p WHERE p.deleted_at IS NULL ORDER BY value LIMIT 5"

        rewritten = strip_invalid_entity_property_deleted_at(sql)

        assert rewritten == "SELECT value FROM entity_property AS p ORDER BY value LIMIT 5"

    def test_other_tables_untouched(self):
        """deleted_at on tables that have it stays."""
        sql = (
            "SELECT e.name FROM entity e JOIN entity_property ep ON ep.entity_id = e.entity_id "
            "WHERE e.deleted_at IS NULL AND ep.deleted_at IS NULL"
        )

        rewritten = strip_invalid_entity_property_deleted_at(sql)

        assert "e.deleted_at IS NULL" in rewritten
        assert "ep.deleted_at" not in rewritten

    def test_no_entity_property_is_noop(self):
        sql = "SELECT id FROM leads_tickets t WHERE t.deleted_at IS NULL"

        assert strip_invalid_entity_property_deleted_at(sql) == sql

    def test_qualifiers_skip_keywords(self):
        """A keyword after the table name is not mistaken for an alias."""
        qualifiers = entity_property_qualifiers("SELECT 1 FROM entity_property WHERE 1")

        assert qualifiers == {"entity_property"}

    def test_collapse_tautologies(self):
        assert collapse_tautologies("SELECT 1 FROM t WHERE 1=1 AND a = 1") == (
            "SELECT 1 FROM t WHERE a = 1"
        )


class TestApplyRewriters:
    """Test the ordered rewriter pipeline."""

    def test_entities_target_applies(self):
        sql = "SELECT value FROM entity_property ep WHERE ep.deleted_at IS NULL AND ep.value = 'x'"

        rewritten = apply_known_issue_rewriters(sql, TargetDatabase.ENTITIES)

        assert rewritten == "SELECT value FROM entity_property ep WHERE ep.value = 'x'"

    def test_dms_target_skips_entities_rewriter(self):
        sql = "SELECT value FROM entity_property ep WHERE ep.deleted_at IS NULL"

        assert apply_known_issue_rewriters(sql, TargetDatabase.DMS) == sql

    def test_rewriters_run_in_order(self):
        first = KnownIssueRewriter(
            name="first", description="", rewrite=lambda s: s.replace("a", "b")
        )
        second = KnownIssueRewriter(
            name="second", description="", rewrite=lambda s: s.replace("b", "c")
        )

        assert apply_known_issue_rewriters("a", None, [first, second]) == "c"

    def test_default_registry(self):
        names = [rewriter.name for rewriter in KNOWN_ISSUE_REWRITERS]

        assert names == ["entity_property_deleted_at"]
