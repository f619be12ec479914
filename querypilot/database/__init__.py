"""
Database Module

Schema catalogs, per-domain profiles, the read-only SQL policy and
known-issue rewriters.
"""

from querypilot.database.catalog import (
    SchemaFileNotFound,
    load_schemas,
    parse_schema,
    resolve_schema_path,
    summarize,
)
from querypilot.database.domains import DOMAIN_PROFILES, DomainProfile, get_profile
from querypilot.database.policy import (
    ForbiddenSqlKeyword,
    MultipleStatements,
    NonSelectStatement,
    SQLPolicyError,
    enforce_read_only,
    sanitize_sql,
)
from querypilot.database.rewriters import (
    KNOWN_ISSUE_REWRITERS,
    KnownIssueRewriter,
    apply_known_issue_rewriters,
    strip_invalid_entity_property_deleted_at,
)

__all__ = [
    "DOMAIN_PROFILES",
    "DomainProfile",
    "ForbiddenSqlKeyword",
    "KNOWN_ISSUE_REWRITERS",
    "KnownIssueRewriter",
    "MultipleStatements",
    "NonSelectStatement",
    "SQLPolicyError",
    "SchemaFileNotFound",
    "apply_known_issue_rewriters",
    "enforce_read_only",
    "get_profile",
    "load_schemas",
    "parse_schema",
    "resolve_schema_path",
    "sanitize_sql",
    "strip_invalid_entity_property_deleted_at",
    "summarize",
]
