"""
Known-Issue Rewriters

Ordered, schema-specific text rewrites applied to sanitized SQL. Each entry
fixes one hallucination the model is known to make against a real schema
gap. Rewriters only ever remove or neutralise conditions; they never add
tables or write operations.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from querypilot.models.query import TargetDatabase

logger = logging.getLogger(__name__)

ALIAS_STOPWORDS = (
    "ON",
    "WHERE",
    "JOIN",
    "LEFT",
    "RIGHT",
    "INNER",
    "OUTER",
    "CROSS",
    "FULL",
    "NATURAL",
    "STRAIGHT_JOIN",
    "GROUP",
    "ORDER",
    "LIMIT",
    "USING",
    "HAVING",
    "UNION",
    "WINDOW",
)

ENTITY_PROPERTY_BINDING_PATTERN = re.compile(
    r"\b(?:FROM|JOIN)\s+`?entity_property`?"
    r"(?:\s+(?:AS\s+)?(?!(?:" + "|".join(ALIAS_STOPWORDS) + r")\b)`?([A-Za-z_]\w*)`?)?",
    re.IGNORECASE,
)
TAUTOLOGY = "1=1"
TRAILING_AND_TAUTOLOGY_PATTERN = re.compile(r"\s+AND\s+1=1\b", re.IGNORECASE)
LEADING_TAUTOLOGY_PATTERN = re.compile(r"\b(WHERE|ON)\s+1=1\s+AND\b", re.IGNORECASE)
SOLE_WHERE_TAUTOLOGY_PATTERN = re.compile(
    r"\s*\bWHERE\s+1=1\b(?=\s*(?:GROUP\b|ORDER\b|LIMIT\b|HAVING\b|\)|;|$))",
    re.IGNORECASE,
)
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass(frozen=True)
class KnownIssueRewriter:
    """One named rewrite rule, optionally limited to some targets."""

    name: str
    description: str
    rewrite: Callable[[str], str]
    targets: frozenset[TargetDatabase] | None = None

    def applies_to(self, target: TargetDatabase | None) -> bool:
        return target is None or self.targets is None or target in self.targets


def entity_property_qualifiers(sql: str) -> set[str]:
    """Names that refer to entity_property in sql: the table itself and its aliases."""
    qualifiers = {"entity_property"}
    for match in ENTITY_PROPERTY_BINDING_PATTERN.finditer(sql):
        if match.group(1):
            qualifiers.add(match.group(1))
    return qualifiers


def collapse_tautologies(sql: str) -> str:
    """Remove ``1=1`` conditions left behind by a rewrite."""
    sql = TRAILING_AND_TAUTOLOGY_PATTERN.sub("", sql)
    sql = LEADING_TAUTOLOGY_PATTERN.sub(lambda m: m.group(1), sql)
    sql = SOLE_WHERE_TAUTOLOGY_PATTERN.sub("", sql)
    return WHITESPACE_PATTERN.sub(" ", sql).strip()


def strip_invalid_entity_property_deleted_at(sql: str) -> str:
    """
    Drop ``deleted_at IS NULL`` filters on entity_property.

    entity_property has no deleted_at column, so such a filter fails at
    runtime with an unknown-column error. The filter becomes ``1=1`` and
    the tautology is then collapsed away:

        WHERE ep.deleted_at IS NULL AND ep.property_id = 'phone'
        -> WHERE ep.property_id = 'phone'
    """
    if "entity_property" not in sql.lower():
        return sql

    rewritten = sql
    for qualifier in entity_property_qualifiers(sql):
        pattern = re.compile(
            r"(?<![\w.])`?" + re.escape(qualifier) + r"`?\.`?deleted_at`?\s+IS\s+NULL\b",
            re.IGNORECASE,
        )
        rewritten = pattern.sub(TAUTOLOGY, rewritten)

    if rewritten == sql:
        return sql
    return collapse_tautologies(rewritten)


KNOWN_ISSUE_REWRITERS: tuple[KnownIssueRewriter, ...] = (
    KnownIssueRewriter(
        name="entity_property_deleted_at",
        description="entity_property has no deleted_at column",
        rewrite=strip_invalid_entity_property_deleted_at,
        targets=frozenset({TargetDatabase.ENTITIES}),
    ),
)


def apply_known_issue_rewriters(
    sql: str,
    target: TargetDatabase | None = None,
    rewriters: Iterable[KnownIssueRewriter] = KNOWN_ISSUE_REWRITERS,
) -> str:
    """Run every applicable rewriter in order and return the final SQL."""
    for rewriter in rewriters:
        if not rewriter.applies_to(target):
            continue
        rewritten = rewriter.rewrite(sql)
        if rewritten != sql:
            logger.info(
                f"Applied known-issue rewriter: {rewriter.name}",
                extra={"rewriter": rewriter.name, "target": target.value if target else None},
            )
        sql = rewritten
    return sql
