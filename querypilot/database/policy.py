"""
Read-Only SQL Policy

Checks every statement must pass before it is returned or executed:
- forbidden keyword denylist (whole word, case-insensitive)
- comment stripping and whitespace normalisation
- single statement, SELECT only (sqlparse)
- no file-access constructs
- LIMIT capping

Model output is never trusted, so these checks run regardless of what the
prompt asked for. Violations are always rejected, never repaired.
"""

import logging
import re

import sqlparse

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "RENAME",
    "GRANT",
    "REVOKE",
)
FORBIDDEN_KEYWORD_PATTERN = re.compile(
    r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.IGNORECASE
)
BLOCK_COMMENT_PATTERN = re.compile(r"/\*[\s\S]*?\*/")
LINE_COMMENT_PATTERN = re.compile(r"--.*")
WHITESPACE_PATTERN = re.compile(r"\s+")
SELECT_PREFIX_PATTERN = re.compile(r"^SELECT\b", re.IGNORECASE)
LIMIT_CLAUSE_PATTERN = re.compile(r"\bLIMIT\s+(?:\d+\s*,\s*)?(\d+|\?)(?!\w)", re.IGNORECASE)
LIMIT_KEYWORD_PATTERN = re.compile(r"\bLIMIT\b", re.IGNORECASE)
LIMIT_PLACEHOLDER_PATTERN = re.compile(r"\b(LIMIT\s+(?:\d+\s*,\s*)?)\?", re.IGNORECASE)

DANGEROUS_CONSTRUCTS = ("LOAD_FILE", "INTO OUTFILE", "INTO DUMPFILE", "SLEEP(", "BENCHMARK(")


class SQLPolicyError(ValueError):
    """Base class for read-only policy violations."""

    rule = "policy"

    def __init__(self, message: str, sql: str | None = None):
        self.sql = sql
        super().__init__(message)


class ForbiddenSqlKeyword(SQLPolicyError):
    """A write or DDL keyword appears in the statement."""

    rule = "forbidden_keyword"

    def __init__(self, keyword: str, sql: str | None = None):
        self.keyword = keyword.upper()
        super().__init__(f"Forbidden SQL keyword detected: {self.keyword}", sql)


class NonSelectStatement(SQLPolicyError):
    """The statement is not a SELECT."""

    rule = "select_only"


class MultipleStatements(SQLPolicyError):
    """More than one statement was supplied."""

    rule = "single_statement"


class UnsafeSqlConstruct(SQLPolicyError):
    """File access or timing functions inside an otherwise valid SELECT."""

    rule = "unsafe_construct"


def find_forbidden_keyword(sql: str) -> str | None:
    """Return the first forbidden keyword in sql, or None."""
    match = FORBIDDEN_KEYWORD_PATTERN.search(sql)
    return match.group(1) if match else None


def strip_comments(sql: str) -> str:
    """Remove block and line comments, collapse whitespace and trim."""
    without_blocks = BLOCK_COMMENT_PATTERN.sub("", sql)
    without_lines = LINE_COMMENT_PATTERN.sub("", without_blocks)
    return WHITESPACE_PATTERN.sub(" ", without_lines).strip()


def sanitize_sql(sql: str) -> str:
    """
    Reject forbidden keywords, then strip comments and normalise whitespace.

    Raises:
        ForbiddenSqlKeyword: If a write or DDL keyword appears as a whole word
    """
    keyword = find_forbidden_keyword(sql)
    if keyword:
        raise ForbiddenSqlKeyword(keyword, sql)
    return strip_comments(sql)


def ensure_select(sql: str) -> str:
    """
    Require exactly one SELECT statement without file access constructs.

    Expects sanitized SQL. Returns it without a trailing semicolon.

    Raises:
        MultipleStatements: If sqlparse finds more than one statement
        NonSelectStatement: If the statement does not start with SELECT
        UnsafeSqlConstruct: If a file access or timing function is used
    """
    statements = [stmt for stmt in sqlparse.split(sql) if stmt.strip().strip(";").strip()]
    if not statements:
        raise NonSelectStatement("Empty SQL statement", sql)
    if len(statements) > 1:
        raise MultipleStatements(
            "Multiple SQL statements detected - only a single SELECT is allowed", sql
        )

    statement = statements[0].strip().rstrip(";").strip()
    if not SELECT_PREFIX_PATTERN.match(statement):
        first_word = statement.split()[0].upper() if statement.split() else ""
        raise NonSelectStatement(f"Only SELECT queries are allowed, found: {first_word}", sql)

    upper = statement.upper()
    for construct in DANGEROUS_CONSTRUCTS:
        if construct in upper:
            raise UnsafeSqlConstruct(f"Unsafe SQL construct detected: {construct}", sql)

    return statement


def enforce_read_only(sql: str) -> str:
    """Run the full policy: sanitize, then require a single safe SELECT."""
    return ensure_select(sanitize_sql(sql))


def allows_limit(sql: str) -> bool:
    """True when the statement carries a LIMIT clause."""
    return bool(LIMIT_KEYWORD_PATTERN.search(sql))


def apply_limit_cap(sql: str, max_limit: int = 100) -> tuple[str, int | None]:
    """
    Bound every LIMIT a statement applies, including those in subqueries.

    Returns the (possibly rewritten) SQL and the effective limit of the
    outermost (last) LIMIT clause. A row count above max_limit is replaced
    by a ``?`` placeholder which is bound to max_limit at execution time
    (``LIMIT 500`` becomes ``LIMIT ?``, ``LIMIT 20, 500`` becomes
    ``LIMIT 20, ?``). An existing ``LIMIT ?`` counts as max_limit. Returns
    None as the limit when the statement has no LIMIT.
    """
    parts = []
    position = 0
    effective = None
    for match in LIMIT_CLAUSE_PATTERN.finditer(sql):
        row_count = match.group(1)
        if row_count == "?":
            effective = max_limit
            continue
        requested = int(row_count)
        if requested <= max_limit:
            effective = requested
            continue
        logger.info(f"Capping LIMIT {requested} to {max_limit}")
        parts.append(sql[position : match.start(1)])
        parts.append("?")
        position = match.end(1)
        effective = max_limit

    parts.append(sql[position:])
    return "".join(parts), effective


def bind_limit_placeholder(sql: str, limit: int) -> str:
    """Replace every ``LIMIT ?`` row-count placeholder with a literal for execution."""
    return LIMIT_PLACEHOLDER_PATTERN.sub(lambda m: f"{m.group(1)}{int(limit)}", sql)
