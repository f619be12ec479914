"""
Schema Catalog

Parses the model definition files (one per target database) into table and
column listings, and renders the bounded summaries embedded in prompts.

The definition files use a block syntax:

    model people {
      id         Int     @id
      first_name String?
      @@index([entity_id])
    }

Each block is a table; the leading token of every non-comment,
non-annotation line is a column name if it looks like an identifier.
"""

import logging
import re
from pathlib import Path

from querypilot.models.query import SchemaCatalog, TargetDatabase

logger = logging.getLogger(__name__)

MODEL_BLOCK_PATTERN = re.compile(r"model\s+(\w+)\s+\{([\s\S]*?)\}")
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
SKIPPED_LINE_PREFIXES = ("@@", "//", "/*", "}")

PRIMARY_EXTENSION = ".txt"


class SchemaFileNotFound(FileNotFoundError):
    """Neither the schema file nor its alternate-extension twin exists."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(f"Schema file not found: {self.path}")


def resolve_schema_path(path: str | Path, fallback_extension: str = ".ttxt") -> Path:
    """
    Find a schema file, trying the alternate extension in either direction.

    ``entities.txt`` falls back to ``entities.ttxt`` and ``entities.ttxt``
    falls back to ``entities.txt``.

    Raises:
        SchemaFileNotFound: If no candidate exists
    """
    path = Path(path)
    candidates = [path]
    if path.suffix == PRIMARY_EXTENSION:
        candidates.append(path.with_suffix(fallback_extension))
    elif path.suffix == fallback_extension:
        candidates.append(path.with_suffix(PRIMARY_EXTENSION))

    for candidate in candidates:
        if candidate.is_file():
            if candidate != path:
                logger.info(f"Using fallback schema file {candidate} for {path}")
            return candidate

    raise SchemaFileNotFound(path)


def parse_schema(text: str, database: TargetDatabase) -> SchemaCatalog:
    """Extract tables and their columns from model definition text."""
    tables: list[str] = []
    columns_by_table: dict[str, tuple[str, ...]] = {}

    for match in MODEL_BLOCK_PATTERN.finditer(text):
        table, body = match.group(1), match.group(2)
        if table in columns_by_table:
            continue

        columns: list[str] = []
        for raw_line in body.splitlines():
            line = raw_line.strip()
            if not line or line.startswith(SKIPPED_LINE_PREFIXES):
                continue
            token = line.split()[0]
            if IDENTIFIER_PATTERN.match(token):
                columns.append(token)

        tables.append(table)
        columns_by_table[table] = tuple(columns)

    return SchemaCatalog(
        database=database,
        tables=tuple(tables),
        columns_by_table=columns_by_table,
    )


def load_schema(
    path: str | Path,
    database: TargetDatabase,
    fallback_extension: str = ".ttxt",
) -> SchemaCatalog:
    """Read and parse one schema file."""
    resolved = resolve_schema_path(path, fallback_extension)
    catalog = parse_schema(resolved.read_text(encoding="utf-8"), database)
    logger.info(
        f"Loaded {database.value} schema: {len(catalog.tables)} tables",
        extra={"database": database.value, "path": str(resolved)},
    )
    return catalog


def load_schemas(
    entities_path: str | Path,
    dms_path: str | Path,
    fallback_extension: str = ".ttxt",
) -> dict[TargetDatabase, SchemaCatalog]:
    """Load both catalogs; raises SchemaFileNotFound if either is missing."""
    return {
        TargetDatabase.ENTITIES: load_schema(
            entities_path, TargetDatabase.ENTITIES, fallback_extension
        ),
        TargetDatabase.DMS: load_schema(dms_path, TargetDatabase.DMS, fallback_extension),
    }


def summarize(
    catalog: SchemaCatalog,
    max_tables: int = 200,
    max_columns_per_table: int = 50,
) -> str:
    """
    Render ``- table: col1, col2`` lines for prompting.

    Output is deterministic and bounded by the table and column caps no
    matter how large the schema is.
    """
    lines = []
    for table in catalog.tables[:max_tables]:
        columns = catalog.columns_by_table.get(table, ())[:max_columns_per_table]
        lines.append(f"- {table}: {', '.join(columns)}")
    return "\n".join(lines)
