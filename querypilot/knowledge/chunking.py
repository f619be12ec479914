"""
Schema Chunking

Splits raw schema definition files into line-aligned chunks small enough
to embed and to paste into prompts.
"""

import re
from pathlib import Path

from querypilot.models.query import SchemaChunk, TargetDatabase

LINE_BREAK_PATTERN = re.compile(r"\r?\n")


def chunk_text(text: str, max_chars: int = 4000) -> list[str]:
    """
    Accumulate lines until the joined chunk exceeds max_chars, then flush.

    Lines are never split, so a chunk can exceed max_chars by at most one
    line. Joining the chunks with newlines gives back the original text
    (with \\r\\n normalised to \\n).
    """
    chunks: list[str] = []
    buffer: list[str] = []
    length = -1

    for line in LINE_BREAK_PATTERN.split(text):
        buffer.append(line)
        length += len(line) + 1
        if length > max_chars:
            chunks.append("\n".join(buffer))
            buffer = []
            length = -1

    if buffer:
        chunks.append("\n".join(buffer))
    return chunks


def chunk_schema_file(
    path: str | Path,
    database: TargetDatabase,
    max_chars: int = 4000,
) -> list[SchemaChunk]:
    """
    Chunk one schema file into SchemaChunk records tagged with its database.

    Whitespace-only chunks are dropped before numbering, so chunk_index
    runs 0..n-1 without gaps.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    pieces = [chunk for chunk in chunk_text(text, max_chars) if chunk.strip()]
    return [
        SchemaChunk(
            source_database=database,
            text=chunk,
            filename=path.name,
            chunk_index=index,
        )
        for index, chunk in enumerate(pieces)
    ]
