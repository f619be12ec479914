"""
ClassifierAgent: Route a question to the entities or DMS database.

Two model-free strategies:
- classify(): keyword scoring, then table-name token overlap
- classify_from_chunks(): majority vote over retrieved schema chunks

Every tie resolves to entities.
"""

import logging
import re
from collections.abc import Mapping, Sequence

from querypilot.agents.base import BaseAgent
from querypilot.database.domains import DOMAIN_PROFILES, DomainProfile
from querypilot.models.query import (
    ClassificationResult,
    SchemaCatalog,
    SchemaChunk,
    TargetDatabase,
)

logger = logging.getLogger(__name__)

TOKEN_SPLIT_PATTERN = re.compile(r"[^a-z0-9_]+")
DEFAULT_TARGET = TargetDatabase.ENTITIES
TABLE_MATCH_CONFIDENCE = 0.7
DEFAULT_CONFIDENCE = 0.6
KEYWORD_BASE_CONFIDENCE = 0.6
KEYWORD_STEP = 0.1
KEYWORD_REASONS = {
    TargetDatabase.ENTITIES: "Entities keywords matched",
    TargetDatabase.DMS: "DMS keywords matched",
}


class ClassifierAgent(BaseAgent):
    """
    Cheap, explainable question router.

    Pure function of its inputs: the same question and catalogs always
    produce the same result. Works with embeddings and the model disabled.
    """

    def __init__(self, profiles: Mapping[TargetDatabase, DomainProfile] | None = None):
        super().__init__(name="ClassifierAgent")
        self.profiles = profiles or DOMAIN_PROFILES

    def keyword_scores(self, question: str) -> dict[TargetDatabase, int]:
        """Number of distinct domain keywords contained in the question."""
        lowered = question.lower()
        return {
            target: sum(1 for keyword in profile.keywords if keyword in lowered)
            for target, profile in self.profiles.items()
        }

    def classify(
        self, question: str, catalogs: Mapping[TargetDatabase, SchemaCatalog]
    ) -> ClassificationResult:
        """
        Pick the target database for a question.

        Args:
            question: Natural-language question
            catalogs: Parsed schema catalog per target

        Returns:
            ClassificationResult with target, confidence and reason
        """
        scores = self.keyword_scores(question)
        entities_score = scores.get(TargetDatabase.ENTITIES, 0)
        dms_score = scores.get(TargetDatabase.DMS, 0)

        if entities_score == 0 and dms_score == 0:
            result = self._classify_by_tables(question, catalogs)
        elif entities_score >= dms_score:
            result = self._keyword_result(TargetDatabase.ENTITIES, entities_score)
        else:
            result = self._keyword_result(TargetDatabase.DMS, dms_score)

        logger.info(
            f"Classified question as {result.target.value}",
            extra={
                "target": result.target.value,
                "confidence": result.confidence,
                "entities_score": entities_score,
                "dms_score": dms_score,
            },
        )
        return result

    def _keyword_result(self, target: TargetDatabase, score: int) -> ClassificationResult:
        profile = self.profiles[target]
        return ClassificationResult(
            target=target,
            confidence=min(1.0, KEYWORD_BASE_CONFIDENCE + KEYWORD_STEP * score),
            reason=KEYWORD_REASONS[target],
            candidate_tables=list(profile.candidate_tables),
        )

    def _classify_by_tables(
        self, question: str, catalogs: Mapping[TargetDatabase, SchemaCatalog]
    ) -> ClassificationResult:
        tokens = set(TOKEN_SPLIT_PATTERN.split(question.lower()))
        tokens.discard("")

        hits: dict[TargetDatabase, str] = {}
        for target, catalog in catalogs.items():
            for table in catalog.tables:
                if table.lower() in tokens:
                    hits[target] = table
                    break

        if len(hits) == 1:
            target, table = next(iter(hits.items()))
            return ClassificationResult(
                target=target,
                confidence=TABLE_MATCH_CONFIDENCE,
                reason=f"Matched table {table}",
                candidate_tables=[table],
            )

        return ClassificationResult(
            target=DEFAULT_TARGET,
            confidence=DEFAULT_CONFIDENCE,
            reason="Defaulted to Entities (no keyword/table hit)",
            candidate_tables=[],
        )

    def classify_from_chunks(self, chunks: Sequence[SchemaChunk]) -> TargetDatabase:
        """Majority database among retrieved chunks; ties and no chunks go to entities."""
        entities_votes = sum(1 for c in chunks if c.source_database == TargetDatabase.ENTITIES)
        dms_votes = sum(1 for c in chunks if c.source_database == TargetDatabase.DMS)
        return TargetDatabase.ENTITIES if entities_votes >= dms_votes else TargetDatabase.DMS
