"""
ExecutorAgent: Run approved SQL against the target database.

- One read-only connector per target, built from the configured URLs
- LIMIT capped at the configured maximum before execution
- Database errors are returned, not raised, so callers can replay them
  as correction feedback; there is no internal retry
- Zero-valued aggregate results get diagnostics naming the usual causes
"""

import logging
import re
from collections.abc import Mapping
from typing import Any

from querypilot.agents.base import BaseAgent
from querypilot.config import DatabaseSettings
from querypilot.connectors.base import BaseConnector, ConnectorError
from querypilot.connectors.mysql import MySQLConnector
from querypilot.database.policy import apply_limit_cap, bind_limit_placeholder
from querypilot.models.query import ExecutionResult, TargetDatabase

logger = logging.getLogger(__name__)

AGGREGATE_FUNCTION_PATTERN = re.compile(r"\b(COUNT|SUM|AVG|MIN|MAX)\s*\(", re.IGNORECASE)
AGGREGATE_COLUMN_PATTERN = re.compile(r"count|sum|avg|min|max|total", re.IGNORECASE)

AGGREGATE_HINTS = (
    "Soft-delete filters may be excluding every row; check is_deleted/is_delete/deleted_at.",
    "The date column or range may be wrong; confirm which column holds the event date.",
    "An INNER JOIN may be dropping rows; try LEFT JOIN to see unmatched records.",
    "Text matching may be case-sensitive; compare with LOWER() on both sides.",
)


def diagnose_aggregates(sql: str, rows: list[dict[str, Any]]) -> list[str]:
    """
    Hints for a single-row aggregate result whose aggregates are all 0 or NULL.

    Returns an empty list when the result looks plausible.
    """
    if len(rows) != 1 or not AGGREGATE_FUNCTION_PATTERN.search(sql):
        return []

    aggregate_values = [
        value for column, value in rows[0].items() if AGGREGATE_COLUMN_PATTERN.search(column)
    ]
    if not aggregate_values or any(value not in (0, None) for value in aggregate_values):
        return []
    return list(AGGREGATE_HINTS)


class ExecutorAgent(BaseAgent):
    """
    Execute SQL on the entities or DMS database.

    Usage:
        executor = ExecutorAgent.from_settings(settings.database)
        result = await executor.execute(TargetDatabase.DMS, "SELECT ...")
        if not result.succeeded:
            feedback = CorrectionFeedback(sql=sql, error=result.error)
    """

    def __init__(
        self,
        connectors: Mapping[TargetDatabase, BaseConnector] | None = None,
        max_result_limit: int = 100,
        timeout: int = 30,
    ):
        super().__init__(name="ExecutorAgent")
        self.connectors: dict[TargetDatabase, BaseConnector] = dict(connectors or {})
        self.max_result_limit = max_result_limit
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls, settings: DatabaseSettings, max_result_limit: int = 100
    ) -> "ExecutorAgent":
        urls = {
            TargetDatabase.ENTITIES: settings.entities_url,
            TargetDatabase.DMS: settings.dms_url,
        }
        connectors = {
            target: MySQLConnector.from_url(url, timeout=settings.query_timeout)
            for target, url in urls.items()
            if url
        }
        return cls(
            connectors=connectors,
            max_result_limit=max_result_limit,
            timeout=settings.query_timeout,
        )

    def prepare_sql(self, sql: str) -> str:
        """Cap the LIMIT and bind any row-count placeholder."""
        capped, limit = apply_limit_cap(sql, self.max_result_limit)
        if limit is None:
            return capped
        return bind_limit_placeholder(capped, limit)

    async def execute(
        self,
        target: TargetDatabase,
        sql: str,
        params: list[Any] | None = None,
    ) -> ExecutionResult:
        """
        Run sql on target.

        Returns:
            ExecutionResult with rows and rowCount, or with error set
        """
        connector = self.connectors.get(target)
        if connector is None:
            return ExecutionResult(error=f"Missing {target.value.upper()}_DB_URL")

        runnable = self.prepare_sql(sql)
        logger.info(
            f"[{self.name}] Executing query on {target.value}",
            extra={"agent": self.name, "target": target.value, "sql": runnable[:200]},
        )

        try:
            await connector.connect()
            result = await connector.execute(runnable, params or None, timeout=self.timeout)
        except ConnectorError as exc:
            logger.warning(
                f"[{self.name}] Query failed on {target.value}: {exc}",
                extra={"agent": self.name, "target": target.value},
            )
            return ExecutionResult(error=str(exc))

        diagnostics = diagnose_aggregates(runnable, result.rows)
        if diagnostics:
            logger.info(
                f"[{self.name}] Aggregate result is empty; attaching diagnostics",
                extra={"agent": self.name, "target": target.value},
            )
        return ExecutionResult(
            rows=result.rows,
            row_count=result.row_count,
            diagnostics=diagnostics,
        )

    async def health_check(self) -> dict[str, bool]:
        """Reachability per target; unconfigured targets report False."""
        status: dict[str, bool] = {}
        for target in TargetDatabase:
            connector = self.connectors.get(target)
            status[target.value] = await connector.health_check() if connector else False
        return status

    async def close(self) -> None:
        for connector in self.connectors.values():
            await connector.close()
