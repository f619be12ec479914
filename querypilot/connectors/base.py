"""
Base Database Connector

Generated SQL runs against one of two MySQL targets through a connector.
Connectors are read-only by contract: they execute exactly the statement
they are given, return rows as dicts, and report failures as
ConnectorError subclasses so the executor can turn them into results.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class QueryResult(BaseModel):
    """Rows returned by one statement."""

    rows: list[dict[str, Any]] = Field(..., description="Result rows keyed by column")
    row_count: int = Field(..., description="len(rows)")
    columns: list[str] = Field(..., description="Column names in select order")
    execution_time_ms: float = Field(..., description="Wall time spent in the driver")


class ConnectorError(Exception):
    """Base exception for connector errors."""


class ConnectionError(ConnectorError):
    """The database could not be reached or refused the credentials."""


class QueryError(ConnectorError):
    """The database rejected or failed the statement."""


class BaseConnector(ABC):
    """
    Read-only connection settings for one target database.

    connect() only validates reachability; implementations may open a
    fresh connection per execute() call.

    Usage:
        async with MySQLConnector.from_url(settings.database.dms_url) as dms:
            result = await dms.execute("SELECT id FROM leads_tickets LIMIT 5")
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        timeout: int = 30,
        **kwargs,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.timeout = timeout
        self.kwargs = kwargs
        self._connected = False

        logger.info(f"Configured {self.__class__.__name__} for {self.label}")

    @property
    def label(self) -> str:
        """user@host:port/database, never including the password."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self) -> None:
        """
        Check that the database accepts our credentials. Idempotent.

        Raises:
            ConnectionError: If the database is unreachable
        """

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Run one statement with optional qmark params.

        Raises:
            ConnectionError: If connect() has not succeeded
            QueryError: If the database rejects the statement
        """

    @abstractmethod
    async def close(self) -> None:
        """Forget connection state. Safe to call repeatedly."""

    async def health_check(self) -> bool:
        """``SELECT 1`` round trip; False on any connector failure."""
        try:
            await self.connect()
            await self.execute("SELECT 1 AS ok")
        except ConnectorError as exc:
            logger.warning(f"Health check failed for {self.label}: {exc}")
            return False
        return True

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        state = "connected" if self._connected else "idle"
        return f"<{self.__class__.__name__} {self.label} ({state})>"
